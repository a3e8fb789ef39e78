"""HTTP client that uploads a recording to the upload service in chunks."""

import time
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import httpx

from cli.chunker import count_chunks, iter_chunks
from common.constants import CLIENT_CHUNK_SIZE
from common.logging_config import get_logger

logger = get_logger(__name__)


class UploadClientError(Exception):
    """Raised when the upload service rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class UploaderClient:
    """HTTP client for the upload API with retry logic and error handling."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_backoff_multiplier: float = 2,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize uploader client.

        Args:
            base_url: Upload service URL (e.g., http://localhost:8080)
            timeout: Per-request timeout in seconds
            max_retries: Retries on 5xx responses and network errors
            retry_backoff_multiplier: Base of the exponential backoff
            transport: Optional httpx transport (tests use httpx.MockTransport)
            sleep: Sleep function used between retries
        """
        self.base_url = base_url.rstrip('/')
        self.max_retries = max_retries
        self.retry_backoff_multiplier = retry_backoff_multiplier
        self._sleep = sleep
        self.session = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)
        logger.info(f"Initialized UploaderClient [base_url={self.base_url}]")

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "UploaderClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request_with_retry(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Returns:
            HTTP response object (4xx responses are returned without retry)

        Raises:
            UploadClientError: If the service cannot be reached after retries
        """
        request_id = str(uuid.uuid4())
        kwargs.setdefault('headers', {})['X-Request-ID'] = request_id

        last_exception = None
        for attempt in range(self.max_retries + 1):
            try:
                response = self.session.request(method, endpoint, **kwargs)
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < self.max_retries:
                    delay = self.retry_backoff_multiplier ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{self.max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={request_id}]"
                    )
                    self._sleep(delay)
                    continue
                break

            if response.status_code >= 500 and attempt < self.max_retries:
                delay = self.retry_backoff_multiplier ** attempt
                logger.warning(
                    f"Server error (attempt {attempt + 1}/{self.max_retries + 1}): "
                    f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={request_id}]"
                )
                self._sleep(delay)
                continue

            return response

        logger.error(f"Network error (max retries exceeded): {method} {endpoint} error={last_exception}")
        raise UploadClientError(f"Cannot reach upload service at {self.base_url}: {last_exception}")

    @staticmethod
    def _json_or_raise(response: httpx.Response) -> Dict[str, Any]:
        if response.status_code < 400:
            return response.json()

        try:
            error_data = response.json()
            detail = error_data.get('detail', 'Unknown error')
            code = error_data.get('code', 'UNKNOWN')
        except ValueError:
            detail = response.text or 'Unknown error'
            code = 'UNKNOWN'

        if not isinstance(detail, str):
            detail = str(detail)
        raise UploadClientError(f"{detail} (Code: {code})", status_code=response.status_code, code=code)

    def upload_chunk(
        self,
        session: str,
        chunk_index: int,
        total_chunks: int,
        data: bytes,
        screen_recording: bool = False,
    ) -> Dict[str, Any]:
        """
        Upload one chunk.

        Returns:
            Response JSON; contains "url" when this chunk completed the upload
        """
        endpoint = "/upload-screen-recording" if screen_recording else "/upload"
        response = self._request_with_retry(
            "POST",
            endpoint,
            data={
                "chunkIndex": str(chunk_index),
                "totalChunks": str(total_chunks),
                "session": session,
            },
            files={"videoChunk": (f"{session}_chunk_{chunk_index}", data, "application/octet-stream")},
        )
        return self._json_or_raise(response)

    def finalize(self, session: str, total_chunks: int) -> Dict[str, Any]:
        response = self._request_with_retry(
            "POST", "/finalize", json={"totalChunks": total_chunks, "session": session}
        )
        return self._json_or_raise(response)

    def status(self, session: str) -> Dict[str, Any]:
        return self._json_or_raise(self._request_with_retry("GET", f"/upload/{session}"))

    def reset(self, session: str) -> Dict[str, Any]:
        return self._json_or_raise(self._request_with_retry("DELETE", f"/upload/{session}"))

    def upload_file(
        self,
        path: Path,
        session: Optional[str] = None,
        chunk_size: int = CLIENT_CHUNK_SIZE,
        screen_recording: bool = False,
        progress: Optional[Callable[[int, int], None]] = None,
    ) -> str:
        """
        Upload a whole file chunk by chunk and return the artifact URL.

        In the default flow the server finalizes when the last chunk arrives.
        With screen_recording the chunks are only stored and an explicit
        finalize follows.

        Args:
            path: File to upload
            session: Session identifier (a fresh one is generated if omitted)
            chunk_size: Bytes per chunk
            screen_recording: Use the upload-then-finalize flow
            progress: Called with (uploaded_chunks, total_chunks)

        Returns:
            URL of the final artifact

        Raises:
            UploadClientError: If any request fails
        """
        path = Path(path)
        session = session or uuid.uuid4().hex
        total = count_chunks(path.stat().st_size, chunk_size)

        logger.info(f"Uploading {path} as session {session} in {total} chunks")

        url = None
        for index, data in iter_chunks(path, chunk_size):
            result = self.upload_chunk(session, index, total, data, screen_recording=screen_recording)
            if progress:
                progress(index + 1, total)
            if result.get("url"):
                url = result["url"]

        if url:
            return url

        if screen_recording:
            return self.finalize(session, total)["url"]

        # The completing chunk did not return an artifact, e.g. its merge
        # failed and the retried request was treated as a retransmission.
        state = self.status(session)
        if state.get("state") == "done" and state.get("url"):
            return state["url"]
        if state.get("state") == "failed" and not state.get("missing"):
            return self.finalize(session, total)["url"]

        raise UploadClientError(
            f"Upload of session {session} did not complete "
            f"(state={state.get('state')}, missing={state.get('missing')})"
        )
