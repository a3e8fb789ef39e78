"""Google Cloud Storage implementation of the BlobStore protocol."""

from datetime import timedelta
from pathlib import Path
from typing import Any, BinaryIO, Optional, Union

from google.api_core import exceptions as gcs_exceptions
from google.cloud import storage

from common.exceptions import BlobNotFoundError, RemoteTransferError
from common.logging_config import get_logger

logger = get_logger(__name__)


class GcsObjectReader:
    """
    Read-only stream over one GCS object.

    Errors raised by the SDK while streaming surface as RemoteTransferError.
    """

    def __init__(self, raw: Any, location: str):
        self._raw = raw
        self.location = location

    def read(self, size: int = -1) -> bytes:
        try:
            return self._raw.read(size)
        except Exception as e:
            raise RemoteTransferError(f"Failed to read {self.location}: {e}") from e

    def close(self) -> None:
        try:
            self._raw.close()
        except Exception as e:
            logger.warning(f"Failed to close reader for {self.location}: {e}")

    def __enter__(self) -> "GcsObjectReader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class GcsBlobStore:
    """
    Stores objects in a single GCS bucket.

    URLs are V4 signed GET URLs when signed_url_ttl is positive, otherwise the
    public https://storage.googleapis.com/{bucket}/{key} form.
    """

    def __init__(
        self,
        bucket_name: str,
        key_file: Optional[str] = None,
        signed_url_ttl: int = 0,
        client: Any = None,
    ) -> None:
        self.bucket_name = bucket_name
        self.signed_url_ttl = signed_url_ttl
        self._client = client or self._default_client(key_file)
        self._bucket = self._client.bucket(bucket_name)

    def _default_client(self, key_file: Optional[str]) -> Any:
        try:
            if key_file and Path(key_file).exists():
                return storage.Client.from_service_account_json(key_file)
            return storage.Client()
        except Exception as e:
            raise RemoteTransferError(f"Failed to create Google Cloud Storage client: {e}") from e

    def upload(self, key: str, reader: BinaryIO) -> None:
        try:
            self._bucket.blob(key).upload_from_file(reader)
        except gcs_exceptions.GoogleAPICallError as e:
            raise RemoteTransferError(f"Failed to upload gs://{self.bucket_name}/{key}: {e}") from e
        logger.debug(f"Uploaded gs://{self.bucket_name}/{key}")

    def upload_file(self, key: str, path: Union[str, Path]) -> None:
        try:
            self._bucket.blob(key).upload_from_filename(str(path))
        except (gcs_exceptions.GoogleAPICallError, OSError) as e:
            raise RemoteTransferError(f"Failed to upload {path} to gs://{self.bucket_name}/{key}: {e}") from e
        logger.info(f"Uploaded {path} to gs://{self.bucket_name}/{key}")

    def open_read(self, key: str) -> BinaryIO:
        location = f"gs://{self.bucket_name}/{key}"
        try:
            blob = self._bucket.get_blob(key)
            if blob is None:
                raise BlobNotFoundError(f"Object {location} not found")
            raw = blob.open("rb")
        except RemoteTransferError:
            raise
        except Exception as e:
            raise RemoteTransferError(f"Failed to open {location}: {e}") from e
        return GcsObjectReader(raw, location)

    def delete(self, key: str) -> None:
        try:
            self._bucket.blob(key).delete()
        except gcs_exceptions.NotFound as e:
            raise BlobNotFoundError(f"Object gs://{self.bucket_name}/{key} not found") from e
        except gcs_exceptions.GoogleAPICallError as e:
            raise RemoteTransferError(f"Failed to delete gs://{self.bucket_name}/{key}: {e}") from e

    def exists(self, key: str) -> bool:
        try:
            return self._bucket.blob(key).exists()
        except gcs_exceptions.GoogleAPICallError as e:
            raise RemoteTransferError(f"Failed to stat gs://{self.bucket_name}/{key}: {e}") from e

    def url_for(self, key: str) -> str:
        blob = self._bucket.blob(key)
        if self.signed_url_ttl > 0:
            try:
                return blob.generate_signed_url(
                    version="v4",
                    expiration=timedelta(seconds=self.signed_url_ttl),
                    method="GET",
                )
            except Exception as e:
                raise RemoteTransferError(f"Unable to generate signed URL for {key}: {e}") from e
        return blob.public_url
