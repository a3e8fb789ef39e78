"""Ordered reassembly of stored chunks into the final artifact."""

import uuid
from pathlib import Path
from typing import List, Optional, Union

from chunkstore.base import ChunkStore, validate_session_id
from chunkstore.blob_store import BlobStore
from common.constants import (
    COPY_PIECE_SIZE,
    DEFAULT_CHUNK_EXTENSION,
    DEFAULT_REMOTE_PREFIX,
    FINAL_ARTIFACT_SUFFIX,
    PARTIAL_ARTIFACT_SUFFIX,
)
from common.exceptions import (
    ArtifactWriteError,
    RemoteTransferError,
    StorageError,
)
from common.logging_config import get_logger

logger = get_logger(__name__)


class ReassemblyEngine:
    """
    Concatenates chunks 0..total-1 of a session into one artifact file and
    optionally relocates it to a blob store.

    All methods block on I/O; the coordinator runs them in an executor.
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        uploads_dir: Union[str, Path],
        extension: str = DEFAULT_CHUNK_EXTENSION,
        blob_store: Optional[BlobStore] = None,
        remote_prefix: str = DEFAULT_REMOTE_PREFIX,
    ):
        self.chunk_store = chunk_store
        self.uploads_dir = Path(uploads_dir)
        self.extension = extension
        self.blob_store = blob_store
        self.remote_prefix = remote_prefix.strip('/')

    def artifact_path(self, session_id: str, per_session_dir: bool = False) -> Path:
        """
        Fresh, session-independent artifact location.

        Returns:
            uploads/{uuid}_final_video{ext}, or
            uploads/{session}/{uuid}_final_video{ext} when per_session_dir is set
        """
        name = f"{uuid.uuid4()}{FINAL_ARTIFACT_SUFFIX}{self.extension}"
        if per_session_dir:
            return self.uploads_dir / validate_session_id(session_id) / name
        return self.uploads_dir / name

    def merge(self, session_id: str, total: int, per_session_dir: bool = False) -> Path:
        """
        Merge all chunks of a session, in ascending index order.

        Each chunk is deleted from the chunk store once its bytes have been
        appended. On failure the partial artifact is removed and the raised
        StorageError lists the indices already consumed.

        Args:
            session_id: Session identifier
            total: Number of chunks to merge
            per_session_dir: Place the artifact in a per-session subdirectory

        Returns:
            Path of the completed local artifact

        Raises:
            ChunkMissingError: A chunk is absent from the chunk store
            ArtifactWriteError: The artifact could not be created or written
            StorageError: A chunk could not be read or deleted, or any other
                failure interrupted the merge
        """
        final_path = self.artifact_path(session_id, per_session_dir)
        partial_path = final_path.with_name(final_path.name + PARTIAL_ARTIFACT_SUFFIX)
        consumed: List[int] = []

        try:
            final_path.parent.mkdir(parents=True, exist_ok=True)
            output = open(partial_path, 'wb')
        except OSError as e:
            raise ArtifactWriteError(f"Failed to create final file {final_path}: {e}") from e

        logger.info(f"Merging {total} chunks of session {session_id} into {final_path}")

        try:
            with output:
                for index in range(total):
                    self._append_chunk(session_id, index, output, consumed)
            partial_path.replace(final_path)
        except StorageError as e:
            self._discard(partial_path)
            e.consumed = tuple(consumed)
            logger.error(f"Merge of session {session_id} aborted: {e}")
            raise
        except OSError as e:
            self._discard(partial_path)
            logger.error(f"Merge of session {session_id} aborted: {e}")
            raise ArtifactWriteError(f"Failed to finalize {final_path}: {e}", consumed) from e
        except Exception as e:
            self._discard(partial_path)
            logger.error(f"Merge of session {session_id} aborted: {type(e).__name__}: {e}")
            raise StorageError(f"Failed to merge session {session_id}: {e}", consumed) from e

        logger.info(f"Final video saved as {final_path}")
        return final_path

    def _append_chunk(self, session_id: str, index: int, output, consumed: List[int]) -> None:
        try:
            reader = self.chunk_store.get(session_id, index)
        except (OSError, RemoteTransferError) as e:
            raise StorageError(f"Failed to open chunk {index}: {e}") from e

        with reader:
            while True:
                try:
                    piece = reader.read(COPY_PIECE_SIZE)
                except (OSError, RemoteTransferError) as e:
                    raise StorageError(f"Failed to read chunk {index}: {e}") from e
                if not piece:
                    break
                try:
                    output.write(piece)
                except OSError as e:
                    raise ArtifactWriteError(f"Failed to merge chunk {index}: {e}") from e

        try:
            self.chunk_store.delete(session_id, index)
        except (OSError, RemoteTransferError) as e:
            raise StorageError(f"Failed to delete chunk {index} after merge: {e}") from e
        consumed.append(index)

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove partial artifact {path}: {e}")

    def remote_key(self, artifact: Path) -> str:
        return f"{self.remote_prefix}/{artifact.name}" if self.remote_prefix else artifact.name

    def relocate(self, artifact: Path) -> str:
        """
        Push a completed artifact to the blob store and delete the local copy.

        Args:
            artifact: Local artifact path

        Returns:
            Object key of the uploaded artifact

        Raises:
            RemoteTransferError: Upload or local delete-after-upload failed
        """
        if self.blob_store is None:
            raise RemoteTransferError("No blob store configured for relocation")

        key = self.remote_key(artifact)
        self.blob_store.upload_file(key, artifact)

        try:
            artifact.unlink()
        except OSError as e:
            raise RemoteTransferError(
                f"Failed to delete {artifact} from uploads directory after upload: {e}"
            ) from e

        logger.info(f"Relocated {artifact.name} to {key}")
        return key

