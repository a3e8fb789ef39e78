"""Chunk store backed by a remote blob store."""

from typing import BinaryIO

from chunkstore.base import ChunkStore
from chunkstore.blob_store import BlobStore
from common.constants import DEFAULT_CHUNK_EXTENSION, DEFAULT_REMOTE_PREFIX
from common.exceptions import (
    BlobNotFoundError,
    ChunkMissingError,
    ChunkWriteError,
    RemoteTransferError,
)
from common.logging_config import get_logger

logger = get_logger(__name__)


class BlobChunkStore(ChunkStore):
    """
    Each chunk is one object named {prefix}/{session}_chunk_{index}{ext}.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        prefix: str = DEFAULT_REMOTE_PREFIX,
        extension: str = DEFAULT_CHUNK_EXTENSION,
    ):
        super().__init__(extension)
        self.blob_store = blob_store
        self.prefix = prefix.strip('/')

    def object_key(self, session_id: str, index: int) -> str:
        name = self.chunk_name(session_id, index)
        return f"{self.prefix}/{name}" if self.prefix else name

    def put(self, session_id: str, index: int, reader: BinaryIO) -> None:
        key = self.object_key(session_id, index)
        try:
            self.blob_store.upload(key, reader)
        except RemoteTransferError as e:
            raise ChunkWriteError(f"Failed to upload chunk {index} of session {session_id}: {e}") from e
        logger.debug(f"Stored chunk {index} for session {session_id} as {key}")

    def get(self, session_id: str, index: int) -> BinaryIO:
        key = self.object_key(session_id, index)
        try:
            return self.blob_store.open_read(key)
        except BlobNotFoundError as e:
            raise ChunkMissingError(
                f"Chunk {index} of session {session_id} is missing", index=index
            ) from e

    def delete(self, session_id: str, index: int) -> bool:
        try:
            self.blob_store.delete(self.object_key(session_id, index))
        except BlobNotFoundError:
            return False
        return True

    def exists(self, session_id: str, index: int) -> bool:
        return self.blob_store.exists(self.object_key(session_id, index))
