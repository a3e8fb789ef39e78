"""Manages chunk files in a local scratch directory."""

import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO, List, Union

from chunkstore.base import ChunkStore, validate_session_id
from common.constants import COPY_PIECE_SIZE, DEFAULT_CHUNK_EXTENSION
from common.exceptions import ChunkMissingError, ChunkWriteError
from common.logging_config import get_logger

logger = get_logger(__name__)


class LocalChunkStore(ChunkStore):
    """
    One file per (session, index) under a scratch directory:
    temp_chunks/{session}_chunk_{index}{ext}.
    """

    def __init__(self, temp_dir: Union[str, Path], extension: str = DEFAULT_CHUNK_EXTENSION):
        super().__init__(extension)
        self.temp_dir = Path(temp_dir)

    def ensure_directory(self) -> None:
        """Ensure the scratch directory exists."""
        self.temp_dir.mkdir(parents=True, exist_ok=True)

    def get_chunk_path(self, session_id: str, index: int) -> Path:
        """
        Get file path for a chunk.

        Args:
            session_id: Session identifier
            index: Zero-based chunk index

        Returns:
            Path object for chunk file
        """
        return self.temp_dir / self.chunk_name(session_id, index)

    def put(self, session_id: str, index: int, reader: BinaryIO) -> None:
        """
        Write chunk data to disk.

        Bytes go to a temporary file in the same directory which is then
        renamed over the final name, so readers never see a partial chunk.

        Raises:
            ChunkWriteError: If the write operation fails
        """
        filepath = self.get_chunk_path(session_id, index)
        tmp_name = None
        try:
            self.ensure_directory()
            fd, tmp_name = tempfile.mkstemp(prefix=f".{filepath.name}.", dir=self.temp_dir)
            with os.fdopen(fd, 'wb') as f:
                shutil.copyfileobj(reader, f, COPY_PIECE_SIZE)
            os.replace(tmp_name, filepath)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise ChunkWriteError(f"Failed to write chunk {index} of session {session_id}: {e}") from e

        logger.debug(f"Stored chunk {index} for session {session_id} at {filepath}")

    def get(self, session_id: str, index: int) -> BinaryIO:
        filepath = self.get_chunk_path(session_id, index)
        try:
            return open(filepath, 'rb')
        except FileNotFoundError as e:
            raise ChunkMissingError(
                f"Chunk {index} of session {session_id} is missing", index=index
            ) from e

    def delete(self, session_id: str, index: int) -> bool:
        filepath = self.get_chunk_path(session_id, index)
        if filepath.exists():
            filepath.unlink()
            return True
        return False

    def exists(self, session_id: str, index: int) -> bool:
        return self.get_chunk_path(session_id, index).exists()

    def list_chunks(self, session_id: str) -> List[int]:
        """
        List chunk indices present on disk for one session.

        Args:
            session_id: Session identifier

        Returns:
            Sorted list of chunk indices
        """
        validate_session_id(session_id)
        if not self.temp_dir.exists():
            return []

        pattern = re.compile(
            rf'^{re.escape(session_id)}_chunk_(\d+){re.escape(self.extension)}$'
        )
        indices = []
        for filepath in self.temp_dir.iterdir():
            match = pattern.match(filepath.name)
            if match:
                indices.append(int(match.group(1)))
        return sorted(indices)
