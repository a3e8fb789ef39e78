"""Uniform interface over scratch storage for individual chunk bytes."""

import re
from abc import ABC, abstractmethod
from typing import BinaryIO

from common.constants import MAX_SESSION_ID_LENGTH
from common.exceptions import InvalidSessionIdError

_SESSION_ID_PATTERN = re.compile(r'^[A-Za-z0-9_.-]+$')


def validate_session_id(session_id: str) -> str:
    """
    Check that a client-supplied session identifier is safe to embed in a
    file name or object key.

    Args:
        session_id: Opaque session token

    Returns:
        The same session identifier

    Raises:
        InvalidSessionIdError: If the identifier is empty, too long or contains
            characters outside [A-Za-z0-9_.-]
    """
    if not session_id:
        raise InvalidSessionIdError("Session identifier is required")
    if len(session_id) > MAX_SESSION_ID_LENGTH:
        raise InvalidSessionIdError(
            f"Session identifier longer than {MAX_SESSION_ID_LENGTH} characters"
        )
    if session_id in ('.', '..') or not _SESSION_ID_PATTERN.match(session_id):
        raise InvalidSessionIdError(f"Invalid session identifier: {session_id!r}")
    return session_id


class ChunkStore(ABC):
    """
    Durable scratch area for chunk bytes keyed by (session, index).

    Implementations do no locking; the coordinator serializes bookkeeping per
    session.
    """

    def __init__(self, extension: str = ""):
        self.extension = extension

    def chunk_name(self, session_id: str, index: int) -> str:
        """
        Name of the scratch file/object holding one chunk.

        Args:
            session_id: Session identifier
            index: Zero-based chunk index

        Returns:
            "{session}_chunk_{index}{ext}"
        """
        validate_session_id(session_id)
        return f"{session_id}_chunk_{index}{self.extension}"

    @abstractmethod
    def put(self, session_id: str, index: int, reader: BinaryIO) -> None:
        """
        Drain reader fully and store it as chunk (session_id, index).

        Raises:
            ChunkWriteError: If the bytes could not be stored
        """

    @abstractmethod
    def get(self, session_id: str, index: int) -> BinaryIO:
        """
        Open a stored chunk for reading. The caller closes the reader.

        Raises:
            ChunkMissingError: If the chunk is not present
        """

    @abstractmethod
    def delete(self, session_id: str, index: int) -> bool:
        """
        Remove a stored chunk.

        Returns:
            True if the chunk was deleted, False if it did not exist
        """

    @abstractmethod
    def exists(self, session_id: str, index: int) -> bool:
        """Check whether a chunk is present."""
