"""Custom exception classes for the upload coordinator and its storage backends."""

from typing import Iterable, Optional, Sequence


class UploadError(Exception):
    """
    Base exception class for all upload-related errors.
    """
    pass


class ClientInputError(UploadError):
    """
    Raised when a request carries malformed or out-of-range values.
    No state is mutated when this is raised.
    """
    pass


class InvalidChunkError(ClientInputError):
    """
    Raised when a chunk index or total chunk count is invalid for the session.
    """
    pass


class ChunkTooLargeError(ClientInputError):
    """
    Raised when a chunk payload exceeds the configured size limit.
    """
    pass


class InvalidSessionIdError(ClientInputError):
    """
    Raised when a session identifier cannot be used as a storage name.
    """
    pass


class SessionStateError(UploadError):
    """
    Base class for requests that conflict with the session's lifecycle state.
    """
    pass


class SessionNotFoundError(SessionStateError):
    """
    Raised when a session identifier is unknown to the registry.
    """
    pass


class SessionIncompleteError(SessionStateError):
    """
    Raised when finalize is requested before every chunk has arrived.
    """

    def __init__(self, message: str, missing: Iterable[int] = ()):
        super().__init__(message)
        self.missing = tuple(missing)


class SessionClosedError(SessionStateError):
    """
    Raised when a chunk arrives for a session that was already finalized.
    """
    pass


class FinalizeInProgressError(SessionStateError):
    """
    Raised when a second finalize is attempted while a merge is running.
    """
    pass


class StorageError(UploadError):
    """
    Raised when chunk or artifact I/O fails on the local/scratch side.

    Attributes:
        consumed: Chunk indices that were merged and deleted before the failure
    """

    def __init__(self, message: str, consumed: Sequence[int] = ()):
        super().__init__(message)
        self.consumed = tuple(consumed)


class ChunkMissingError(StorageError):
    """
    Raised when a chunk cannot be found in the chunk store.
    """

    def __init__(self, message: str, index: Optional[int] = None, consumed: Sequence[int] = ()):
        super().__init__(message, consumed)
        self.index = index


class ChunkWriteError(StorageError):
    """
    Raised when chunk bytes cannot be stored.
    """
    pass


class ArtifactWriteError(StorageError):
    """
    Raised when the final artifact cannot be created or written.
    """
    pass


class RemoteTransferError(UploadError):
    """
    Raised when uploading to or deleting from the blob store fails.
    """
    pass


class BlobNotFoundError(RemoteTransferError):
    """
    Raised when a requested object does not exist in the blob store.
    """
    pass
