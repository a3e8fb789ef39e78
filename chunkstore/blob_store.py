"""Blob store capability used for remote chunk and artifact persistence."""

from pathlib import Path
from typing import BinaryIO, Protocol, Union


class BlobStore(Protocol):
    """
    Protocol for remote object storage.

    Missing objects raise BlobNotFoundError; any other transport failure
    raises RemoteTransferError.
    """

    def upload(self, key: str, reader: BinaryIO) -> None:
        """Store the remaining bytes of reader under key."""
        ...

    def upload_file(self, key: str, path: Union[str, Path]) -> None:
        """Store a local file under key."""
        ...

    def open_read(self, key: str) -> BinaryIO:
        """Open an object for streaming reads."""
        ...

    def delete(self, key: str) -> None:
        """Delete an object."""
        ...

    def exists(self, key: str) -> bool:
        """Check whether an object exists."""
        ...

    def url_for(self, key: str) -> str:
        """Return a URL a client can fetch the object from."""
        ...
