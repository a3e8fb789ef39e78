"""Split a recording file into fixed-size upload chunks."""

from pathlib import Path
from typing import Iterator, Tuple

from common.constants import CLIENT_CHUNK_SIZE


def count_chunks(file_size: int, chunk_size: int = CLIENT_CHUNK_SIZE) -> int:
    """
    Number of chunks needed for a file.

    An empty file is still sent as one empty chunk so the session can complete.

    Args:
        file_size: File size in bytes
        chunk_size: Bytes per chunk

    Returns:
        Chunk count, at least 1
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return max(1, -(-file_size // chunk_size))


def iter_chunks(path: Path, chunk_size: int = CLIENT_CHUNK_SIZE) -> Iterator[Tuple[int, bytes]]:
    """
    Yield (chunk_index, data) pairs for a file, starting at index 0.

    Args:
        path: File to split
        chunk_size: Bytes per chunk

    Yields:
        Zero-based chunk index and chunk bytes
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    with open(path, 'rb') as f:
        index = 0
        while True:
            data = f.read(chunk_size)
            if not data:
                break
            yield index, data
            index += 1

    if index == 0:
        yield 0, b''
