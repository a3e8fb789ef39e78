"""Shared pytest fixtures for all tests."""

import io
from pathlib import Path
from typing import BinaryIO, Dict, Set, Union

import pytest

from common.exceptions import BlobNotFoundError, RemoteTransferError
from coordinator.config import STORAGE_MODE_GCS, UploadConfig
from coordinator.upload_coordinator import UploadCoordinator


class InMemoryBlobStore:
    """
    BlobStore double keeping objects in a dict.

    Keys listed in fail_keys raise RemoteTransferError on upload; fail_upload_files
    makes every upload_file call fail.
    """

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.fail_keys: Set[str] = set()
        self.fail_upload_files = False
        self.upload_file_calls = 0

    def upload(self, key: str, reader: BinaryIO) -> None:
        if key in self.fail_keys:
            raise RemoteTransferError(f"upload of {key} refused")
        self.objects[key] = reader.read()

    def upload_file(self, key: str, path: Union[str, Path]) -> None:
        self.upload_file_calls += 1
        if self.fail_upload_files:
            raise RemoteTransferError(f"upload of {key} refused")
        self.objects[key] = Path(path).read_bytes()

    def open_read(self, key: str) -> BinaryIO:
        if key not in self.objects:
            raise BlobNotFoundError(f"{key} not found")
        return io.BytesIO(self.objects[key])

    def delete(self, key: str) -> None:
        if key not in self.objects:
            raise BlobNotFoundError(f"{key} not found")
        del self.objects[key]

    def exists(self, key: str) -> bool:
        return key in self.objects

    def url_for(self, key: str) -> str:
        return f"https://storage.example.test/bucket/{key}"


@pytest.fixture
def upload_config(tmp_path):
    """
    Local-mode configuration rooted in a temporary directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        UploadConfig with uploads/ and temp_chunks/ under tmp_path
    """
    return UploadConfig(
        uploads_dir=tmp_path / 'uploads',
        temp_chunks_dir=tmp_path / 'temp_chunks',
        public_base_url='http://testserver',
        max_chunk_bytes=1024,
    )


@pytest.fixture
def coordinator(upload_config):
    """Local-mode coordinator."""
    return UploadCoordinator.from_config(upload_config)


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def remote_config(tmp_path):
    """GCS-mode configuration; the blob store itself is injected."""
    return UploadConfig(
        uploads_dir=tmp_path / 'uploads',
        temp_chunks_dir=tmp_path / 'temp_chunks',
        storage_mode=STORAGE_MODE_GCS,
        max_chunk_bytes=1024,
    )


@pytest.fixture
def remote_coordinator(remote_config, blob_store):
    """Coordinator storing chunks and artifacts in an InMemoryBlobStore."""
    return UploadCoordinator.from_config(remote_config, blob_store=blob_store)


@pytest.fixture
def sample_recording(tmp_path):
    """
    Create a sample recording file for CLI uploads.

    Returns:
        Path to a 10-byte file
    """
    file_path = tmp_path / 'recording.webm'
    file_path.write_bytes(b'0123456789')
    return file_path
