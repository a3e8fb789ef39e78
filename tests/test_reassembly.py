"""Tests for ReassemblyEngine merge and relocation."""

import io

import pytest

from chunkstore.blob_chunk_store import BlobChunkStore
from chunkstore.local_store import LocalChunkStore
from common.exceptions import ChunkMissingError, RemoteTransferError
from coordinator.reassembly import ReassemblyEngine


@pytest.fixture
def chunk_store(tmp_path):
    return LocalChunkStore(tmp_path / 'temp_chunks', '.webm')


@pytest.fixture
def engine(chunk_store, tmp_path):
    return ReassemblyEngine(chunk_store, tmp_path / 'uploads', '.webm')


def store_chunks(chunk_store, session_id, parts):
    for index, data in enumerate(parts):
        chunk_store.put(session_id, index, io.BytesIO(data))


class TestMerge:
    """Test ordered concatenation."""

    def test_concatenates_in_index_order(self, engine, chunk_store):
        for index, data in [(2, b'C'), (0, b'A'), (1, b'B')]:
            chunk_store.put('s1', index, io.BytesIO(data))

        artifact = engine.merge('s1', 3)

        assert artifact.read_bytes() == b'ABC'
        assert artifact.parent == engine.uploads_dir
        assert artifact.name.endswith('_final_video.webm')

    def test_deletes_chunks_after_merge(self, engine, chunk_store):
        store_chunks(chunk_store, 's1', [b'a', b'b'])

        engine.merge('s1', 2)

        assert chunk_store.list_chunks('s1') == []

    def test_per_session_directory(self, engine, chunk_store):
        store_chunks(chunk_store, 's1', [b'x'])

        artifact = engine.merge('s1', 1, per_session_dir=True)

        assert artifact.parent == engine.uploads_dir / 's1'

    def test_artifact_names_are_unique(self, engine, chunk_store):
        store_chunks(chunk_store, 's1', [b'x'])
        first = engine.merge('s1', 1)
        store_chunks(chunk_store, 's1', [b'y'])
        second = engine.merge('s1', 1)

        assert first != second
        assert first.read_bytes() == b'x'

    def test_missing_chunk_discards_partial_artifact(self, engine, chunk_store):
        chunk_store.put('s1', 0, io.BytesIO(b'a'))
        chunk_store.put('s1', 2, io.BytesIO(b'c'))

        with pytest.raises(ChunkMissingError) as exc_info:
            engine.merge('s1', 3)

        assert exc_info.value.index == 1
        assert exc_info.value.consumed == (0,)
        assert list(engine.uploads_dir.iterdir()) == []
        assert chunk_store.list_chunks('s1') == [2]

    def test_large_chunks_copied_completely(self, engine, chunk_store):
        big = bytes(range(256)) * 1024
        store_chunks(chunk_store, 's1', [big, b'tail'])

        artifact = engine.merge('s1', 2)

        assert artifact.read_bytes() == big + b'tail'


class TestRelocate:
    """Test pushing artifacts to the blob store."""

    @pytest.fixture
    def remote_engine(self, blob_store, tmp_path):
        chunk_store = BlobChunkStore(blob_store, 'testing', '.webm')
        return ReassemblyEngine(chunk_store, tmp_path / 'uploads', '.webm', blob_store, 'testing')

    def test_merge_from_blob_chunks_and_relocate(self, remote_engine, blob_store):
        store_chunks(remote_engine.chunk_store, 's1', [b'A', b'B'])

        artifact = remote_engine.merge('s1', 2)
        key = remote_engine.relocate(artifact)

        assert key == f'testing/{artifact.name}'
        assert blob_store.objects[key] == b'AB'
        assert not artifact.exists()
        assert not any(k.startswith('testing/s1_chunk_') for k in blob_store.objects)

    def test_relocate_failure_keeps_local_artifact(self, remote_engine, blob_store):
        store_chunks(remote_engine.chunk_store, 's1', [b'A'])
        artifact = remote_engine.merge('s1', 1)
        blob_store.fail_upload_files = True

        with pytest.raises(RemoteTransferError):
            remote_engine.relocate(artifact)

        assert artifact.read_bytes() == b'A'

    def test_relocate_without_blob_store(self, engine, chunk_store):
        store_chunks(chunk_store, 's1', [b'A'])
        artifact = engine.merge('s1', 1)

        with pytest.raises(RemoteTransferError):
            engine.relocate(artifact)
