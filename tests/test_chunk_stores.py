"""Tests for local and blob-backed chunk stores."""

import io

import pytest

from chunkstore.base import validate_session_id
from chunkstore.blob_chunk_store import BlobChunkStore
from chunkstore.local_store import LocalChunkStore
from common.exceptions import ChunkMissingError, ChunkWriteError, InvalidSessionIdError


class TestValidateSessionId:
    """Test session identifier validation."""

    @pytest.mark.parametrize("session_id", ["abc", "rec-1_2.x", "a" * 128])
    def test_accepts_safe_identifiers(self, session_id):
        assert validate_session_id(session_id) == session_id

    @pytest.mark.parametrize("session_id", ["", ".", "..", "../etc", "a/b", "a b", "a" * 129])
    def test_rejects_unsafe_identifiers(self, session_id):
        with pytest.raises(InvalidSessionIdError):
            validate_session_id(session_id)


class TestLocalChunkStore:
    """Test LocalChunkStore file handling."""

    @pytest.fixture
    def store(self, tmp_path):
        return LocalChunkStore(tmp_path / 'temp_chunks', '.webm')

    def test_put_and_get(self, store):
        store.put('s1', 0, io.BytesIO(b'hello'))

        with store.get('s1', 0) as reader:
            assert reader.read() == b'hello'
        assert store.get_chunk_path('s1', 0).name == 's1_chunk_0.webm'

    def test_put_overwrites(self, store):
        store.put('s1', 0, io.BytesIO(b'first'))
        store.put('s1', 0, io.BytesIO(b'second'))

        with store.get('s1', 0) as reader:
            assert reader.read() == b'second'

    def test_put_leaves_no_temp_files(self, store):
        store.put('s1', 0, io.BytesIO(b'data'))

        assert [p.name for p in store.temp_dir.iterdir()] == ['s1_chunk_0.webm']

    def test_get_missing_chunk(self, store):
        with pytest.raises(ChunkMissingError) as exc_info:
            store.get('s1', 4)

        assert exc_info.value.index == 4

    def test_delete(self, store):
        store.put('s1', 0, io.BytesIO(b'data'))

        assert store.delete('s1', 0) is True
        assert store.delete('s1', 0) is False
        assert not store.exists('s1', 0)

    def test_list_chunks_filters_by_session(self, store):
        for index in (2, 0):
            store.put('s1', index, io.BytesIO(b'x'))
        store.put('s10', 1, io.BytesIO(b'y'))

        assert store.list_chunks('s1') == [0, 2]
        assert store.list_chunks('s10') == [1]

    def test_write_failure(self, store, tmp_path):
        blocker = tmp_path / 'blocked'
        blocker.write_text('not a directory')
        broken = LocalChunkStore(blocker / 'chunks', '.webm')

        with pytest.raises(ChunkWriteError):
            broken.put('s1', 0, io.BytesIO(b'data'))

    def test_rejects_unsafe_session(self, store):
        with pytest.raises(InvalidSessionIdError):
            store.put('../x', 0, io.BytesIO(b'data'))


class TestBlobChunkStore:
    """Test BlobChunkStore key layout and error mapping."""

    @pytest.fixture
    def store(self, blob_store):
        return BlobChunkStore(blob_store, 'testing', '.webm')

    def test_object_key(self, store):
        assert store.object_key('s1', 3) == 'testing/s1_chunk_3.webm'

    def test_put_and_get(self, store, blob_store):
        store.put('s1', 0, io.BytesIO(b'abc'))

        assert blob_store.objects['testing/s1_chunk_0.webm'] == b'abc'
        with store.get('s1', 0) as reader:
            assert reader.read() == b'abc'

    def test_put_failure_maps_to_write_error(self, store, blob_store):
        blob_store.fail_keys.add('testing/s1_chunk_0.webm')

        with pytest.raises(ChunkWriteError):
            store.put('s1', 0, io.BytesIO(b'abc'))

    def test_get_missing_chunk(self, store):
        with pytest.raises(ChunkMissingError):
            store.get('s1', 0)

    def test_delete(self, store):
        store.put('s1', 0, io.BytesIO(b'abc'))

        assert store.delete('s1', 0) is True
        assert store.delete('s1', 0) is False
        assert not store.exists('s1', 0)

    def test_empty_prefix(self, blob_store):
        store = BlobChunkStore(blob_store, '', '.webm')

        assert store.object_key('s1', 0) == 's1_chunk_0.webm'
