"""Unit tests for the CLI chunker and UploaderClient."""

import json

import httpx
import pytest

from cli.chunker import count_chunks, iter_chunks
from cli.main import build_parser
from cli.uploader_client import UploadClientError, UploaderClient


class FakeUploadServer:
    """Minimal stand-in for the upload API, recording every request."""

    def __init__(self, fail_first=0):
        self.requests = []
        self.chunks = {}
        self.fail_first = fail_first

    def __call__(self, request):
        self.requests.append(request)
        if self.fail_first:
            self.fail_first -= 1
            return httpx.Response(503, json={'detail': 'busy', 'code': 'INTERNAL_ERROR'})

        path = request.url.path
        if path in ('/upload', '/upload-screen-recording'):
            body = request.content
            fields = {}
            for name in ('chunkIndex', 'totalChunks', 'session'):
                marker = f'name="{name}"\r\n\r\n'.encode()
                start = body.index(marker) + len(marker)
                fields[name] = body[start:body.index(b'\r\n', start)].decode()
            session = fields['session']
            total = int(fields['totalChunks'])
            received = self.chunks.setdefault(session, set())
            received.add(int(fields['chunkIndex']))
            if path == '/upload' and len(received) == total:
                return httpx.Response(200, json={
                    'message': 'Upload complete',
                    'url': f'http://testserver/files/uploads/{session}_final_video.webm',
                })
            return httpx.Response(200, json={
                'message': 'Chunk received', 'receivedChunks': len(received), 'totalChunks': total,
            })

        if path == '/finalize':
            payload = json.loads(request.content)
            session = payload['session']
            if len(self.chunks.get(session, ())) != payload['totalChunks']:
                return httpx.Response(409, json={
                    'detail': 'incomplete', 'code': 'SESSION_INCOMPLETE', 'missing': [0],
                })
            return httpx.Response(200, json={
                'message': 'Upload complete',
                'url': f'http://testserver/files/uploads/{session}/x_final_video.webm',
            })

        if path.startswith('/upload/'):
            return httpx.Response(404, json={'detail': 'Session not found', 'code': 'SESSION_NOT_FOUND'})

        return httpx.Response(404)


def make_client(server, **kwargs):
    return UploaderClient(
        'http://testserver', transport=httpx.MockTransport(server), sleep=lambda _: None, **kwargs
    )


class TestChunker:
    """Test file splitting."""

    @pytest.mark.parametrize("size,chunk_size,expected", [(0, 4, 1), (1, 4, 1), (4, 4, 1), (5, 4, 2), (12, 4, 3)])
    def test_count_chunks(self, size, chunk_size, expected):
        assert count_chunks(size, chunk_size) == expected

    def test_iter_chunks(self, sample_recording):
        assert list(iter_chunks(sample_recording, 4)) == [(0, b'0123'), (1, b'4567'), (2, b'89')]

    def test_empty_file_yields_one_chunk(self, tmp_path):
        empty = tmp_path / 'empty.webm'
        empty.write_bytes(b'')

        assert list(iter_chunks(empty, 4)) == [(0, b'')]

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            count_chunks(10, 0)


class TestUploaderClient:
    """Test UploaderClient flows against a fake server."""

    def test_upload_file_auto_finalize(self, sample_recording):
        server = FakeUploadServer()
        progress = []

        with make_client(server) as client:
            url = client.upload_file(
                sample_recording, session='s1', chunk_size=4,
                progress=lambda done, total: progress.append((done, total)),
            )

        assert url == 'http://testserver/files/uploads/s1_final_video.webm'
        assert progress == [(1, 3), (2, 3), (3, 3)]
        assert [r.url.path for r in server.requests] == ['/upload'] * 3

    def test_upload_file_screen_recording(self, sample_recording):
        server = FakeUploadServer()

        with make_client(server) as client:
            url = client.upload_file(sample_recording, session='rec', chunk_size=4, screen_recording=True)

        assert url.endswith('/rec/x_final_video.webm')
        assert [r.url.path for r in server.requests] == ['/upload-screen-recording'] * 3 + ['/finalize']

    def test_request_id_header(self, sample_recording):
        server = FakeUploadServer()

        with make_client(server) as client:
            client.upload_file(sample_recording, session='s1', chunk_size=100)

        assert server.requests[0].headers['X-Request-ID']

    def test_retries_server_errors(self, sample_recording):
        server = FakeUploadServer(fail_first=2)

        with make_client(server, max_retries=3) as client:
            url = client.upload_file(sample_recording, session='s1', chunk_size=100)

        assert url.endswith('s1_final_video.webm')
        assert len(server.requests) == 3

    def test_gives_up_after_retries(self):
        server = FakeUploadServer(fail_first=10)

        with make_client(server, max_retries=1) as client:
            with pytest.raises(UploadClientError) as exc_info:
                client.finalize('s1', 1)

        assert exc_info.value.status_code == 503
        assert len(server.requests) == 2

    def test_client_error_not_retried(self):
        server = FakeUploadServer()

        with make_client(server) as client:
            with pytest.raises(UploadClientError) as exc_info:
                client.finalize('s1', 2)

        assert exc_info.value.code == 'SESSION_INCOMPLETE'
        assert exc_info.value.status_code == 409
        assert len(server.requests) == 1

    def test_connection_error(self):
        def refuse(request):
            raise httpx.ConnectError('refused', request=request)

        sleeps = []
        client = UploaderClient(
            'http://testserver', max_retries=2, transport=httpx.MockTransport(refuse), sleep=sleeps.append
        )

        with pytest.raises(UploadClientError):
            client.status('s1')
        assert sleeps == [1, 2]
        client.close()

    def test_status_not_found(self):
        with make_client(FakeUploadServer()) as client:
            with pytest.raises(UploadClientError) as exc_info:
                client.status('ghost')

        assert exc_info.value.code == 'SESSION_NOT_FOUND'


class TestParser:
    """Test CLI argument parsing."""

    def test_upload_arguments(self, monkeypatch):
        monkeypatch.setenv('UPLOAD_SERVER_URL', 'http://uploads:8080')

        args = build_parser().parse_args(['upload', 'rec.webm', '--session', 's1', '--screen-recording'])

        assert args.command == 'upload'
        assert args.session == 's1'
        assert args.screen_recording
        assert args.server == 'http://uploads:8080'
        assert args.chunk_size == 128 * 1024

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])
