"""
Integration tests for the HTTP/1.0 server.
"""

import json
import socket
import time
from typing import Generator, List

import pytest

from conftest import LoopRunner, recv_all, wait_for
from tcpsocket import BindError, SocketConfig
from tcpsocket.http import HttpRequest, HttpResponse, HttpServer, HttpServerDelegate, HttpStatus


class RecordingDelegate(HttpServerDelegate):
    """Answers /api/v1/get with {"error": 0}, everything else with None."""

    def __init__(self):
        self.requests: List[HttpRequest] = []

    def on_session(self, request):
        self.requests.append(request)
        if request.uri.path == ["api", "v1", "get"]:
            return HttpResponse.json({"error": 0})
        if request.uri.path == ["crash"]:
            raise RuntimeError("delegate bug")
        return None


@pytest.fixture
def delegate() -> RecordingDelegate:
    return RecordingDelegate()


@pytest.fixture
def http_config() -> SocketConfig:
    return SocketConfig(port=0, timeout=0, max_request_size=4096)


@pytest.fixture
def http_runner(delegate, http_config) -> Generator[LoopRunner, None, None]:
    server = HttpServer(delegate, http_config)
    runner = LoopRunner(server, lambda: server.serve(0.05)).start()
    yield runner
    runner.stop()
    server.close()


def exchange(runner: LoopRunner, *chunks: bytes) -> bytes:
    """Send chunks (with a pause between them), return the full response."""
    client = runner.connect()
    try:
        for chunk in chunks:
            client.sendall(chunk)
            time.sleep(0.05)
        return recv_all(client)
    finally:
        client.close()


def parse_response(raw: bytes):
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("utf-8").split("\r\n")
    headers = dict(line.split(": ", 1) for line in lines[1:])
    return lines[0], headers, body


class TestRequests:
    """Tests for complete request/response exchanges."""

    def test_post_with_query_and_json(self, http_runner, delegate):
        body = json.dumps({"content": "information", "timestamp": 1}).encode()
        request = (
            b"POST /api/v1/get?user=guest&feedback=none HTTP/1.0\r\n"
            b"Content-Type: application/json\r\n"
            + f"Content-Length: {len(body)}\r\n\r\n".encode()
            + body
        )

        status_line, headers, response_body = parse_response(exchange(http_runner, request))

        assert status_line == "HTTP/1.0 200 OK"
        assert headers["content-type"] == "application/json"
        assert headers["server"] == "TcpSocket/1.0"
        assert json.loads(response_body) == {"error": 0}

        received = delegate.requests[0]
        assert received.uri.parameters == {"user": "guest", "feedback": "none"}
        assert received.json == {"content": "information", "timestamp": 1}

    def test_request_split_across_chunks(self, http_runner, delegate):
        body = b'{"a": 1}'
        head = (
            b"POST /api/v1/get HTTP/1.0\r\n"
            + f"Content-Length: {len(body)}\r\n".encode()
        )

        raw = exchange(http_runner, head, b"\r\n", b"\r\n" + body[:3], body[3:])

        assert parse_response(raw)[0] == "HTTP/1.0 200 OK"
        assert len(delegate.requests) == 1
        assert delegate.requests[0].body == body

    def test_unknown_path_is_404(self, http_runner):
        raw = exchange(http_runner, b"GET /nowhere HTTP/1.0\r\n\r\n")
        status_line, _, body = parse_response(raw)
        assert status_line == "HTTP/1.0 404 Not Found"
        assert body == b"Not Found"

    def test_head_has_no_body(self, http_runner):
        raw = exchange(http_runner, b"HEAD /api/v1/get HTTP/1.0\r\n\r\n")
        status_line, headers, body = parse_response(raw)
        assert status_line == "HTTP/1.0 200 OK"
        assert headers["content-length"] == str(len(b'{"error": 0}'))
        assert body == b""


class TestErrors:
    """Tests for error responses."""

    def test_malformed_request_is_400(self, http_runner, delegate):
        raw = exchange(http_runner, b"BREW /pot HTCPCP/1.0\r\n\r\n")
        assert parse_response(raw)[0] == "HTTP/1.0 400 Bad Request"
        assert delegate.requests == []

    def test_oversized_request_is_413(self, http_runner, delegate):
        raw = exchange(http_runner, b"POST /api/v1/get HTTP/1.0\r\n" + b"X" * 5000)
        assert parse_response(raw)[0] == "HTTP/1.0 413 Payload Too Large"
        assert delegate.requests == []

    def test_delegate_exception_is_500(self, http_runner):
        raw = exchange(http_runner, b"GET /crash HTTP/1.0\r\n\r\n")
        assert parse_response(raw)[0] == "HTTP/1.0 500 Internal Server Error"

        # The server keeps serving
        raw = exchange(http_runner, b"GET /api/v1/get HTTP/1.0\r\n\r\n")
        assert parse_response(raw)[0] == "HTTP/1.0 200 OK"


class TestPendingBuffers:
    """Tests for per-connection request buffers."""

    def test_buffer_dropped_when_client_leaves(self, http_runner):
        server = http_runner.endpoint
        client = http_runner.connect()
        client.sendall(b"GET /api/v1/get HTTP/1.0\r\n")
        assert wait_for(lambda: len(server._pending) == 1)

        client.close()

        assert http_runner.wait_for_peers(0)
        assert server._pending == {}

    def test_buffer_dropped_when_peer_closed_directly(self, delegate, http_config):
        server = HttpServer(delegate, http_config)
        try:
            with socket.create_connection(("127.0.0.1", server.port), timeout=5.0) as client:
                client.sendall(b"GET /api/v1/get HTTP/1.0\r\n")
                assert wait_for(lambda: server.select(0.05, server.handle) >= 0
                                and len(server._pending) == 1)

                server.peers[0].close()
                server.select(0.05, server.handle)

                assert server._pending == {}
                assert server.peer_count == 0
        finally:
            server.close()


class TestConstruction:
    """Tests for HttpServer setup."""

    def test_invalid_config_fails_fast(self, delegate):
        with pytest.raises(ValueError):
            HttpServer(delegate, SocketConfig(port=70000))

    def test_port_in_use(self, delegate, http_runner):
        port = http_runner.endpoint.port
        config = SocketConfig(port=port)

        with pytest.raises(BindError) as exc_info:
            HttpServer(delegate, config)

        assert exc_info.value.address == ("127.0.0.1", port)

    def test_ready_after_construction(self, delegate):
        server = HttpServer(delegate, SocketConfig(port=0))
        try:
            assert server.is_listening
            assert server.port != 0
        finally:
            server.close()

    def test_status_enum_is_exported(self):
        assert HttpStatus.NOT_FOUND.phrase == "Not Found"
