"""Tests for the socket server: lifecycle, authentication and wire framing."""
import base64
import json
import logging
import signal
import socket
import threading
import time
import urllib.parse

import pytest

from personal_cloud.auth import encode_credentials
from personal_cloud.response import parse_raw_response
from personal_cloud.server import CloudServer, ServerState
from tests.conftest import PASSWORD, USERNAME, read_until_closed, send_raw


def make_server(storage_root, port=0):
    return CloudServer(
        configure_logging=False,
        host="127.0.0.1",
        port=port,
        storage_root=str(storage_root),
        username=USERNAME,
        password=PASSWORD,
        accept_timeout=0.1,
    )


def wait_for(condition, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return False


class TestLifecycle:

    def test_start_and_stop(self, storage_root):
        server = make_server(storage_root)
        assert server.status_text == "Server is stopped"
        assert server.start()
        try:
            assert server.is_running
            assert server.state is ServerState.RUNNING
            assert server.status_text == "Server is running"
            assert server.address[1] != 0
        finally:
            server.stop()
        assert not server.is_running
        assert server.state is ServerState.STOPPED

    def test_start_twice_is_a_noop(self, running_server):
        address = running_server.address
        assert running_server.start() is False
        assert running_server.address == address
        assert running_server.is_running

    def test_stop_when_stopped(self, storage_root):
        server = make_server(storage_root)
        server.stop()
        assert not server.is_running

    def test_bind_failure(self, running_server, storage_root):
        other = make_server(storage_root, port=running_server.address[1])
        assert other.start() is False
        assert not other.is_running

    def test_no_connections_after_stop(self, storage_root):
        server = make_server(storage_root)
        server.start()
        address = server.address
        server.stop()
        with pytest.raises(OSError):
            send_raw(address, b"GET /list HTTP/1.1\r\n\r\n")

    def test_restart(self, storage_root):
        server = make_server(storage_root)
        assert server.start()
        server.stop()
        assert server.start()
        server.stop()

    def test_stop_lets_in_flight_request_finish(self, running_server, storage_root):
        body = urllib.parse.urlencode({
            "filename": "late.txt",
            "content": base64.b64encode(b"finished").decode(),
        }).encode()
        head = (
            "POST /upload HTTP/1.1\r\n"
            f"Authorization: {encode_credentials(USERNAME, PASSWORD)}\r\n"
            f"Content-Length: {len(body)}\r\n\r\n"
        ).encode()

        with socket.create_connection(running_server.address, timeout=5) as sock:
            sock.sendall(head + body[:5])
            assert wait_for(lambda: running_server.active_connections == 1)
            running_server.stop()
            assert not running_server.is_running
            sock.sendall(body[5:])
            response = parse_raw_response(read_until_closed(sock))

        assert response.status_code == 200
        assert response.body_text == "File uploaded successfully"
        assert (storage_root / "late.txt").read_bytes() == b"finished"

    def test_accept_error_does_not_end_loop(self, storage_root, monkeypatch, caplog):
        real_accept = socket.socket.accept
        failures = []

        def flaky_accept(sock):
            if not failures:
                failures.append(sock)
                raise OSError("accept failed")
            return real_accept(sock)

        monkeypatch.setattr(socket.socket, "accept", flaky_accept)
        server = make_server(storage_root)
        with caplog.at_level(logging.ERROR, logger="CloudServer"):
            assert server.start()
            try:
                raw = send_raw(server.address, b"GET /list HTTP/1.1\r\n\r\n")
            finally:
                server.stop()

        assert failures
        assert raw.startswith(b"HTTP/1.1 401 Unauthorized\r\n")
        assert "Error accepting connection: accept failed" in caplog.text

    def test_thread_start_failure_closes_connection(self, running_server, monkeypatch):
        def refuse(thread):
            raise RuntimeError("can't start new thread")

        monkeypatch.setattr(threading.Thread, "start", refuse)
        assert send_raw(running_server.address, b"") == b""
        assert running_server.active_connections == 0

        monkeypatch.undo()
        raw = send_raw(running_server.address, b"GET /list HTTP/1.1\r\n\r\n")
        assert raw.startswith(b"HTTP/1.1 401 Unauthorized\r\n")

    def test_signal_requests_shutdown(self, running_server):
        with running_server.state_lock:
            running_server._signal_handler(signal.SIGTERM, None)
        assert running_server.is_running

        running_server.wait_for_shutdown()
        assert not running_server.is_running

    def test_access_urls(self, running_server):
        port = running_server.address[1]
        urls = running_server.access_urls()
        assert urls[:2] == [f"http://localhost:{port}", f"http://127.0.0.1:{port}"]


class TestAuthentication:

    def test_missing_credentials(self, http_request, storage_root):
        (storage_root / "secret.txt").write_text("x")
        response = http_request("GET", "/download/secret.txt", auth=False)
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == 'Basic realm="Personal Cloud"'
        assert response.body_text == ""

    def test_wrong_credentials(self, http_request):
        token = base64.b64encode(f"{USERNAME}:wrong".encode()).decode()
        response = http_request("GET", "/list", authorization=f"Basic {token}")
        assert response.status_code == 401

    def test_malformed_header(self, http_request):
        assert http_request("GET", "/list", authorization="Basic %%%").status_code == 401

    def test_unauthenticated_request_is_not_processed(self, http_request, storage_root):
        (storage_root / "keep.txt").write_text("x")
        response = http_request("DELETE", "/delete/keep.txt", auth=False)
        assert response.status_code == 401
        assert (storage_root / "keep.txt").exists()

    def test_unknown_route_still_requires_auth(self, http_request):
        assert http_request("GET", "/nowhere", auth=False).status_code == 401
        assert http_request("GET", "/nowhere").status_code == 404


class TestWire:

    def test_upload_then_download(self, http_request):
        body = urllib.parse.urlencode({
            "filename": "hello.txt",
            "content": base64.b64encode(b"Hello World").decode(),
        })
        response = http_request("POST", "/upload", body)
        assert response.status_code == 200
        assert response.body_text == "File uploaded successfully"

        download = http_request("GET", "/download/hello.txt")
        assert download.status_code == 200
        assert download.headers["Content-Disposition"] == 'attachment; filename="hello.txt"'
        assert download.body_bytes == b"Hello World"

    def test_percent_encoded_path(self, http_request, storage_root):
        (storage_root / "my folder").mkdir()
        (storage_root / "my folder" / "a b.txt").write_text("spaced")
        download = http_request("GET", "/download/my%20folder/a%20b.txt")
        assert download.body_bytes == b"spaced"

    def test_list(self, http_request):
        response = http_request("GET", "/list")
        assert response.status_code == 200
        assert json.loads(response.body_text) == {"folders": [], "files": []}

    def test_reason_phrase_is_always_ok(self, running_server):
        raw = send_raw(running_server.address, b"GET /nowhere HTTP/1.1\r\n\r\n")
        assert raw.startswith(b"HTTP/1.1 401 Unauthorized\r\n")

        header = ("Authorization: Basic " + base64.b64encode(f"{USERNAME}:{PASSWORD}".encode()).decode()).encode()
        raw = send_raw(running_server.address, b"GET /nowhere HTTP/1.1\r\n" + header + b"\r\n\r\n")
        assert raw.startswith(b"HTTP/1.1 404 OK\r\n")

    def test_malformed_request_line(self, running_server):
        raw = send_raw(running_server.address, b"GARBAGE\r\n\r\n")
        assert raw.startswith(b"HTTP/1.1 400 OK\r\n")
        assert raw.endswith(b"Bad Request")

    def test_connection_closed_without_request(self, running_server, http_request):
        with socket.create_connection(running_server.address, timeout=5):
            pass
        assert http_request("GET", "/list").status_code == 200

    def test_stalled_client_does_not_block_others(self, running_server, http_request):
        with socket.create_connection(running_server.address, timeout=5) as stalled:
            stalled.sendall(b"POST /upload HTTP/1.1\r\nContent-Length: 1000\r\n")
            assert http_request("GET", "/list").status_code == 200

    def test_statistics(self, running_server, http_request):
        http_request("GET", "/list")
        http_request("GET", "/list", auth=False)
        stats = running_server.stats
        assert stats["total_requests"] == 2
        assert stats["status_2xx"] == 1
        assert stats["status_4xx"] == 1
        assert stats["pending_uploads"] == 0
        assert stats["status"] == "Server is running"

    def test_pending_uploads_are_reported(self, running_server, http_request):
        body = urllib.parse.urlencode({"uploadId": "abandoned", "chunkIndex": 0, "content": "eA=="})
        assert http_request("POST", "/upload-chunk", body).status_code == 200
        assert running_server.stats["pending_upload_ids"] == ["abandoned"]


def test_handle_direct_matches_socket_path(running_server, http_request, storage_root):
    (storage_root / "docs").mkdir()
    via_socket = http_request("GET", "/list")
    direct = running_server.handle_direct("GET", "/list")
    assert direct.status_code == via_socket.status_code
    assert direct.body_text == via_socket.body_text
    assert direct.headers == via_socket.headers
