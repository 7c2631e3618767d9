"""Shared fixtures for the personal cloud server tests."""
import socket

import pytest

from personal_cloud.auth import encode_credentials
from personal_cloud.config import ServerConfig
from personal_cloud.handler import RequestHandler
from personal_cloud.response import parse_raw_response
from personal_cloud.server import CloudServer

USERNAME = "admin"
PASSWORD = "s3cret:pass"


@pytest.fixture
def storage_root(tmp_path):
    root = tmp_path / "CloudStorage"
    root.mkdir()
    return root


@pytest.fixture
def config(storage_root):
    return ServerConfig(storage_root=str(storage_root), username=USERNAME, password=PASSWORD)


@pytest.fixture
def handler(config):
    return RequestHandler(config)


@pytest.fixture
def running_server(storage_root):
    """A started server on an ephemeral loopback port."""
    server = CloudServer(
        configure_logging=False,
        host="127.0.0.1",
        port=0,
        storage_root=str(storage_root),
        username=USERNAME,
        password=PASSWORD,
        accept_timeout=0.1,
    )
    assert server.start()
    yield server
    server.stop()


def read_until_closed(sock):
    chunks = []
    while True:
        chunk = sock.recv(65536)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks)


def send_raw(address, data):
    """Send raw bytes and read the response until the server closes."""
    with socket.create_connection(address, timeout=5) as sock:
        sock.sendall(data)
        return read_until_closed(sock)


@pytest.fixture
def http_request(running_server):
    """Send one request to the running server and return the parsed response.

    Credentials are added unless ``auth`` is False or an explicit
    ``authorization`` value is given.
    """
    def _request(method, path, body="", auth=True, authorization=None):
        payload = body.encode("utf-8")
        lines = [f"{method} {path} HTTP/1.1", "Host: localhost"]
        if authorization is not None:
            lines.append(f"Authorization: {authorization}")
        elif auth:
            lines.append(f"Authorization: {encode_credentials(USERNAME, PASSWORD)}")
        if payload:
            lines.append("Content-Type: application/x-www-form-urlencoded")
            lines.append(f"Content-Length: {len(payload)}")
        raw = ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8") + payload
        return parse_raw_response(send_raw(running_server.address, raw))

    return _request
