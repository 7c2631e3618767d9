"""Tests for response serialization and parsing."""
import io

from personal_cloud.response import ResponseWriter, parse_raw_response


def written(action):
    buffer = io.BytesIO()
    writer = ResponseWriter(buffer)
    action(writer)
    return writer, buffer.getvalue()


class TestResponseWriter:

    def test_text_response_framing(self):
        writer, raw = written(lambda w: w.send_text(404, "File not found"))
        assert raw == (
            b"HTTP/1.1 404 OK\r\n"
            b"Content-Type: text/plain; charset=utf-8\r\n"
            b"Content-Length: 14\r\n"
            b"\r\n"
            b"File not found"
        )
        assert writer.status_code == 404

    def test_content_length_counts_encoded_bytes(self):
        _, raw = written(lambda w: w.send_text(200, "héllo"))
        assert b"Content-Length: 6\r\n" in raw

    def test_json_is_compact(self):
        _, raw = written(lambda w: w.send_json(200, {"folders": [], "files": []}))
        assert raw.endswith(b'\r\n\r\n{"folders":[],"files":[]}')
        assert b"Content-Type: application/json; charset=utf-8\r\n" in raw

    def test_auth_required(self):
        writer, raw = written(lambda w: w.send_auth_required('Basic realm="Personal Cloud"'))
        assert raw == (
            b"HTTP/1.1 401 Unauthorized\r\n"
            b'WWW-Authenticate: Basic realm="Personal Cloud"\r\n'
            b"Content-Length: 0\r\n"
            b"\r\n"
        )
        assert writer.status_code == 401

    def test_file_download(self, tmp_path):
        source = tmp_path / "data.bin"
        source.write_bytes(b"\x00\x01binary\xff")
        _, raw = written(lambda w: w.send_file(str(source), "data.bin"))
        head, _, body = raw.partition(b"\r\n\r\n")
        assert head.split(b"\r\n") == [
            b"HTTP/1.1 200 OK",
            b"Content-Type: application/octet-stream",
            b'Content-Disposition: attachment; filename="data.bin"',
            b"Content-Length: 9",
        ]
        assert body == b"\x00\x01binary\xff"


class TestParseRawResponse:

    def test_text_response(self):
        _, raw = written(lambda w: w.send_text(400, "Folder already exists"))
        response = parse_raw_response(raw)
        assert response.status_code == 400
        assert response.headers["Content-Type"] == "text/plain; charset=utf-8"
        assert response.body_text == "Folder already exists"
        assert response.body_bytes == b""
        assert not response.is_binary

    def test_binary_response(self, tmp_path):
        source = tmp_path / "blob"
        source.write_bytes(b"\r\n\r\nraw")
        _, raw = written(lambda w: w.send_file(str(source), "blob"))
        response = parse_raw_response(raw)
        assert response.status_code == 200
        assert response.is_binary
        assert response.body_bytes == b"\r\n\r\nraw"
        assert response.body_text == ""

    def test_empty_body(self):
        _, raw = written(lambda w: w.send_auth_required('Basic realm="x"'))
        response = parse_raw_response(raw)
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == 'Basic realm="x"'
        assert response.body_text == ""
