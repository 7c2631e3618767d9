#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
HTTP Response Writer
--------------------
Formats status line, headers and body onto a binary output sink. Text
responses always carry the reason phrase "OK" whatever the status code;
Content-Length is always computed from the encoded body.
"""

import os
import json
import shutil
import logging
from collections import namedtuple

# Result of running a request through the handler without a socket
DirectResponse = namedtuple('DirectResponse', ['status_code', 'headers', 'body_text', 'body_bytes', 'is_binary'])

BINARY_MARKER = 'octet-stream'


class ResponseWriter:
    """
    Writes exactly one HTTP response to ``wfile``.

    ``wfile`` is any binary file object: the connection's ``makefile('wb')``
    view or an in-memory buffer.
    """

    def __init__(self, wfile):
        self.wfile = wfile
        self.status_code = None
        self.logger = logging.getLogger('ResponseWriter')

    def send_text(self, status_code, body, content_type='text/plain'):
        """
        Send a text response.

        Args:
            status_code: HTTP status code
            body: Response body as str
            content_type: MIME type; "; charset=utf-8" is appended
        """
        payload = body.encode('utf-8')
        head = (
            f"HTTP/1.1 {status_code} OK\r\n"
            f"Content-Type: {content_type}; charset=utf-8\r\n"
            f"Content-Length: {len(payload)}\r\n"
            "\r\n"
        )
        self._write(status_code, head.encode('utf-8') + payload)

    def send_json(self, status_code, data):
        self.send_text(status_code, json.dumps(data, separators=(',', ':'), ensure_ascii=False), 'application/json')

    def send_html(self, status_code, html):
        self.send_text(status_code, html, 'text/html')

    def send_auth_required(self, challenge):
        """Send a 401 with the Basic challenge and an empty body."""
        head = (
            "HTTP/1.1 401 Unauthorized\r\n"
            f"WWW-Authenticate: {challenge}\r\n"
            "Content-Length: 0\r\n"
            "\r\n"
        )
        self._write(401, head.encode('utf-8'))

    def send_file(self, file_path, filename):
        """
        Stream a file as an attachment download.

        Args:
            file_path: Absolute path of the file on disk
            filename: Name offered to the client
        """
        with open(file_path, 'rb') as f:
            size = os.fstat(f.fileno()).st_size
            head = (
                "HTTP/1.1 200 OK\r\n"
                "Content-Type: application/octet-stream\r\n"
                f'Content-Disposition: attachment; filename="{filename}"\r\n'
                f"Content-Length: {size}\r\n"
                "\r\n"
            )
            self.status_code = 200
            self.wfile.write(head.encode('utf-8'))
            shutil.copyfileobj(f, self.wfile)
        self.wfile.flush()

    def _write(self, status_code, data):
        self.status_code = status_code
        self.wfile.write(data)
        self.wfile.flush()


def parse_raw_response(raw):
    """
    Split a serialized response back into its parts.

    Args:
        raw: Response bytes as produced by ResponseWriter

    Returns:
        DirectResponse: Status code, headers, and either a text or a
        binary body depending on the Content-Type
    """
    head, _, body = raw.partition(b'\r\n\r\n')
    lines = head.decode('utf-8', 'replace').split('\r\n')

    status_parts = lines[0].split(' ')
    try:
        status_code = int(status_parts[1])
    except (IndexError, ValueError):
        status_code = 200

    headers = {}
    for line in lines[1:]:
        name, sep, value = line.partition(': ')
        if sep:
            headers[name] = value

    if BINARY_MARKER in headers.get('Content-Type', ''):
        return DirectResponse(status_code, headers, '', body, True)
    return DirectResponse(status_code, headers, body.decode('utf-8', 'replace'), b'', False)
