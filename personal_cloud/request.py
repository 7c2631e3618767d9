#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
HTTP Request Parser
-------------------
Reads one request line and its header block from a line-buffered view of
the connection. The body is left on the stream until a handler asks for
it, and is then read up to the declared Content-Length.
"""

import logging
import urllib.parse

from .errors import MalformedRequest

# Longest request or header line accepted from a client
MAX_LINE_LENGTH = 65537

logger = logging.getLogger('RequestParser')


class Request:
    """
    A parsed HTTP request.

    Attributes:
        method: Request method as sent ("GET", "POST", ...)
        path: Percent-decoded request target, query string included
        version: HTTP version token from the request line
        headers: Header mapping with lower-cased names
    """

    def __init__(self, method, path, version, headers, rfile):
        self.method = method
        self.path = path
        self.version = version
        self.headers = headers
        self._rfile = rfile
        self._body = None

    @property
    def content_length(self):
        """Declared body length; missing or invalid values count as 0."""
        try:
            length = int(self.headers.get('content-length', 0))
        except (TypeError, ValueError):
            return 0
        return max(length, 0)

    def read_body(self):
        """
        Read the request body.

        Blocks until Content-Length bytes have arrived or the stream ends.
        The body is read from the stream only once.

        Returns:
            str: Body decoded as UTF-8
        """
        if self._body is None:
            remaining = self.content_length
            chunks = []
            while remaining > 0:
                chunk = self._rfile.read(remaining)
                if not chunk:
                    break
                chunks.append(chunk)
                remaining -= len(chunk)
            self._body = b''.join(chunks).decode('utf-8', 'replace')
        return self._body

    def __repr__(self):
        return f"Request({self.method} {self.path})"


def _read_line(rfile):
    line = rfile.readline(MAX_LINE_LENGTH)
    if not line:
        return None
    return line.decode('utf-8', 'replace').rstrip('\r\n')


def parse_request(rfile):
    """
    Parse the request line and headers from a binary file object.

    Args:
        rfile: Buffered binary stream positioned at the start of a request

    Returns:
        Request: The parsed request, or None if the client closed the
        connection before sending anything

    Raises:
        MalformedRequest: The request line has fewer than three tokens
    """
    request_line = _read_line(rfile)
    if request_line is None:
        return None

    headers = {}
    while True:
        line = _read_line(rfile)
        if not line:
            break
        name, sep, value = line.partition(': ')
        if sep:
            headers[name.lower()] = value

    parts = request_line.split(' ')
    if len(parts) < 3:
        logger.warning(f"Malformed request line: {request_line!r}")
        raise MalformedRequest()

    method, raw_path, version = parts[0], parts[1], parts[2]
    path = urllib.parse.unquote_plus(raw_path)

    return Request(method, path, version, headers, rfile)
