#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Personal Cloud Server
---------------------
A small HTTP file server built directly on Python's socket library.

It exposes one storage directory to the local network with:
- Browsing and recursive search
- Single-request and chunked (resumable) uploads
- File and folder deletion
- HTTP Basic authentication on every route
"""

__version__ = '1.0.0'

from .server import CloudServer, ServerState
from .config import ServerConfig
from .handler import RequestHandler
from .storage import FileStore
from .chunks import ChunkedUploadManager
from .auth import BasicAuthenticator, encode_credentials
from .response import DirectResponse
from .utils import setup_logging

# Make these classes available at the package level
__all__ = [
    'CloudServer', 'ServerState', 'ServerConfig', 'RequestHandler', 'FileStore',
    'ChunkedUploadManager', 'BasicAuthenticator', 'encode_credentials',
    'DirectResponse', 'setup_logging'
]
