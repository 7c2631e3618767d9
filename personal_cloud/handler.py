#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
HTTP Request Handler Module for the Personal Cloud Server
---------------------------------------------------------
Runs one request through parser, authenticator, router and the storage
components, and writes the response. The same pipeline serves socket
connections and in-process calls from non-socket collaborators.
"""

import io
import os
import base64
import binascii
import logging
import threading
import traceback

from .auth import BasicAuthenticator
from .chunks import ChunkedUploadManager
from .errors import CloudError, MalformedRequest, ProcessingFailure, ResourceNotFound, Unauthenticated
from .request import Request, parse_request
from .response import ResponseWriter, DirectResponse, parse_raw_response
from .router import build_router, search_term
from .storage import FileStore
from .utils import parse_form_payload, require_field, require_int_field, format_file_size

INTERFACE_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Personal Cloud</title>
</head>
<body>
    <h1>Personal Cloud</h1>
    <p>File API: <code>/list</code>, <code>/search?q=</code>, <code>/download/&lt;path&gt;</code>,
    <code>/upload</code>, <code>/upload-chunk</code>, <code>/complete-upload</code>,
    <code>/createfolder</code>, <code>/delete/&lt;path&gt;</code>, <code>/deletefolder/&lt;path&gt;</code></p>
</body>
</html>"""

EMPTY_LISTING = {"folders": [], "files": []}


def decode_content(form):
    """Base64-decode the ``content`` form field."""
    content = require_field(form, 'content', "No content")
    try:
        return base64.b64decode(content)
    except (binascii.Error, ValueError) as e:
        raise ProcessingFailure(f"Invalid content encoding: {e}")


class RequestHandler:
    """
    Handles HTTP requests by parsing the request, checking credentials,
    routing to the matching operation and generating the response.
    """

    def __init__(self, server_config, interface_page=INTERFACE_PAGE):
        """
        Initialize the request handler.

        Args:
            server_config: ServerConfig instance
            interface_page: HTML served at "/" and "/index.html"
        """
        self.config = server_config
        self.logger = logging.getLogger('RequestHandler')
        self.interface_page = interface_page

        self.authenticator = BasicAuthenticator(
            server_config.username,
            server_config.password,
            server_config.realm
        )
        self.file_store = FileStore(
            server_config.storage_root,
            show_hidden_files=server_config.show_hidden_files,
            enforce_containment=server_config.enforce_root_containment
        )
        self.chunk_manager = ChunkedUploadManager(self.file_store, server_config.chunks_directory)
        self.router = build_router()

        self.stats_lock = threading.Lock()
        self.stats = {
            'total_requests': 0,
            'status_2xx': 0,
            'status_4xx': 0,
            'status_5xx': 0
        }

    def handle_connection(self, client_socket, client_address):
        """
        Handle exactly one request on a connected socket and close it.

        Args:
            client_socket: Client socket object
            client_address: Client address tuple (ip, port)
        """
        rfile = client_socket.makefile('rb')
        wfile = client_socket.makefile('wb')
        writer = ResponseWriter(wfile)
        try:
            if self.config.request_timeout is not None:
                client_socket.settimeout(self.config.request_timeout)

            try:
                request = parse_request(rfile)
            except MalformedRequest as e:
                self.logger.warning(f"Invalid request from {client_address[0]}:{client_address[1]}")
                writer.send_text(e.status_code, e.message)
                return

            if request is None:
                self.logger.debug(f"{client_address[0]}:{client_address[1]} closed without a request")
                return

            try:
                self.authenticator.authenticate(request.headers)
            except Unauthenticated:
                writer.send_auth_required(self.authenticator.challenge)
            else:
                self.dispatch(request, writer)

            self.logger.info(f"{client_address[0]}:{client_address[1]} - {request.method} {request.path} -> {writer.status_code}")

        except OSError as e:
            self.logger.warning(f"Connection error with {client_address[0]}:{client_address[1]}: {e}")
        except Exception as e:
            self.logger.error(f"Error handling request from {client_address[0]}:{client_address[1]}: {e}")
            self.logger.debug(traceback.format_exc())
            if writer.status_code is None:
                try:
                    writer.send_text(500, "Internal Server Error")
                except OSError:
                    pass
        finally:
            self._record(writer.status_code)
            for stream in (wfile, rfile):
                try:
                    stream.close()
                except OSError:
                    pass
            client_socket.close()

    def handle_direct(self, method, path, body=''):
        """
        Run a request through the same routing and responses without a socket.

        No authentication is performed; the caller is trusted.

        Args:
            method: Request method
            path: Percent-decoded request path
            body: Request body as text

        Returns:
            DirectResponse: Parsed status code, headers and body
        """
        payload = body.encode('utf-8')
        request = Request(method, path, 'HTTP/1.1', {'content-length': str(len(payload))}, io.BytesIO(payload))
        output = io.BytesIO()
        writer = ResponseWriter(output)
        try:
            self.dispatch(request, writer)
            return parse_raw_response(output.getvalue())
        except Exception as e:
            self.logger.error(f"Error handling direct request {method} {path}: {e}")
            self.logger.debug(traceback.format_exc())
            return DirectResponse(500, {}, "Internal Server Error", b'', False)
        finally:
            self._record(writer.status_code)

    def dispatch(self, request, writer):
        """
        Route a parsed, authenticated request and write its response.

        Args:
            request: Request instance
            writer: ResponseWriter for the response
        """
        try:
            handler_name, argument = self.router.resolve(request.method, request.path)
        except CloudError as e:
            writer.send_text(e.status_code, e.message)
            return

        handler = getattr(self, handler_name)
        try:
            handler(request, argument, writer)
        except CloudError as e:
            writer.send_text(e.status_code, e.message)
        except Exception as e:
            if writer.status_code is not None:
                # Response already (partly) on the wire
                raise
            self.logger.error(f"Error processing {request.method} {request.path}: {e}")
            self.logger.debug(traceback.format_exc())
            writer.send_text(500, f"Error: {e}")

    def _record(self, status_code):
        if status_code is None:
            return
        with self.stats_lock:
            self.stats['total_requests'] += 1
            if 200 <= status_code < 300:
                self.stats['status_2xx'] += 1
            elif 400 <= status_code < 500:
                self.stats['status_4xx'] += 1
            elif status_code >= 500:
                self.stats['status_5xx'] += 1

    def _send_failure(self, writer, error, prefix):
        """Send a handler failure, prefixing messages of 500 responses."""
        if isinstance(error, CloudError) and error.status_code != 500:
            writer.send_text(error.status_code, error.message)
            return
        message = error.message if isinstance(error, CloudError) else str(error)
        writer.send_text(500, f"{prefix}: {message}")

    # GET handlers

    def _serve_interface(self, request, argument, writer):
        writer.send_html(200, self.interface_page)

    def _handle_download(self, request, path, writer):
        try:
            file_path = self.file_store.file_path(path)
        except ResourceNotFound as e:
            writer.send_text(404, e.message)
            return
        writer.send_file(file_path, os.path.basename(file_path))

    def _handle_list(self, request, folder, writer):
        try:
            listing = self.file_store.list_folder(folder)
        except ResourceNotFound:
            writer.send_json(404, EMPTY_LISTING)
            return
        writer.send_json(200, listing)

    def _handle_search(self, request, argument, writer):
        query = search_term(argument)
        if not query:
            writer.send_json(400, {"error": "Empty search query"})
            return
        writer.send_json(200, self.file_store.search(query))

    # POST handlers

    def _handle_upload(self, request, argument, writer):
        try:
            form = parse_form_payload(request.read_body())
            filename = require_field(form, 'filename', "No filename")
            data = decode_content(form)
            self.file_store.write_file(filename, data)
        except Exception as e:
            self.logger.error(f"Upload failed: {e}")
            self._send_failure(writer, e, "Upload failed")
            return
        writer.send_text(200, "File uploaded successfully")

    def _handle_upload_chunk(self, request, argument, writer):
        try:
            form = parse_form_payload(request.read_body())
            upload_id = require_field(form, 'uploadId', "No upload ID")
            chunk_index = require_int_field(form, 'chunkIndex', "No chunk index")
            data = decode_content(form)
            self.chunk_manager.store_chunk(upload_id, chunk_index, data)
        except Exception as e:
            self.logger.error(f"Chunk upload error: {e}")
            self._send_failure(writer, e, "Chunk upload failed")
            return
        writer.send_text(200, f"Chunk {chunk_index} uploaded successfully")

    def _handle_complete_upload(self, request, argument, writer):
        try:
            form = parse_form_payload(request.read_body())
            upload_id = require_field(form, 'uploadId', "No upload ID")
            filename = require_field(form, 'filename', "No filename")
            total_chunks = require_int_field(form, 'totalChunks', "No total chunks")
            size = self.chunk_manager.complete(upload_id, filename, total_chunks)
        except Exception as e:
            self.logger.error(f"Complete upload error: {e}")
            self._send_failure(writer, e, "Failed to complete upload")
            return
        writer.send_text(200, f"File uploaded successfully ({format_file_size(size)})")

    def _handle_create_folder(self, request, argument, writer):
        try:
            form = parse_form_payload(request.read_body())
            path = require_field(form, 'path', "No path specified")
        except Exception as e:
            self._send_failure(writer, e, "Error")
            return
        # Conflicts and OS failures carry their own status and message
        self.file_store.create_folder(path)
        writer.send_text(200, "Folder created successfully")

    # DELETE handlers

    def _handle_delete_file(self, request, path, writer):
        self.file_store.delete_file(path)
        writer.send_text(200, "File deleted")

    def _handle_delete_folder(self, request, path, writer):
        self.file_store.delete_folder(path)
        writer.send_text(200, "Folder deleted")
