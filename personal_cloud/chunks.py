#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Chunked Upload Manager
----------------------
Stores indexed chunk blobs per upload id and reassembles them into the
final file.

Layout under the storage root::

    <chunks_directory>/<upload id>/chunk_0
    <chunks_directory>/<upload id>/chunk_1
    ...

A session exists exactly as long as its directory does. Sessions whose
completion is never requested are not expired; ``pending_sessions()``
reports them so the operator can see and remove them.
"""

import os
import shutil
import logging

from .errors import InvalidPath, ResourceNotFound, UploadIncomplete
from .storage import is_path_safe
from .utils import format_file_size

CHUNK_PREFIX = 'chunk_'
ASSEMBLY_SUFFIX = '.assembling'
COPY_BUFFER_SIZE = 1024 * 1024


class ChunkedUploadManager:
    """
    Per-upload temporary storage and ordered reassembly.

    The manager shares the storage root with the FileStore and uses the
    store to resolve target paths, so both apply the same containment rule.
    """

    def __init__(self, file_store, chunks_directory='.chunks'):
        self.file_store = file_store
        self.chunks_root = os.path.join(file_store.root, chunks_directory)
        self.logger = logging.getLogger('ChunkedUploadManager')

    def session_directory(self, upload_id):
        """
        Directory holding the chunks of ``upload_id``.

        Raises:
            InvalidPath: The id is empty or would leave the chunks directory
        """
        if not upload_id:
            raise InvalidPath("Invalid upload ID")
        directory = os.path.join(self.chunks_root, upload_id)
        if self.file_store.enforce_containment and (
                not is_path_safe(self.chunks_root, directory)
                or os.path.realpath(directory) == os.path.realpath(self.chunks_root)):
            raise InvalidPath(f"Invalid upload ID: {upload_id}")
        return directory

    def session_exists(self, upload_id):
        return os.path.isdir(self.session_directory(upload_id))

    def chunk_path(self, upload_id, chunk_index):
        return os.path.join(self.session_directory(upload_id), f"{CHUNK_PREFIX}{chunk_index}")

    def store_chunk(self, upload_id, chunk_index, data):
        """
        Save one chunk, replacing any earlier blob with the same index.

        Args:
            upload_id: Client-chosen session id
            chunk_index: Position of the chunk in the final file
            data: Chunk bytes
        """
        os.makedirs(self.session_directory(upload_id), exist_ok=True)
        with open(self.chunk_path(upload_id, chunk_index), 'wb') as f:
            f.write(data)
        self.logger.debug(f"Stored chunk {chunk_index} of upload {upload_id} ({len(data)} bytes)")

    def complete(self, upload_id, filename, total_chunks):
        """
        Concatenate chunks ``0..total_chunks-1`` into ``filename``.

        Every chunk is checked before the target is touched. The file is
        assembled next to the target and moved into place, after which the
        session directory (and the chunks directory, if now empty) is
        removed.

        Args:
            upload_id: Session id used for the chunks
            filename: Target path relative to the storage root
            total_chunks: Number of chunks expected

        Returns:
            int: Size of the assembled file in bytes

        Raises:
            ResourceNotFound: No session exists for ``upload_id``
            UploadIncomplete: A chunk index is missing
        """
        directory = self.session_directory(upload_id)
        if not os.path.isdir(directory):
            raise ResourceNotFound("Upload session not found", status_code=500)

        chunk_files = []
        for index in range(total_chunks):
            chunk_file = self.chunk_path(upload_id, index)
            if not os.path.isfile(chunk_file):
                raise UploadIncomplete(f"Missing chunk {index}")
            chunk_files.append(chunk_file)

        target = self.file_store.resolve(filename)
        parent = os.path.dirname(target)
        if parent:
            os.makedirs(parent, exist_ok=True)

        assembling = target + ASSEMBLY_SUFFIX
        try:
            with open(assembling, 'wb') as output:
                for chunk_file in chunk_files:
                    with open(chunk_file, 'rb') as chunk:
                        shutil.copyfileobj(chunk, output, COPY_BUFFER_SIZE)
            os.replace(assembling, target)
        except BaseException:
            if os.path.exists(assembling):
                os.remove(assembling)
            raise

        shutil.rmtree(directory, ignore_errors=True)
        self._remove_chunks_root_if_empty()

        size = os.path.getsize(target)
        self.logger.info(f"Assembled {filename} from {total_chunks} chunks ({format_file_size(size)})")
        return size

    def _remove_chunks_root_if_empty(self):
        try:
            if os.path.isdir(self.chunks_root) and not os.listdir(self.chunks_root):
                os.rmdir(self.chunks_root)
        except OSError as e:
            # Another upload may have created a session in the meantime
            self.logger.debug(f"Kept chunks directory: {e}")

    def pending_sessions(self):
        """
        Upload ids that have chunks stored but were never completed.

        Returns:
            list: Sorted session ids
        """
        if not os.path.isdir(self.chunks_root):
            return []
        with os.scandir(self.chunks_root) as entries:
            return sorted(entry.name for entry in entries if entry.is_dir())
