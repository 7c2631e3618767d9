#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
File Store
----------
All file-system operations behind the HTTP routes, scoped to a single
storage root. Entries are derived from the file system on every call and
never cached.

No locking is done here: concurrent writers to one path, or a folder
delete racing a listing of that folder, interleave as the OS lets them.
"""

import os
import shutil
import logging

from .errors import InvalidPath, ResourceConflict, ResourceNotFound, ProcessingFailure
from .utils import format_file_size, format_timestamp


def is_path_safe(base_path, target_path):
    """
    Check if a path is safe (doesn't escape the base directory).

    Args:
        base_path: Base directory path
        target_path: Target path to check

    Returns:
        bool: True if path is safe, False otherwise
    """
    base_path = os.path.realpath(base_path)
    target_path = os.path.realpath(target_path)
    return os.path.commonpath([base_path, target_path]) == base_path


def join_relative(parent, name):
    """Relative path of ``name`` inside ``parent`` ("" is the root)."""
    return f"{parent}/{name}" if parent else name


class FileEntry:
    """A file or folder as reported to clients."""

    def __init__(self, name, path, size_bytes, modified_at, is_folder):
        self.name = name
        self.path = path
        self.size_bytes = size_bytes
        self.modified_at = modified_at
        self.is_folder = is_folder

    @classmethod
    def from_dir_entry(cls, entry, relative_path):
        is_folder = entry.is_dir()
        try:
            stat = entry.stat()
        except OSError:
            # Dangling symlink, or removed since the scan
            return cls(entry.name, relative_path, 0, 0, is_folder)
        return cls(entry.name, relative_path, stat.st_size, stat.st_mtime, is_folder)

    def to_folder_json(self):
        return {"name": self.name, "path": self.path}

    def to_file_json(self):
        return {
            "name": self.name,
            "path": self.path,
            "size": format_file_size(self.size_bytes),
            "date": format_timestamp(self.modified_at)
        }

    def to_search_json(self, folder):
        return {
            "name": self.name,
            "path": self.path,
            "folder": folder,
            "size": format_file_size(self.size_bytes),
            "date": format_timestamp(self.modified_at)
        }


class FileStore:
    """
    File-system operations relative to the storage root.

    Every path argument is a client-supplied relative path. Leading slashes
    are ignored; with containment enabled a path resolving outside the
    root raises InvalidPath.
    """

    def __init__(self, root, show_hidden_files=True, enforce_containment=True):
        """
        Initialize the store, creating the root directory if needed.

        Args:
            root: Storage root directory
            show_hidden_files: Whether dot-entries are listed and searched
            enforce_containment: Whether to reject paths escaping the root
        """
        self.root = os.path.abspath(root)
        self.show_hidden_files = show_hidden_files
        self.enforce_containment = enforce_containment
        self.logger = logging.getLogger('FileStore')

        os.makedirs(self.root, exist_ok=True)

    def resolve(self, relative_path):
        """
        Map a client path to an absolute path under the root.

        Raises:
            InvalidPath: The path escapes the storage root
        """
        target = os.path.join(self.root, relative_path.lstrip('/'))
        if self.enforce_containment and not is_path_safe(self.root, target):
            self.logger.warning(f"Rejected path outside storage root: {relative_path!r}")
            raise InvalidPath(f"Path outside storage root: {relative_path}")
        return target

    def _is_root(self, target):
        return os.path.realpath(target) == os.path.realpath(self.root)

    def _visible(self, name):
        return self.show_hidden_files or not name.startswith('.')

    def list_folder(self, folder=''):
        """
        List the immediate children of a folder.

        Args:
            folder: Folder relative to the root ("" for the root itself)

        Returns:
            dict: {"folders": [{name, path}], "files": [{name, path, size, date}]},
            each sorted by name

        Raises:
            ResourceNotFound: The folder is missing or not a directory
        """
        directory = self.resolve(folder)
        if not os.path.isdir(directory):
            raise ResourceNotFound("Folder not found")

        folders = []
        files = []
        with os.scandir(directory) as entries:
            for entry in entries:
                if not self._visible(entry.name):
                    continue
                item = FileEntry.from_dir_entry(entry, join_relative(folder, entry.name))
                if item.is_folder:
                    folders.append(item)
                else:
                    files.append(item)

        folders.sort(key=lambda item: item.name)
        files.sort(key=lambda item: item.name)

        return {
            "folders": [item.to_folder_json() for item in folders],
            "files": [item.to_file_json() for item in files]
        }

    def search(self, query):
        """
        Find files whose name contains ``query``, ignoring case.

        Folders are descended into but never reported. Results come in
        depth-first traversal order.

        Args:
            query: Non-empty search term

        Returns:
            list: [{name, path, folder, size, date}]
        """
        results = []
        self._search_recursively(self.root, '', query.casefold(), results)
        return results

    def _search_recursively(self, directory, current_path, query, results):
        try:
            with os.scandir(directory) as entries:
                items = list(entries)
        except OSError as e:
            self.logger.debug(f"Skipping unreadable directory {directory}: {e}")
            return

        for entry in items:
            if not self._visible(entry.name):
                continue
            relative_path = join_relative(current_path, entry.name)
            if entry.is_file():
                if query in entry.name.casefold():
                    item = FileEntry.from_dir_entry(entry, relative_path)
                    results.append(item.to_search_json(current_path))
            elif entry.is_dir():
                self._search_recursively(entry.path, relative_path, query, results)

    def create_folder(self, path):
        """
        Create a folder and any missing parents.

        Raises:
            ResourceConflict: Something already exists at the path
            ProcessingFailure: The OS refused to create it
        """
        target = self.resolve(path)
        if os.path.exists(target):
            raise ResourceConflict("Folder already exists")
        try:
            os.makedirs(target)
        except OSError as e:
            self.logger.error(f"Failed to create folder {target}: {e}")
            raise ProcessingFailure("Failed to create folder")
        self.logger.info(f"Created folder {path}")

    def write_file(self, path, data):
        """Write ``data`` to ``path``, creating parents and replacing any existing file."""
        target = self.resolve(path)
        parent = os.path.dirname(target)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(target, 'wb') as f:
            f.write(data)
        self.logger.info(f"Wrote {path} ({format_file_size(len(data))})")
        return target

    def file_path(self, path):
        """
        Absolute path of an existing regular file.

        Raises:
            ResourceNotFound: Missing or not a regular file
        """
        target = self.resolve(path)
        if not os.path.isfile(target):
            raise ResourceNotFound("File not found")
        return target

    def delete_file(self, path):
        target = self.file_path(path)
        try:
            os.remove(target)
        except OSError as e:
            self.logger.error(f"Failed to delete file {target}: {e}")
            raise ProcessingFailure("Failed to delete file")
        self.logger.info(f"Deleted file {path}")

    def delete_folder(self, path):
        """
        Delete a folder and everything below it.

        Raises:
            ResourceNotFound: Missing or not a directory
            InvalidPath: The path is the storage root itself
            ProcessingFailure: Removal failed part-way
        """
        target = self.resolve(path)
        if not os.path.isdir(target):
            raise ResourceNotFound("Folder not found")
        if self._is_root(target):
            raise InvalidPath("Cannot delete the storage root")
        try:
            shutil.rmtree(target)
        except OSError as e:
            self.logger.error(f"Failed to delete folder {target}: {e}")
            raise ProcessingFailure("Failed to delete folder")
        self.logger.info(f"Deleted folder {path}")
