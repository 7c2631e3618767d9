#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Error Types for the Personal Cloud Server
-----------------------------------------
Every failure that ends up in an HTTP response is raised as a CloudError
subclass carrying the status code it maps to. Anything else escaping a
handler is reported as a 500 with the exception message in the body.
"""


class CloudError(Exception):
    """Base exception for request-level failures."""

    status_code = 500

    def __init__(self, message, status_code=None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class MalformedRequest(CloudError):
    """Request line could not be parsed."""
    status_code = 400

    def __init__(self, message="Bad Request"):
        super().__init__(message)


class Unauthenticated(CloudError):
    status_code = 401

    def __init__(self, message="Authentication required"):
        super().__init__(message)


class RouteNotFound(CloudError):
    status_code = 404

    def __init__(self, message="Not Found"):
        super().__init__(message)


class MethodNotAllowed(CloudError):
    status_code = 405

    def __init__(self, message="Method Not Allowed"):
        super().__init__(message)


class ResourceNotFound(CloudError):
    """A file or folder targeted by the request does not exist."""
    status_code = 404


class ResourceConflict(CloudError):
    """The target of a create operation already exists."""
    status_code = 400


class InvalidPath(CloudError):
    """A relative path resolves outside the storage root."""
    status_code = 400


class UploadIncomplete(CloudError):
    """A chunk expected at completion time is missing."""
    status_code = 500


class ProcessingFailure(CloudError):
    status_code = 500
