#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Request Router
--------------
Maps (method, decoded path) to the name of a handler method. Paths after
a fixed prefix are passed on verbatim; the router performs no further
decoding or normalisation.
"""

from .errors import RouteNotFound, MethodNotAllowed


class Route:
    """A single entry of the dispatch table."""

    def __init__(self, method, path, handler, prefix=False, message=None):
        self.method = method
        self.path = path
        self.handler = handler
        self.prefix = prefix
        self.message = message

    def match(self, path):
        """
        Match a request path against this route.

        Returns:
            str: The argument captured by the route, or None on no match
        """
        if self.prefix:
            if path.startswith(self.path):
                return path[len(self.path):]
            return None
        return '' if path == self.path else None


class Router:
    """
    Ordered dispatch table.

    Routes are tried in insertion order. A route registered with a
    ``message`` but no handler answers 405 with that message.
    """

    def __init__(self):
        self.routes = []

    def add(self, method, path, handler=None, prefix=False, message=None):
        self.routes.append(Route(method, path, handler, prefix, message))

    def resolve(self, method, path):
        """
        Find the handler for a request.

        Args:
            method: Request method
            path: Percent-decoded request path

        Returns:
            tuple: (handler name, captured argument)

        Raises:
            MethodNotAllowed: The path is served, but not for this method
            RouteNotFound: No route serves the path
        """
        path_known = False
        for route in self.routes:
            argument = route.match(path)
            if argument is None:
                continue
            if route.method != method:
                path_known = True
                continue
            if route.handler is None:
                raise MethodNotAllowed(route.message or "Method Not Allowed")
            return route.handler, argument

        if path_known:
            raise MethodNotAllowed()
        raise RouteNotFound()


def search_term(argument):
    """
    Extract the search term from the query string following ``/search?``.

    ``q=hello`` yields "hello"; an empty query, or one without ``=``,
    yields an empty term.
    """
    _, _, term = argument.partition('=')
    return term


def build_router():
    """Create the dispatch table of the file server."""
    router = Router()

    router.add('GET', '/', '_serve_interface')
    router.add('GET', '/index.html', '_serve_interface')
    router.add('GET', '/download/', '_handle_download', prefix=True)
    router.add('GET', '/list', '_handle_list')
    router.add('GET', '/list/', '_handle_list', prefix=True)
    router.add('GET', '/search', '_handle_search')
    router.add('GET', '/search?', '_handle_search', prefix=True)
    router.add('GET', '/createfolder', prefix=True, message="Use POST method")

    router.add('POST', '/upload', '_handle_upload')
    router.add('POST', '/upload-chunk', '_handle_upload_chunk')
    router.add('POST', '/complete-upload', '_handle_complete_upload')
    router.add('POST', '/createfolder', '_handle_create_folder')

    router.add('DELETE', '/delete/', '_handle_delete_file', prefix=True)
    router.add('DELETE', '/deletefolder/', '_handle_delete_folder', prefix=True)

    return router
