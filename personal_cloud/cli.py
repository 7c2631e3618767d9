#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Command-line entry point for the Personal Cloud Server.
"""

import sys

from .config import ServerConfig
from .server import CloudServer


def main(argv=None):
    """
    Parse arguments, start the server and block until it is stopped.

    Returns:
        int: Process exit code
    """
    config = ServerConfig()
    config.load_from_args(argv)

    server = CloudServer(**config.get_all())
    if not server.start():
        return 1

    server.install_signal_handlers()
    try:
        # Keep the main thread alive until interrupted
        server.wait_for_shutdown()
    except KeyboardInterrupt:
        print("\nShutting down gracefully...")
    finally:
        server.stop()

    return 0


if __name__ == '__main__':
    sys.exit(main())
