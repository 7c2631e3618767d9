#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Personal Cloud Server Main Module
---------------------------------
Owns the listening socket. Every accepted connection is handed to its own
freshly spawned thread which serves exactly one request and closes the
connection; there is no pool and no bound on concurrent connections.
"""

import enum
import socket
import threading
import time
import logging
import signal

from .config import ServerConfig
from .handler import RequestHandler
from .utils import setup_logging, get_local_ip_address


class ServerState(enum.Enum):
    STOPPED = 'stopped'
    RUNNING = 'running'


class CloudServer:
    """
    File server that accepts connections and hands each one to the
    request handler on a dedicated thread.
    """

    def __init__(self, config_file=None, configure_logging=True, **kwargs):
        """
        Initialize the server.

        Args:
            config_file: Path to the configuration file
            configure_logging: Whether to install the console/file log handlers
            **kwargs: Additional configuration parameters that override config file
        """
        self.config = ServerConfig(config_file, **kwargs)

        if configure_logging:
            setup_logging(
                log_level=self.config.log_level,
                log_file=self.config.log_file,
                max_size=self.config.log_max_size,
                backup_count=self.config.log_backup_count,
                use_colored_logging=self.config.colored_logging
            )
        self.logger = logging.getLogger('CloudServer')

        self.request_handler = RequestHandler(self.config)

        # Lifecycle state only changes while holding state_lock
        self.state = ServerState.STOPPED
        self.state_lock = threading.Lock()
        self.server_socket = None
        self.accept_thread = None
        self.address = None
        self.start_time = None
        self.shutdown_requested = threading.Event()

        self.active_connections = 0
        self.active_connections_lock = threading.Lock()

    @property
    def is_running(self):
        with self.state_lock:
            return self.state is ServerState.RUNNING

    @property
    def status_text(self):
        return "Server is running" if self.is_running else "Server is stopped"

    def install_signal_handlers(self):
        """Make SIGINT/SIGTERM end wait_for_shutdown(). Must be called from the main thread."""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, sig, frame):
        # The main thread may hold state_lock here; wait_for_shutdown stops the server
        self.shutdown_requested.set()

    def start(self):
        """
        Bind the listening socket and start the accept loop.

        Returns:
            bool: True if the server was started, False if it was already
            running or the socket could not be bound
        """
        with self.state_lock:
            if self.state is ServerState.RUNNING:
                self.logger.warning("Server is already running")
                return False

            server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            try:
                server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                server_socket.bind((self.config.host, self.config.port))
                server_socket.listen(self.config.connection_queue)
                server_socket.settimeout(self.config.accept_timeout)
            except OSError as e:
                self.logger.error(f"Error starting server on {self.config.host}:{self.config.port}: {e}")
                server_socket.close()
                return False

            self.server_socket = server_socket
            self.address = server_socket.getsockname()
            self.start_time = time.time()
            self.shutdown_requested.clear()
            self.state = ServerState.RUNNING

            self.accept_thread = threading.Thread(
                target=self._accept_connections,
                args=(server_socket,),
                name="CloudServerAcceptor",
                daemon=True
            )
            self.accept_thread.start()

        self.logger.info(f"Server started and bound to http://{self.address[0]}:{self.address[1]}")
        for url in self.access_urls():
            self.logger.info(f"Access URL: {url}")
        self.logger.info(f"Serving files from {self.request_handler.file_store.root}")

        pending = self.request_handler.chunk_manager.pending_sessions()
        if pending:
            self.logger.warning(f"{len(pending)} unfinished chunked upload(s) are holding temporary storage: {', '.join(pending)}")
        return True

    def stop(self):
        """
        Stop accepting connections.

        In-flight connection handlers are not interrupted and run to completion.
        """
        with self.state_lock:
            if self.state is ServerState.STOPPED:
                return
            self.logger.info("Shutting down server...")
            self.state = ServerState.STOPPED
            server_socket, self.server_socket = self.server_socket, None
            accept_thread, self.accept_thread = self.accept_thread, None

        server_socket.close()
        if accept_thread is not None and accept_thread is not threading.current_thread():
            accept_thread.join()
        self.logger.info("Server shutdown complete")

    def _accept_connections(self, server_socket):
        """Accept incoming connections until the server is stopped."""
        while self.is_running:
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self.is_running:
                    break
                self.logger.error(f"Error accepting connection: {e}")
                # Sleep a bit to prevent CPU spinning on repeated errors
                time.sleep(0.1)
                continue

            with self.active_connections_lock:
                self.active_connections += 1

            try:
                threading.Thread(
                    target=self._handle_client,
                    args=(client_socket, client_address),
                    name=f"CloudServerConnection-{client_address[0]}:{client_address[1]}",
                    daemon=True
                ).start()
            except RuntimeError as e:
                self.logger.error(f"Could not start a thread for {client_address}: {e}")
                with self.active_connections_lock:
                    self.active_connections -= 1
                client_socket.close()

    def _handle_client(self, client_socket, client_address):
        """
        Serve one connection.

        Args:
            client_socket: Client socket object
            client_address: Client address tuple (ip, port)
        """
        try:
            self.request_handler.handle_connection(client_socket, client_address)
        except Exception as e:
            self.logger.error(f"Error handling client {client_address}: {e}")
        finally:
            client_socket.close()
            with self.active_connections_lock:
                self.active_connections -= 1

    def handle_direct(self, method, path, body=''):
        """Serve a request without a socket; see RequestHandler.handle_direct."""
        return self.request_handler.handle_direct(method, path, body)

    def wait_for_shutdown(self):
        """
        Wait for server shutdown (can be called after start() to keep the main thread alive).
        """
        try:
            while self.is_running:
                if self.shutdown_requested.wait(0.5):
                    self.logger.info("Received shutdown signal, shutting down...")
                    self.stop()
        except KeyboardInterrupt:
            self.logger.info("Received keyboard interrupt, shutting down...")
            self.stop()

    def access_urls(self):
        """
        URLs clients can use to reach the server.

        Returns:
            list: Localhost, loopback and (if known) LAN URLs
        """
        if self.address is None:
            return []
        port = self.address[1]
        urls = [f"http://localhost:{port}", f"http://127.0.0.1:{port}"]
        ip_address = get_local_ip_address()
        if ip_address:
            urls.append(f"http://{ip_address}:{port}")
        return urls

    @property
    def stats(self):
        """
        Get server statistics.

        Returns:
            dict: Server statistics
        """
        uptime = time.time() - self.start_time if self.start_time else 0
        with self.request_handler.stats_lock:
            request_stats = dict(self.request_handler.stats)
        pending = self.request_handler.chunk_manager.pending_sessions()

        return {
            'status': self.status_text,
            'uptime': uptime,
            'uptime_formatted': self._format_uptime(uptime),
            'active_connections': self.active_connections,
            'total_requests': request_stats['total_requests'],
            'status_2xx': request_stats['status_2xx'],
            'status_4xx': request_stats['status_4xx'],
            'status_5xx': request_stats['status_5xx'],
            'pending_uploads': len(pending),
            'pending_upload_ids': pending
        }

    def _format_uptime(self, seconds):
        days, remainder = divmod(seconds, 86400)
        hours, remainder = divmod(remainder, 3600)
        minutes, seconds = divmod(remainder, 60)

        parts = []
        if days > 0:
            parts.append(f"{int(days)}d")
        if hours > 0 or days > 0:
            parts.append(f"{int(hours)}h")
        if minutes > 0 or hours > 0 or days > 0:
            parts.append(f"{int(minutes)}m")
        parts.append(f"{int(seconds)}s")

        return " ".join(parts)
