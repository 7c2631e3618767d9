#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Configuration Module for the Personal Cloud Server
--------------------------------------------------
Handles loading and managing server configuration from various sources:
- Default configuration
- Configuration file (JSON)
- Command-line arguments

The host process only has to supply a storage root, a username/password
pair and a port; everything else has a working default.
"""

import os
import json
import logging
import argparse


class ServerConfig:
    """
    Server configuration manager.

    Loads and provides access to server configuration settings from various sources,
    with the following precedence (highest to lowest):
    1. Command-line arguments / keyword arguments
    2. Configuration file
    3. Default values
    """

    DEFAULT_CONFIG = {
        "host": "0.0.0.0",
        "port": 8080,
        "storage_root": "CloudStorage",
        "username": "admin",
        "password": "password",
        "realm": "Personal Cloud",
        "chunks_directory": ".chunks",
        "show_hidden_files": True,
        "enforce_root_containment": True,
        "connection_queue": 10,
        "accept_timeout": 0.5,
        "request_timeout": None,  # None blocks until the client delivers
        "log_level": "INFO",
        "log_file": None,
        "log_max_size": 10485760,  # 10 MB
        "log_backup_count": 5,
        "colored_logging": True
    }

    def __init__(self, config_file=None, **kwargs):
        """
        Initialize the configuration with values from file and kwargs.

        Args:
            config_file: Path to the configuration file
            **kwargs: Additional configuration parameters that override file values
        """
        self._config = self.DEFAULT_CONFIG.copy()
        self.logger = logging.getLogger('ServerConfig')

        if config_file:
            self.load_from_file(config_file)

        for key, value in kwargs.items():
            self._config[key] = value

    def load_from_file(self, config_path="config.json"):
        """
        Load configuration from a JSON file.

        Args:
            config_path: Path to the configuration file (default: config.json)

        Returns:
            bool: True if loaded successfully, False otherwise
        """
        if not os.path.exists(config_path):
            self.logger.warning(f"Configuration file {config_path} not found. Using defaults.")
            return False
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                file_config = json.load(f)
        except (OSError, ValueError) as e:
            self.logger.error(f"Error loading configuration: {e}")
            return False

        self._config.update(file_config)
        self.logger.info(f"Loaded configuration from {config_path}")
        return True

    def save_to_file(self, config_path="config.json"):
        """
        Save current configuration to a JSON file.

        Args:
            config_path: Path to save the configuration file (default: config.json)

        Returns:
            bool: True if saved successfully, False otherwise
        """
        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                json.dump(self._config, f, indent=4)
        except OSError as e:
            self.logger.error(f"Error saving configuration: {e}")
            return False
        self.logger.info(f"Configuration saved to {config_path}")
        return True

    def load_from_args(self, args=None):
        """
        Parse command line arguments and update configuration.

        Args:
            args: Command line arguments to parse (default: None, uses sys.argv)

        Returns:
            argparse.Namespace: Parsed arguments
        """
        parser = build_arg_parser()
        parsed_args = parser.parse_args(args)

        if parsed_args.config:
            self.load_from_file(parsed_args.config)

        overrides = {k: v for k, v in vars(parsed_args).items() if v is not None and k != 'config'}
        if overrides.pop('no_color', False):
            self._config['colored_logging'] = False
        if overrides.pop('hide_hidden_files', False):
            self._config['show_hidden_files'] = False
        self._config.update(overrides)

        return parsed_args

    def get(self, key, default=None):
        return self._config.get(key, default)

    def set(self, key, value):
        self._config[key] = value

    def get_all(self):
        """
        Get all configuration values.

        Returns:
            dict: All configuration values
        """
        return self._config.copy()

    # Property accessors for common configuration values
    @property
    def host(self):
        return self.get('host')

    @property
    def port(self):
        return self.get('port')

    @property
    def storage_root(self):
        return os.path.abspath(self.get('storage_root'))

    @property
    def username(self):
        return self.get('username')

    @property
    def password(self):
        return self.get('password')

    @property
    def realm(self):
        return self.get('realm', 'Personal Cloud')

    @property
    def chunks_directory(self):
        return self.get('chunks_directory', '.chunks')

    @property
    def show_hidden_files(self):
        return self.get('show_hidden_files', True)

    @property
    def enforce_root_containment(self):
        return self.get('enforce_root_containment', True)

    @property
    def connection_queue(self):
        return self.get('connection_queue', 10)

    @property
    def accept_timeout(self):
        return self.get('accept_timeout', 0.5)

    @property
    def request_timeout(self):
        return self.get('request_timeout')

    @property
    def log_level(self):
        return self.get('log_level')

    @property
    def log_file(self):
        return self.get('log_file')

    @property
    def log_max_size(self):
        return self.get('log_max_size', 10485760)

    @property
    def log_backup_count(self):
        return self.get('log_backup_count', 5)

    @property
    def colored_logging(self):
        return self.get('colored_logging')


def build_arg_parser():
    """
    Build the command-line parser shared by run.py and ServerConfig.

    Returns:
        argparse.ArgumentParser: Parser for the server options
    """
    parser = argparse.ArgumentParser(description='Personal Cloud file server')

    # Basic server options
    parser.add_argument('-H', '--host', type=str, help='Host address to bind to')
    parser.add_argument('-p', '--port', type=int, help='Port to listen on')
    parser.add_argument('-d', '--storage-root', type=str, help='Directory exposed by the server')
    parser.add_argument('-c', '--config', type=str, help='Path to configuration file')

    # Credentials
    parser.add_argument('-u', '--username', type=str, help='Basic auth username')
    parser.add_argument('-P', '--password', type=str, help='Basic auth password')

    # Logging options
    parser.add_argument('--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Logging level')
    parser.add_argument('--log-file', type=str, help='Path to log file')
    parser.add_argument('--no-color', action='store_true', default=None, help='Disable colored logging')

    # Server behavior options
    parser.add_argument('--hide-hidden-files', action='store_true', default=None,
                        help='Hide dot-files from listings and search results')
    parser.add_argument('--request-timeout', type=float, help='Socket timeout for client connections in seconds')
    parser.add_argument('--connection-queue', type=int, help='Connection queue size')

    return parser
