#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Utility Module for the Personal Cloud Server
--------------------------------------------
Contains helper functions used throughout the server:
- Logging setup with colored console output
- Form payload decoding for POST bodies
- File size and timestamp formatting
- Local network address discovery
"""

import time
import socket
import logging
import urllib.parse
from logging.handlers import RotatingFileHandler

import colorama
from colorama import Fore, Style

from .errors import ProcessingFailure

colorama.init(autoreset=True)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ColoredFormatter(logging.Formatter):
    """Formatter that colors console records by level."""

    FORMATS = {
        logging.DEBUG: Fore.CYAN + LOG_FORMAT + Style.RESET_ALL,
        logging.INFO: Fore.GREEN + LOG_FORMAT + Style.RESET_ALL,
        logging.WARNING: Fore.YELLOW + LOG_FORMAT + Style.RESET_ALL,
        logging.ERROR: Fore.RED + LOG_FORMAT + Style.RESET_ALL,
        logging.CRITICAL: Fore.RED + Style.BRIGHT + LOG_FORMAT + Style.RESET_ALL
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno, self.FORMATS[logging.INFO])
        formatter = logging.Formatter(log_fmt, datefmt=LOG_DATE_FORMAT)
        return formatter.format(record)


def setup_logging(log_level='INFO', log_file=None, max_size=10485760, backup_count=5, use_colored_logging=True):
    """
    Set up logging configuration.

    Args:
        log_level: Logging level (default: INFO)
        log_file: Log file path (default: None, console only)
        max_size: Maximum log file size in bytes (default: 10MB)
        backup_count: Number of backup logs to keep (default: 5)
        use_colored_logging: Whether to use colored logging in console (default: True)

    Returns:
        logging.Logger: Root logger instance
    """
    log_level_value = getattr(logging, str(log_level).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level_value)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if log_file:
        try:
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_size,
                backupCount=backup_count
            )
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
            root_logger.addHandler(file_handler)
        except OSError as e:
            print(f"Error setting up log file: {e}")

    console_handler = logging.StreamHandler()
    if use_colored_logging:
        console_handler.setFormatter(ColoredFormatter())
    else:
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

    root_logger.addHandler(console_handler)
    return root_logger


def parse_form_payload(body):
    """
    Decode a percent-encoded ``key=value&key=value`` payload.

    Keys and values are percent-decoded with ``+`` read as a space. A pair
    without ``=`` maps to an empty string and a repeated key keeps its
    last value.

    Args:
        body: Request body as text

    Returns:
        dict: Decoded fields
    """
    if not body:
        return {}
    return dict(urllib.parse.parse_qsl(body, keep_blank_values=True))


def require_field(form, name, message):
    """Return ``form[name]`` or raise ProcessingFailure(message)."""
    value = form.get(name)
    if value is None:
        raise ProcessingFailure(message)
    return value


def require_int_field(form, name, message):
    value = form.get(name)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ProcessingFailure(message)


def format_file_size(size):
    """
    Convert a size in bytes to the listing format.

    Sizes below one kilobyte are shown as a plain byte count, larger sizes
    with two decimals in the largest unit reaching 1.

    Args:
        size: Size in bytes

    Returns:
        str: e.g. "512 bytes", "1.50 KB", "2.00 GB"
    """
    kb = size / 1024.0
    mb = kb / 1024.0
    gb = mb / 1024.0

    if gb >= 1:
        return f"{gb:.2f} GB"
    if mb >= 1:
        return f"{mb:.2f} MB"
    if kb >= 1:
        return f"{kb:.2f} KB"
    return f"{size} bytes"


def format_timestamp(timestamp):
    """Format a UNIX timestamp as local ``yyyy-MM-dd HH:mm``."""
    return time.strftime('%Y-%m-%d %H:%M', time.localtime(timestamp))


def get_local_ip_address():
    """
    Find the address other devices on the network can reach us at.

    Returns:
        str: IPv4 address, or None if it cannot be determined
    """
    try:
        hostname = socket.gethostname()
        ip_address = socket.gethostbyname(hostname)
    except OSError:
        return None
    if ip_address.startswith('127.'):
        return None
    return ip_address
