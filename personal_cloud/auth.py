#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
HTTP Basic Authentication
-------------------------
A single shared username/password pair guards every route.
"""

import base64
import binascii
import hmac
import logging

from .errors import Unauthenticated

BASIC_PREFIX = 'Basic '


def encode_credentials(username, password):
    """
    Build an ``Authorization`` header value for the given credentials.

    Args:
        username: Username
        password: Password

    Returns:
        str: "Basic <base64(username:password)>"
    """
    token = base64.b64encode(f"{username}:{password}".encode('utf-8')).decode('ascii')
    return BASIC_PREFIX + token


class BasicAuthenticator:
    """
    Validates Basic ``Authorization`` headers against the configured pair.

    Any missing header, wrong scheme, undecodable token or mismatch is
    reported the same way: not authenticated.
    """

    def __init__(self, username, password, realm='Personal Cloud'):
        self.realm = realm
        self._expected = f"{username}:{password}".encode('utf-8')
        self.logger = logging.getLogger('BasicAuthenticator')

    def is_authenticated(self, headers):
        """
        Check the request headers for valid credentials.

        Args:
            headers: Request headers with lower-cased names

        Returns:
            bool: True if the credentials match exactly
        """
        auth_header = headers.get('authorization')
        if not auth_header or not auth_header.startswith(BASIC_PREFIX):
            return False

        try:
            credentials = base64.b64decode(auth_header[len(BASIC_PREFIX):].strip(), validate=True)
        except (binascii.Error, ValueError):
            self.logger.debug("Rejected undecodable Basic credentials")
            return False

        return hmac.compare_digest(credentials, self._expected)

    def authenticate(self, headers):
        """
        Raises:
            Unauthenticated: The request carries no valid credentials
        """
        if not self.is_authenticated(headers):
            raise Unauthenticated()

    @property
    def challenge(self):
        """Value of the ``WWW-Authenticate`` header sent with a 401."""
        return f'Basic realm="{self.realm}"'
