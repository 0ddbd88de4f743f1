"""
Retrieval Credentials
=====================
Static client secret/key pair guarding the back-office retrieval channel.
"""

import hmac
import re
import structlog

from otp_core.errors import DependencyUnavailable, Unauthorized

logger = structlog.get_logger(__name__)

CREDENTIAL_PATTERN = re.compile(r"^[A-Za-z0-9]{14}$")


class RetrievalAuthenticator:
    """Validates the client secret/key pair with constant-time comparison."""

    def __init__(self, client_secret: str, client_key: str):
        self._client_secret = client_secret or ""
        self._client_key = client_key or ""

    def validate(self, client_secret: str, client_key: str) -> None:
        """
        Raises:
            DependencyUnavailable: credentials are not configured
            Unauthorized: credentials are malformed or do not match
        """
        if not self._client_secret or not self._client_key:
            logger.error("Client credentials not configured")
            raise DependencyUnavailable("Client credentials not configured")

        client_secret = client_secret or ""
        client_key = client_key or ""
        if not CREDENTIAL_PATTERN.match(client_secret) or not CREDENTIAL_PATTERN.match(client_key):
            logger.warning("Malformed retrieval credentials")
            raise Unauthorized("Invalid client credentials")

        secret_ok = hmac.compare_digest(client_secret.encode(), self._client_secret.encode())
        key_ok = hmac.compare_digest(client_key.encode(), self._client_key.encode())
        if not (secret_ok and key_ok):
            logger.warning("Invalid retrieval credentials")
            raise Unauthorized("Invalid client credentials")
