"""Certificate inspector - reads a host's TLS certificate expiry."""
import asyncio
import logging
import socket
import ssl
from datetime import datetime
from typing import Optional
from urllib.parse import urlparse

from cryptography import x509

from ..config import settings

logger = logging.getLogger(__name__)

HTTPS_PORT = 443


class CertificateInspector:
    """Opens a TLS handshake and returns the peer certificate's "valid to" time.

    Chain validation is disabled: self-signed and
    otherwise untrusted certificates still have an expiry worth watching.
    """

    def __init__(self, timeout: float = settings.tls_timeout_seconds, port: int = HTTPS_PORT):
        self.timeout = timeout
        self.port = port

    async def inspect_expiry(self, url: str) -> Optional[datetime]:
        """Return the certificate expiry (naive UTC) or None.

        None is returned immediately for non-HTTPS targets, and on any
        connection, handshake or parse failure.
        """
        if not url.startswith("https://"):
            return None

        host = urlparse(url).hostname
        if not host:
            return None

        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, self._get_expiry, host, self.port),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"TLS handshake with {host} timed out")
            return None
        except (OSError, ValueError) as e:
            # ssl.SSLError and socket errors are OSErrors, parse errors ValueErrors
            logger.warning(f"Could not read certificate for {host}: {e}")
            return None

    def _get_expiry(self, host: str, port: int) -> Optional[datetime]:
        """Get the certificate expiry (blocking operation)."""
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

        with socket.create_connection((host, port), timeout=self.timeout) as sock:
            with context.wrap_socket(sock, server_hostname=host) as ssock:
                # getpeercert() returns an empty dict when not validating,
                # so parse the DER form instead
                cert_der = ssock.getpeercert(binary_form=True)

        if not cert_der:
            return None

        cert = x509.load_der_x509_certificate(cert_der)
        return cert.not_valid_after_utc.replace(tzinfo=None)


# Global instance
certificate_inspector = CertificateInspector()
