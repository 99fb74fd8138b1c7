"""
TLS support for https targets.

TLS is an optional capability: ``load_tls_provider`` probes for the ``ssl``
module and returns None when the interpreter was built without it. Callers
treat a missing provider as "https not available" and fail fast instead of
attempting the connection.

Trust store: the certifi bundle plus any CA files added with
``add_ca_certificate``.
"""

import importlib
from types import ModuleType
from typing import Optional

import certifi

from httpfetch.core.config import settings
from httpfetch.core.exceptions import ConfigurationError
from httpfetch.core.logging import get_logger

logger = get_logger(__name__)


class TlsProvider:
    """Builds SSL contexts for verified and unverified handshakes."""

    def __init__(self, ssl_module: ModuleType, ca_certificates: tuple[str, ...] = ()) -> None:
        self._ssl = ssl_module
        self._ca_certificates: list[str] = []
        self._contexts: dict = {}
        for path in ca_certificates:
            self.add_ca_certificate(path)

    @property
    def ca_certificates(self) -> tuple[str, ...]:
        return tuple(self._ca_certificates)

    def add_ca_certificate(self, path: str) -> None:
        """
        Trust the CA certificates in ``path`` for verified handshakes.

        Raises:
            ConfigurationError: If the file cannot be loaded.
        """
        probe = self._ssl.create_default_context()
        try:
            probe.load_verify_locations(cafile=path)
        except (OSError, self._ssl.SSLError) as exc:
            raise ConfigurationError(
                f"Cannot load CA certificate file '{path}': {exc}"
            ) from exc

        self._ca_certificates.append(path)
        # Contexts built before this call don't include the new CA
        self._contexts.clear()
        logger.debug("Loaded CA certificate file %s", path)

    def ssl_context(self, verify: bool = True):
        """
        Return the SSL context for a handshake.

        Args:
            verify: Require a valid certificate chain and matching hostname.

        Returns:
            ssl.SSLContext, cached per verify mode.
        """
        context = self._contexts.get(verify)
        if context is not None:
            return context

        ssl = self._ssl
        if verify:
            context = ssl.create_default_context(cafile=certifi.where())
            for path in self._ca_certificates:
                context.load_verify_locations(cafile=path)
            context.check_hostname = True
            context.verify_mode = ssl.CERT_REQUIRED
        else:
            context = ssl.create_default_context()
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        self._contexts[verify] = context
        return context


def load_tls_provider(ca_certificates: Optional[list[str]] = None) -> Optional[TlsProvider]:
    """
    Probe for TLS support.

    Args:
        ca_certificates: Extra CA files; defaults to ``settings.ca_certificates``.

    Returns:
        A TlsProvider, or None when the ``ssl`` module is unavailable.

    Raises:
        ConfigurationError: If one of the CA files cannot be loaded.
    """
    try:
        ssl_module = importlib.import_module("ssl")
    except ImportError as exc:
        logger.debug("TLS support unavailable: %s", exc)
        return None

    paths = settings.ca_certificates if ca_certificates is None else ca_certificates
    return TlsProvider(ssl_module, tuple(paths))
