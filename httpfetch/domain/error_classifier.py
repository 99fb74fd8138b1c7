"""
Error classification.

Raw failures are mapped in two steps:
  - ``kind_for_exception``: exception raised by httpx / ssl / the resolver
    → ErrorKind
  - ``ErrorClassifier.classify``: ErrorKind → ErrorRecord with the exit
    code and whether the fetch may ignore it

Only certificate errors are ever ignorable, and only when certificate
verification has been switched off.
"""

import ssl
from typing import Iterator, Optional

import httpx

from httpfetch.domain.models import CERTIFICATE_ERROR_KINDS, ErrorKind, ErrorRecord

EXIT_SUCCESS = 0

EXIT_CODES = {
    ErrorKind.UNKNOWN: 1,
    ErrorKind.SINK_OPEN_FAILED: 3,
    ErrorKind.CONNECT_FAILED: 4,
    ErrorKind.CERTIFICATE_INVALID: 5,
    ErrorKind.HOSTNAME_MISMATCH: 5,
    ErrorKind.STATUS_REJECTED: 8,
}

LABELS = {
    ErrorKind.UNKNOWN: "Unknown error",
    ErrorKind.SINK_OPEN_FAILED: "Cannot open output file",
    ErrorKind.CONNECT_FAILED: "Connection failed",
    ErrorKind.CERTIFICATE_INVALID: "Invalid SSL certificate",
    ErrorKind.HOSTNAME_MISMATCH: "Server hostname does not match SSL certificate",
    ErrorKind.STATUS_REJECTED: "Unexpected HTTP status",
}

# OpenSSL X509_V_ERR_HOSTNAME_MISMATCH
_HOSTNAME_MISMATCH_VERIFY_CODE = 62

_HOSTNAME_MISMATCH_MARKERS = ("hostname mismatch", "doesn't match", "does not match")

_CERTIFICATE_MARKERS = ("certificate_verify_failed", "certificate verify failed")


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _certificate_kind(exc: BaseException) -> Optional[ErrorKind]:
    for link in _exception_chain(exc):
        if isinstance(link, ssl.SSLCertVerificationError):
            if getattr(link, "verify_code", None) == _HOSTNAME_MISMATCH_VERIFY_CODE:
                return ErrorKind.HOSTNAME_MISMATCH
            message = str(link).lower()
            if any(marker in message for marker in _HOSTNAME_MISMATCH_MARKERS):
                return ErrorKind.HOSTNAME_MISMATCH
            return ErrorKind.CERTIFICATE_INVALID

    # httpx flattens some ssl errors into the message only
    message = str(exc).lower()
    if any(marker in message for marker in _CERTIFICATE_MARKERS):
        if any(marker in message for marker in _HOSTNAME_MISMATCH_MARKERS):
            return ErrorKind.HOSTNAME_MISMATCH
        return ErrorKind.CERTIFICATE_INVALID
    return None


def kind_for_exception(exc: BaseException) -> ErrorKind:
    """
    Map a raw transport exception to an ErrorKind.

    Args:
        exc: Exception raised while connecting, sending or reading.

    Returns:
        HOSTNAME_MISMATCH / CERTIFICATE_INVALID for certificate validation
        failures, CONNECT_FAILED for resolver, refused and timed-out
        connections, UNKNOWN for anything else.
    """
    certificate_kind = _certificate_kind(exc)
    if certificate_kind is not None:
        return certificate_kind

    if isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout)):
        return ErrorKind.CONNECT_FAILED

    # Resolver and socket failures surfaced before httpx is involved
    if isinstance(exc, OSError):
        return ErrorKind.CONNECT_FAILED

    return ErrorKind.UNKNOWN


class ErrorClassifier:
    """Turns an ErrorKind into an ErrorRecord for one fetch."""

    def __init__(self, verify: bool = True) -> None:
        self.verify = verify

    def classify(self, kind: ErrorKind, detail: Optional[str] = None) -> ErrorRecord:
        ignore = kind in CERTIFICATE_ERROR_KINDS and not self.verify
        return ErrorRecord(
            kind=kind,
            ignore=ignore,
            exit_code=EXIT_CODES[kind],
            detail=detail,
            label=LABELS[kind],
        )
