"""
Domain models shared by the controller and its collaborators.

Request and ResponseMetadata are plain dataclasses handed back and forth
inside the event loop. FetchOutcome is the single result returned to the
caller and is a pydantic model so it can be dumped as JSON.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

from httpfetch.utils.url_parser import DEFAULT_PORTS, parse_target_url, request_target

if TYPE_CHECKING:
    from httpfetch.infrastructure.tls.provider import TlsProvider

# Statuses whose semantics tell the client to retry against a new location
REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})

# Statuses whose body is written to the output destination
ACCEPT_STATUS_CODES = frozenset({200, 204})


class ConnectionState(Enum):
    """Lifecycle of one fetch, owned by the request controller."""

    IDLE = "idle"
    CONNECTING = "connecting"
    REQUESTING = "requesting"
    AWAITING_HEADERS = "awaiting_headers"
    STREAMING_BODY = "streaming_body"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ConnectionState.DONE, ConnectionState.FAILED)


class ErrorKind(str, Enum):
    """Closed taxonomy of fetch failures."""

    CONNECT_FAILED = "connect_failed"
    CERTIFICATE_INVALID = "certificate_invalid"
    HOSTNAME_MISMATCH = "hostname_mismatch"
    SINK_OPEN_FAILED = "sink_open_failed"
    STATUS_REJECTED = "status_rejected"
    UNKNOWN = "unknown"


CERTIFICATE_ERROR_KINDS = frozenset(
    {ErrorKind.CERTIFICATE_INVALID, ErrorKind.HOSTNAME_MISMATCH}
)


@dataclass
class Request:
    """
    One logical fetch target.

    The URL is rewritten in place when a redirect is followed; ``redirects``
    mirrors the redirect policy's counter for reporting.
    """

    url: str
    method: str = "GET"
    tls: Optional["TlsProvider"] = None
    redirects: int = 0

    @classmethod
    def from_url(cls, url: str, tls: Optional["TlsProvider"] = None) -> "Request":
        return cls(url=parse_target_url(url), tls=tls)

    @property
    def scheme(self) -> str:
        return urlsplit(self.url).scheme

    @property
    def host(self) -> str:
        return urlsplit(self.url).hostname or ""

    @property
    def port(self) -> int:
        parsed = urlsplit(self.url)
        return parsed.port or DEFAULT_PORTS[parsed.scheme]

    @property
    def target(self) -> str:
        return request_target(self.url)

    @property
    def is_secure(self) -> bool:
        return self.scheme == "https"


@dataclass(frozen=True)
class ResponseMetadata:
    """Status line and headers of one physical response."""

    status_code: int
    headers: tuple[tuple[str, str], ...] = ()

    def header(self, name: str) -> Optional[str]:
        """Return the last value of a header (case-insensitive), if present."""
        wanted = name.lower()
        value = None
        for key, item in self.headers:
            if key.lower() == wanted:
                value = item
        return value

    def header_values(self, name: str) -> list[str]:
        """Return every value of a header in arrival order."""
        wanted = name.lower()
        return [item for key, item in self.headers if key.lower() == wanted]

    @property
    def location(self) -> Optional[str]:
        return self.header("location")

    @property
    def is_redirect(self) -> bool:
        return self.status_code in REDIRECT_STATUS_CODES and bool(self.location)


@dataclass(frozen=True)
class ErrorRecord:
    """A classified failure and whether the fetch may carry on regardless."""

    kind: ErrorKind
    ignore: bool
    exit_code: int
    detail: Optional[str] = None
    label: str = field(default="Unknown error")


class FetchOutcome(BaseModel):
    """Terminal result of one fetch, delivered exactly once."""

    url: str = Field(..., description="Final request URL after redirects")
    success: bool = Field(..., description="Whether the body was fully delivered")
    exit_code: int = Field(0, description="Process exit code for this outcome")
    error_kind: Optional[ErrorKind] = Field(
        None, description="Classified failure kind, if the fetch failed"
    )
    detail: Optional[str] = Field(None, description="Human-readable failure detail")
    status_code: Optional[int] = Field(
        None, description="Status code of the final response, if one arrived"
    )
    redirects: int = Field(0, description="Number of redirects followed")
    bytes_written: int = Field(0, description="Body bytes delivered to the sink")
    ignored_errors: list[ErrorKind] = Field(
        default_factory=list,
        description="Certificate errors ignored because verification was disabled",
    )
