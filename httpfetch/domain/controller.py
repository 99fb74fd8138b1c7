"""
Request controller. Drives one fetch to a single terminal outcome.

A fetch may span several physical requests when redirects are followed.
The controller owns the connection state, the redirect policy and the
output sink; the protocol adapter only calls back into it.

State machine:

    IDLE → CONNECTING → REQUESTING → AWAITING_HEADERS → STREAMING_BODY → DONE
                ↑                          │
                └──────── redirect ────────┘
    any non-terminal state → FAILED

Exactly one FetchOutcome is delivered through ``on_complete``.
"""

from typing import Optional

from httpfetch.core.exceptions import (
    ConfigurationError,
    SinkOpenError,
    StateTransitionError,
)
from httpfetch.core.logging import get_logger
from httpfetch.domain.error_classifier import EXIT_SUCCESS, ErrorClassifier
from httpfetch.domain.models import (
    ACCEPT_STATUS_CODES,
    ConnectionState,
    ErrorKind,
    ErrorRecord,
    FetchOutcome,
    Request,
    ResponseMetadata,
)
from httpfetch.domain.observer import CompletionCallback, FetchObserver
from httpfetch.domain.redirect_policy import RedirectPolicy
from httpfetch.infrastructure.sink.file_sink import SinkAdapter

logger = get_logger(__name__)

_FAILABLE = frozenset(
    {
        ConnectionState.IDLE,
        ConnectionState.CONNECTING,
        ConnectionState.REQUESTING,
        ConnectionState.AWAITING_HEADERS,
        ConnectionState.STREAMING_BODY,
    }
)

# Failures decided by the controller itself rather than reported by the transport
_LOCAL_ERROR_KINDS = frozenset({ErrorKind.SINK_OPEN_FAILED, ErrorKind.STATUS_REJECTED})

_TRANSITIONS = {
    ConnectionState.IDLE: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {ConnectionState.REQUESTING},
    ConnectionState.REQUESTING: {ConnectionState.AWAITING_HEADERS},
    ConnectionState.AWAITING_HEADERS: {
        ConnectionState.CONNECTING,
        ConnectionState.STREAMING_BODY,
    },
    ConnectionState.STREAMING_BODY: {ConnectionState.DONE},
    ConnectionState.DONE: set(),
    ConnectionState.FAILED: set(),
}


class RequestController(FetchObserver):
    """Lifecycle state machine for one fetch."""

    def __init__(
        self,
        protocol,
        sink: SinkAdapter,
        *,
        classifier: Optional[ErrorClassifier] = None,
        redirect_policy: Optional[RedirectPolicy] = None,
        quiet: bool = False,
        on_complete: Optional[CompletionCallback] = None,
    ) -> None:
        self._protocol = protocol
        self._sink = sink
        self._classifier = classifier or ErrorClassifier()
        self._redirects = redirect_policy or RedirectPolicy.from_settings()
        self._quiet = quiet
        self._on_complete = on_complete
        self._state = ConnectionState.IDLE
        self._request: Optional[Request] = None
        self._metadata: Optional[ResponseMetadata] = None
        self._ignored: list[ErrorKind] = []
        self._outcome: Optional[FetchOutcome] = None
        self.physical_requests = 0

        protocol.bind(self)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def request(self) -> Optional[Request]:
        return self._request

    @property
    def outcome(self) -> Optional[FetchOutcome]:
        return self._outcome

    # ── Driver entry points ──────────────────────────────────

    def start(self, request: Request) -> None:
        """
        Begin the fetch: connect, then send a GET once connected.

        Raises:
            ConfigurationError: For an https target without a TLS provider.
            StateTransitionError: If the controller was already started.
        """
        if self._state is not ConnectionState.IDLE:
            raise StateTransitionError(self._state, ConnectionState.CONNECTING)
        if request.is_secure and request.tls is None:
            raise ConfigurationError("SSL support not available")

        self._request = request
        self._redirects.reset()
        request.redirects = 0
        self._issue()

    def close(self) -> None:
        """Best-effort cleanup on shutdown; produces no outcome."""
        self._release_sink()
        self._protocol.disconnect()

    # ── Protocol callbacks ───────────────────────────────────

    def on_connect(self) -> None:
        if self._state is not ConnectionState.CONNECTING:
            logger.debug("Ignoring connect notification in state %s", self._state.name)
            return

        address = self._protocol.current_remote_address()
        if address is not None:
            self._diag("Connecting to %s %s:%d", self._request.host, address[0], address[1])

        self._transition(ConnectionState.REQUESTING)
        self._protocol.send_request(self._request.method)
        self._transition(ConnectionState.AWAITING_HEADERS)

    def on_headers(self, metadata: ResponseMetadata) -> None:
        if self._state is not ConnectionState.AWAITING_HEADERS:
            logger.debug("Ignoring headers in state %s", self._state.name)
            return

        self._metadata = metadata

        if self._redirects.should_follow(metadata, self._request.url):
            self._redirects.follow(self._request, metadata)
            self._diag(
                "Redirected to %s on %s", self._request.target, self._request.host
            )
            if self._request.is_secure and self._request.tls is None:
                self._fail(
                    self._classifier.classify(
                        ErrorKind.UNKNOWN, "SSL support not available"
                    ),
                    local=True,
                )
                return
            self._issue()
            return

        self._redirects.reset()
        self._diag("Headers (%d):", metadata.status_code)
        for name, value in metadata.headers:
            self._diag("%s=%s", name, value)

        if metadata.status_code not in ACCEPT_STATUS_CODES:
            self._fail(
                self._classifier.classify(
                    ErrorKind.STATUS_REJECTED, f"HTTP {metadata.status_code}"
                )
            )
            return

        try:
            self._sink.open(self._request.target)
        except SinkOpenError as exc:
            self._fail(
                self._classifier.classify(
                    ErrorKind.SINK_OPEN_FAILED, f"{exc.destination}: {exc.reason}"
                )
            )
            return

        self._transition(ConnectionState.STREAMING_BODY)

    def on_data(self, chunk: bytes) -> None:
        if self._state is not ConnectionState.STREAMING_BODY:
            logger.debug("Dropping %d bytes in state %s", len(chunk), self._state.name)
            return
        if not chunk:
            return
        try:
            self._sink.write(chunk)
        except OSError as exc:
            self._fail(self._write_error(exc), local=True)

    def on_end(self) -> None:
        if self._state is not ConnectionState.STREAMING_BODY:
            logger.debug("Ignoring end of body in state %s", self._state.name)
            return

        try:
            self._sink.close()
        except OSError as exc:
            self._fail(self._write_error(exc), local=True)
            return
        self._transition(ConnectionState.DONE)
        self._complete(None)

    def on_error(self, kind: ErrorKind, detail: Optional[str] = None) -> bool:
        if self._state.is_terminal:
            logger.debug("Ignoring %s after fetch finished: %s", kind.value, detail)
            return False

        record = self._classifier.classify(kind, detail)
        if record.ignore:
            self._diag("Connection error: %s (ignored)", record.label)
            self._ignored.append(record.kind)
            return True

        self._fail(record)
        return False

    # ── Internals ────────────────────────────────────────────

    def _issue(self) -> None:
        self._transition(ConnectionState.CONNECTING)
        self.physical_requests += 1
        self._protocol.connect(self._request)

    def _transition(self, new_state: ConnectionState) -> None:
        if new_state not in _TRANSITIONS[self._state]:
            raise StateTransitionError(self._state, new_state)
        logger.debug("State %s -> %s", self._state.name, new_state.name)
        self._state = new_state

    def _fail(self, record: ErrorRecord, local: bool = False) -> None:
        if self._state not in _FAILABLE:
            raise StateTransitionError(self._state, ConnectionState.FAILED)

        if local or record.kind in _LOCAL_ERROR_KINDS:
            self._diag("%s: %s", record.label, record.detail)
        else:
            self._diag("Connection error: %s", record.label)

        logger.debug("State %s -> FAILED (%s)", self._state.name, record.kind.value)
        self._state = ConnectionState.FAILED
        self._release_sink()
        self._complete(record)

    def _write_error(self, exc: OSError) -> ErrorRecord:
        reason = exc.strerror or str(exc)
        return self._classifier.classify(
            ErrorKind.UNKNOWN, f"{self._sink.destination}: {reason}"
        )

    def _release_sink(self) -> None:
        # The fetch has already failed or is being torn down
        try:
            self._sink.close()
        except OSError as exc:
            logger.debug("Error closing %s: %s", self._sink.destination, exc)

    def _complete(self, record: Optional[ErrorRecord]) -> None:
        if self._outcome is not None:
            return

        self._protocol.disconnect()
        self._outcome = FetchOutcome(
            url=self._request.url,
            success=record is None,
            exit_code=EXIT_SUCCESS if record is None else record.exit_code,
            error_kind=None if record is None else record.kind,
            detail=None if record is None else record.detail,
            status_code=None if self._metadata is None else self._metadata.status_code,
            redirects=self._request.redirects,
            bytes_written=self._sink.bytes_written,
            ignored_errors=list(self._ignored),
        )
        logger.debug("Fetch finished: %s", self._outcome.model_dump_json())

        if self._on_complete is not None:
            self._on_complete(self._outcome)

    def _diag(self, message: str, *args) -> None:
        if not self._quiet:
            logger.info(message, *args)
