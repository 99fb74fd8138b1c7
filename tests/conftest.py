"""
Shared test fixtures for the fetch client test suite.

Provides:
  - A recording protocol stand-in for driving the controller by hand
  - A controller factory writing to a temporary directory
  - Fake resolver and httpx.MockTransport helpers for integration tests
"""

from pathlib import Path
from typing import Callable, Optional

import httpx
import pytest

from httpfetch.core.config import Settings
from httpfetch.domain.controller import RequestController
from httpfetch.domain.error_classifier import ErrorClassifier
from httpfetch.domain.models import FetchOutcome, ResponseMetadata
from httpfetch.domain.redirect_policy import RedirectPolicy
from httpfetch.infrastructure.sink.file_sink import SinkAdapter


class RecordingProtocol:
    """Protocol stand-in that records calls; tests deliver callbacks by hand."""

    def __init__(self, remote=("192.0.2.10", 80)):
        self.observer = None
        self.remote = remote
        self.connected: list[str] = []
        self.sent: list[str] = []
        self.disconnects = 0

    def bind(self, observer):
        self.observer = observer

    def connect(self, request):
        self.connected.append(request.url)

    def send_request(self, method="GET"):
        self.sent.append(method)

    def current_remote_address(self):
        return self.remote

    def disconnect(self):
        self.disconnects += 1


class ControllerHarness:
    """A controller wired to a RecordingProtocol and a file sink."""

    def __init__(self, controller, protocol, sink, outcomes, directory):
        self.controller = controller
        self.protocol = protocol
        self.sink = sink
        self.outcomes = outcomes
        self.directory = directory

    def output(self, name: str = "out.bin") -> bytes:
        return (self.directory / name).read_bytes()

    def replay(self, events) -> None:
        """Deliver ``(method_name, *args)`` events to the controller in order."""
        for name, *args in events:
            getattr(self.controller, name)(*args)


def response(status: int, headers: Optional[dict] = None) -> ResponseMetadata:
    """Build ResponseMetadata from a status and a plain header dict."""
    return ResponseMetadata(status_code=status, headers=tuple((headers or {}).items()))


@pytest.fixture
def make_controller(tmp_path: Path) -> Callable[..., ControllerHarness]:
    """Factory for controllers writing into ``tmp_path``."""

    def factory(
        *,
        verify: bool = True,
        quiet: bool = False,
        output_file: Optional[str] = "out.bin",
        max_redirects: int = 10,
        directory: Optional[Path] = None,
    ) -> ControllerHarness:
        directory = directory or tmp_path
        protocol = RecordingProtocol()
        sink = SinkAdapter(output_file, directory=directory)
        outcomes: list[FetchOutcome] = []
        controller = RequestController(
            protocol,
            sink,
            classifier=ErrorClassifier(verify=verify),
            redirect_policy=RedirectPolicy(max_redirects=max_redirects),
            quiet=quiet,
            on_complete=outcomes.append,
        )
        return ControllerHarness(controller, protocol, sink, outcomes, directory)

    return factory


@pytest.fixture
def fake_resolver():
    """Resolver that maps every host to a documentation address."""

    async def resolve(host: str, port: int):
        return "192.0.2.1", port

    return resolve


@pytest.fixture
def fetch_settings() -> Settings:
    """Settings isolated from the .env file, writing to out.bin."""
    return Settings(output_file="out.bin", quiet=False, _env_file=None)


def mock_transport(routes: dict) -> httpx.MockTransport:
    """
    Build a MockTransport from ``{url: handler_or_response}``.

    A value may be an httpx.Response, an exception instance to raise,
    or a callable taking the httpx.Request.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        entry = routes[str(request.url)]
        if isinstance(entry, BaseException):
            raise entry
        if callable(entry):
            return entry(request)
        return entry

    return httpx.MockTransport(handler)
