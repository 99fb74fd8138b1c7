"""
Fetch runner. Wires the collaborators together and runs the event loop.

Builds the protocol adapter, sink and controller for one URL, starts the
fetch and waits for its single outcome. Cleanup (sink, connections, HTTP
clients) runs in a ``finally`` block so it also happens on cancellation.
"""

import asyncio
from pathlib import Path
from typing import BinaryIO, Optional

import httpx

from httpfetch.core.config import Settings, settings
from httpfetch.core.logging import get_logger
from httpfetch.domain.controller import RequestController
from httpfetch.domain.error_classifier import ErrorClassifier
from httpfetch.domain.models import FetchOutcome, Request
from httpfetch.domain.redirect_policy import RedirectPolicy
from httpfetch.infrastructure.http.protocol import HttpProtocol, Resolver
from httpfetch.infrastructure.sink.file_sink import SinkAdapter
from httpfetch.infrastructure.tls.provider import TlsProvider

logger = get_logger(__name__)


async def fetch(
    url: str,
    *,
    config: Optional[Settings] = None,
    tls: Optional[TlsProvider] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    resolver: Optional[Resolver] = None,
    directory: Optional[Path] = None,
    stdout: Optional[BinaryIO] = None,
) -> FetchOutcome:
    """
    Fetch a single URL and return its outcome.

    Args:
        url: URL to fetch; http is assumed when no scheme is given.
        config: Settings to use instead of the module singleton.
        tls: TLS provider; required for https targets.
        transport: httpx transport override (tests).
        resolver: Host resolver override (tests).
        directory: Directory for output files; defaults to the cwd.
        stdout: Binary stream used for the "-" destination.

    Returns:
        The FetchOutcome delivered by the controller.

    Raises:
        UrlValidationError: If ``url`` is not a valid http(s) URL.
        ConfigurationError: If ``url`` is https and ``tls`` is None.
    """
    config = config or settings
    loop = asyncio.get_running_loop()
    finished: asyncio.Future = loop.create_future()

    def complete(outcome: FetchOutcome) -> None:
        # The future is already cancelled when the runner is being torn down
        if not finished.done():
            finished.set_result(outcome)

    protocol = HttpProtocol(
        tls=tls, config=config, transport=transport, resolver=resolver
    )
    sink = SinkAdapter(config.output_file, directory=directory, stdout=stdout)
    controller = RequestController(
        protocol,
        sink,
        classifier=ErrorClassifier(verify=config.verify_certificate),
        redirect_policy=RedirectPolicy(max_redirects=config.max_redirects),
        quiet=config.quiet,
        on_complete=complete,
    )

    request = Request.from_url(url, tls=tls)
    logger.debug("Fetching url=%s", request.url)

    try:
        controller.start(request)
        outcome = await finished
    finally:
        controller.close()
        await protocol.aclose()

    logger.debug(
        "Fetched url=%s (exit=%d, redirects=%d, size=%d bytes)",
        outcome.url,
        outcome.exit_code,
        outcome.redirects,
        outcome.bytes_written,
    )
    return outcome


def run_fetch(url: str, **kwargs) -> FetchOutcome:
    """Run ``fetch`` on a fresh event loop."""
    return asyncio.run(fetch(url, **kwargs))
