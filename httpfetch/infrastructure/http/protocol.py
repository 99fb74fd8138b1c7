"""
HTTP protocol adapter.

Runs physical requests on the asyncio event loop with httpx.AsyncClient
in streaming mode (automatic redirects disabled) and reports progress to
a FetchObserver:

  connect(request)      → resolve the host → observer.on_connect()
  send_request(method)  → observer.on_headers() → observer.on_data()*
                          → observer.on_end()

Failures are mapped with ``kind_for_exception`` and reported through
``observer.on_error()``. Every connect() starts a new generation; a task
belonging to an older generation stops delivering callbacks as soon as
it is superseded (redirect) or the fetch is disconnected.

Certificate errors: the first handshake always verifies. If the observer
ignores the resulting error, the request is sent again with an
unverified context.
"""

import asyncio
import socket
from typing import AsyncIterator, Awaitable, Callable, Optional

import httpx

from httpfetch.core.config import Settings, settings
from httpfetch.core.logging import get_logger
from httpfetch.domain.error_classifier import kind_for_exception
from httpfetch.domain.models import ErrorKind, Request, ResponseMetadata
from httpfetch.domain.observer import FetchObserver
from httpfetch.infrastructure.tls.provider import TlsProvider

logger = get_logger(__name__)

Address = tuple[str, int]
Resolver = Callable[[str, int], Awaitable[Address]]


async def resolve_address(host: str, port: int) -> Address:
    """Resolve ``host`` to the first stream-socket address."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    if not infos:
        raise OSError(f"No address associated with hostname {host}")
    sockaddr = infos[0][4]
    return sockaddr[0], sockaddr[1]


def metadata_from_response(response: httpx.Response) -> ResponseMetadata:
    """Snapshot the status code and headers of an httpx response."""
    return ResponseMetadata(
        status_code=response.status_code,
        headers=tuple(response.headers.multi_items()),
    )


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class HttpProtocol:
    """Transport and protocol collaborator for one fetch."""

    def __init__(
        self,
        *,
        tls: Optional[TlsProvider] = None,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        resolver: Optional[Resolver] = None,
    ) -> None:
        self._tls = tls
        self._config = config or settings
        self._transport = transport
        self._resolver = resolver or resolve_address
        self._observer: Optional[FetchObserver] = None
        self._clients: dict[bool, httpx.AsyncClient] = {}
        self._tasks: set[asyncio.Task] = set()
        self._generation = 0
        self._request: Optional[Request] = None
        self._remote: Optional[Address] = None
        self._chunks: Optional[AsyncIterator[bytes]] = None
        self._pending = b""

    def bind(self, observer: FetchObserver) -> None:
        self._observer = observer

    # ── Operations used by the controller ────────────────────

    def connect(self, request: Request) -> None:
        """Start a new physical request to ``request.url``."""
        if self._observer is None:
            raise RuntimeError("No observer bound")
        self._generation += 1
        self._request = request
        self._remote = None
        self._spawn(self._connect(self._generation))

    def send_request(self, method: str = "GET") -> None:
        """Send the request once connected; the response arrives via callbacks."""
        if self._request is None:
            raise RuntimeError("connect() must be called before send_request()")
        self._spawn(self._exchange(method, self._generation))

    def current_remote_address(self) -> Optional[Address]:
        return self._remote

    async def read_available(self, buffer: bytearray) -> int:
        """
        Copy up to ``len(buffer)`` body bytes of the current response.

        Returns:
            The number of bytes copied; 0 once the body is exhausted.
        """
        if self._chunks is None:
            return 0

        while not self._pending:
            try:
                self._pending = await self._chunks.__anext__()
            except StopAsyncIteration:
                self._chunks = None
                return 0

        count = min(len(buffer), len(self._pending))
        buffer[:count] = self._pending[:count]
        self._pending = self._pending[count:]
        return count

    def disconnect(self) -> None:
        """Stop delivering callbacks and cancel outstanding work."""
        self._generation += 1
        current = _current_task()
        for task in list(self._tasks):
            if task is not current and not task.done():
                task.cancel()

    async def aclose(self) -> None:
        """Disconnect, wait for outstanding tasks and close the HTTP clients."""
        self.disconnect()
        pending = [task for task in self._tasks if task is not _current_task()]
        if pending:
            await asyncio.wait(pending)
        for client in self._clients.values():
            await client.aclose()
        self._clients.clear()

    # ── Internals ────────────────────────────────────────────

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        # Reported to the observer, which decides what the user sees
        logger.debug("Protocol task failed: %s", exc, exc_info=exc)
        if self._observer is not None:
            self._observer.on_error(ErrorKind.UNKNOWN, str(exc))

    def _client(self, verify: bool) -> httpx.AsyncClient:
        client = self._clients.get(verify)
        if client is not None:
            return client

        options = {}
        if self._tls is not None:
            options["verify"] = self._tls.ssl_context(verify)
        if self._transport is not None:
            options["transport"] = self._transport

        client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                timeout=self._config.http_timeout,
                connect=self._config.connect_timeout,
            ),
            follow_redirects=False,
            headers={"User-Agent": self._config.user_agent},
            **options,
        )
        self._clients[verify] = client
        return client

    async def _connect(self, generation: int) -> None:
        request = self._request
        try:
            address = await self._resolver(request.host, request.port)
        except OSError as exc:
            if self._is_current(generation):
                logger.debug("Resolving %s failed: %s", request.host, exc)
                self._observer.on_error(kind_for_exception(exc), str(exc))
            return

        if self._is_current(generation):
            self._remote = address
            self._observer.on_connect()

    async def _exchange(self, method: str, generation: int) -> None:
        response = await self._send(method, generation)
        if response is None:
            return

        try:
            await self._deliver(response, generation)
        finally:
            await response.aclose()

    async def _send(self, method: str, generation: int) -> Optional[httpx.Response]:
        url = self._request.url
        verify = True

        while True:
            client = self._client(verify)
            outgoing = client.build_request(method, url)
            try:
                return await client.send(outgoing, stream=True)
            except (httpx.HTTPError, OSError) as exc:
                if not self._is_current(generation):
                    return None

                logger.debug("%s %s failed: %s", method, url, exc)
                proceed = self._observer.on_error(kind_for_exception(exc), str(exc))
                if not proceed or not self._is_current(generation):
                    return None

                if verify:
                    verify = False
                    continue

                # Already unverified; nothing left to bypass
                self._observer.on_error(ErrorKind.UNKNOWN, str(exc))
                return None

    async def _deliver(self, response: httpx.Response, generation: int) -> None:
        if not self._is_current(generation):
            return

        self._chunks = response.aiter_bytes()
        self._pending = b""
        self._observer.on_headers(metadata_from_response(response))

        buffer = bytearray(self._config.read_buffer_size)
        try:
            while self._is_current(generation):
                count = await self.read_available(buffer)
                if not self._is_current(generation):
                    return
                if count == 0:
                    self._observer.on_end()
                    return
                self._observer.on_data(bytes(buffer[:count]))
        except httpx.HTTPError as exc:
            if self._is_current(generation):
                self._observer.on_error(kind_for_exception(exc), str(exc))
