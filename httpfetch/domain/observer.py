"""
Callback interface between the protocol adapter and the request controller.

The protocol adapter calls these methods from inside the event loop, one
at a time, in this order for every physical request:

    on_connect → on_headers → on_data* → on_end

``on_error`` may replace any step of that sequence.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from httpfetch.domain.models import ErrorKind, FetchOutcome, ResponseMetadata

CompletionCallback = Callable[[FetchOutcome], None]


class FetchObserver(ABC):
    """Receives lifecycle events for one fetch."""

    @abstractmethod
    def on_connect(self) -> None:
        """The remote address is known; the request may be sent."""

    @abstractmethod
    def on_headers(self, metadata: ResponseMetadata) -> None:
        """Status line and all headers of a response have been parsed."""

    @abstractmethod
    def on_data(self, chunk: bytes) -> None:
        """A piece of the response body arrived."""

    @abstractmethod
    def on_end(self) -> None:
        """The response body is complete."""

    @abstractmethod
    def on_error(self, kind: ErrorKind, detail: Optional[str] = None) -> bool:
        """
        A transport or protocol failure occurred.

        Returns:
            True if the failure was ignored and the exchange may proceed.
        """
