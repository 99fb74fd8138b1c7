"""
Output sink for accepted response bodies.

Destination rules:
  - "-"          → the process's binary stdout (flushed, never closed)
  - explicit path → created or truncated
  - no path      → name derived from the request target; an existing
                   file of that name is never overwritten

The handle is opened lazily by the controller once a response has been
accepted and is closed exactly once, whichever way the fetch ends.
"""

import sys
from pathlib import Path
from typing import BinaryIO, Optional

from httpfetch.core.exceptions import SinkOpenError
from httpfetch.core.logging import get_logger
from httpfetch.utils.url_parser import output_filename

logger = get_logger(__name__)

STDOUT_DESTINATION = "-"


class SinkAdapter:
    """Streams body bytes into a single output destination."""

    def __init__(
        self,
        output_file: Optional[str] = None,
        *,
        directory: Optional[Path] = None,
        stdout: Optional[BinaryIO] = None,
    ) -> None:
        self._output_file = output_file
        self._directory = Path(directory) if directory is not None else Path.cwd()
        self._stdout = stdout
        self._handle: Optional[BinaryIO] = None
        self._owns_handle = False
        self.destination: Optional[str] = None
        self.bytes_written = 0
        self.open_count = 0

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def resolve(self, target: str) -> tuple[str, str]:
        """
        Work out where the body for ``target`` should go.

        Returns:
            (destination, mode): the path (or "-") and the open() mode.
        """
        if self._output_file == STDOUT_DESTINATION:
            return STDOUT_DESTINATION, "wb"
        if self._output_file:
            return str(self._directory / self._output_file), "wb"
        # Don't automatically overwrite files if the name is derived from the URL
        return str(self._directory / output_filename(target)), "xb"

    def open(self, target: str) -> None:
        """
        Open the destination for the accepted response.

        Args:
            target: Request target of the accepted response.

        Raises:
            SinkOpenError: If the destination cannot be opened for writing.
            RuntimeError: If a destination is already open.
        """
        if self._handle is not None:
            raise RuntimeError(f"Sink already open on {self.destination}")

        destination, mode = self.resolve(target)

        if destination == STDOUT_DESTINATION:
            self._handle = self._stdout if self._stdout is not None else sys.stdout.buffer
            self._owns_handle = False
        else:
            try:
                self._handle = open(destination, mode)
            except OSError as exc:
                raise SinkOpenError(destination, exc.strerror or str(exc)) from exc
            self._owns_handle = True

        self.destination = destination
        self.bytes_written = 0
        self.open_count += 1
        logger.debug("Opened output destination %s", destination)

    def write(self, chunk: bytes) -> None:
        if self._handle is None:
            raise RuntimeError("Sink is not open")
        self._handle.write(chunk)
        self.bytes_written += len(chunk)

    def close(self) -> None:
        """Close the destination; a no-op when nothing is open."""
        handle, self._handle = self._handle, None
        if handle is None:
            return

        if self._owns_handle:
            handle.close()
        else:
            handle.flush()
        logger.debug(
            "Closed output destination %s (%d bytes)",
            self.destination,
            self.bytes_written,
        )
