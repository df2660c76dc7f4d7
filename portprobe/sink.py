"""
Collects open ports found by the probe workers.
"""
from __future__ import annotations
import threading
from typing import IO, List, Optional, Set

from .catalog import ServiceCatalog
from .models import ScanOutcome

PORT_COLUMN_WIDTH = 9
CONSOLE_HEADER = "Open Ports:"


def format_port_lines(port: int, catalog: ServiceCatalog) -> List[str]:
    """Renders the file lines for one open port, one per catalog description."""
    return [f"{port:<{PORT_COLUMN_WIDTH}} | {description}\n" for description in catalog.describe(port)]


class ResultSink:
    """
    Thread-safe record of open ports.

    When a stream is given, each open port is written to it with its catalog
    descriptions as soon as it is recorded. The stream belongs to the caller;
    the sink only writes and flushes it.
    """

    def __init__(self, catalog: ServiceCatalog, stream: Optional[IO[str]] = None):
        self.catalog = catalog
        self.stream = stream
        self._open_ports: Set[int] = set()
        self._lock = threading.Lock()

    def accept(self, outcome: ScanOutcome) -> None:
        """Takes a probe outcome; only open ports are kept."""
        if outcome.open:
            self.record_open(outcome.port)

    def record_open(self, port: int) -> None:
        """Adds a port to the open set and streams it out if a file is configured."""
        lines = format_port_lines(port, self.catalog) if self.stream is not None else None
        with self._lock:
            if port in self._open_ports:
                return
            self._open_ports.add(port)
            if lines and self.stream is not None:
                self.stream.writelines(lines)
                self.stream.flush()

    def detach(self) -> None:
        """Stops streaming; later open ports are only kept in memory."""
        with self._lock:
            self.stream = None

    @property
    def open_ports(self) -> List[int]:
        """Sorted snapshot of the ports recorded so far."""
        with self._lock:
            return sorted(self._open_ports)

    def __len__(self) -> int:
        with self._lock:
            return len(self._open_ports)

    def __contains__(self, port: object) -> bool:
        with self._lock:
            return port in self._open_ports

    def write_summary(self, out: IO[str]) -> None:
        """Prints the console summary: a header and one open port per line."""
        out.write(f"\n{CONSOLE_HEADER}\n")
        for port in self.open_ports:
            out.write(f"{port}\n")
        out.flush()
