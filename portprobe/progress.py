"""
Progress display for a running scan.
"""
from __future__ import annotations
import threading
from typing import Optional, Protocol

from tqdm import tqdm

# Redraw at most four times a second.
REFRESH_INTERVAL = 0.25


class ProgressObserver(Protocol):
    """Receives one tick per probed port."""

    def advance(self, n: int = 1) -> None:
        ...

    def close(self) -> None:
        ...


class NullProgress:
    """Progress observer that displays nothing."""

    def advance(self, n: int = 1) -> None:
        pass

    def close(self) -> None:
        pass


class ScanProgress:
    """tqdm progress bar shared by all probe workers."""

    def __init__(self, total: int, description: str = "Scanning Ports", file=None):
        self._lock = threading.Lock()
        self._bar: Optional[tqdm] = tqdm(
            total=total,
            desc=description,
            unit="port",
            mininterval=REFRESH_INTERVAL,
            dynamic_ncols=True,
            leave=True,
            file=file,
        )

    def advance(self, n: int = 1) -> None:
        with self._lock:
            if self._bar is not None:
                self._bar.update(n)

    def close(self) -> None:
        with self._lock:
            if self._bar is not None:
                self._bar.close()
                self._bar = None


def create_progress(total: int, enabled: bool = True) -> ProgressObserver:
    """Returns a progress bar for the scan, or a silent observer when disabled."""
    if not enabled:
        return NullProgress()
    return ScanProgress(total)
