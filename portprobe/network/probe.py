"""
Probe worker run by every thread of the scan pool.
"""
from __future__ import annotations
import logging
import queue
import threading
from typing import Callable, Optional, TYPE_CHECKING

from ..models import ScanOutcome
from .utils import probe_tcp_port

if TYPE_CHECKING:
    from ..progress import ProgressObserver
    from ..sink import ResultSink

ProbeFunc = Callable[[str, int, Optional[float]], bool]


def probe_worker(
    host: str,
    timeout: Optional[float],
    job_queue: "queue.Queue[Optional[int]]",
    sink: ResultSink,
    progress: ProgressObserver,
    probe: ProbeFunc = probe_tcp_port,
    stop_event: Optional[threading.Event] = None,
) -> int:
    """
    Consumes port numbers from the job queue until it sees the None sentinel.

    Each port is probed once and the outcome goes to the sink; the progress
    observer is ticked once per port whatever the outcome. Returns the number
    of ports this worker probed.
    """
    probed = 0
    while True:
        port = job_queue.get()
        try:
            if port is None:
                break
            if stop_event is not None and stop_event.is_set():
                continue

            outcome = ScanOutcome(port=port, open=probe(host, port, timeout))
            probed += 1
            if outcome.open:
                logging.debug(f"Port {port} is open on {host}")
            sink.accept(outcome)
            progress.advance()
        finally:
            job_queue.task_done()
    return probed
