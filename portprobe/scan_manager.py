"""
Manages the lifecycle of a port scan: job queue, probe worker pool and join barrier.
"""
from __future__ import annotations
import logging
import queue
import sys
import threading
import time
from enum import Enum, auto
from typing import IO, List, Optional

from .catalog import ServiceCatalog
from .configuration import ConfigurationError, ScanConfig
from .models import ScanRange, ScanReport
from .network import ProbeFunc, probe_tcp_port, probe_worker
from .progress import NullProgress, ProgressObserver
from .sink import ResultSink

# How long a blocked put waits before checking that a worker is still alive.
_PUT_POLL_SECONDS = 0.1


class ScanState(Enum):
    """Represents the lifecycle stage of a scan."""
    IDLE = auto()
    SCANNING = auto()
    CLOSED = auto()
    DONE = auto()


class ScanAbortedError(RuntimeError):
    """Raised by await_completion() when a probe worker failed unexpectedly."""


class ScanCoordinator:
    """
    Fans port jobs out to a fixed pool of probe threads and joins them.

    The coordinator owns the output file: it is created before any worker
    starts and closed once every worker has finished.
    """

    def __init__(
        self,
        config: ScanConfig,
        catalog: ServiceCatalog,
        progress: Optional[ProgressObserver] = None,
        probe: ProbeFunc = probe_tcp_port,
    ):
        self.config = config
        self.catalog = catalog
        self.progress = progress or NullProgress()
        self.probe = probe

        self.state = ScanState.IDLE
        self.job_queue: queue.Queue[Optional[int]] = queue.Queue(maxsize=config.effective_queue_size)
        self.stop_event = threading.Event()
        self.workers: List[threading.Thread] = []
        self.sink: Optional[ResultSink] = None

        self._output_file: Optional[IO[str]] = None
        self._lock = threading.Lock()
        self._failures: List[BaseException] = []
        self._probed = 0
        self._started_at = 0.0

    def start(self):
        """Validates the range, opens the output file and launches every worker."""
        if self.state != ScanState.IDLE:
            raise RuntimeError(f"Cannot start a scan in state {self.state.name}")
        self.config.scan_range.validate()

        self._output_file = self._open_output()
        self.sink = ResultSink(self.catalog, self._output_file)
        self.state = ScanState.SCANNING
        self._started_at = time.monotonic()

        logging.info(
            f"Scanning {self.config.host} ports {self.config.scan_range} "
            f"with {self.config.workers} workers"
        )
        for i in range(self.config.workers):
            thread = threading.Thread(target=self._run_worker, name=f"probe-worker-{i}", daemon=True)
            thread.start()
            self.workers.append(thread)

    def fill(self, scan_range: Optional[ScanRange] = None):
        """
        Queues every port of the range once, in ascending order.

        The range defaults to the configured one; an explicit range must lie
        inside it.
        """
        if self.state != ScanState.SCANNING:
            raise RuntimeError("fill() needs a started scan that has not been closed")
        if scan_range is None:
            scan_range = self.config.scan_range
        scan_range.validate()
        if not self.config.scan_range.covers(scan_range):
            raise ConfigurationError(
                f"Port range {scan_range} is outside the configured range {self.config.scan_range}"
            )
        for port in scan_range.ports():
            if self.stop_event.is_set() or not self._put(port):
                logging.warning(f"Scan aborted; stopped queueing at port {port}")
                break

    def close(self):
        """Signals that no more jobs will arrive. Must be called exactly once."""
        if self.state != ScanState.SCANNING:
            raise RuntimeError("close() must be called exactly once, after the scan started")
        self.state = ScanState.CLOSED
        for _ in self.workers:
            if not self._put(None):
                break

    def await_completion(self) -> ScanReport:
        """Blocks until every worker has drained the queue, then releases the output file."""
        if self.state != ScanState.CLOSED:
            raise RuntimeError("await_completion() requires close() to be called first")
        try:
            for thread in self.workers:
                thread.join()
        except BaseException:
            # Workers may still be running; _close_output detaches the sink first.
            self.stop_event.set()
            raise
        finally:
            self.state = ScanState.DONE
            self.progress.close()
            self._close_output()

        if self._failures:
            raise ScanAbortedError(f"Scan aborted: {self._failures[0]}") from self._failures[0]

        elapsed = time.monotonic() - self._started_at
        report = ScanReport(
            open_ports=tuple(self.sink.open_ports) if self.sink else (),
            probed=self._probed,
            output=self.config.output,
            elapsed=elapsed,
        )
        logging.info(f"Scan finished: {report.probed} ports probed, {len(report.open_ports)} open, {elapsed:.2f}s")
        return report

    def run(self) -> ScanReport:
        """Runs a complete scan: start, fill, close, and wait for all workers."""
        self.start()
        try:
            self.fill()
        except BaseException:
            self.stop_event.set()
            raise
        finally:
            self.close()
        return self.await_completion()

    def write_report(self, report: ScanReport, out: Optional[IO[str]] = None):
        """Prints the console summary, or where the results were saved."""
        out = out or sys.stdout
        if report.output:
            out.write(f"\nResults saved to {report.output}\n")
            out.flush()
        elif self.sink is not None:
            self.sink.write_summary(out)

    def _run_worker(self):
        try:
            probed = probe_worker(
                self.config.host,
                self.config.connect_timeout,
                self.job_queue,
                self.sink,
                self.progress,
                self.probe,
                self.stop_event,
            )
        except Exception as e:
            logging.exception(f"{threading.current_thread().name} failed")
            with self._lock:
                self._failures.append(e)
            self.stop_event.set()
            return
        with self._lock:
            self._probed += probed

    def _put(self, item: Optional[int]) -> bool:
        """Blocking put that gives up once no worker is left to take the item."""
        while True:
            try:
                self.job_queue.put(item, timeout=_PUT_POLL_SECONDS)
                return True
            except queue.Full:
                if not any(thread.is_alive() for thread in self.workers):
                    return False

    def _open_output(self) -> Optional[IO[str]]:
        if not self.config.output:
            return None
        try:
            return open(self.config.output, 'w', encoding='utf-8')
        except OSError as e:
            raise ConfigurationError(f"Error creating file {self.config.output}: {e}") from e

    def _close_output(self):
        if self.sink is not None:
            self.sink.detach()
        if self._output_file is not None:
            self._output_file.close()
            self._output_file = None
