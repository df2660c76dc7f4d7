import io
import threading

import pytest

from portprobe.configuration import ConfigurationError, ScanConfig
from portprobe.models import ScanRange
from portprobe.scan_manager import ScanAbortedError, ScanCoordinator, ScanState

from .conftest import ScriptedProbe


@pytest.mark.parametrize("workers", [1, 3, 50])
def test_every_port_probed_exactly_once(catalog, make_config, workers):
    probe = ScriptedProbe()
    config = make_config(1, 1000, workers=workers)
    report = ScanCoordinator(config, catalog, probe=probe).run()

    assert set(probe.calls) == set(range(1, 1001))
    assert all(count == 1 for count in probe.calls.values())
    assert probe.total_calls == 1000
    assert report.probed == 1000


def test_open_set_independent_of_worker_count(catalog, make_config):
    results = []
    for workers in (1, 50):
        probe = ScriptedProbe(open_ports={22, 80, 443})
        report = ScanCoordinator(make_config(1, 1000, workers=workers), catalog, probe=probe).run()
        results.append(report.open_ports)
    assert results[0] == results[1] == (22, 80, 443)


def test_open_ports_outside_range_are_never_probed(catalog, make_config):
    probe = ScriptedProbe(open_ports={5, 50, 500})
    report = ScanCoordinator(make_config(40, 60), catalog, probe=probe).run()
    assert report.open_ports == (50,)
    assert min(probe.calls) == 40 and max(probe.calls) == 60


def test_single_port_scan(catalog, make_config):
    probe = ScriptedProbe(open_ports={8080})
    report = ScanCoordinator(make_config(8080, 8080, workers=8), catalog, probe=probe).run()
    assert probe.total_calls == 1
    assert report.open_ports == (8080,)


def test_full_port_range(catalog, make_config):
    probe = ScriptedProbe(open_ports={1, 65535})
    report = ScanCoordinator(make_config(1, 65535, workers=64), catalog, probe=probe).run()
    assert probe.total_calls == 65535
    assert len(probe.calls) == 65535
    assert report.open_ports == (1, 65535)


def test_probe_receives_host_and_timeout(catalog, make_config):
    seen = set()
    lock = threading.Lock()

    def probe(host, port, timeout):
        with lock:
            seen.add((host, timeout))
        return False

    ScanCoordinator(make_config(1, 20, host="scan.example", timeout=0.05), catalog, probe=probe).run()
    ScanCoordinator(make_config(1, 20, host="scan.example"), catalog, probe=probe).run()
    assert seen == {("scan.example", 0.05), ("scan.example", None)}


def test_progress_ticks_once_per_port(catalog, make_config):
    class Ticks:
        def __init__(self):
            self.count = 0
            self.closed = False
            self.lock = threading.Lock()

        def advance(self, n=1):
            with self.lock:
                self.count += n

        def close(self):
            self.closed = True

    ticks = Ticks()
    probe = ScriptedProbe(open_ports={3})
    ScanCoordinator(make_config(1, 250, workers=10), catalog, progress=ticks, probe=probe).run()
    assert ticks.count == 250
    assert ticks.closed


def test_no_open_ports_reports_empty_console_summary(catalog, make_config):
    coordinator = ScanCoordinator(make_config(1, 100), catalog, probe=ScriptedProbe())
    report = coordinator.run()
    out = io.StringIO()
    coordinator.write_report(report, out)
    assert report.open_ports == ()
    assert out.getvalue() == "\nOpen Ports:\n"
    assert coordinator.state == ScanState.DONE


def test_file_output_is_streamed_and_closed(catalog, make_config, tmp_path):
    path = tmp_path / "scan.txt"
    config = make_config(1, 500, workers=16, output=str(path))
    coordinator = ScanCoordinator(config, catalog, probe=ScriptedProbe(open_ports={22, 445, 300}))
    report = coordinator.run()

    out = io.StringIO()
    coordinator.write_report(report, out)
    assert out.getvalue() == f"\nResults saved to {path}\n"

    lines = sorted(path.read_text(encoding="utf-8").splitlines())
    assert lines == [
        "22        | Secure Shell (SSH)",
        "300       | Not specified",
        "445       | Microsoft-DS Active Directory",
        "445       | Microsoft-DS SMB file sharing",
    ]
    assert coordinator._output_file is None


def test_unwritable_output_fails_before_any_probe(catalog, make_config, tmp_path):
    probe = ScriptedProbe()
    config = make_config(1, 10, output=str(tmp_path / "missing-dir" / "out.txt"))
    coordinator = ScanCoordinator(config, catalog, probe=probe)
    with pytest.raises(ConfigurationError, match="Error creating file"):
        coordinator.run()
    assert probe.total_calls == 0
    assert coordinator.workers == []


@pytest.mark.parametrize("fill_range", [ScanRange(10, 1), ScanRange(11, 10), ScanRange(0, 5)])
def test_invalid_fill_range_is_rejected(catalog, make_config, fill_range):
    scripted = ScriptedProbe()
    coordinator = ScanCoordinator(make_config(1, 10), catalog, probe=scripted)
    coordinator.start()
    with pytest.raises(ConfigurationError):
        coordinator.fill(fill_range)
    coordinator.close()
    coordinator.await_completion()
    assert scripted.total_calls == 0


def test_fill_range_outside_configuration_is_rejected(catalog, make_config):
    scripted = ScriptedProbe(open_ports={150})
    coordinator = ScanCoordinator(make_config(1, 10), catalog, probe=scripted)
    coordinator.start()
    with pytest.raises(ConfigurationError, match="outside the configured range 1-10"):
        coordinator.fill(ScanRange(100, 200))
    coordinator.close()
    report = coordinator.await_completion()
    assert scripted.total_calls == 0
    assert report.open_ports == ()


def test_fill_accepts_a_configured_subrange(catalog, make_config):
    scripted = ScriptedProbe(open_ports={4})
    coordinator = ScanCoordinator(make_config(1, 10), catalog, probe=scripted)
    coordinator.start()
    coordinator.fill(ScanRange(3, 5))
    coordinator.close()
    report = coordinator.await_completion()
    assert set(scripted.calls) == {3, 4, 5}
    assert report.open_ports == (4,)


def test_interrupt_while_joining_detaches_output_before_closing(catalog, make_config, tmp_path, monkeypatch):
    entered = threading.Event()
    release = threading.Event()

    def stall_on_third_port(host, port, timeout):
        if port == 3:
            entered.set()
            release.wait(5)
            return True
        return False

    path = tmp_path / "scan.txt"
    coordinator = ScanCoordinator(make_config(1, 3, workers=2, output=str(path)), catalog, probe=stall_on_third_port)
    coordinator.start()
    coordinator.fill()
    coordinator.close()
    assert entered.wait(5)

    def interrupted_join(timeout=None):
        raise KeyboardInterrupt

    joins = [t.join for t in coordinator.workers]
    monkeypatch.setattr(coordinator.workers[0], "join", interrupted_join)
    with pytest.raises(KeyboardInterrupt):
        coordinator.await_completion()
    assert coordinator.stop_event.is_set()
    assert coordinator._output_file is None
    assert coordinator.sink.stream is None

    # The stalled worker finishes after the file is gone and must not fail on it.
    release.set()
    for join in joins:
        join(5)
    assert not any(t.is_alive() for t in coordinator.workers)
    assert coordinator._failures == []
    assert 3 in coordinator.sink
    assert path.read_text(encoding="utf-8") == ""


def test_explicit_lifecycle(catalog, make_config):
    probe = ScriptedProbe(open_ports={7})
    coordinator = ScanCoordinator(make_config(1, 10, workers=2), catalog, probe=probe)
    assert coordinator.state == ScanState.IDLE

    coordinator.start()
    assert coordinator.state == ScanState.SCANNING
    assert len(coordinator.workers) == 2
    assert all(t.is_alive() for t in coordinator.workers)

    coordinator.fill()
    coordinator.close()
    assert coordinator.state == ScanState.CLOSED

    report = coordinator.await_completion()
    assert coordinator.state == ScanState.DONE
    assert not any(t.is_alive() for t in coordinator.workers)
    assert report.open_ports == (7,)


def test_lifecycle_misuse(catalog, make_config):
    coordinator = ScanCoordinator(make_config(1, 5), catalog, probe=ScriptedProbe())
    with pytest.raises(RuntimeError):
        coordinator.fill()
    with pytest.raises(RuntimeError):
        coordinator.close()
    with pytest.raises(RuntimeError):
        coordinator.await_completion()

    coordinator.start()
    with pytest.raises(RuntimeError):
        coordinator.start()
    coordinator.fill()
    coordinator.close()
    with pytest.raises(RuntimeError):
        coordinator.close()
    coordinator.await_completion()


def test_queue_is_bounded_by_worker_count(catalog, make_config):
    config = make_config(1, 50, workers=3)
    coordinator = ScanCoordinator(config, catalog, probe=ScriptedProbe())
    assert coordinator.job_queue.maxsize == 3
    coordinator = ScanCoordinator(make_config(1, 50, workers=3, queue_size=20), catalog, probe=ScriptedProbe())
    assert coordinator.job_queue.maxsize == 20


def test_worker_failure_aborts_scan(catalog, make_config):
    def probe(host, port, timeout):
        if port == 5:
            raise RuntimeError("socket layer exploded")
        return False

    coordinator = ScanCoordinator(make_config(1, 2000, workers=2), catalog, probe=probe)
    with pytest.raises(ScanAbortedError) as excinfo:
        coordinator.run()
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert coordinator.stop_event.is_set()
    assert not any(t.is_alive() for t in coordinator.workers)


def test_all_workers_failing_does_not_hang(catalog, make_config):
    def probe(host, port, timeout):
        raise RuntimeError("no network")

    coordinator = ScanCoordinator(make_config(1, 5000, workers=3), catalog, probe=probe)
    with pytest.raises(ScanAbortedError):
        coordinator.run()
    assert coordinator.state == ScanState.DONE


def test_scan_against_real_listeners(catalog, listening_ports, closed_port):
    low = min(listening_ports + [closed_port])
    high = max(listening_ports + [closed_port])
    config = ScanConfig(
        host="127.0.0.1",
        scan_range=ScanRange(high - 2, high) if high - low > 2000 else ScanRange(low, high),
        workers=50,
        timeout=1.0,
        progress=False,
    )
    report = ScanCoordinator(config, catalog).run()
    expected = {p for p in listening_ports if p in config.scan_range}
    assert expected <= set(report.open_ports)
    assert closed_port not in report.open_ports
    assert set(report.open_ports) <= set(config.scan_range.ports())
