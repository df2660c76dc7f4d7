import socket
import threading
from collections import Counter

import pytest

from portprobe.catalog import ServiceCatalog
from portprobe.configuration import ScanConfig
from portprobe.models import ScanRange

SAMPLE_CATALOG = {
    "22": [
        {"description": "Secure Shell (SSH)", "udp": False, "status": "Official", "port": "22", "tcp": True},
    ],
    "80": [
        {"description": "Hypertext Transfer Protocol (HTTP)", "udp": True, "status": "Official", "port": "80", "tcp": True},
    ],
    "445": [
        {"description": "Microsoft-DS Active Directory", "udp": False, "status": "Official", "port": "445", "tcp": True},
        {"description": "Microsoft-DS SMB file sharing", "udp": False, "status": "Official", "port": "445", "tcp": True},
    ],
}


class ScriptedProbe:
    """Probe double that reports a fixed set of ports as open and counts every call."""

    def __init__(self, open_ports=()):
        self.open_ports = set(open_ports)
        self.calls = Counter()
        self.hosts = set()
        self._lock = threading.Lock()

    def __call__(self, host, port, timeout):
        with self._lock:
            self.calls[port] += 1
            self.hosts.add(host)
        return port in self.open_ports

    @property
    def total_calls(self):
        return sum(self.calls.values())


@pytest.fixture
def catalog():
    return ServiceCatalog.from_dict(SAMPLE_CATALOG)


@pytest.fixture
def make_config():
    def _make(start=1, end=100, **kwargs):
        kwargs.setdefault("host", "127.0.0.1")
        kwargs.setdefault("workers", 4)
        kwargs.setdefault("progress", False)
        return ScanConfig(scan_range=ScanRange(start, end), **kwargs)
    return _make


@pytest.fixture
def listening_ports():
    """Opens three listening sockets on loopback and yields their port numbers."""
    servers = []
    for _ in range(3):
        srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        srv.bind(("127.0.0.1", 0))
        srv.listen(128)
        servers.append(srv)
    try:
        yield sorted(s.getsockname()[1] for s in servers)
    finally:
        for srv in servers:
            srv.close()


@pytest.fixture
def closed_port():
    """A loopback port that was just released, so nothing is listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    return port
