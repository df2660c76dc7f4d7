"""
Network-related utilities for portprobe.
"""

from .probe import probe_worker, ProbeFunc
from .utils import probe_tcp_port, resolve_host

__all__ = [
    "probe_worker",
    "ProbeFunc",
    "probe_tcp_port",
    "resolve_host",
]
