"""
Core network utility functions.
"""
import logging
import socket
from functools import lru_cache
from typing import Any, Optional, Tuple

# (address family, socket address without the port)
Address = Tuple[int, Tuple[Any, ...]]


@lru_cache(maxsize=128)
def resolve_host(host: str) -> Tuple[Address, ...]:
    """
    Resolves a host name or IP literal to its distinct TCP addresses.

    Results are cached for the life of the process, so a scan resolves its
    target once rather than once per port. An unresolvable host yields ().
    """
    try:
        infos = socket.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError) as e:
        logging.debug(f"Could not resolve {host}: {e}")
        return ()

    addresses = []
    for family, _, _, _, sockaddr in infos:
        if family not in (socket.AF_INET, socket.AF_INET6):
            continue
        # Drop the port slot; IPv6 keeps its flowinfo and scope id.
        address = (family, (sockaddr[0],) + tuple(sockaddr[2:]))
        if address not in addresses:
            addresses.append(address)
    return tuple(addresses)


def probe_tcp_port(host: str, port: int, timeout: Optional[float] = None) -> bool:
    """
    Attempts a full TCP connect to host:port and reports whether it succeeded.

    A timeout of None or 0 leaves the connect blocking until the OS resolves it.
    The connection is closed straight away; nothing is sent or read. Every
    failure (refused, timed out, unreachable, unresolvable) counts as closed.
    """
    for family, address in resolve_host(host):
        try:
            with socket.socket(family, socket.SOCK_STREAM) as sock:
                sock.settimeout(timeout or None)
                if sock.connect_ex((address[0], port) + address[1:]) == 0:
                    return True
        except OSError:
            continue
    return False
