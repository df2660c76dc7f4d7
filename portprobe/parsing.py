"""
Handles command-line parsing and validation of the scan target.
"""
from __future__ import annotations
import argparse
import ipaddress
from typing import Any, Dict, List, Optional

from .configuration import ConfigurationError, CONFIG_FILE_NAME


def build_arg_parser() -> argparse.ArgumentParser:
    """
    Creates the argument parser. Defaults are left as None so the config file can fill them.

    Abbreviated long options are refused: main_entry looks for --pause by its exact spelling.
    """
    parser = argparse.ArgumentParser(
        prog="portprobe",
        description="Concurrent TCP connect scanner for a range of ports on one host.",
        allow_abbrev=False,
    )
    parser.add_argument("-w", "--workers", type=int, help="Number of parallel workers (default: 10)")
    parser.add_argument("-H", "--host", help="Host to scan (default: 127.0.0.1)")
    parser.add_argument("-s", "--start", type=int, help="Start port for scanning (default: 1)")
    parser.add_argument("-e", "--end", type=int, help="End port for scanning (default: 65535)")
    parser.add_argument(
        "-t", "--timeout",
        help="Time to wait for each connection, e.g. 500ms, 2s or plain seconds (default: 0, no deadline)",
    )
    parser.add_argument("-o", "--output", help="File to save output; results are printed to the console when omitted")
    parser.add_argument("-q", "--queue-size", type=int, help="Job queue capacity (default: worker count)")
    parser.add_argument("-c", "--config", default=CONFIG_FILE_NAME, help=f"YAML defaults file (default: {CONFIG_FILE_NAME})")
    parser.add_argument("--save-config", action="store_true", help="Write the effective settings to the config file and exit")
    parser.add_argument("--no-progress", dest="progress", action="store_false", default=None, help="Hide the progress bar")
    parser.add_argument("--pause", action="store_true", help="Wait for Enter before exiting")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Extracts the scan settings given on the command line; unset flags stay None."""
    return {
        'workers': args.workers,
        'host': args.host,
        'start': args.start,
        'end': args.end,
        'timeout': args.timeout,
        'output': args.output,
        'queue_size': args.queue_size,
        'progress': args.progress,
    }


def validate_host(host: str) -> str:
    """Validates a hostname or IP address and returns it stripped."""
    host = host.strip()
    candidate = host[1:-1] if host.startswith('[') and host.endswith(']') else host
    try:
        ipaddress.ip_address(candidate.split('%')[0])
        return candidate
    except ValueError:
        pass
    if not host or len(host) > 253:
        raise ConfigurationError(f"The hostname '{host}' is not valid.")
    labels = host.rstrip('.').split('.')
    if not all(labels):
        raise ConfigurationError(f"The hostname '{host}' contains empty labels.")
    for lbl in labels:
        if not (1 <= len(lbl) <= 63):
            raise ConfigurationError(f"The hostname '{host}' has an invalid label length.")
        if lbl.startswith('-') or lbl.endswith('-'):
            raise ConfigurationError(f"The hostname '{host}' has a label starting/ending with '-'.")
        if not all(c.isalnum() or c in '-_' for c in lbl):
            raise ConfigurationError(f"The hostname '{host}' contains invalid characters.")
    return host


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    return build_arg_parser().parse_args(argv)
