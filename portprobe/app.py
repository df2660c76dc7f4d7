"""
Main application runner for portprobe.

This module merges configuration sources, loads the service catalog, and
drives a ScanCoordinator through one complete scan.
"""
import logging
import sys
from typing import IO, List, Optional

from . import configuration
from .catalog import CatalogError, ServiceCatalog
from .configuration import ConfigurationError, ScanConfig
from .models import ScanReport
from .network import ProbeFunc, probe_tcp_port
from .parsing import overrides_from_args, parse_args, validate_host
from .progress import create_progress
from .scan_manager import ScanCoordinator

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def build_config(settings: dict) -> ScanConfig:
    """Validates merged settings and freezes them into a ScanConfig."""
    settings = dict(settings)
    settings['host'] = validate_host(str(settings.get('host') or ''))
    return ScanConfig.from_mapping(settings)


def run_scan(
    config: ScanConfig,
    catalog: ServiceCatalog,
    out: Optional[IO[str]] = None,
    probe: ProbeFunc = probe_tcp_port,
) -> ScanReport:
    """Runs one scan to completion and prints its results."""
    progress = create_progress(len(config.scan_range), enabled=config.progress)
    coordinator = ScanCoordinator(config, catalog, progress=progress, probe=probe)
    try:
        report = coordinator.run()
    finally:
        progress.close()
    coordinator.write_report(report, out or sys.stdout)
    return report


def main(argv: Optional[List[str]] = None) -> int:
    """The main entry point for the application. Returns the process exit code."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )

    try:
        settings = configuration.load_config(args.config)
        settings.update({k: v for k, v in overrides_from_args(args).items() if v is not None})

        if args.save_config:
            path = configuration.save_config(settings, args.config)
            print(f"Settings saved to {path}")
            return EXIT_OK

        config = build_config(settings)
    except ConfigurationError as e:
        print(e)
        logging.debug("Configuration rejected", exc_info=True)
        return EXIT_CONFIG_ERROR

    try:
        catalog = ServiceCatalog.load()
    except CatalogError as e:
        print(f"FATAL: {e}", file=sys.stderr)
        return EXIT_FAILURE

    try:
        run_scan(config, catalog)
    except ConfigurationError as e:
        print(f"\n{e}")
        return EXIT_CONFIG_ERROR
    return EXIT_OK
