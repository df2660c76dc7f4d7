"""
portprobe: concurrent TCP connect port scanner.
"""

from .catalog import ServiceCatalog, CatalogError, NOT_SPECIFIED
from .configuration import ScanConfig, ConfigurationError
from .models import ScanOutcome, ScanRange, ScanReport, ServiceDescriptor
from .scan_manager import ScanCoordinator, ScanAbortedError, ScanState
from .sink import ResultSink

__version__ = "1.0.0"

__all__ = [
    "ServiceCatalog",
    "CatalogError",
    "NOT_SPECIFIED",
    "ScanConfig",
    "ConfigurationError",
    "ScanOutcome",
    "ScanRange",
    "ScanReport",
    "ServiceDescriptor",
    "ScanCoordinator",
    "ScanAbortedError",
    "ScanState",
    "ResultSink",
]
