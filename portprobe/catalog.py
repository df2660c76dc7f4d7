"""
Well-known port descriptions bundled with portprobe.

The catalog maps a port number (as a string) to an ordered list of service
records. It is loaded once at startup and only read afterwards.
"""
from __future__ import annotations
import json
import logging
import os
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .models import ServiceDescriptor

NOT_SPECIFIED = "Not specified"

DEFAULT_CATALOG_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "port_services.json")


class CatalogError(RuntimeError):
    """Raised when the service catalog cannot be loaded."""


class ServiceCatalog:
    """Read-only lookup of service descriptors by port number."""

    def __init__(self, entries: Optional[Mapping[str, Sequence[ServiceDescriptor]]] = None):
        self._entries: Dict[str, Tuple[ServiceDescriptor, ...]] = {
            str(port): tuple(descriptors) for port, descriptors in (entries or {}).items()
        }

    @classmethod
    def from_dict(cls, data: Any) -> ServiceCatalog:
        """Builds a catalog from decoded JSON data, validating every record."""
        if not isinstance(data, dict):
            raise CatalogError("Service catalog must be a JSON object keyed by port number.")
        entries: Dict[str, List[ServiceDescriptor]] = {}
        for port, records in data.items():
            if not isinstance(records, list):
                raise CatalogError(f"Catalog entry for port {port} must be a list.")
            try:
                entries[str(port)] = [ServiceDescriptor.from_record(r) for r in records]
            except (TypeError, ValueError) as e:
                raise CatalogError(f"Malformed catalog entry for port {port}: {e}") from e
        return cls(entries)

    @classmethod
    def load(cls, path: Optional[str] = None) -> ServiceCatalog:
        """Loads the catalog from a JSON file, the bundled dataset by default."""
        path = path or DEFAULT_CATALOG_PATH
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogError(f"Could not load service catalog from '{path}': {e}") from e
        catalog = cls.from_dict(data)
        logging.debug(f"Loaded {len(catalog)} port entries from {path}")
        return catalog

    def lookup(self, port: int) -> Tuple[ServiceDescriptor, ...]:
        """Returns all descriptors for a port, or an empty tuple."""
        return self._entries.get(str(port), ())

    def describe(self, port: int) -> List[str]:
        """Returns the descriptions for a port, or the placeholder if none are known."""
        descriptors = self.lookup(port)
        if not descriptors:
            return [NOT_SPECIFIED]
        return [d.description for d in descriptors]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, port: object) -> bool:
        return str(port) in self._entries
