from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Tuple

MIN_PORT = 1
MAX_PORT = 65535


@dataclass(frozen=True)
class ServiceDescriptor:
    """One well-known service entry for a port number."""
    description: str
    tcp: bool = False
    udp: bool = False
    status: str = ""
    port: str = ""

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> ServiceDescriptor:
        """Builds a descriptor from a raw catalog record."""
        if not isinstance(record, dict):
            raise TypeError(f"Catalog record must be an object, got {type(record).__name__}")
        description = record.get('description')
        if not isinstance(description, str):
            raise ValueError(f"Catalog record has no description: {record!r}")
        return cls(
            description=description,
            tcp=bool(record.get('tcp', False)),
            udp=bool(record.get('udp', False)),
            status=str(record.get('status', '')),
            port=str(record.get('port', '')),
        )


@dataclass(frozen=True)
class ScanRange:
    """Inclusive range of TCP ports to probe."""
    start: int
    end: int

    def validate(self) -> ScanRange:
        """Raises ConfigurationError unless 1 <= start <= end <= 65535."""
        from .configuration import ConfigurationError

        if self.start < MIN_PORT or self.end > MAX_PORT or self.start > self.end:
            raise ConfigurationError(
                f"Invalid port range {self.start}-{self.end}. Ports must be between "
                f"{MIN_PORT} and {MAX_PORT}, and start <= end."
            )
        return self

    def ports(self) -> Iterator[int]:
        return iter(range(self.start, self.end + 1))

    def __len__(self) -> int:
        return max(0, self.end - self.start + 1)

    def covers(self, other: ScanRange) -> bool:
        """True when every port of other lies inside this range."""
        return self.start <= other.start and other.end <= self.end

    def __contains__(self, port: object) -> bool:
        return isinstance(port, int) and self.start <= port <= self.end

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class ScanOutcome:
    """Result of a single probe, handed straight to the result sink."""
    port: int
    open: bool


@dataclass(frozen=True)
class ScanReport:
    """Summary of a finished scan."""
    open_ports: Tuple[int, ...] = field(default_factory=tuple)
    probed: int = 0
    output: Optional[str] = None
    elapsed: float = 0.0
