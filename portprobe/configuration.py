# portprobe/configuration.py

"""
Configuration loader for portprobe.

Handles loading scan defaults from portprobe.yaml and freezing the effective
settings into an immutable ScanConfig that is handed to the scan coordinator.
"""

from __future__ import annotations
import os
import re
import yaml
from dataclasses import dataclass
from typing import Dict, Any, Optional, Union

from .models import ScanRange

# Default values for every scan setting. Keys mirror the command-line flags.
DEFAULT_CONFIG: Dict[str, Any] = {
    'workers': 10,
    'host': '127.0.0.1',
    'start': 1,
    'end': 65535,
    'timeout': 0,           # seconds, or a duration string such as "500ms"; 0 = no deadline
    'output': None,         # file path for incremental results; None = console summary
    'queue_size': None,     # job queue capacity; None = one slot per worker
    'progress': True,
}

CONFIG_FILE_NAME = "portprobe.yaml"

_DURATION_PART = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)')
_DURATION_UNITS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,
    'ms': 1e-3,
    's': 1.0,
    'm': 60.0,
    'h': 3600.0,
}


class ConfigurationError(ValueError):
    """Raised for settings that make a scan impossible to start."""


def get_config_path() -> str:
    """Returns the path to the config file."""
    return CONFIG_FILE_NAME


def parse_duration(value: Union[str, int, float, None]) -> float:
    """
    Converts a timeout setting to seconds.

    Accepts plain numbers (seconds) and duration strings made of one or more
    number/unit pairs, e.g. "50ms", "1.5s", "1m30s".
    """
    if value is None or value == '':
        return 0.0
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid timeout: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        try:
            seconds = float(text)
        except ValueError:
            pos, seconds = 0, 0.0
            for match in _DURATION_PART.finditer(text):
                if match.start() != pos:
                    break
                seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
                pos = match.end()
            if pos == 0 or pos != len(text):
                raise ConfigurationError(
                    f"Invalid timeout '{text}'. Use seconds or a duration like 500ms, 2s, 1m30s."
                )
    if seconds < 0:
        raise ConfigurationError(f"Timeout cannot be negative: {value!r}")
    return seconds


def save_config(config: Dict[str, Any], config_path: Optional[str] = None) -> str:
    """Saves the provided configuration dictionary as YAML and returns the path written."""
    config_path = config_path or get_config_path()
    try:
        with open(config_path, 'w') as f:
            f.write("# portprobe configuration file\n")
            f.write("# Command-line flags override these values.\n\n")
            yaml.dump(config, f, sort_keys=False, default_flow_style=False, indent=2)
    except OSError as e:
        raise ConfigurationError(f"Could not write config file to '{config_path}': {e}") from e
    return config_path


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Loads scan defaults from the YAML config file.

    A missing file yields DEFAULT_CONFIG. Unknown keys are ignored; an unparsable
    file raises ConfigurationError.
    """
    config_path = config_path or get_config_path()
    config = DEFAULT_CONFIG.copy()
    if not os.path.exists(config_path):
        return config

    try:
        with open(config_path, 'r') as f:
            user_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error parsing '{config_path}': {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Could not read '{config_path}': {e}") from e

    if user_config is None:
        return config
    if not isinstance(user_config, dict):
        raise ConfigurationError(f"'{config_path}' must contain a mapping of settings.")

    config.update({k: v for k, v in user_config.items() if k in DEFAULT_CONFIG})
    return config


@dataclass(frozen=True)
class ScanConfig:
    """Immutable settings for one scan, validated once before any worker starts."""
    host: str
    scan_range: ScanRange
    workers: int = 10
    timeout: float = 0.0
    output: Optional[str] = None
    queue_size: Optional[int] = None
    progress: bool = True

    def __post_init__(self):
        if not self.host or not str(self.host).strip():
            raise ConfigurationError("A target host is required.")
        if isinstance(self.workers, bool) or not isinstance(self.workers, int) or self.workers < 1:
            raise ConfigurationError(f"Worker count must be at least 1, got {self.workers!r}.")
        if self.timeout < 0:
            raise ConfigurationError(f"Timeout cannot be negative: {self.timeout!r}")
        if self.queue_size is not None and self.queue_size < 1:
            raise ConfigurationError(f"Queue size must be at least 1, got {self.queue_size!r}.")
        self.scan_range.validate()

    @property
    def effective_queue_size(self) -> int:
        return self.queue_size or self.workers

    @property
    def connect_timeout(self) -> Optional[float]:
        """Socket timeout for a probe; None means block until the OS resolves the connect."""
        return self.timeout if self.timeout > 0 else None

    @classmethod
    def from_mapping(cls, settings: Dict[str, Any]) -> ScanConfig:
        """Builds a ScanConfig from a merged settings dictionary."""
        merged = DEFAULT_CONFIG.copy()
        merged.update({k: v for k, v in settings.items() if v is not None})
        try:
            start, end = int(merged['start']), int(merged['end'])
            workers = int(merged['workers'])
            queue_size = merged.get('queue_size')
            queue_size = int(queue_size) if queue_size is not None else None
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e
        return cls(
            host=str(merged['host']),
            scan_range=ScanRange(start, end),
            workers=workers,
            timeout=parse_duration(merged['timeout']),
            output=merged.get('output') or None,
            queue_size=queue_size,
            progress=bool(merged.get('progress', True)),
        )
