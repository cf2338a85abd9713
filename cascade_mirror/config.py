"""Configuration management for cascade-mirror.

Supports multiple configuration sources with precedence:
CLI flags > Environment variables > Config file > Defaults

Usage:
    >>> config = Configuration()
    >>> config.load_from_file("~/.cascademirrorrc")
    >>> config.load_from_env()
    >>> config.merge(port=8080)  # CLI overrides
    >>> print(config.port)
    8080
"""

import os
import json
import logging
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "~/.cascademirrorrc"


def parse_ports(value: str) -> List[int]:
    """Parse a comma-separated port list, dropping entries that are not valid ports."""
    ports = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            port = int(part)
        except ValueError:
            continue
        if 0 < port <= 65535:
            ports.append(port)
    return ports


def parse_interval_ms(value: str) -> float:
    """Convert a millisecond string (e.g. POLL_INTERVAL=3000) to seconds."""
    return int(value) / 1000.0


class Configuration:
    """Configuration manager with layered precedence.

    Precedence order (highest to lowest):
    1. CLI arguments (via merge method)
    2. Environment variables
    3. Config file (~/.cascademirrorrc JSON)
    4. Default values

    Attributes:
        cdp_ports: Candidate debug ports of the host (default: 9000-9003)
        cdp_host: Host the debug ports live on (default: 127.0.0.1)
        poll_interval: Base snapshot polling interval in seconds (default: 3.0)
        port: Port for the viewer HTTP server (default: 3000)
        bind_host: Interface the viewer server binds to (default: 0.0.0.0)
        timeout: CDP call timeout in seconds (default: 30.0)
        static_dir: Directory with viewer files served at / (default: None)
        log_level: Logging level (default: "INFO")
        log_format: Log output format "text" or "json" (default: "text")
    """

    DEFAULTS = {
        "cdp_ports": [9000, 9001, 9002, 9003],
        "cdp_host": "127.0.0.1",
        "poll_interval": 3.0,
        "port": 3000,
        "bind_host": "0.0.0.0",
        "timeout": 30.0,
        "static_dir": None,
        "log_level": "INFO",
        "log_format": "text",
    }

    def __init__(self):
        """Initialize configuration with default values."""
        self.cdp_ports: List[int] = list(self.DEFAULTS["cdp_ports"])
        self.cdp_host: str = self.DEFAULTS["cdp_host"]
        self.poll_interval: float = self.DEFAULTS["poll_interval"]
        self.port: int = self.DEFAULTS["port"]
        self.bind_host: str = self.DEFAULTS["bind_host"]
        self.timeout: float = self.DEFAULTS["timeout"]
        self.static_dir: Optional[str] = self.DEFAULTS["static_dir"]
        self.log_level: str = self.DEFAULTS["log_level"]
        self.log_format: str = self.DEFAULTS["log_format"]

    def load_from_file(self, file_path: str) -> None:
        """Load configuration from JSON file.

        Args:
            file_path: Path to config file (typically ~/.cascademirrorrc)

        Note:
            Invalid JSON or missing file is ignored with a log message.
            Partial configs are merged with existing values.
        """
        path = Path(file_path).expanduser()

        if not path.exists():
            logger.debug(f"Config file not found: {path}")
            return

        try:
            with open(path, "r") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                logger.warning(f"Config file {path} must contain a JSON object")
                return
            self._merge_dict(data)
            logger.info(f"Loaded configuration from {path}")

        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in config file {path}: {e}")
        except OSError as e:
            logger.warning(f"Error loading config file {path}: {e}")

    def load_from_env(self) -> None:
        """Load configuration from environment variables.

        - CDP_PORTS (comma-separated; invalid entries dropped, empty keeps current)
        - CDP_HOST
        - POLL_INTERVAL (milliseconds)
        - PORT
        - BIND_HOST
        - CDP_TIMEOUT
        - STATIC_DIR
        - LOG_LEVEL
        - LOG_FORMAT

        Invalid values are ignored with a warning log.
        """
        env_mappings = {
            "CDP_PORTS": ("cdp_ports", parse_ports),
            "CDP_HOST": ("cdp_host", str),
            "POLL_INTERVAL": ("poll_interval", parse_interval_ms),
            "PORT": ("port", int),
            "BIND_HOST": ("bind_host", str),
            "CDP_TIMEOUT": ("timeout", float),
            "STATIC_DIR": ("static_dir", str),
            "LOG_LEVEL": ("log_level", str),
            "LOG_FORMAT": ("log_format", str),
        }

        for env_var, (attr_name, type_converter) in env_mappings.items():
            value = os.getenv(env_var)
            if value is None or value == "":
                continue
            try:
                converted_value = type_converter(value)
            except (ValueError, TypeError) as e:
                logger.warning(f"Invalid value for {env_var}: {value} ({e})")
                continue
            if attr_name == "cdp_ports" and not converted_value:
                logger.warning(f"No valid ports in {env_var}={value!r}, keeping {self.cdp_ports}")
                continue
            setattr(self, attr_name, converted_value)
            logger.debug(f"Loaded {attr_name}={converted_value} from {env_var}")

    def merge(self, **kwargs) -> None:
        """Merge CLI arguments into configuration (highest precedence).

        Example:
            >>> config.merge(port=8080, poll_interval=1.5)
        """
        self._merge_dict(kwargs)

    def _merge_dict(self, data: dict) -> None:
        for key, value in data.items():
            if hasattr(self, key) and value is not None:
                setattr(self, key, value)
                logger.debug(f"Set {key}={value}")

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ValueError: If a port is out of range or an interval is not positive
        """
        if not self.cdp_ports:
            raise ValueError("cdp_ports must not be empty")
        for port in list(self.cdp_ports) + [self.port]:
            if not isinstance(port, int) or not 1 <= port <= 65535:
                raise ValueError(f"port must be 1-65535, got {port}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")

    def to_dict(self) -> dict:
        """Export configuration as dictionary."""
        return {
            "cdp_ports": list(self.cdp_ports),
            "cdp_host": self.cdp_host,
            "poll_interval": self.poll_interval,
            "port": self.port,
            "bind_host": self.bind_host,
            "timeout": self.timeout,
            "static_dir": self.static_dir,
            "log_level": self.log_level,
            "log_format": self.log_format,
        }

    def __repr__(self) -> str:
        return f"Configuration({self.to_dict()})"
