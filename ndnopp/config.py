"""
NDN-Opp Configuration Management

Handles loading and validation of configuration from TOML file.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass, field

import toml

from . import MAX_PAYLOAD_SIZE_CL
from .transport.selector import TransportMode


logger = logging.getLogger(__name__)

# Default configuration path
DEFAULT_CONFIG_PATH = Path("/etc/ndnopp/config.toml")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass
class TransportConfig:
    """Channel selection configuration."""
    mode: str = "size_threshold"  # or "backup"
    size_threshold: int = MAX_PAYLOAD_SIZE_CL  # bytes

    @property
    def transport_mode(self) -> TransportMode:
        return TransportMode.parse(self.mode)


@dataclass
class ManagerConfig:
    """Packet manager configuration."""
    purge_on_disable: bool = False
    pending_timeout: Optional[float] = None  # seconds, None = never expire
    maintenance_interval: float = 10.0  # seconds


@dataclass
class Config:
    """
    Complete NDN-Opp configuration.
    """
    # Node identity (generated at start if empty)
    node_id: str = ""
    node_name: str = ""

    # Sub-configurations
    transport: TransportConfig = field(default_factory=TransportConfig)
    manager: ManagerConfig = field(default_factory=ManagerConfig)

    # Paths
    config_path: Path = field(default_factory=lambda: DEFAULT_CONFIG_PATH)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> 'Config':
        """
        Load configuration from file.

        A missing file yields the defaults.

        Args:
            config_path: Path to config file (default: /etc/ndnopp/config.toml)

        Returns:
            Loaded configuration
        """
        path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        config = cls()
        config.config_path = path

        if not path.exists():
            return config

        try:
            data = toml.load(str(path))
        except (toml.TomlDecodeError, OSError) as e:
            logger.warning(f"Could not read {path}, using defaults: {e}")
            return config

        config._apply_dict(data)
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Build configuration from already-parsed data."""
        config = cls()
        config._apply_dict(data)
        return config

    def _apply_dict(self, data: Dict[str, Any]) -> None:
        """Apply dictionary data to config."""
        # Top-level settings
        if "node_id" in data:
            self.node_id = str(data["node_id"])
        if "node_name" in data:
            self.node_name = str(data["node_name"])
        if "log_level" in data:
            self.log_level = str(data["log_level"]).upper()
        if "log_file" in data:
            self.log_file = Path(data["log_file"])

        # Transport config
        if "transport" in data:
            t = data["transport"]
            if "mode" in t:
                self.transport.mode = str(t["mode"])
            if "size_threshold" in t:
                self.transport.size_threshold = int(t["size_threshold"])

        # Manager config
        if "manager" in data:
            m = data["manager"]
            if "purge_on_disable" in m:
                self.manager.purge_on_disable = bool(m["purge_on_disable"])
            if "pending_timeout" in m:
                timeout = m["pending_timeout"]
                self.manager.pending_timeout = float(timeout) if timeout else None
            if "maintenance_interval" in m:
                self.manager.maintenance_interval = float(m["maintenance_interval"])

    def validate(self) -> None:
        """
        Validate configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        # Raises ValueError on unknown modes
        self.transport.transport_mode

        if self.transport.size_threshold < 0:
            raise ValueError(f"Invalid size threshold: {self.transport.size_threshold}")

        if self.manager.pending_timeout is not None and self.manager.pending_timeout <= 0:
            raise ValueError(f"Invalid pending timeout: {self.manager.pending_timeout}")

        if self.manager.maintenance_interval <= 0:
            raise ValueError(
                f"Invalid maintenance interval: {self.manager.maintenance_interval}"
            )

        if logging.getLevelName(self.log_level) == f"Level {self.log_level}":
            raise ValueError(f"Invalid log level: {self.log_level}")


def setup_logging(config: Config) -> None:
    """Configure root logging from config."""
    handlers = [logging.StreamHandler()]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=config.log_level,
        format=LOG_FORMAT,
        handlers=handlers,
    )
