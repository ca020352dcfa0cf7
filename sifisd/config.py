"""
SIFIS-Home Configuration Management

Handles loading and validation of the runtime configuration from a TOML
file, and resolution of the socket path shared by the daemon and its
clients.

Example:

    socket_path = "/run/sifis/sifis.sock"
    log_level = "DEBUG"

    [runtime]
    actuation_delay = 0.05

    [runtime.clamp_policy]
    sink = "reject"

    [devices."lamp1"]
    name = "Safe lamp"
    kind = "lamp"
    brightness = 40
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import toml

from . import DEFAULT_SOCKET_PATH, SOCKET_PATH_ENV
from .contract import DeviceClass
from .devices import ClampPolicy, Device, state_from_dict


logger = logging.getLogger("sifisd")

# Default configuration path
DEFAULT_CONFIG_PATH = Path("sifis-runtime.toml")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class RuntimeConfig:
    """Runtime simulation configuration."""
    actuation_delay: float = 0.0  # seconds
    clamp_policy: Dict[str, str] = field(default_factory=dict)


@dataclass
class Config:
    """
    Complete runtime configuration.
    """
    # Sub-configurations
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)

    # Device table: id -> {name, kind, state fields...}
    devices: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    # Paths
    config_path: Path = field(default_factory=lambda: DEFAULT_CONFIG_PATH)
    socket_path: Path = field(default_factory=lambda: Path(DEFAULT_SOCKET_PATH))

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> 'Config':
        """
        Load configuration from file.

        A missing file yields the defaults.

        Args:
            config_path: Path to config file (default: ./sifis-runtime.toml)

        Returns:
            Loaded configuration

        Raises:
            ValueError: If the file cannot be parsed
        """
        path = Path(config_path or DEFAULT_CONFIG_PATH)
        config = cls()
        config.config_path = path

        if not path.exists():
            logger.warning(f"Cannot find configuration file {path}, using the default")
            return config

        try:
            data = toml.load(str(path))
        except (toml.TomlDecodeError, OSError) as e:
            raise ValueError(f"Failed to load configuration {path}: {e}") from None

        config._apply_dict(data)
        return config

    def _apply_dict(self, data: Dict[str, Any]) -> None:
        """
        Apply dictionary data to config.

        Raises:
            ValueError: If a setting or table has the wrong type
        """
        # Top-level settings
        if "socket_path" in data:
            self.socket_path = Path(_typed(data, "socket_path", str))
        if "log_level" in data:
            self.log_level = _typed(data, "log_level", str).upper()
        if "log_file" in data:
            self.log_file = Path(_typed(data, "log_file", str))

        # Runtime config
        if "runtime" in data:
            r = _typed(data, "runtime", dict)
            if "actuation_delay" in r:
                delay = r["actuation_delay"]
                if not isinstance(delay, (int, float)) or isinstance(delay, bool):
                    raise ValueError(f"Invalid actuation delay: {delay!r}")
                self.runtime.actuation_delay = float(delay)
            if "clamp_policy" in r:
                policies = _typed(r, "clamp_policy", dict, "runtime.clamp_policy")
                self.runtime.clamp_policy = {
                    str(k).lower(): str(v).lower() for k, v in policies.items()
                }

        # Devices
        if "devices" in data:
            devices = _typed(data, "devices", dict)
            self.devices = {
                str(k): dict(_typed(devices, k, dict, f"devices.{k}"))
                for k in devices
            }

    def clamp_policies(self) -> Dict[DeviceClass, ClampPolicy]:
        """
        Out-of-range handling per device class.

        Raises:
            ValueError: On unknown classes or policies
        """
        policies = {}
        for kind, policy in self.runtime.clamp_policy.items():
            try:
                policies[DeviceClass.from_name(kind)] = ClampPolicy(policy)
            except ValueError:
                raise ValueError(f"Invalid clamp policy {kind} = {policy!r}") from None
        return policies

    def build_devices(self) -> List[Device]:
        """
        Build the device set described by the configuration.

        Returns an empty list when no devices are configured.

        Raises:
            ValueError: On invalid device entries
        """
        devices = []
        for device_id, entry in self.devices.items():
            entry = dict(entry)
            if "kind" not in entry:
                raise ValueError(f"Device {device_id}: missing kind")
            kind = DeviceClass.from_name(str(entry.pop("kind")))
            name = str(entry.pop("name", device_id))
            try:
                state = state_from_dict(kind, entry)
            except ValueError as e:
                raise ValueError(f"Device {device_id}: {e}") from None
            devices.append(Device(device_id, name, kind, state))
        return devices

    def validate(self) -> None:
        """
        Validate configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.log_level}")

        if self.runtime.actuation_delay < 0:
            raise ValueError(f"Invalid actuation delay: {self.runtime.actuation_delay}")

        self.clamp_policies()
        self.build_devices()


def _typed(table: Dict[str, Any], key: str, expected: type, label: Optional[str] = None) -> Any:
    value = table[key]
    if not isinstance(value, expected):
        kind = "a table" if expected is dict else "a string"
        raise ValueError(f"{label or key} must be {kind}, got {type(value).__name__}")
    return value


def resolve_socket_path(
    config: Optional[Config] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Path:
    """
    Resolve the runtime socket path.

    Order: SIFIS_SERVER environment variable, configuration, default.
    """
    environ = os.environ if environ is None else environ
    override = environ.get(SOCKET_PATH_ENV)
    if override:
        return Path(override)
    if config is not None:
        return config.socket_path
    return Path(DEFAULT_SOCKET_PATH)
