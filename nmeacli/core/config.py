"""Connection configuration and monitor settings."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional, Tuple

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

ADDRESS_ENV = "NMEACLI_ADDR"
DEVICE_ENV = "NMEACLI_DEVICE"

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"

_yaml = YAML(typ="safe")


class ConfigError(RuntimeError):
    """Raised when the connection or settings configuration is invalid."""


def parse_address(address: str) -> Tuple[str, int]:
    """Split ``host:port`` (or ``[v6-host]:port``) into its parts."""

    host, sep, port_text = address.strip().rpartition(":")
    if not sep or not host or not port_text:
        raise ConfigError(f"address must look like host:port, got {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = int(port_text)
    except ValueError:
        raise ConfigError(f"invalid port in address {address!r}") from None
    if not 0 < port < 65536:
        raise ConfigError(f"port out of range in address {address!r}")
    return host, port


@dataclass(frozen=True)
class SourceConfig:
    """Where telemetry comes from; the network address wins over the device."""

    address: Optional[str] = None
    device: Optional[str] = None
    baud: int = 9600

    @classmethod
    def from_env(cls, environ: Mapping[str, str], *, baud: int = 9600) -> "SourceConfig":
        address = environ.get(ADDRESS_ENV) or None
        device = environ.get(DEVICE_ENV) or None
        return cls(address=address, device=device, baud=baud)

    @property
    def is_network(self) -> bool:
        return bool(self.address)

    def endpoint(self) -> Tuple[str, int]:
        if not self.address:
            raise ConfigError("no network address configured")
        return parse_address(self.address)

    def validate(self) -> "SourceConfig":
        if not self.address and not self.device:
            raise ConfigError(
                f"no telemetry source configured: set {ADDRESS_ENV}=host:port "
                f"or {DEVICE_ENV}=/path/to/device"
            )
        if self.address:
            parse_address(self.address)
        if self.baud <= 0:
            raise ConfigError(f"baud rate must be positive, got {self.baud}")
        return self

    def describe(self) -> str:
        if self.address:
            return f"tcp://{self.address}"
        return str(self.device)


def _flag(value: object, name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{name} must be true or false, got {value!r}")
    return value


@dataclass(frozen=True)
class MonitorSettings:
    """Display and ingestion tunables loaded from ``config.yaml``."""

    tick_rate: float = 0.05
    exit_key: str = "q"
    history_capacity: int = 100
    skip_preamble: bool = True
    baud: int = 9600

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "MonitorSettings":
        defaults = cls()
        try:
            settings = cls(
                tick_rate=float(data.get("tick_rate", defaults.tick_rate)),
                exit_key=str(data.get("exit_key", defaults.exit_key)),
                history_capacity=int(data.get("history_capacity", defaults.history_capacity)),
                skip_preamble=_flag(data.get("skip_preamble", defaults.skip_preamble), "skip_preamble"),
                baud=int(data.get("baud", defaults.baud)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"invalid monitor settings: {exc}") from None
        return settings.validate()

    def with_overrides(self, **overrides: object) -> "MonitorSettings":
        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **values).validate()

    def validate(self) -> "MonitorSettings":
        if self.tick_rate <= 0:
            raise ConfigError(f"tick_rate must be positive, got {self.tick_rate}")
        if len(self.exit_key) != 1:
            raise ConfigError(f"exit_key must be a single character, got {self.exit_key!r}")
        if self.history_capacity < 1:
            raise ConfigError(f"history_capacity must be positive, got {self.history_capacity}")
        if self.baud <= 0:
            raise ConfigError(f"baud must be positive, got {self.baud}")
        return self


def load_settings(path: Path | None = None) -> MonitorSettings:
    """Load :class:`MonitorSettings` from the ``monitor`` mapping of a YAML file.

    Parameters
    ----------
    path:
        Optional path to a YAML configuration file. When omitted the built-in
        ``config.yaml`` packaged alongside :mod:`nmeacli` is used.
    """

    config_path = path or DEFAULT_CONFIG_PATH
    if not config_path.exists():
        raise ConfigError(f"configuration file not found: {config_path}")
    try:
        data = _yaml.load(config_path.read_text(encoding="utf-8"))
    except YAMLError as exc:
        raise ConfigError(f"cannot parse {config_path}: {exc}") from None
    if not isinstance(data, dict) or "monitor" not in data:
        raise ConfigError("config file must contain a 'monitor' mapping")
    monitor = data["monitor"]
    if not isinstance(monitor, Mapping):
        raise ConfigError("'monitor' must be a mapping")
    return MonitorSettings.from_mapping(monitor)
