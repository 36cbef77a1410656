"""Real-time NMEA telemetry monitor for the terminal."""

from importlib.metadata import version, PackageNotFoundError

__all__ = ["__version__"]

try:
    __version__ = version("nmeacli")
except PackageNotFoundError:  # pragma: no cover - during local dev without install
    __version__ = "0.0.0"
