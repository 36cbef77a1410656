"""Telemetry stream handling."""
