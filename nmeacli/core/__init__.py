"""Protocol parsing, telemetry state and configuration."""
