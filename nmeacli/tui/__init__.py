"""Terminal dashboard: events, rendering and the control loop."""
