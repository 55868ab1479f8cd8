"""Per-session terminal UI: panels, controller, runtime."""
