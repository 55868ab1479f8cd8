"""SSH transport and per-connection session wiring."""
