"""repo-shell: browse git repositories over SSH in a two-panel terminal UI."""

__version__ = "0.1.0"
