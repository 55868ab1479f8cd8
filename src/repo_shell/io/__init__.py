"""Boundary adapters: git data source, sqlite store, logging."""
