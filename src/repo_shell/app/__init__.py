"""Shared configuration snapshot and its background refresh."""
