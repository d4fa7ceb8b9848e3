"""Ingestion layer.

This package contains adapters that turn raw feed payloads into
normalized :class:`routewatch.models.Position` objects.
"""

__all__: list[str] = []
