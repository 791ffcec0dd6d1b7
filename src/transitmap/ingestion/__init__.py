"""Ingestion layer.

This package contains adapters that fetch/receive data from the transit API
(socket.io feed, one-shot HTTP fetches) and emit normalized domain objects.
"""

__all__: list[str] = []
