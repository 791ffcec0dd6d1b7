"""Internal socket.io feed runtime.

Owns a single socket.io client at a time and forwards its events to plain
callbacks. Reconnection is deliberately disabled at this level: retry policy
belongs to :class:`transitmap.connection.ConnectionManager`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import urlencode

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError

from transitmap._redact import truncate_for_log
from transitmap.config import TransitConfig
from transitmap.exceptions import TransitFeedError

POSITIONS_EVENT = "positions"


@dataclass(frozen=True)
class FeedEndpoint:
    """Connection details of one city feed."""

    city: str
    url: str
    socketio_path: str


def build_feed_endpoint(config: TransitConfig, city: str) -> FeedEndpoint:
    """Build the feed URL; the city travels as a query parameter."""
    value = city.strip()
    if not value:
        raise ValueError("city must be non-empty")
    return FeedEndpoint(
        city=value,
        url=f"{config.api_root}/?{urlencode({'city': value})}",
        socketio_path=config.socketio_path,
    )


class SocketClient(Protocol):
    """The subset of :class:`socketio.AsyncClient` used by the runtime."""

    connected: bool

    def on(self, event: str, handler: Callable[..., Any] | None = None, namespace: str | None = None) -> Any: ...

    async def connect(self, url: str, **kwargs: Any) -> None: ...

    async def disconnect(self) -> None: ...


def _default_client_factory() -> SocketClient:
    return socketio.AsyncClient(reconnection=False, logger=False, engineio_logger=False)


class FeedRuntime(Protocol):
    @property
    def is_running(self) -> bool: ...

    async def start(self, endpoint: FeedEndpoint, timeout: float) -> None: ...

    async def stop(self) -> None: ...


class SocketFeedRuntime:
    """socket.io runtime that forwards feed events to callbacks on the loop."""

    def __init__(
        self,
        *,
        on_positions: Callable[[Any], None],
        on_disconnect: Callable[[], None],
        on_error: Callable[[Any], None],
        client_factory: Callable[[], SocketClient] = _default_client_factory,
        logger: logging.Logger | None = None,
    ) -> None:
        self._on_positions = on_positions
        self._on_disconnect = on_disconnect
        self._on_error = on_error
        self._client_factory = client_factory
        self._logger = logger or logging.getLogger(__name__)
        self._client: SocketClient | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the runtime holds a live connection."""
        return self._running

    async def start(self, endpoint: FeedEndpoint, timeout: float) -> None:
        """Open a fresh connection, replacing any previous client.

        Raises :class:`TransitFeedError` when the attempt fails or times out.
        """
        await self.stop()
        self._logger.debug("Feed connect requested city=%s url=%s", endpoint.city, endpoint.url)

        client = self._client_factory()

        async def on_positions(payload: Any) -> None:
            if client is not self._client:
                return
            self._logger.debug("Received positions city=%s payload=%s", endpoint.city, truncate_for_log(payload))
            self._on_positions(payload)

        async def on_disconnect(*_args: Any) -> None:
            if client is not self._client or not self._running:
                return
            self._running = False
            self._logger.debug("Feed disconnected city=%s", endpoint.city)
            self._on_disconnect()

        async def on_connect_error(data: Any = None) -> None:
            if client is not self._client:
                return
            self._on_error(data)

        client.on(POSITIONS_EVENT, on_positions)
        client.on("disconnect", on_disconnect)
        client.on("connect_error", on_connect_error)

        self._client = client
        try:
            await asyncio.wait_for(
                client.connect(endpoint.url, socketio_path=endpoint.socketio_path, wait_timeout=timeout),
                timeout,
            )
        except (TimeoutError, SocketConnectionError, OSError) as exc:
            self._client = None
            await self._close_quietly(client)
            raise TransitFeedError(f"Feed connect failed: {exc or type(exc).__name__}", city=endpoint.city) from exc

        self._running = True
        self._logger.debug("Feed connected city=%s", endpoint.city)

    async def stop(self) -> None:
        """Disconnect the current client if any."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        if was_running:
            self._logger.debug("Feed disconnect requested")
        await self._close_quietly(client)

    async def _close_quietly(self, client: SocketClient) -> None:
        try:
            await client.disconnect()
        except Exception:
            self._logger.debug("Feed client disconnect failed", exc_info=True)
