"""Connection manager for the live vehicle feed.

Owns:
- the single feed connection of a mounted city view
- the bounded reconnect policy and its single-slot progress notification
- translating ``positions`` emissions into whole vehicle snapshots
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import defaultdict
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from transitmap._feed import FeedEndpoint, FeedRuntime, SocketFeedRuntime, build_feed_endpoint
from transitmap.config import TransitConfig
from transitmap.exceptions import FeedReconnectFailedError, TransitFeedError, TransitPayloadError
from transitmap.ingestion.feed import parse_positions
from transitmap.models.vehicle import Vehicle
from transitmap.notifications import NotificationAction, NotificationCenter, NotificationLevel, new_key

_logger = logging.getLogger(__name__)


class ConnectionState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"
    CLOSED = "closed"


class FeedLifecycle(StrEnum):
    RECONNECT = "reconnect"
    RECONNECT_ATTEMPT = "reconnect_attempt"
    RECONNECT_FAILED = "reconnect_failed"
    ERROR = "error"


RuntimeFactory = Callable[..., FeedRuntime]
LifecycleHandler = Callable[..., None]


class ConnectionManager:
    """One feed subscription per mounted city view.

    Usage::

        async with ConnectionManager(config, on_positions=store.replace_vehicles) as manager:
            await manager.connect("warsaw")
            ...

    Leaving the context (or calling :meth:`disconnect`) tears the connection
    down and stops any pending reconnect loop.
    """

    def __init__(
        self,
        config: TransitConfig,
        *,
        on_positions: Callable[[tuple[Vehicle, ...]], None],
        notifications: NotificationCenter | None = None,
        runtime_factory: RuntimeFactory = SocketFeedRuntime,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._on_positions = on_positions
        self._notifications = notifications or NotificationCenter(enabled=config.notifications_enabled)
        self._sleep = sleep
        self._runtime = runtime_factory(
            on_positions=self._handle_positions,
            on_disconnect=self._handle_disconnect,
            on_error=self._handle_transport_error,
        )
        self._endpoint: FeedEndpoint | None = None
        self._state = ConnectionState.IDLE
        self._reconnect_task: asyncio.Task[None] | None = None
        self._notice_key: str | None = None
        self._failed_attempts = 0
        self._latest: tuple[Vehicle, ...] | None = None
        self._state_listeners: list[Callable[[ConnectionState], None]] = []
        self._handlers: dict[FeedLifecycle, list[LifecycleHandler]] = defaultdict(list)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> ConnectionManager:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.disconnect()

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def city(self) -> str | None:
        return self._endpoint.city if self._endpoint is not None else None

    @property
    def latest_snapshot(self) -> tuple[Vehicle, ...] | None:
        return self._latest

    @property
    def failed_attempts(self) -> int:
        """Failed attempts in the current (or last) reconnect cycle."""
        return self._failed_attempts

    def on(self, event: FeedLifecycle | str, handler: LifecycleHandler) -> None:
        """Register a lifecycle handler.

        ``reconnect_attempt`` and ``reconnect`` handlers receive the attempt
        number, ``error`` handlers the transport error payload.
        """
        self._handlers[FeedLifecycle(event)].append(handler)

    def add_state_listener(self, listener: Callable[[ConnectionState], None]) -> Callable[[], None]:
        """Register a state listener; returns a callable that unregisters it."""
        self._state_listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._state_listeners:
                self._state_listeners.remove(listener)

        return _unsubscribe

    async def connect(self, city: str) -> ConnectionManager:
        """Open the feed for ``city``.

        A failed first connect is not raised: it enters the reconnect cycle
        exactly like a dropped connection.
        """
        if self._state != ConnectionState.IDLE:
            raise TransitFeedError(f"Feed already {self._state}; one connection per view", city=city)

        self._endpoint = build_feed_endpoint(self._config, city)
        self._set_state(ConnectionState.CONNECTING)
        try:
            await self._runtime.start(self._endpoint, self._config.connect_timeout)
        except TransitFeedError:
            _logger.debug("Initial feed connect failed city=%s", city, exc_info=True)
            self._schedule_reconnect()
        else:
            self._set_state(ConnectionState.CONNECTED)
        return self

    async def disconnect(self) -> None:
        """Tear the connection down. Idempotent; no reconnects afterwards."""
        if self._state == ConnectionState.CLOSED:
            return
        self._set_state(ConnectionState.CLOSED)

        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if self._notice_key is not None:
            self._notifications.dismiss(self._notice_key)
            self._notice_key = None

        await self._runtime.stop()
        _logger.debug("Feed closed city=%s", self.city)

    def ensure_connected(self) -> None:
        """Raise :class:`FeedReconnectFailedError` once the feed is terminally down."""
        if self._state == ConnectionState.FAILED:
            raise FeedReconnectFailedError(
                "Could not restore the feed connection; reload required",
                city=self.city or "",
                attempts=self._failed_attempts,
            )

    # ------------------------------------------------------------------
    # Runtime callbacks
    # ------------------------------------------------------------------

    def _handle_positions(self, payload: Any) -> None:
        try:
            snapshot = parse_positions(payload)
        except TransitPayloadError:
            _logger.warning("Ignoring malformed positions payload city=%s", self.city, exc_info=True)
            return
        self._latest = snapshot
        self._on_positions(snapshot)

    def _handle_disconnect(self) -> None:
        if self._state in (ConnectionState.CLOSED, ConnectionState.FAILED):
            return
        _logger.info("Feed connection lost city=%s", self.city)
        self._schedule_reconnect()

    def _handle_transport_error(self, data: Any) -> None:
        # Not part of the reconnect lifecycle: logged only.
        _logger.error("Feed transport error city=%s: %s", self.city, data)
        self._emit(FeedLifecycle.ERROR, data)

    # ------------------------------------------------------------------
    # Reconnect policy
    # ------------------------------------------------------------------

    def _schedule_reconnect(self) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._set_state(ConnectionState.RECONNECTING)
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect_loop())

    def _delay_for(self, attempt: int) -> float:
        delay = self._config.reconnection_delay * (2 ** (attempt - 1))
        return min(delay, self._config.reconnection_delay_max)

    async def _reconnect_loop(self) -> None:
        assert self._endpoint is not None  # noqa: S101
        total = self._config.reconnection_attempts
        self._failed_attempts = 0

        for attempt in range(1, total + 1):
            await self._sleep(self._delay_for(attempt))
            if self._state != ConnectionState.RECONNECTING:
                return

            if self._notice_key is None:
                self._notice_key = new_key("reconnect")
            self._notifications.loading(
                f"Reconnecting to the server... ({attempt}/{total})",
                key=self._notice_key,
            )
            self._emit(FeedLifecycle.RECONNECT_ATTEMPT, attempt)

            try:
                await self._runtime.start(self._endpoint, self._config.connect_timeout)
            except TransitFeedError:
                self._failed_attempts += 1
                _logger.debug("Reconnect attempt %d/%d failed city=%s", attempt, total, self.city, exc_info=True)
                continue

            if self._state != ConnectionState.RECONNECTING:
                # Torn down while the attempt was in flight.
                await self._runtime.stop()
                return
            self._set_state(ConnectionState.CONNECTED)
            self._notifications.success("Connection to the server restored.", key=self._notice_key)
            self._notice_key = None
            _logger.info("Feed reconnected city=%s attempt=%d", self.city, attempt)
            self._emit(FeedLifecycle.RECONNECT, attempt)
            return

        self._set_state(ConnectionState.FAILED)
        _logger.warning("Feed reconnect failed after %d attempts city=%s", total, self.city)
        self._notifications.show(
            NotificationLevel.ERROR,
            "Could not restore the connection to the server.",
            key=self._notice_key,
            sticky=True,
            action=NotificationAction.RELOAD,
        )
        self._notice_key = None
        self._emit(FeedLifecycle.RECONNECT_FAILED)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        _logger.debug("Feed state %s -> %s city=%s", self._state, state, self.city)
        self._state = state
        for listener in list(self._state_listeners):
            listener(state)

    def _emit(self, event: FeedLifecycle, *args: Any) -> None:
        for handler in list(self._handlers.get(event, ())):
            handler(*args)
