"""High-level async session for one mounted city map view."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import aiohttp

from transitmap._feed import SocketFeedRuntime
from transitmap._transport import JsonTransport, Transport
from transitmap.config import CityProfile, TransitConfig
from transitmap.connection import ConnectionManager, ConnectionState, RuntimeFactory
from transitmap.exceptions import TransitError
from transitmap.filter_state import ApplyOutcome, ApplyStatus, FilterState
from transitmap.ingestion.static import fetch_bikes, fetch_stops
from transitmap.models.criteria import FilterCriteria
from transitmap.models.geo import Bounds, ViewportState
from transitmap.models.stop import BikeStation, Stop
from transitmap.models.vehicle import Vehicle
from transitmap.notifications import NotificationCenter
from transitmap.selection import MapController, QueryState, Selection, SelectionSynchronizer, query_for
from transitmap.state.events import SnapshotEvent
from transitmap.state.store import EntityStore
from transitmap.visibility import VisibleEntities, compute_visible

_logger = logging.getLogger(__name__)

ChangeListener = Callable[[], None]


class CityMapSession:
    """Live state of one city map.

    Usage::

        async with CityMapSession(config, "warsaw", map_controller=widget) as session:
            session.move_end(bounds)
            session.zoom_end(15)
            visible = session.visible()

    Entering the context opens the feed and starts the stop and bike-station
    fetches; leaving it closes the feed, cancels pending fetches and closes
    an owned HTTP session.
    """

    def __init__(
        self,
        config: TransitConfig,
        city: str,
        *,
        profile: CityProfile | None = None,
        query: QueryState | None = None,
        map_controller: MapController | None = None,
        notifications: NotificationCenter | None = None,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        runtime_factory: RuntimeFactory = SocketFeedRuntime,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._city = city
        self._profile = profile or CityProfile()
        self._map = map_controller
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport

        self.notifications = notifications or NotificationCenter(enabled=config.notifications_enabled)
        self.store = EntityStore()
        self.query = query or QueryState()
        self.filter = FilterState(thresholds=config.thresholds, notifications=self.notifications)
        self.selection_sync = SelectionSynchronizer(
            self.store,
            self.query,
            map_controller=map_controller,
            notifications=self.notifications,
        )
        self.connection = ConnectionManager(
            config,
            on_positions=self.store.replace_vehicles,
            notifications=self.notifications,
            runtime_factory=runtime_factory,
            sleep=sleep,
        )

        self._viewport = ViewportState()
        self._fetch_tasks: list[asyncio.Task[None]] = []
        self._listeners: list[ChangeListener] = []
        self._unsubscribers: list[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> CityMapSession:
        self._unsubscribers.extend(
            (
                self.store.subscribe(self._on_snapshot),
                self.query.subscribe(self.selection_sync.on_query_change),
                self.filter.subscribe(lambda _criteria: self._changed()),
                self.selection_sync.subscribe(lambda _selection: self._changed()),
                self.connection.add_state_listener(self._on_connection_state),
            )
        )

        # __aexit__ does not run when entering fails.
        try:
            if self._transport is None:
                if self._http_session is None:
                    self._http_session = aiohttp.ClientSession()
                self._transport = JsonTransport(self._config, self._http_session)
            self._start_fetches()
            await self.connection.connect(self._city)
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self.connection.disconnect()

        tasks, self._fetch_tasks = self._fetch_tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def city(self) -> str:
        return self._city

    @property
    def viewport(self) -> ViewportState:
        return self._viewport

    @property
    def selection(self) -> Selection | None:
        return self.selection_sync.selection

    @property
    def loading(self) -> bool:
        """``True`` until the first vehicle snapshot arrives."""
        return not self.store.vehicles_loaded

    @property
    def connection_state(self) -> ConnectionState:
        return self.connection.state

    def visible(self) -> VisibleEntities:
        return compute_visible(
            self.store,
            self._viewport,
            self.filter.criteria,
            self.selection,
            self._config.thresholds,
        )

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Called whenever anything the derived view depends on changed."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Map widget events
    # ------------------------------------------------------------------

    def move_end(self, bounds: Bounds) -> None:
        self._update_viewport(bounds=bounds)

    def zoom_end(self, zoom: float) -> None:
        self._update_viewport(zoom=zoom)

    def rotate(self, bearing: float) -> None:
        self._update_viewport(bearing=bearing)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def select(self, entity: Vehicle | Stop | BikeStation) -> None:
        """Marker click: push a deep link to ``entity``."""
        self.query.push(query_for(entity))

    def clear_selection(self) -> None:
        self.query.push({})

    def apply_filter(self, criteria: FilterCriteria) -> ApplyOutcome:
        """Apply ``criteria`` and fit the map to the matches when few enough."""
        outcome = self.filter.apply(criteria, self.store.vehicles)
        if outcome.status == ApplyStatus.FITTED and outcome.fit_bounds is not None and self._map is not None:
            self._map.fit_bounds(outcome.fit_bounds)
        return outcome

    def clear_filter(self) -> None:
        self.filter.clear()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _update_viewport(self, **changes: Any) -> None:
        self._viewport = self._viewport.model_copy(update=changes)
        self._changed()

    def _on_snapshot(self, event: SnapshotEvent) -> None:
        self.selection_sync.on_snapshot(event)
        self._changed()

    def _on_connection_state(self, _state: ConnectionState) -> None:
        self._changed()

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener()

    def _start_fetches(self) -> None:
        loop = asyncio.get_running_loop()
        if self._profile.stops:
            self._fetch_tasks.append(loop.create_task(self._load_stops()))
        if self._profile.bikes:
            self._fetch_tasks.append(loop.create_task(self._load_bikes()))

    async def _load_stops(self) -> None:
        assert self._transport is not None  # noqa: S101
        try:
            stops = await fetch_stops(self._transport, self._city)
        except TransitError:
            _logger.warning("Stop fetch failed city=%s", self._city, exc_info=True)
            self.notifications.error("Failed to fetch stops.")
            return
        self.store.populate_stops(stops)

    async def _load_bikes(self) -> None:
        assert self._transport is not None  # noqa: S101
        try:
            bikes = await fetch_bikes(self._transport, self._city)
        except TransitError:
            _logger.warning("Bike station fetch failed city=%s", self._city, exc_info=True)
            self.notifications.error("Failed to fetch bike stations.")
            return
        self.store.populate_bikes(bikes)
