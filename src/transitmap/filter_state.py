"""User-editable filter criteria and the zoom-to-fit decision on apply."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum

from transitmap.config import VisibilityThresholds
from transitmap.models.criteria import FilterCriteria
from transitmap.models.geo import Bounds
from transitmap.models.vehicle import Vehicle
from transitmap.notifications import NotificationCenter
from transitmap.visibility import filter_vehicles

_logger = logging.getLogger(__name__)


class ApplyStatus(StrEnum):
    UNFILTERED = "unfiltered"
    NO_RESULTS = "no_results"
    FITTED = "fitted"
    TOO_MANY = "too_many"
    UNLOCATED = "unlocated"


@dataclass(frozen=True)
class ApplyOutcome:
    status: ApplyStatus
    matched: int = 0
    fit_bounds: Bounds | None = None
    """Box to fit the viewport to; only set for :attr:`ApplyStatus.FITTED`."""


class FilterState:
    """Holds the active :class:`FilterCriteria`.

    Shared by the filter editor (which applies and clears it) and the
    viewport filter engine (which reads it).
    """

    def __init__(
        self,
        *,
        thresholds: VisibilityThresholds | None = None,
        notifications: NotificationCenter | None = None,
    ) -> None:
        self._thresholds = thresholds or VisibilityThresholds()
        self._notifications = notifications
        self._criteria = FilterCriteria()
        self._listeners: list[Callable[[FilterCriteria], None]] = []

    @property
    def criteria(self) -> FilterCriteria:
        return self._criteria

    @property
    def enabled(self) -> bool:
        return self._criteria.enabled

    def subscribe(self, listener: Callable[[FilterCriteria], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def apply(self, criteria: FilterCriteria, vehicles: Iterable[Vehicle] | None) -> ApplyOutcome:
        """Make ``criteria`` active and decide whether to fit the viewport.

        Matching runs over the whole vehicle snapshot, not only what is
        currently on screen.
        """
        self._set(criteria)
        if not criteria.enabled:
            return ApplyOutcome(status=ApplyStatus.UNFILTERED)

        matched = filter_vehicles(vehicles or (), criteria)
        count = len(matched)
        _logger.debug(
            "Filter applied routes=%s types=%s matched=%d",
            sorted(criteria.routes),
            sorted(criteria.types),
            count,
        )

        if count == 0:
            self._notify_error("No vehicles found.")
            return ApplyOutcome(status=ApplyStatus.NO_RESULTS)

        self._notify_success(f"Found {count} vehicles.")
        if count > self._thresholds.fit_limit:
            return ApplyOutcome(status=ApplyStatus.TOO_MANY, matched=count)

        fit = Bounds.from_points(vehicle.location for vehicle in matched if vehicle.location is not None)
        if fit is None:
            return ApplyOutcome(status=ApplyStatus.UNLOCATED, matched=count)
        return ApplyOutcome(status=ApplyStatus.FITTED, matched=count, fit_bounds=fit)

    def clear(self) -> None:
        self._set(FilterCriteria())

    def toggle(self) -> bool:
        """Filter button behaviour: clear an enabled filter.

        Returns ``True`` when the filter was cleared, ``False`` when the
        caller should open the filter editor instead.
        """
        if self.enabled:
            self.clear()
            return True
        return False

    def _set(self, criteria: FilterCriteria) -> None:
        if criteria == self._criteria:
            return
        self._criteria = criteria
        for listener in list(self._listeners):
            listener(criteria)

    def _notify_success(self, message: str) -> None:
        if self._notifications is not None:
            self._notifications.success(message)

    def _notify_error(self, message: str) -> None:
        if self._notifications is not None:
            self._notifications.error(message)
