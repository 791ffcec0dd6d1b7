"""transitmap - Live transit map engine: feed sync, viewport filtering and deep-link selection."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("transitmap")
except PackageNotFoundError:
    __version__ = "0+local"
from transitmap.client import CityMapSession
from transitmap.config import CityProfile, TransitConfig, VisibilityThresholds
from transitmap.connection import ConnectionManager, ConnectionState, FeedLifecycle
from transitmap.exceptions import (
    FeedReconnectFailedError,
    TransitConfigError,
    TransitError,
    TransitFeedError,
    TransitPayloadError,
    TransitTransportError,
)
from transitmap.filter_state import ApplyOutcome, ApplyStatus, FilterState
from transitmap.models import (
    BikeStation,
    Bounds,
    FilterCriteria,
    LatLng,
    Stop,
    Vehicle,
    ViewportState,
)
from transitmap.notifications import Notification, NotificationCenter, NotificationLevel
from transitmap.selection import (
    QueryState,
    SelectedBike,
    SelectedStop,
    SelectedVehicle,
    SelectionFailure,
    SelectionSynchronizer,
)
from transitmap.state.store import EntityStore
from transitmap.visibility import VisibleEntities, compute_visible

__all__ = [
    "__version__",
    "ApplyOutcome",
    "ApplyStatus",
    "BikeStation",
    "Bounds",
    "CityMapSession",
    "CityProfile",
    "ConnectionManager",
    "ConnectionState",
    "EntityStore",
    "FeedLifecycle",
    "FeedReconnectFailedError",
    "FilterCriteria",
    "FilterState",
    "LatLng",
    "Notification",
    "NotificationCenter",
    "NotificationLevel",
    "QueryState",
    "SelectedBike",
    "SelectedStop",
    "SelectedVehicle",
    "SelectionFailure",
    "SelectionSynchronizer",
    "Stop",
    "TransitConfig",
    "TransitConfigError",
    "TransitError",
    "TransitFeedError",
    "TransitPayloadError",
    "TransitTransportError",
    "Vehicle",
    "ViewportState",
    "VisibilityThresholds",
    "VisibleEntities",
    "compute_visible",
]
