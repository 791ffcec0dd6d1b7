"""Client configuration for transitmap."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from transitmap.exceptions import TransitConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env: Mapping[str, str], key: str, cast: type) -> Any:
    raw = env.get(key)
    if raw is None:
        return None
    try:
        return cast(raw)
    except ValueError as exc:
        raise TransitConfigError(f"{key} must be a {cast.__name__}, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class CityProfile:
    """Which one-shot collections a city's API serves.

    Cities without a stops or bike-share endpoint keep the corresponding
    collection empty for the whole session instead of issuing a request
    that is known to fail.
    """

    stops: bool = True
    bikes: bool = False


@dataclasses.dataclass(frozen=True)
class VisibilityThresholds:
    """Density and fit thresholds used by the viewport filter engine.

    Parameters
    ----------
    vehicle_min_zoom : float
        Zoom level from which vehicle markers are shown.
    marker_min_zoom : float
        Zoom level from which stop and bike-station markers are shown.
    filter_override_limit : int
        With an enabled filter, vehicles are shown at any zoom while the
        filtered in-bounds count stays at or below this value.
    fit_limit : int
        Applying a filter fits the viewport to the matches only when at
        most this many vehicles match.
    """

    vehicle_min_zoom: float = 14
    marker_min_zoom: float = 15
    filter_override_limit: int = 100
    fit_limit: int = 100


@dataclasses.dataclass(frozen=True)
class TransitConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        Root URL of the transit API. Serves both the socket.io feed and
        the one-shot JSON endpoints.
    socketio_path : str
        Path of the socket.io endpoint on ``base_url``.
    reconnection_attempts : int
        Automatic reconnect attempts before the feed is declared failed.
    connect_timeout : float
        Seconds allowed for a single connect attempt.
    reconnection_delay : float
        Delay before the first reconnect attempt, doubled per attempt.
    reconnection_delay_max : float
        Upper bound for the delay between attempts.
    request_timeout : float
        Total timeout in seconds for one-shot fetches.
    notifications_enabled : bool
        Publish user-facing notifications. When disabled, failures are
        still logged.
    thresholds : VisibilityThresholds
        Density gate and zoom-to-fit limits.
    """

    base_url: str = "https://transitapi.me"
    socketio_path: str = "socket.io"
    reconnection_attempts: int = 5
    connect_timeout: float = 15.0
    reconnection_delay: float = 1.0
    reconnection_delay_max: float = 5.0
    request_timeout: float = 30.0
    notifications_enabled: bool = True
    thresholds: VisibilityThresholds = dataclasses.field(default_factory=VisibilityThresholds)

    def __post_init__(self) -> None:
        if self.reconnection_attempts < 0:
            raise TransitConfigError("reconnection_attempts must be >= 0")
        if self.connect_timeout <= 0:
            raise TransitConfigError("connect_timeout must be positive")
        if not self.base_url:
            raise TransitConfigError("base_url must be non-empty")

    @property
    def api_root(self) -> str:
        return self.base_url.rstrip("/")

    @classmethod
    def from_env(cls, **overrides: Any) -> TransitConfig:
        """Create configuration from environment variables.

        Reads optional ``TRANSIT_*`` variables. Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TransitConfig
            Populated configuration.
        """
        env = os.environ

        threshold_kwargs: dict[str, Any] = {}
        _ENV_THRESHOLD_MAP = {
            "TRANSIT_VEHICLE_MIN_ZOOM": ("vehicle_min_zoom", float),
            "TRANSIT_MARKER_MIN_ZOOM": ("marker_min_zoom", float),
            "TRANSIT_FILTER_OVERRIDE_LIMIT": ("filter_override_limit", int),
            "TRANSIT_FIT_LIMIT": ("fit_limit", int),
        }
        for env_key, (field_name, cast) in _ENV_THRESHOLD_MAP.items():
            val = _env_number(env, env_key, cast)
            if val is not None:
                threshold_kwargs[field_name] = val

        threshold_overrides = overrides.pop("thresholds", None)
        if isinstance(threshold_overrides, dict):
            threshold_kwargs.update(threshold_overrides)
        elif isinstance(threshold_overrides, VisibilityThresholds):
            threshold_kwargs = dataclasses.asdict(threshold_overrides)

        config_kwargs: dict[str, Any] = {"thresholds": VisibilityThresholds(**threshold_kwargs)}

        base_url = env.get("TRANSIT_BASE_URL")
        if base_url is not None:
            config_kwargs["base_url"] = base_url

        _ENV_NUMERIC_MAP = {
            "TRANSIT_RECONNECTION_ATTEMPTS": ("reconnection_attempts", int),
            "TRANSIT_CONNECT_TIMEOUT": ("connect_timeout", float),
            "TRANSIT_RECONNECTION_DELAY": ("reconnection_delay", float),
            "TRANSIT_RECONNECTION_DELAY_MAX": ("reconnection_delay_max", float),
            "TRANSIT_REQUEST_TIMEOUT": ("request_timeout", float),
        }
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            if field_name in overrides:
                continue
            val = _env_number(env, env_key, cast)
            if val is not None:
                config_kwargs[field_name] = val

        if "notifications_enabled" not in overrides:
            config_kwargs["notifications_enabled"] = _env_bool(env.get("TRANSIT_NOTIFICATIONS_ENABLED"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
