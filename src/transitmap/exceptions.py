"""Custom exception hierarchy for transitmap."""

from __future__ import annotations


class TransitError(Exception):
    """Base exception for all transitmap errors."""


class TransitConfigError(TransitError):
    """Invalid or missing configuration."""


class TransitPayloadError(TransitError):
    """A feed or fetch payload has an unexpected shape."""


class TransitTransportError(TransitError):
    """HTTP-level failure (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class TransitFeedError(TransitError):
    """Streaming feed failure."""

    def __init__(self, message: str, *, city: str = "") -> None:
        self.city = city
        super().__init__(message)


class FeedReconnectFailedError(TransitFeedError):
    """All automatic reconnect attempts were used up.

    The feed stays down for the rest of the session; a full reload is the
    only recovery path.
    """

    def __init__(self, message: str, *, city: str = "", attempts: int = 0) -> None:
        self.attempts = attempts
        super().__init__(message, city=city)
