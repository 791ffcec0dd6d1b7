"""Keyed, single-slot notification channel.

A notification published under a key that is already showing replaces the
previous one in place instead of stacking. Only sticky notifications stay
active. The reconnect flow relies on this
to turn "reconnecting (n/5)" into "reconnected" or "failed" in one slot.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

_logger = logging.getLogger(__name__)

_key_counter = itertools.count(1)


class NotificationLevel(StrEnum):
    LOADING = "loading"
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class NotificationAction(StrEnum):
    RELOAD = "reload"


class Notification(BaseModel):
    """A transient user-facing message."""

    model_config = ConfigDict(frozen=True)

    key: str
    level: NotificationLevel
    message: str
    sticky: bool = False
    """Stays until replaced or dismissed instead of timing out."""
    action: NotificationAction | None = None


NotificationListener = Callable[[Notification | None, str], None]
"""Called with ``(notification, key)``; ``notification`` is ``None`` on dismiss."""


def new_key(prefix: str = "notice") -> str:
    return f"{prefix}-{next(_key_counter)}"


class NotificationCenter:
    """Holds the sticky notification showing per key.

    Non-sticky notifications reach listeners once and are not retained;
    timing them out is up to the presentation layer.
    """

    def __init__(self, *, enabled: bool = True) -> None:
        self._enabled = enabled
        self._active: dict[str, Notification] = {}
        self._listeners: list[NotificationListener] = []

    @property
    def active(self) -> dict[str, Notification]:
        return dict(self._active)

    def get(self, key: str) -> Notification | None:
        return self._active.get(key)

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def show(
        self,
        level: NotificationLevel,
        message: str,
        *,
        key: str | None = None,
        sticky: bool = False,
        action: NotificationAction | None = None,
    ) -> Notification:
        """Publish a notification, replacing whatever shows under ``key``."""
        notification = Notification(
            key=key or new_key(),
            level=level,
            message=message,
            sticky=sticky,
            action=action,
        )
        if not self._enabled:
            _logger.debug("Notification suppressed key=%s message=%s", notification.key, message)
            return notification

        replaced = notification.key in self._active
        if sticky:
            self._active[notification.key] = notification
        else:
            # Transient: delivered once, frees the slot it replaces.
            self._active.pop(notification.key, None)
        _logger.debug(
            "Notification %s key=%s level=%s message=%s",
            "replaced" if replaced else "shown",
            notification.key,
            level,
            message,
        )
        self._dispatch(notification, notification.key)
        return notification

    def success(self, message: str, *, key: str | None = None) -> Notification:
        return self.show(NotificationLevel.SUCCESS, message, key=key)

    def error(self, message: str, *, key: str | None = None) -> Notification:
        return self.show(NotificationLevel.ERROR, message, key=key)

    def loading(self, message: str, *, key: str | None = None) -> Notification:
        return self.show(NotificationLevel.LOADING, message, key=key, sticky=True)

    def dismiss(self, key: str) -> None:
        if self._active.pop(key, None) is not None:
            self._dispatch(None, key)

    def _dispatch(self, notification: Notification | None, key: str) -> None:
        for listener in list(self._listeners):
            listener(notification, key)
