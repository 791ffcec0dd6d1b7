"""HTTP transport for the one-shot JSON endpoints."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from transitmap.config import TransitConfig
from transitmap.exceptions import TransitTransportError

_logger = logging.getLogger(__name__)

USER_AGENT = "transitmap/0.1"


class Transport(Protocol):
    """Structural transport interface used by the fetch helpers.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`JsonTransport`) concrete.
    """

    async def get_json(self, endpoint: str, params: Mapping[str, str] | None = None) -> Any:
        ...


class JsonTransport:
    """GET-only JSON transport bound to the configured API root."""

    def __init__(self, config: TransitConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def get_json(self, endpoint: str, params: Mapping[str, str] | None = None) -> Any:
        """Fetch ``endpoint`` and decode the JSON body.

        Raises :class:`TransitTransportError` on network failures, non-200
        statuses and undecodable bodies.
        """
        url = f"{self._config.api_root}/{endpoint.lstrip('/')}"
        headers = {"accept": "application/json", "user-agent": USER_AGENT}

        _logger.debug("GET %s params=%s", url, dict(params or {}))

        try:
            async with self._http.get(url, params=params, headers=headers, timeout=self._timeout) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise TransitTransportError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except TransitTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise TransitTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise TransitTransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                endpoint=endpoint,
            ) from exc
