"""One-shot stop and bike-station fetches."""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from transitmap._redact import truncate_for_log
from transitmap._transport import Transport
from transitmap.exceptions import TransitPayloadError
from transitmap.models.stop import BikeStation, Stop

_logger = logging.getLogger(__name__)

TModel = TypeVar("TModel", bound=BaseModel)


def _parse_collection(model: type[TModel], payload: Any, *, endpoint: str) -> tuple[TModel, ...]:
    if not isinstance(payload, list):
        raise TransitPayloadError(f"{endpoint} payload must be a list, got {type(payload).__name__}")

    items: list[TModel] = []
    for entry in payload:
        try:
            items.append(model.model_validate(entry))
        except ValidationError:
            _logger.debug("Skipping malformed %s entry=%s", endpoint, truncate_for_log(entry), exc_info=True)
    return tuple(items)


async def fetch_stops(transport: Transport, city: str) -> tuple[Stop, ...]:
    """Fetch and parse every stop of ``city``."""
    payload = await transport.get_json(f"{city}/stops")
    return _parse_collection(Stop, payload, endpoint="stops")


async def fetch_bikes(transport: Transport, city: str) -> tuple[BikeStation, ...]:
    """Fetch and parse every bike-share station of ``city``."""
    payload = await transport.get_json(f"{city}/bikes")
    return _parse_collection(BikeStation, payload, endpoint="bikes")
