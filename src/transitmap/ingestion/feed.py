"""Parsing of ``positions`` feed snapshots."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from transitmap._redact import truncate_for_log
from transitmap.exceptions import TransitPayloadError
from transitmap.models.vehicle import Vehicle

_logger = logging.getLogger(__name__)


def parse_positions(payload: Any) -> tuple[Vehicle, ...]:
    """Parse one ``positions`` emission into a complete vehicle snapshot.

    Entries that fail validation are skipped so that one bad record does not
    drop the whole snapshot. A payload that is not a list is rejected.
    """
    if isinstance(payload, dict) and isinstance(payload.get("vehicles"), list):
        payload = payload["vehicles"]
    if not isinstance(payload, list):
        raise TransitPayloadError(f"positions payload must be a list, got {type(payload).__name__}")

    vehicles: list[Vehicle] = []
    skipped = 0
    for entry in payload:
        try:
            vehicles.append(Vehicle.model_validate(entry))
        except ValidationError:
            skipped += 1
            _logger.debug("Skipping malformed vehicle entry=%s", truncate_for_log(entry), exc_info=True)

    if skipped:
        _logger.debug("positions snapshot parsed=%d skipped=%d", len(vehicles), skipped)
    return tuple(vehicles)
