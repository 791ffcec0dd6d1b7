"""Snapshot notifications emitted by the entity store."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EntityClass(StrEnum):
    VEHICLE = "vehicle"
    STOP = "stop"
    BIKE = "bike"


class SnapshotSource(StrEnum):
    FEED = "feed"
    FETCH = "fetch"


class SnapshotEvent(BaseModel):
    """Announces that one entity collection was replaced."""

    model_config = ConfigDict(frozen=True)

    entity_class: EntityClass
    source: SnapshotSource
    count: int = Field(..., ge=0, description="Size of the new collection")
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
