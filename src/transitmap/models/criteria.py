"""Route/type filter predicate."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from transitmap.ingestion.normalize import safe_str, to_int_set


class FilterCriteria(BaseModel):
    """Selected route labels and vehicle types.

    An empty set in either dimension means "no restriction on this
    dimension", not "exclude everything".
    """

    model_config = ConfigDict(frozen=True)

    routes: frozenset[str] = Field(default_factory=frozenset)
    types: frozenset[int] = Field(default_factory=frozenset)

    @field_validator("routes", mode="before")
    @classmethod
    def _coerce_routes(cls, value: Any) -> frozenset[str]:
        if value is None:
            return frozenset()
        items: Iterable[Any] = [value] if isinstance(value, (str, int)) else value
        parsed = (safe_str(item) for item in items)
        return frozenset(item for item in parsed if item is not None)

    @field_validator("types", mode="before")
    @classmethod
    def _coerce_types(cls, value: Any) -> frozenset[int]:
        return to_int_set(value)

    @property
    def enabled(self) -> bool:
        return bool(self.routes or self.types)
