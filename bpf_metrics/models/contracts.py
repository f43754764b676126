"""
Pydantic v2 contract between data sources and the registry.

A data source yields one record per kernel object; every record is validated
into a ``Snapshot`` before it reaches the adapters. Records that fail validation
are dropped one by one, never the whole listing.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1
I64_MIN = -(2**63)

# wide enough for u64 counters and i64 gauges; the metric type narrows it further
NumericValue = Annotated[int, Field(ge=I64_MIN, le=U64_MAX)]


class Snapshot(BaseModel):
    """Point-in-time view of one program, map or link."""
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=0, le=U32_MAX)
    type_name: str = ""
    name: str = ""
    tag: int | None = Field(default=None, ge=0, le=U64_MAX)
    numeric_fields: dict[str, NumericValue] = Field(default_factory=dict)
    loaded_at: datetime | None = None

    @field_validator("tag", mode="before")
    @classmethod
    def parse_hex_tag(cls, v: Any) -> Any:
        # bpftool prints the instruction digest as 16 hex digits
        if isinstance(v, str):
            return int(v, 16)
        return v

    @field_validator("loaded_at", mode="before")
    @classmethod
    def epoch_to_datetime(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return datetime.fromtimestamp(v, tz=timezone.utc)
        return v

    @field_validator("loaded_at")
    @classmethod
    def require_timezone(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def value_of(self, key: str) -> int | None:
        return self.numeric_fields.get(key)
