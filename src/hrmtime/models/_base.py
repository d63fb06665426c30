"""Base model for hrmtime API payloads.

Every payload model inherits from :class:`HrmBaseModel` which provides:

* ``alias_generator=to_camel`` so camelCase API keys map
  automatically to snake_case fields.
* Forward compatibility: unknown keys are ignored.
* A ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_epoch_timestamp(value: Any) -> Any:
    """Convert an epoch timestamp (seconds **or** milliseconds) to a UTC datetime.

    Anything that is not numeric is passed through so pydantic can parse
    ISO-8601 strings itself.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return value
    ts = float(value)
    if ts >= _MS_THRESHOLD:
        ts /= 1000.0
    return datetime.fromtimestamp(ts, tz=UTC)


def ensure_tz_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


Timestamp = Annotated[datetime, BeforeValidator(parse_epoch_timestamp), AfterValidator(ensure_tz_aware)]
"""Timezone-aware datetime accepting ISO strings and epoch seconds/milliseconds."""


class HrmBaseModel(BaseModel):
    """Base for API payload models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original API payload."""

    @model_validator(mode="before")
    @classmethod
    def _stash_raw(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        # Keep an explicitly supplied raw= when constructing from kwargs.
        if "raw" in values:
            return values
        return {**values, "raw": dict(values)}
