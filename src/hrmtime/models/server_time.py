"""Server time payload model."""

from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator

from hrmtime.models._base import HrmBaseModel, Timestamp


class ServerTime(HrmBaseModel):
    """Timestamped payload returned by the ``/api/time`` endpoint.

    Both the canonical keys (``observedAt``, ``sourceLabel``,
    ``schemaVersion``) and the keys emitted by the HRM backends
    (``serverTime``, ``app``, ``version``) are accepted.

    Parameters
    ----------
    observed_at : datetime
        Point in time the value refers to (always timezone-aware).
    source_label : str
        Identifies which backend produced the value, e.g. ``"HR Metrics"``.
    schema_version : str or None
        Payload version, if the backend reports one.
    """

    observed_at: Timestamp = Field(validation_alias=AliasChoices("observedAt", "observed_at", "serverTime"))
    source_label: str = Field(validation_alias=AliasChoices("sourceLabel", "source_label", "app"))
    schema_version: str | None = Field(
        default=None,
        validation_alias=AliasChoices("schemaVersion", "schema_version", "version"),
    )

    @field_validator("source_label")
    @classmethod
    def _strip_label(cls, value: str) -> str:
        label = value.strip()
        if not label:
            raise ValueError("source_label must be non-empty")
        return label

    @field_validator("schema_version", mode="before")
    @classmethod
    def _coerce_version(cls, value: object) -> object:
        # Some backends send a bare number ("version": 1).
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def format_local(self, fmt: str = "%x %X") -> str:
        """Render ``observed_at`` in the host's local time zone."""
        return self.observed_at.astimezone().strftime(fmt)
