"""Custom exception hierarchy for hrmtime."""

from __future__ import annotations


class HrmTimeError(Exception):
    """Base exception for all hrmtime errors."""


class HrmConfigError(HrmTimeError):
    """Invalid or missing configuration."""


class FetchFailed(HrmTimeError):
    """Fetching the server time failed.

    Covers network/transport errors, non-200 responses, invalid JSON and
    payloads that do not describe a server time.  During a scheduled
    refresh the error is contained by the polling cache; during a
    one-shot fetch it propagates to the caller.
    """

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
