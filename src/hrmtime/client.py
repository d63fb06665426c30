"""High-level async client for the HRM server-time endpoint."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import aiohttp
from pydantic import ValidationError

from hrmtime._transport import HttpTransport, Transport
from hrmtime.config import TimeClientConfig
from hrmtime.exceptions import FetchFailed, HrmTimeError
from hrmtime.models.server_time import ServerTime
from hrmtime.polling import PollingCache

_logger = logging.getLogger(__name__)


class TimeClient:
    """Async client for the HRM ``/api/time`` endpoint.

    The API base URL is resolved once, at construction.  Every call to
    :meth:`server_time_stream` returns the same :class:`PollingCache`, so
    all consumers sharing a client share one refresh cycle.

    Usage::

        async with TimeClient(TimeClientConfig.from_env()) as client:
            subscription = client.server_time_stream().subscribe()
            async for server_time in subscription:
                print(server_time.format_local())
    """

    def __init__(
        self,
        config: TimeClientConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        on_error: Callable[[FetchFailed], None] | None = None,
    ) -> None:
        self._config = config or TimeClientConfig()
        self._base_url = self._config.resolve_base_url()
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = None
        self._stream: PollingCache[ServerTime] = PollingCache(
            self._fetch_server_time,
            interval=self._config.refresh_interval,
            on_error=on_error,
            name=f"server-time {self._base_url}",
        )

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TimeClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        self._transport = HttpTransport(
            self._base_url,
            self._http_session,
            request_timeout=self._config.request_timeout,
        )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self._stream.aclose()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._transport = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def config(self) -> TimeClientConfig:
        return self._config

    @property
    def base_url(self) -> str:
        """API base URL resolved at construction."""
        return self._base_url

    @property
    def endpoint_url(self) -> str:
        return f"{self._base_url}{self._config.time_path}"

    def server_time_stream(self) -> PollingCache[ServerTime]:
        """Return the shared, auto-refreshing, replaying server-time stream."""
        return self._stream

    async def fetch_once(self) -> ServerTime:
        """Fetch the server time once, bypassing the shared stream.

        Raises
        ------
        FetchFailed
            If the request fails or the payload is not a server time.
        """
        return await self._fetch_server_time()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise HrmTimeError("Client not initialized. Use 'async with TimeClient(...) as client:'")
        return self._transport

    async def _fetch_server_time(self) -> ServerTime:
        transport = self._require_transport()
        endpoint = self._config.time_path
        payload = await transport.get_json(endpoint)
        try:
            server_time = ServerTime.model_validate(payload)
        except ValidationError as exc:
            raise FetchFailed(
                f"Malformed server time payload from {endpoint}: {exc.error_count()} validation error(s)",
                endpoint=endpoint,
            ) from exc
        _logger.debug(
            "Server time %s from %s (schema=%s)",
            server_time.observed_at.isoformat(),
            server_time.source_label,
            server_time.schema_version,
        )
        return server_time
