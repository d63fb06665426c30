"""HTTP transport for JSON GET requests."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

import aiohttp

from hrmtime._constants import USER_AGENT
from hrmtime.exceptions import FetchFailed

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the client.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def get_json(self, endpoint: str) -> dict[str, Any]:
        ...


class HttpTransport:
    """aiohttp-backed transport returning decoded JSON objects."""

    def __init__(
        self,
        base_url: str,
        http_session: aiohttp.ClientSession,
        *,
        request_timeout: float | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def get_json(self, endpoint: str) -> dict[str, Any]:
        """GET ``endpoint`` and return the decoded JSON object.

        Raises
        ------
        FetchFailed
            On network errors, timeouts, non-200 responses and bodies
            that are not a JSON object.
        """
        url = f"{self._base_url}{endpoint}"
        headers = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }

        _logger.debug("GET %s", url)

        try:
            async with self._http.get(url, headers=headers, timeout=self._timeout) as resp:
                try:
                    text = await resp.text()
                except UnicodeDecodeError as exc:
                    raise FetchFailed(
                        f"Undecodable response body from {endpoint}: {exc.reason}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    ) from exc
                if resp.status != 200:
                    raise FetchFailed(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except FetchFailed:
            raise
        except asyncio.TimeoutError as exc:
            raise FetchFailed(f"Request to {endpoint} timed out", endpoint=endpoint) from exc
        except aiohttp.ClientError as exc:
            raise FetchFailed(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        try:
            body: Any = json.loads(text)
        except json.JSONDecodeError as exc:
            raise FetchFailed(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                status_code=200,
                endpoint=endpoint,
            ) from exc

        if not isinstance(body, dict):
            raise FetchFailed(
                f"Expected a JSON object from {endpoint}, got {type(body).__name__}",
                status_code=200,
                endpoint=endpoint,
            )
        return body
