"""Client configuration for hrmtime."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Iterable
from typing import Any
from urllib.parse import urlsplit

from hrmtime._constants import (
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    DEV_ORIGIN,
    DEV_SERVICE_PORTS,
    TIME_PATH,
)
from hrmtime.exceptions import HrmConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_float(value: str, env_key: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise HrmConfigError(f"{env_key} must be a number, got {value!r}") from exc


def _require_absolute(url: str, field_name: str) -> str:
    parts = urlsplit(url.strip())
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise HrmConfigError(f"{field_name} must be an absolute http(s) URL, got {url!r}")
    return url.strip().rstrip("/")


@dataclasses.dataclass(frozen=True)
class TimeClientConfig:
    """Client configuration.

    Parameters
    ----------
    api_url : str or None
        Absolute API base URL for deployments where the UI and the API
        live on different origins.  ``None`` means the API is co-located
        with the UI.
    origin : str
        Origin serving the UI (and, when co-located, the API).
    production : bool
        Production deployments talk to ``origin``; development talks to
        the local backend on ``http://localhost:3000``.
    refresh_interval : float
        Seconds between refreshes of the shared server-time stream.
    request_timeout : float or None
        Total timeout for a single HTTP request.  ``None`` disables it.
    time_path : str
        Path of the server-time endpoint, relative to the base URL.
    service_urls : dict
        Production URLs of the sibling applications keyed by service
        name (``core``, ``metrics``, ``activities``).
    """

    api_url: str | None = None
    origin: str = DEV_ORIGIN
    production: bool = False
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL
    request_timeout: float | None = DEFAULT_REQUEST_TIMEOUT
    time_path: str = TIME_PATH
    service_urls: dict[str, str] = dataclasses.field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.refresh_interval <= 0:
            raise HrmConfigError(f"refresh_interval must be positive, got {self.refresh_interval}")
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise HrmConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        if not self.time_path.startswith("/"):
            raise HrmConfigError(f"time_path must start with '/', got {self.time_path!r}")

    def resolve_base_url(self) -> str:
        """Return the API base URL without a trailing slash.

        An explicit ``api_url`` wins.  Otherwise production deployments
        use the same origin as the UI and development falls back to the
        local backend.
        """
        if self.api_url:
            return _require_absolute(self.api_url, "api_url")
        if self.production:
            return _require_absolute(self.origin, "origin")
        return DEV_ORIGIN

    def service_links(self, exclude: Iterable[str] | None = None) -> dict[str, str]:
        """Resolve the URLs of the sibling HRM applications.

        In production the configured ``service_urls`` are used (services
        without a configured URL are left out); in development every
        service maps to its local port.
        """
        skip = set(exclude or ())
        links: dict[str, str] = {}
        for name, port in DEV_SERVICE_PORTS.items():
            if name in skip:
                continue
            if self.production:
                url = self.service_urls.get(name)
                if url:
                    links[name] = _require_absolute(url, f"service_urls[{name!r}]")
            else:
                links[name] = f"http://localhost:{port}"
        return links

    @classmethod
    def from_env(cls, **overrides: Any) -> TimeClientConfig:
        """Create configuration from environment variables.

        Reads ``HRM_API_URL``, ``HRM_ORIGIN``, ``HRM_PRODUCTION``,
        ``HRM_REFRESH_INTERVAL``, ``HRM_REQUEST_TIMEOUT``,
        ``HRM_TIME_PATH`` and the ``HRM_<SERVICE>_URL`` service links.
        Explicit keyword arguments override environment values.
        """
        env = os.environ

        config_kwargs: dict[str, Any] = {}
        _ENV_CONFIG_MAP = {
            "HRM_API_URL": "api_url",
            "HRM_ORIGIN": "origin",
            "HRM_TIME_PATH": "time_path",
        }
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val:
                config_kwargs[field_name] = val

        if "production" not in overrides:
            config_kwargs["production"] = _env_bool(env.get("HRM_PRODUCTION"), False)

        interval_env = env.get("HRM_REFRESH_INTERVAL")
        if interval_env is not None and "refresh_interval" not in overrides:
            config_kwargs["refresh_interval"] = _env_float(interval_env, "HRM_REFRESH_INTERVAL")

        timeout_env = env.get("HRM_REQUEST_TIMEOUT")
        if timeout_env is not None and "request_timeout" not in overrides:
            # "0" or "none" disables the request timeout
            if timeout_env.strip().lower() in {"", "0", "none"}:
                config_kwargs["request_timeout"] = None
            else:
                config_kwargs["request_timeout"] = _env_float(timeout_env, "HRM_REQUEST_TIMEOUT")

        service_urls: dict[str, str] = {}
        for name in DEV_SERVICE_PORTS:
            val = env.get(f"HRM_{name.upper()}_URL")
            if val:
                service_urls[name] = val
        if service_urls:
            config_kwargs["service_urls"] = service_urls

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
