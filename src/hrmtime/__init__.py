"""hrmtime - Async client for the HRM applications' shared server time."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("hrmtime")
except PackageNotFoundError:
    __version__ = "0+local"
from hrmtime.client import TimeClient
from hrmtime.config import TimeClientConfig
from hrmtime.exceptions import FetchFailed, HrmConfigError, HrmTimeError
from hrmtime.models import ServerTime
from hrmtime.polling import CacheEntry, PollingCache, Subscription

__all__ = [
    "__version__",
    "CacheEntry",
    "FetchFailed",
    "HrmConfigError",
    "HrmTimeError",
    "PollingCache",
    "ServerTime",
    "Subscription",
    "TimeClient",
    "TimeClientConfig",
]
