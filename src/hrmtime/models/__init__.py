"""Typed payload models for hrmtime."""

from hrmtime.models._base import HrmBaseModel
from hrmtime.models.server_time import ServerTime

__all__ = [
    "HrmBaseModel",
    "ServerTime",
]
