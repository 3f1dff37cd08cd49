"""
Record Store

Routes, requests and schedules with encrypted fields, plaintext status
views, and the dispatch error taxonomy.
"""

from .errors import (
    DispatchErrorCode,
    DispatchError,
    InvalidInput,
    Unauthorized,
    NotFound,
    InactiveRoute,
    AlreadyMatched,
    ScheduleRequired,
)
from .models import (
    NO_ROUTE,
    Route,
    Request,
    Schedule,
    RouteInfo,
    RequestStatus,
    ScheduleInfo,
    Counters,
)
from .store import RecordStore, validate_plaintext

__all__ = [
    "DispatchErrorCode",
    "DispatchError",
    "InvalidInput",
    "Unauthorized",
    "NotFound",
    "InactiveRoute",
    "AlreadyMatched",
    "ScheduleRequired",
    "NO_ROUTE",
    "Route",
    "Request",
    "Schedule",
    "RouteInfo",
    "RequestStatus",
    "ScheduleInfo",
    "Counters",
    "RecordStore",
    "validate_plaintext",
]
