"""
Notification Models

Notifications carry plaintext ids, principals and timestamps only. No
handle and no encrypted field ever appears in a payload.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    ROUTE_REGISTERED = "ROUTE_REGISTERED"
    REQUEST_SUBMITTED = "REQUEST_SUBMITTED"
    SCHEDULE_OPTIMIZED = "SCHEDULE_OPTIMIZED"
    MATCHED = "MATCHED"
    ROUTE_TOGGLED = "ROUTE_TOGGLED"


class Notification(BaseModel):
    """One committed state change, as seen by indexers and the UI."""
    sequence: int
    notification_type: NotificationType
    emitted_at: datetime
    payload: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        use_enum_values = True
