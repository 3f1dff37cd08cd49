"""
Dispatch Notifications

Plaintext-only change feed for UI and indexing collaborators:
route registered, request submitted, schedule optimized, matched,
route toggled.
"""

from .models import Notification, NotificationType
from .emitter import NotificationEmitter

__all__ = [
    "Notification",
    "NotificationType",
    "NotificationEmitter",
]
