"""
Notification Emitter

Ordered in-memory notification log with subscribers.

Non-blocking toward the engine: a failing subscriber is logged and
skipped, it never undoes or interrupts the operation that emitted.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .models import Notification, NotificationType

logger = logging.getLogger(__name__)

Subscriber = Callable[[Notification], None]


class NotificationEmitter:

    def __init__(self, enabled: bool = True, clock: Optional[Callable[[], datetime]] = None):
        self.enabled = enabled
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._log: List[Notification] = []
        self._subscribers: List[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def emit(self, notification_type: NotificationType, **payload) -> Optional[Notification]:
        if not self.enabled:
            return None
        notification = Notification(
            sequence=len(self._log) + 1,
            notification_type=notification_type,
            emitted_at=self.clock(),
            payload=payload,
        )
        self._log.append(notification)
        for subscriber in self._subscribers:
            try:
                subscriber(notification)
            except Exception as e:
                logger.warning("Notification subscriber failed on %s: %s", notification.notification_type, e)
        return notification

    # ===== typed emissions =====

    def route_registered(self, route_id: int, carrier: str):
        return self.emit(NotificationType.ROUTE_REGISTERED, route_id=route_id, carrier=carrier)

    def request_submitted(self, request_id: int, requester: str):
        return self.emit(NotificationType.REQUEST_SUBMITTED, request_id=request_id, requester=requester)

    def schedule_optimized(self, route_id: int, timestamp: datetime):
        return self.emit(NotificationType.SCHEDULE_OPTIMIZED, route_id=route_id, timestamp=timestamp.isoformat())

    def matched(self, request_id: int, route_id: int):
        return self.emit(NotificationType.MATCHED, request_id=request_id, route_id=route_id)

    def route_toggled(self, route_id: int, is_active: bool):
        return self.emit(NotificationType.ROUTE_TOGGLED, route_id=route_id, is_active=is_active)

    # ===== reads =====

    def history(self, notification_type: Optional[NotificationType] = None) -> List[Notification]:
        if notification_type is None:
            return list(self._log)
        wanted = NotificationType(notification_type).value
        return [n for n in self._log if n.notification_type == wanted]
