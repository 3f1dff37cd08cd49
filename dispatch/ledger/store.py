"""
Record Store

Holds routes, requests and schedules keyed by monotonic identifiers and
owns the encrypted handles embedded in each record.

Every producing path follows the same order:
1. validate all plaintext inputs (no state touched)
2. encrypt and issue engine + owner grants
3. assert the grant post-condition
4. commit: assign the id, store the record, update owner indexes

A failure in steps 1-3 leaves counters and maps untouched.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from dispatch.fhe.acl import require_grants
from dispatch.fhe.provider import EncryptedValueProvider
from dispatch.fhe.types import BitWidth, EncryptedValue

from .errors import InvalidInput, NotFound, Unauthorized
from .models import (
    NO_ROUTE,
    REQUEST_FIELD_WIDTHS,
    ROUTE_FIELD_WIDTHS,
    Counters,
    EncryptedFieldIter,
    Request,
    RequestStatus,
    Route,
    RouteInfo,
    Schedule,
    ScheduleInfo,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def validate_plaintext(name: str, value, width: BitWidth) -> int:
    """
    Reject anything that is not an unsigned integer inside width.

    Booleans are refused even though they are ints: a flag passed where a
    coordinate is expected is a caller bug, not the value 0 or 1.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{name} must be an integer")
    if value < 0 or value > width.max_value:
        raise InvalidInput(f"{name} out of range for {width.value} [0, {width.max_value}]")
    return value


class RecordStore:
    """In-memory ledger of routes, requests and schedules."""

    def __init__(self, provider: EncryptedValueProvider, clock: Optional[Clock] = None):
        self.provider = provider
        self.clock = clock or utc_now
        self._routes: Dict[int, Route] = {}
        self._requests: Dict[int, Request] = {}
        self._schedules: Dict[int, Schedule] = {}
        self._carrier_routes: Dict[str, List[int]] = {}
        self._user_requests: Dict[str, List[int]] = {}
        self._route_counter = 0
        self._request_counter = 0

    @property
    def engine(self) -> str:
        return self.provider.engine_principal

    # ===== producing operations =====

    def _require_owner(self, owner: str, role: str) -> None:
        if not owner:
            raise InvalidInput(f"{role} is required")
        if owner == self.engine:
            raise InvalidInput(f"{role} may not be the engine principal")

    def _encrypt_fields(self, values: Dict[str, int], widths: Dict[str, BitWidth], owner: str):
        for name, width in widths.items():
            validate_plaintext(name, values[name], width)
        encrypted = {
            name: self.provider.grant_owner(self.provider.encrypt(values[name], width), owner)
            for name, width in widths.items()
        }
        require_grants(
            self.provider.acl,
            [(name, value, owner) for name, value in encrypted.items()],
            self.engine,
        )
        return encrypted

    def register_route(
        self,
        start_x: int,
        start_y: int,
        end_x: int,
        end_y: int,
        capacity: int,
        priority: int,
        carrier: str,
    ) -> int:
        """Encrypt and store a new active route. Returns its id."""
        self._require_owner(carrier, "carrier")
        encrypted = self._encrypt_fields(
            dict(
                start_x=start_x, start_y=start_y, end_x=end_x, end_y=end_y,
                capacity=capacity, priority=priority,
            ),
            ROUTE_FIELD_WIDTHS,
            carrier,
        )
        route_id = self._route_counter + 1
        route = Route(
            route_id=route_id,
            carrier=carrier,
            is_active=True,
            created_at=self.clock(),
            **encrypted,
        )
        self._route_counter = route_id
        self._routes[route_id] = route
        self._carrier_routes.setdefault(carrier, []).append(route_id)
        logger.info("Route %d registered by %s", route_id, carrier)
        return route_id

    def submit_request(
        self,
        pickup_x: int,
        pickup_y: int,
        drop_x: int,
        drop_y: int,
        weight: int,
        urgency: int,
        max_cost: int,
        requester: str,
    ) -> int:
        """Encrypt and store a new unmatched request. Returns its id."""
        self._require_owner(requester, "requester")
        encrypted = self._encrypt_fields(
            dict(
                pickup_x=pickup_x, pickup_y=pickup_y, drop_x=drop_x, drop_y=drop_y,
                weight=weight, urgency=urgency, max_cost=max_cost,
            ),
            REQUEST_FIELD_WIDTHS,
            requester,
        )
        request_id = self._request_counter + 1
        request = Request(
            request_id=request_id,
            requester=requester,
            is_matched=False,
            assigned_route=NO_ROUTE,
            submitted_at=self.clock(),
            **encrypted,
        )
        self._request_counter = request_id
        self._requests[request_id] = request
        self._user_requests.setdefault(requester, []).append(request_id)
        logger.info("Request %d submitted by %s", request_id, requester)
        return request_id

    def toggle_route_active(self, route_id: int, caller: str, active: bool) -> Route:
        route = self.get_route(route_id)
        if caller != route.carrier:
            raise Unauthorized(f"Only the carrier of route {route_id} may change its status")
        updated = route.model_copy(update={"is_active": bool(active)})
        self._routes[route_id] = updated
        logger.info("Route %d set active=%s by %s", route_id, updated.is_active, caller)
        return updated

    # ===== internal record access =====

    def get_route(self, route_id: int) -> Route:
        route = self._routes.get(route_id)
        if route is None:
            raise NotFound(f"Route {route_id} not found")
        return route

    def get_request(self, request_id: int) -> Request:
        request = self._requests.get(request_id)
        if request is None:
            raise NotFound(f"Request {request_id} not found")
        return request

    def replace_request(self, request: Request) -> None:
        self.get_request(request.request_id)
        self._requests[request.request_id] = request

    def unmatched_requests(self, offset: int = 0, limit: Optional[int] = None) -> List[Request]:
        """
        Unmatched requests in id order, skipping offset and capped at limit.

        Full scan over every request: O(total requests) per call.
        """
        unmatched = [
            self._requests[rid]
            for rid in sorted(self._requests)
            if not self._requests[rid].is_matched
        ]
        window = unmatched[max(offset, 0):]
        if limit is not None:
            window = window[:limit]
        return window

    def get_schedule(self, route_id: int) -> Optional[Schedule]:
        return self._schedules.get(route_id)

    def put_schedule(self, schedule: Schedule) -> Optional[Schedule]:
        """Store schedule for its route. Returns the schedule it replaced."""
        self.get_route(schedule.route_id)
        previous = self._schedules.get(schedule.route_id)
        self._schedules[schedule.route_id] = schedule
        return previous

    def iter_encrypted_fields(self) -> EncryptedFieldIter:
        """Yield (location, value, owner) for every persisted encrypted field."""
        for route_id in sorted(self._routes):
            route = self._routes[route_id]
            for name, value in route.encrypted_fields().items():
                yield f"route[{route_id}].{name}", value, route.carrier
        for request_id in sorted(self._requests):
            request = self._requests[request_id]
            for name, value in request.encrypted_fields().items():
                yield f"request[{request_id}].{name}", value, request.requester
        for route_id in sorted(self._schedules):
            schedule = self._schedules[route_id]
            carrier = self._routes[route_id].carrier
            for name, value in schedule.encrypted_fields().items():
                yield f"schedule[{route_id}].{name}", value, carrier

    # ===== plaintext read accessors =====

    def get_route_info(self, route_id: int) -> RouteInfo:
        route = self.get_route(route_id)
        return RouteInfo(
            route_id=route.route_id,
            carrier=route.carrier,
            is_active=route.is_active,
            created_at=route.created_at,
        )

    def get_request_status(self, request_id: int) -> RequestStatus:
        request = self.get_request(request_id)
        return RequestStatus(
            request_id=request.request_id,
            requester=request.requester,
            is_matched=request.is_matched,
            assigned_route=request.assigned_route,
            submitted_at=request.submitted_at,
        )

    def get_schedule_info(self, route_id: int) -> ScheduleInfo:
        self.get_route(route_id)
        schedule = self._schedules.get(route_id)
        if schedule is None:
            return ScheduleInfo(route_id=route_id)
        return ScheduleInfo.from_schedule(schedule)

    def get_carrier_routes(self, carrier: str) -> List[int]:
        return list(self._carrier_routes.get(carrier, []))

    def get_user_requests(self, requester: str) -> List[int]:
        return list(self._user_requests.get(requester, []))

    def counters(self) -> Counters:
        return Counters(route_counter=self._route_counter, request_counter=self._request_counter)

    # ===== owner-only handle accessors =====

    def _check_owner(self, caller: str, owner: str, what: str) -> None:
        if caller != owner:
            raise Unauthorized(f"Encrypted fields of {what} are only exposed to their owner")

    def route_handles(self, route_id: int, caller: str) -> Dict[str, EncryptedValue]:
        route = self.get_route(route_id)
        self._check_owner(caller, route.carrier, f"route {route_id}")
        return route.encrypted_fields()

    def request_handles(self, request_id: int, caller: str) -> Dict[str, EncryptedValue]:
        request = self.get_request(request_id)
        self._check_owner(caller, request.requester, f"request {request_id}")
        return request.encrypted_fields()

    def schedule_handles(self, route_id: int, caller: str) -> Dict[str, EncryptedValue]:
        route = self.get_route(route_id)
        self._check_owner(caller, route.carrier, f"schedule {route_id}")
        schedule = self._schedules.get(route_id)
        if schedule is None:
            raise NotFound(f"Route {route_id} has no schedule")
        return schedule.encrypted_fields()
