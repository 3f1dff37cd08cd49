"""
Matcher

Commits a carrier's decision: binds one request to one route.

Only plaintext status changes here. The encrypted fields are neither read
nor decrypted, and compatibility is not re-checked: a completed
optimization of the route is the authorization, and the carrier is trusted
to match only candidates it has verified by decrypting the schedule's
compatibility flags.

The pairing itself becomes public; positions, weights and costs stay
encrypted.
"""

import logging

from dispatch.ledger.errors import AlreadyMatched, InactiveRoute, ScheduleRequired, Unauthorized
from dispatch.ledger.models import Request
from dispatch.ledger.store import RecordStore

logger = logging.getLogger(__name__)


class Matcher:
    """One-way request -> route assignment."""

    def __init__(self, store: RecordStore):
        self.store = store

    def match(self, request_id: int, route_id: int, caller: str) -> Request:
        """
        Bind request_id to route_id.

        Checks, in order: request exists, route exists, caller is the
        route's carrier, request not already matched, route active,
        route has a completed schedule.

        Returns:
            The updated Request
        """
        request = self.store.get_request(request_id)
        route = self.store.get_route(route_id)

        if caller != route.carrier:
            raise Unauthorized(f"Only the carrier of route {route_id} may match requests to it")
        if request.is_matched:
            raise AlreadyMatched(f"Request {request_id} is already matched")
        if not route.is_active:
            raise InactiveRoute(f"Route {route_id} is inactive")

        schedule = self.store.get_schedule(route_id)
        if schedule is None or not schedule.is_optimized:
            raise ScheduleRequired(f"Route {route_id} has not been optimized")

        # Both flags in one record replacement
        matched = Request.model_validate({
            **dict(request),
            "is_matched": True,
            "assigned_route": route_id,
        })
        self.store.replace_request(matched)
        logger.info("Request %d matched to route %d by %s", request_id, route_id, caller)
        return matched
