"""
Schedule Optimizer

Builds the schedule for one route from the unmatched requests:

1. Authorize: caller must be the route's carrier, route must be active
2. Scan unmatched requests in id order (offset / scan_limit window)
3. Evaluate encrypted compatibility per request
4. Apply the inclusion policy and accumulate encrypted totals
   (load = sum of weights, urgency = sum of urgencies, from an encrypted zero)
5. efficiency = select(load > THRESHOLD, (urgency + priority) * BOOST, urgency + priority)
6. Store the schedule (overwriting the previous one) and grant aggregates;
   the replaced schedule loses every grant and its values are released

Both efficiency arms are always computed and select() picks one, so
neither control flow nor operation count depends on whether the boost
applies. The scan is O(unmatched requests) per call; scan_limit caps it.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from dispatch.compatibility.evaluate import CompatibilityEvaluator
from dispatch.fhe.acl import require_grants
from dispatch.fhe.types import BitWidth, EncryptedValue
from dispatch.ledger.errors import InactiveRoute, Unauthorized
from dispatch.ledger.models import Route, Schedule
from dispatch.ledger.store import RecordStore
from dispatch.shared.hashing import fingerprint

from .models import InclusionPolicy

logger = logging.getLogger(__name__)

DEFAULT_WEIGHT_THRESHOLD = 100
DEFAULT_BOOST_FACTOR = 2


class ScheduleOptimizer:
    """Encrypted aggregate scheduling for a single route."""

    def __init__(
        self,
        store: RecordStore,
        evaluator: CompatibilityEvaluator,
        weight_threshold: int = DEFAULT_WEIGHT_THRESHOLD,
        boost_factor: int = DEFAULT_BOOST_FACTOR,
        policy: InclusionPolicy = InclusionPolicy.SUGGEST_ALL,
        scan_limit: Optional[int] = None,
        revoke_stale_grants: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.evaluator = evaluator
        self.provider = store.provider
        self.weight_threshold = weight_threshold
        self.boost_factor = boost_factor
        self.policy = InclusionPolicy(policy)
        self.scan_limit = scan_limit
        self.revoke_stale_grants = revoke_stale_grants
        self.clock = clock or store.clock

    def authorize(self, route_id: int, caller: str) -> Route:
        route = self.store.get_route(route_id)
        if caller != route.carrier:
            raise Unauthorized(f"Only the carrier of route {route_id} may optimize it")
        if not route.is_active:
            raise InactiveRoute(f"Route {route_id} is inactive")
        return route

    def _efficiency(self, total_load: EncryptedValue, total_urgency: EncryptedValue, route: Route) -> EncryptedValue:
        p = self.provider
        base = p.add(total_urgency, p.cast(route.priority, BitWidth.U32))
        significant = p.gt(total_load, p.encrypt(self.weight_threshold, BitWidth.U32))
        boosted = p.mul(base, p.encrypt(self.boost_factor, BitWidth.U32))
        efficiency32 = p.select(significant, boosted, base)

        # Narrow to euint16, saturating instead of wrapping
        ceiling = p.encrypt(BitWidth.U16.max_value, BitWidth.U32)
        clamped = p.select(p.gt(efficiency32, ceiling), ceiling, efficiency32)
        return p.cast(clamped, BitWidth.U16)

    def optimize(self, route_id: int, caller: str, offset: int = 0) -> Schedule:
        """
        Optimize route_id on behalf of caller.

        Args:
            route_id: Route to optimize
            caller: Principal invoking the operation (must be the carrier)
            offset: Number of unmatched requests to skip (pagination)

        Returns:
            The stored Schedule

        Raises:
            NotFound, Unauthorized, InactiveRoute
        """
        route = self.authorize(route_id, caller)
        p = self.provider
        window = self.store.unmatched_requests(offset=offset, limit=self.scan_limit)

        zero = p.encrypt(0, BitWidth.U32)
        total_load = zero
        total_urgency = zero
        candidate_ids: List[int] = []
        compatibility = {}

        for request in window:
            flag = self.evaluator.compatible(route, request, owner=route.carrier)
            weight = request.weight
            urgency = p.cast(request.urgency, BitWidth.U32)

            if self.policy == InclusionPolicy.GATED:
                if not p.decrypt(flag, route.carrier):
                    p.revoke(flag, route.carrier)
                    p.revoke(flag, p.engine_principal)
                    continue
            elif self.policy == InclusionPolicy.MASKED:
                weight = p.select(flag, weight, zero)
                urgency = p.select(flag, urgency, zero)

            total_load = p.add(total_load, weight)
            total_urgency = p.add(total_urgency, urgency)
            candidate_ids.append(request.request_id)
            compatibility[request.request_id] = flag

        efficiency = self._efficiency(total_load, total_urgency, route)
        for value in (total_load, total_urgency, efficiency):
            p.grant_owner(value, caller)

        schedule = Schedule(
            route_id=route_id,
            candidate_request_ids=candidate_ids,
            total_load=total_load,
            total_urgency=total_urgency,
            efficiency=efficiency,
            compatibility=compatibility,
            is_optimized=True,
            optimized_at=self.clock(),
            inclusion_policy=self.policy.value,
            schedule_hash=fingerprint({
                "route_id": route_id,
                "candidate_request_ids": candidate_ids,
                "inclusion_policy": self.policy.value,
                "offset": offset,
                "scan_limit": self.scan_limit,
            }),
        )
        require_grants(
            p.acl,
            [(name, value, caller) for name, value in schedule.encrypted_fields().items()],
            p.engine_principal,
        )

        previous = self.store.put_schedule(schedule)
        if previous is not None and self.revoke_stale_grants:
            for value in previous.encrypted_fields().values():
                p.revoke(value, route.carrier)
                p.revoke(value, p.engine_principal)

        logger.info(
            "Route %d optimized by %s: %d candidate(s), policy=%s",
            route_id, caller, len(candidate_ids), self.policy.value,
        )
        return schedule
