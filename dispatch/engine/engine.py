"""
Dispatch Engine

Single entry point for every public operation. Wires the Record Store,
Compatibility Evaluator, Schedule Optimizer, Matcher and notifications.

Execution model:
- one global lock per call: register, submit, toggle, optimize and match
  never interleave on shared state
- no suspension points; provider calls block until a handle is returned
- all-or-nothing: every check runs before the first state write, and
  notifications go out only after the write committed
- ids come from separate route/request counters, in call-arrival order
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from dispatch.compatibility.evaluate import CompatibilityEvaluator
from dispatch.compatibility.models import CompatibilityResult
from dispatch.fhe.acl import GrantGap, find_grant_gaps
from dispatch.fhe.mock import MockCoprocessor
from dispatch.fhe.provider import EncryptedValueProvider
from dispatch.fhe.types import EncryptedBool, EncryptedValue
from dispatch.ledger.errors import DispatchError, Unauthorized
from dispatch.ledger.models import (
    Counters,
    RequestStatus,
    RouteInfo,
    Schedule,
    ScheduleInfo,
)
from dispatch.ledger.store import RecordStore
from dispatch.matching.match import Matcher
from dispatch.notifications.emitter import NotificationEmitter
from dispatch.scheduling.optimize import ScheduleOptimizer
from dispatch.shared.config import EngineConfig

logger = logging.getLogger(__name__)


class DispatchEngine:
    """Confidential carrier/requester coordination engine."""

    def __init__(
        self,
        provider: Optional[EncryptedValueProvider] = None,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        emitter: Optional[NotificationEmitter] = None,
    ):
        self.config = config or EngineConfig()
        self.provider = provider or MockCoprocessor(engine_principal=self.config.engine_principal)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.notifications = emitter or NotificationEmitter(
            enabled=self.config.notifications_enabled, clock=self.clock,
        )

        self.store = RecordStore(self.provider, clock=self.clock)
        self.evaluator = CompatibilityEvaluator(
            self.provider,
            margin=self.config.margin,
            pairing=self.config.axis_pairing,
        )
        self.optimizer = ScheduleOptimizer(
            self.store,
            self.evaluator,
            weight_threshold=self.config.weight_threshold,
            boost_factor=self.config.boost_factor,
            policy=self.config.inclusion_policy,
            scan_limit=self.config.scan_limit,
            revoke_stale_grants=self.config.revoke_stale_grants,
            clock=self.clock,
        )
        self.matcher = Matcher(self.store)
        self._lock = threading.RLock()

    def _run(self, operation: str, fn, *args, on_commit=None):
        """Run fn under the global lock; on_commit(result) fires only after success."""
        with self._lock:
            try:
                result = fn(*args)
            except DispatchError as e:
                logger.warning("%s rejected: %s", operation, e)
                raise
            finally:
                self.provider.end_transaction()
            if on_commit is not None:
                on_commit(result)
            return result

    # ===== state-changing operations =====

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
        return self._run(
            "register_route", self.store.register_route,
            start_x, start_y, end_x, end_y, capacity, priority, carrier,
            on_commit=lambda route_id: self.notifications.route_registered(route_id, carrier),
        )

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
        return self._run(
            "submit_request", self.store.submit_request,
            pickup_x, pickup_y, drop_x, drop_y, weight, urgency, max_cost, requester,
            on_commit=lambda request_id: self.notifications.request_submitted(request_id, requester),
        )

    def toggle_route_active(self, route_id: int, caller: str, active: bool) -> RouteInfo:
        route = self._run(
            "toggle_route_active", self.store.toggle_route_active, route_id, caller, active,
            on_commit=lambda r: self.notifications.route_toggled(r.route_id, r.is_active),
        )
        return RouteInfo(
            route_id=route.route_id,
            carrier=route.carrier,
            is_active=route.is_active,
            created_at=route.created_at,
        )

    def optimize_schedule(self, route_id: int, caller: str, offset: int = 0) -> Schedule:
        return self._run(
            "optimize_schedule", self.optimizer.optimize, route_id, caller, offset,
            on_commit=lambda s: self.notifications.schedule_optimized(s.route_id, s.optimized_at),
        )

    def match_request(self, request_id: int, route_id: int, caller: str) -> RequestStatus:
        self._run(
            "match_request", self.matcher.match, request_id, route_id, caller,
            on_commit=lambda r: self.notifications.matched(r.request_id, r.assigned_route),
        )
        return self.get_request_status(request_id)

    # ===== encrypted evaluations (results granted to the carrier) =====

    def _carrier_route(self, route_id: int, caller: str):
        route = self.store.get_route(route_id)
        if caller != route.carrier:
            raise Unauthorized(f"Only the carrier of route {route_id} may evaluate against it")
        return route

    def evaluate_compatibility(self, route_id: int, request_id: int, caller: str) -> CompatibilityResult:
        def _evaluate():
            route = self._carrier_route(route_id, caller)
            return self.evaluator.evaluate(route, self.store.get_request(request_id))
        return self._run("evaluate_compatibility", _evaluate)

    def check_capacity(self, route_id: int, request_id: int, caller: str) -> EncryptedBool:
        def _check():
            route = self._carrier_route(route_id, caller)
            return self.evaluator.within_capacity(route, self.store.get_request(request_id))
        return self._run("check_capacity", _check)

    def decrypt(self, value: EncryptedValue, principal: str) -> int:
        """Decryption on behalf of a principal holding a grant."""
        with self._lock:
            return self.provider.decrypt(value, principal)

    # ===== plaintext reads =====

    def get_route_info(self, route_id: int) -> RouteInfo:
        with self._lock:
            return self.store.get_route_info(route_id)

    def get_request_status(self, request_id: int) -> RequestStatus:
        with self._lock:
            return self.store.get_request_status(request_id)

    def get_schedule_info(self, route_id: int) -> ScheduleInfo:
        with self._lock:
            return self.store.get_schedule_info(route_id)

    def get_carrier_routes(self, carrier: str) -> List[int]:
        with self._lock:
            return self.store.get_carrier_routes(carrier)

    def get_user_requests(self, requester: str) -> List[int]:
        with self._lock:
            return self.store.get_user_requests(requester)

    def counters(self) -> Counters:
        with self._lock:
            return self.store.counters()

    # ===== owner-only handles =====

    def route_handles(self, route_id: int, caller: str) -> Dict[str, EncryptedValue]:
        with self._lock:
            return self.store.route_handles(route_id, caller)

    def request_handles(self, request_id: int, caller: str) -> Dict[str, EncryptedValue]:
        with self._lock:
            return self.store.request_handles(request_id, caller)

    def schedule_handles(self, route_id: int, caller: str) -> Dict[str, EncryptedValue]:
        with self._lock:
            return self.store.schedule_handles(route_id, caller)

    # ===== grant audit =====

    def audit_grants(self) -> List[GrantGap]:
        """Every persisted encrypted field checked for engine + owner grants."""
        with self._lock:
            gaps = find_grant_gaps(
                self.provider.acl,
                self.store.iter_encrypted_fields(),
                self.provider.engine_principal,
            )
        if gaps:
            logger.error("Grant audit found %d incomplete field(s)", len(gaps))
        return gaps
