"""
Grant Completeness Tests

Tests validate:
- After any sequence of operations, every persisted encrypted field is
  granted to the engine and to its owner
- Grant hooks let an external auditor rebuild the grant relation
- A revoked grant shows up in the audit with its location
- A provider that skips the owner grant makes the producing call fail
  before any state is written
"""

import itertools
from collections import defaultdict
from datetime import datetime, timedelta, timezone

import pytest

from dispatch.engine import DispatchEngine
from dispatch.fhe import AccessControlList, GrantViolation, MockCoprocessor

CARRIER = "carrier-a"
REQUESTER = "shipper-a"
BASE_TIME = datetime(2025, 4, 1, 9, 0, tzinfo=timezone.utc)


# ============================================================================
# TEST FIXTURES
# ============================================================================

def run_scenario(engine: DispatchEngine):
    """Two routes, three requests, two optimizations, one match."""
    first = engine.register_route(100, 100, 500, 500, 1000, 5, CARRIER)
    second = engine.register_route(0, 0, 50, 50, 10, 1, "carrier-b")
    for weight in (60, 60, 5000):
        engine.submit_request(200, 200, 400, 400, weight, 3, 900, REQUESTER)
    engine.optimize_schedule(first, CARRIER)
    engine.optimize_schedule(second, "carrier-b")
    engine.match_request(1, first, CARRIER)
    engine.optimize_schedule(first, CARRIER)
    engine.evaluate_compatibility(first, 2, CARRIER)
    return first, second


class OwnerGrantFault(MockCoprocessor):
    """Forgets the owner grant while forget_owner is set."""

    forget_owner = False

    def grant_owner(self, value, owner):
        if not self.forget_owner:
            return super().grant_owner(value, owner)
        self.grant_self(value)
        return value


@pytest.fixture
def faulty():
    """Engine with one route and one request, then owner grants start failing."""
    provider = OwnerGrantFault()
    minutes = itertools.count()
    engine = DispatchEngine(
        provider=provider,
        clock=lambda: BASE_TIME + timedelta(minutes=next(minutes)),
    )
    engine.register_route(100, 100, 500, 500, 1000, 5, CARRIER)
    engine.submit_request(200, 200, 400, 400, 60, 3, 900, REQUESTER)
    return engine, provider


# ============================================================================
# AUDIT
# ============================================================================

class TestAudit:

    def test_complete_after_scenario(self):
        engine = DispatchEngine()
        run_scenario(engine)
        assert engine.audit_grants() == []

    def test_audit_covers_schedules(self):
        engine = DispatchEngine()
        route_id, _ = run_scenario(engine)
        locations = [loc for loc, _, _ in engine.store.iter_encrypted_fields()]
        assert f"schedule[{route_id}].efficiency" in locations
        assert f"schedule[{route_id}].compatibility[2]" in locations

    def test_revoked_owner_grant_reported(self):
        engine = DispatchEngine()
        route_id, _ = run_scenario(engine)
        capacity = engine.route_handles(route_id, CARRIER)["capacity"]
        engine.provider.revoke(capacity, CARRIER)

        gaps = engine.audit_grants()
        assert len(gaps) == 1
        assert gaps[0].location == f"route[{route_id}].capacity"
        assert gaps[0].owner == CARRIER
        assert gaps[0].missing == [CARRIER]

    def test_revoked_engine_grant_reported(self):
        engine = DispatchEngine()
        engine.submit_request(1, 1, 1, 1, 1, 1, 1, REQUESTER)
        weight = engine.request_handles(1, REQUESTER)["weight"]
        engine.provider.revoke(weight, "engine")
        assert engine.audit_grants()[0].missing == ["engine"]


class TestGrantHooks:

    def test_hook_log_matches_persisted_fields(self):
        granted = defaultdict(set)
        acl = AccessControlList()
        acl.add_hook(lambda handle, principal: granted[handle].add(principal))
        engine = DispatchEngine(provider=MockCoprocessor(acl=acl))
        run_scenario(engine)

        for location, value, owner in engine.store.iter_encrypted_fields():
            assert {"engine", owner} <= granted[value.handle], location

    def test_custom_engine_principal(self):
        from dispatch.shared import EngineConfig

        engine = DispatchEngine(config=EngineConfig(engine_principal="dispatch-core"))
        run_scenario(engine)
        assert engine.provider.engine_principal == "dispatch-core"
        assert engine.audit_grants() == []


class TestGrantViolation:

    def test_missing_owner_grant_aborts_registration(self):
        provider = OwnerGrantFault()
        provider.forget_owner = True
        engine = DispatchEngine(provider=provider)
        with pytest.raises(GrantViolation) as exc_info:
            engine.register_route(100, 100, 500, 500, 1000, 5, CARRIER)
        assert all(gap.missing == [CARRIER] for gap in exc_info.value.gaps)
        assert engine.counters().route_counter == 0
        assert engine.notifications.history() == []

    def test_missing_owner_grant_aborts_submission(self, faulty):
        engine, provider = faulty
        provider.forget_owner = True
        with pytest.raises(GrantViolation):
            engine.submit_request(200, 200, 400, 400, 60, 3, 900, REQUESTER)
        assert engine.counters().request_counter == 1
        assert engine.get_user_requests(REQUESTER) == [1]
        assert len(engine.notifications.history()) == 2

    def test_missing_owner_grant_aborts_evaluation(self, faulty):
        engine, provider = faulty
        provider.forget_owner = True
        with pytest.raises(GrantViolation) as exc_info:
            engine.evaluate_compatibility(1, 1, CARRIER)
        assert {gap.location for gap in exc_info.value.gaps} == {
            "pickup_in_bounds", "drop_in_bounds", "within_capacity", "compatible",
        }
        with pytest.raises(GrantViolation):
            engine.check_capacity(1, 1, CARRIER)
        assert len(engine.notifications.history()) == 2

    def test_missing_owner_grant_keeps_previous_schedule(self, faulty):
        engine, provider = faulty
        previous = engine.optimize_schedule(1, CARRIER)
        info = engine.get_schedule_info(1)
        history = engine.notifications.history()

        provider.forget_owner = True
        with pytest.raises(GrantViolation):
            engine.optimize_schedule(1, CARRIER)

        assert engine.get_schedule_info(1) == info
        assert engine.notifications.history() == history
        assert engine.decrypt(previous.efficiency, CARRIER) == 8
        assert engine.audit_grants() == []

    def test_missing_owner_grant_on_aggregates(self, faulty):
        engine, provider = faulty
        engine.optimize_schedule(1, CARRIER)
        engine.match_request(1, 1, CARRIER)
        info = engine.get_schedule_info(1)

        provider.forget_owner = True
        with pytest.raises(GrantViolation) as exc_info:
            engine.optimize_schedule(1, CARRIER)
        assert {gap.location for gap in exc_info.value.gaps} == {
            "total_load", "total_urgency", "efficiency",
        }
        assert engine.get_schedule_info(1) == info
        assert engine.get_request_status(1).assigned_route == 1
