"""
Engine Configuration Tests
"""

import pytest
from pydantic import ValidationError

from dispatch.compatibility import AxisPairing
from dispatch.engine import DispatchEngine
from dispatch.scheduling import InclusionPolicy
from dispatch.shared import EngineConfig

ENV_VARS = [
    "DISPATCH_MARGIN",
    "DISPATCH_WEIGHT_THRESHOLD",
    "DISPATCH_BOOST_FACTOR",
    "DISPATCH_AXIS_PAIRING",
    "DISPATCH_INCLUSION_POLICY",
    "DISPATCH_SCAN_LIMIT",
    "DISPATCH_REVOKE_STALE_GRANTS",
    "DISPATCH_ENGINE_PRINCIPAL",
    "NOTIFICATIONS_ENABLED",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestFromEnv:

    def test_defaults(self, clean_env):
        config = EngineConfig.from_env()
        assert config.margin == 50
        assert config.weight_threshold == 100
        assert config.boost_factor == 2
        assert config.axis_pairing == AxisPairing.PICKUP_X_DROP_Y
        assert config.inclusion_policy == InclusionPolicy.SUGGEST_ALL
        assert config.scan_limit is None
        assert config.revoke_stale_grants is True
        assert config.engine_principal == "engine"
        assert config.notifications_enabled is True

    def test_overrides(self, clean_env):
        clean_env.setenv("DISPATCH_MARGIN", "10")
        clean_env.setenv("DISPATCH_AXIS_PAIRING", "PICKUP_XY_DROP_XY")
        clean_env.setenv("DISPATCH_INCLUSION_POLICY", "gated")
        clean_env.setenv("DISPATCH_SCAN_LIMIT", "25")
        clean_env.setenv("DISPATCH_REVOKE_STALE_GRANTS", "false")
        clean_env.setenv("NOTIFICATIONS_ENABLED", "0")

        config = EngineConfig.from_env()
        assert config.margin == 10
        assert config.axis_pairing == AxisPairing.PICKUP_XY_DROP_XY
        assert config.inclusion_policy == InclusionPolicy.GATED
        assert config.scan_limit == 25
        assert config.revoke_stale_grants is False
        assert config.notifications_enabled is False

    def test_unknown_policy_rejected(self, clean_env):
        clean_env.setenv("DISPATCH_INCLUSION_POLICY", "greedy")
        with pytest.raises(ValueError):
            EngineConfig.from_env()


class TestValidation:

    def test_margin_must_fit_u16(self):
        with pytest.raises(ValidationError):
            EngineConfig(margin=70000)

    def test_scan_limit_positive(self):
        with pytest.raises(ValidationError):
            EngineConfig(scan_limit=0)

    def test_unknown_field_forbidden(self):
        with pytest.raises(ValidationError):
            EngineConfig(threshold=5)


class TestEngineWiring:

    def test_config_reaches_components(self):
        config = EngineConfig(
            margin=7,
            weight_threshold=40,
            boost_factor=3,
            inclusion_policy=InclusionPolicy.MASKED,
            scan_limit=4,
        )
        engine = DispatchEngine(config=config)
        assert engine.evaluator.margin == 7
        assert engine.optimizer.weight_threshold == 40
        assert engine.optimizer.boost_factor == 3
        assert engine.optimizer.policy == InclusionPolicy.MASKED
        assert engine.optimizer.scan_limit == 4
