"""
Engine Configuration

All tunables come from environment variables, with defaults matching the
historical behaviour of the dispatch engine.

    DISPATCH_MARGIN               bounds tolerance added around route spans (50)
    DISPATCH_WEIGHT_THRESHOLD     total load above which efficiency is boosted (100)
    DISPATCH_BOOST_FACTOR         efficiency multiplier when boosted (2)
    DISPATCH_AXIS_PAIRING         pickup_x_drop_y | pickup_xy_drop_xy
    DISPATCH_INCLUSION_POLICY     suggest_all | masked | gated
    DISPATCH_SCAN_LIMIT           max unmatched requests scanned per optimization (unset = all)
    DISPATCH_REVOKE_STALE_GRANTS  revoke carrier grants on overwritten schedules (true)
    DISPATCH_ENGINE_PRINCIPAL     principal the engine grants itself ("engine")
    NOTIFICATIONS_ENABLED         emit notifications (true)
"""

import os
from typing import Optional

from pydantic import BaseModel, Field

from dispatch.compatibility.models import AxisPairing
from dispatch.scheduling.models import InclusionPolicy


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class EngineConfig(BaseModel):
    margin: int = Field(default=50, ge=0, le=0xFFFF)
    weight_threshold: int = Field(default=100, ge=0, le=0xFFFFFFFF)
    boost_factor: int = Field(default=2, ge=1, le=0xFFFF)
    axis_pairing: AxisPairing = AxisPairing.PICKUP_X_DROP_Y
    inclusion_policy: InclusionPolicy = InclusionPolicy.SUGGEST_ALL
    scan_limit: Optional[int] = Field(default=None, ge=1)
    revoke_stale_grants: bool = True
    engine_principal: str = Field(default="engine", min_length=1)
    notifications_enabled: bool = True

    class Config:
        extra = "forbid"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        scan_limit = os.getenv("DISPATCH_SCAN_LIMIT")
        return cls(
            margin=int(os.getenv("DISPATCH_MARGIN", "50")),
            weight_threshold=int(os.getenv("DISPATCH_WEIGHT_THRESHOLD", "100")),
            boost_factor=int(os.getenv("DISPATCH_BOOST_FACTOR", "2")),
            axis_pairing=AxisPairing(os.getenv("DISPATCH_AXIS_PAIRING", "pickup_x_drop_y").lower()),
            inclusion_policy=InclusionPolicy(os.getenv("DISPATCH_INCLUSION_POLICY", "suggest_all").lower()),
            scan_limit=int(scan_limit) if scan_limit else None,
            revoke_stale_grants=_env_bool("DISPATCH_REVOKE_STALE_GRANTS", "true"),
            engine_principal=os.getenv("DISPATCH_ENGINE_PRINCIPAL", "engine"),
            notifications_enabled=_env_bool("NOTIFICATIONS_ENABLED", "true"),
        )
