"""
Compatibility Evaluator Models
"""

from dataclasses import dataclass
from enum import Enum

from dispatch.fhe.types import EncryptedBool


class AxisPairing(str, Enum):
    """
    Which request coordinates are checked against which route bounds.

    PICKUP_X_DROP_Y: pickup X within the route's X span, drop Y within its
        Y span (the historical behaviour).
    PICKUP_XY_DROP_XY: pickup and drop points both inside the route's
        margin-extended bounding box, on both axes.
    """
    PICKUP_X_DROP_Y = "pickup_x_drop_y"
    PICKUP_XY_DROP_XY = "pickup_xy_drop_xy"


@dataclass(frozen=True)
class CompatibilityResult:
    """Encrypted verdict for one (route, request) pair. All flags are ebool."""
    route_id: int
    request_id: int
    pickup_in_bounds: EncryptedBool
    drop_in_bounds: EncryptedBool
    within_capacity: EncryptedBool
    compatible: EncryptedBool

    def flags(self):
        return {
            "pickup_in_bounds": self.pickup_in_bounds,
            "drop_in_bounds": self.drop_in_bounds,
            "within_capacity": self.within_capacity,
            "compatible": self.compatible,
        }
