"""
Compatibility Evaluator

Decides, entirely over ciphertexts, whether a request fits a route:

    pickup_in_bounds = lo(route X span) <= pickup <= hi(route X span)
    drop_in_bounds   = lo(route Y span) <= drop   <= hi(route Y span)
    within_capacity  = request.weight <= route.capacity
    compatible       = pickup_in_bounds AND drop_in_bounds AND within_capacity

where lo/hi extend the span by the margin. Which coordinates are checked
against which span is set by AxisPairing.

Bounds are computed on euint32 so end + margin cannot wrap, and the lower
bound saturates at zero via an encrypted select, so a route starting
closer than the margin to the origin does not wrap to a huge lower bound.
Span endpoints are ordered with an encrypted select too, so routes running
toward the origin are handled like any other.

The evaluator never decrypts and never touches the Record Store. Each flag
it returns is granted to the engine and to the route's carrier.
"""

from typing import Optional

from dispatch.fhe.acl import require_grants
from dispatch.fhe.provider import EncryptedValueProvider
from dispatch.fhe.types import BitWidth, EncryptedBool, EncryptedValue
from dispatch.ledger.models import Request, Route

from .models import AxisPairing, CompatibilityResult

DEFAULT_MARGIN = 50


class CompatibilityEvaluator:
    """Encrypted route/request compatibility."""

    def __init__(
        self,
        provider: EncryptedValueProvider,
        margin: int = DEFAULT_MARGIN,
        pairing: AxisPairing = AxisPairing.PICKUP_X_DROP_Y,
    ):
        self.provider = provider
        self.margin = margin
        self.pairing = AxisPairing(pairing)

    # ===== encrypted building blocks =====

    def _widen(self, value: EncryptedValue) -> EncryptedValue:
        if value.width == BitWidth.U32:
            return value
        return self.provider.cast(value, BitWidth.U32)

    def _span_contains(
        self,
        start: EncryptedValue,
        end: EncryptedValue,
        point: EncryptedValue,
    ) -> EncryptedBool:
        """Encrypted lo - margin <= point <= hi + margin, with lo/hi ordered."""
        p = self.provider
        start32, end32, point32 = self._widen(start), self._widen(end), self._widen(point)
        margin = p.encrypt(self.margin, BitWidth.U32)
        zero = p.encrypt(0, BitWidth.U32)

        ordered = p.le(start32, end32)
        lo = p.select(ordered, start32, end32)
        hi = p.select(ordered, end32, start32)

        has_room = p.le(margin, lo)
        lower = p.select(has_room, p.sub(lo, margin), zero)
        upper = p.add(hi, margin)

        return p.and_(p.le(lower, point32), p.le(point32, upper))

    def _check_x(self, route: Route, point: EncryptedValue) -> EncryptedBool:
        return self._span_contains(route.start_x, route.end_x, point)

    def _check_y(self, route: Route, point: EncryptedValue) -> EncryptedBool:
        return self._span_contains(route.start_y, route.end_y, point)

    def _in_box(self, route: Route, x: EncryptedValue, y: EncryptedValue) -> EncryptedBool:
        return self.provider.and_(self._check_x(route, x), self._check_y(route, y))

    def _within_capacity(self, route: Route, request: Request) -> EncryptedBool:
        return self.provider.le(request.weight, route.capacity)

    def _verdict(self, route: Route, request: Request):
        p = self.provider
        if self.pairing == AxisPairing.PICKUP_X_DROP_Y:
            pickup_ok = self._check_x(route, request.pickup_x)
            drop_ok = self._check_y(route, request.drop_y)
        else:
            pickup_ok = self._in_box(route, request.pickup_x, request.pickup_y)
            drop_ok = self._in_box(route, request.drop_x, request.drop_y)

        capacity_ok = self._within_capacity(route, request)
        compatible = p.and_(p.and_(pickup_ok, drop_ok), capacity_ok)
        return pickup_ok, drop_ok, capacity_ok, compatible

    # ===== public operations =====

    def within_capacity(self, route: Route, request: Request, owner: Optional[str] = None) -> EncryptedBool:
        """Encrypted weight <= capacity, granted to engine + owner (default: carrier)."""
        owner = owner or route.carrier
        flag = self.provider.grant_owner(self._within_capacity(route, request), owner)
        require_grants(self.provider.acl, [("within_capacity", flag, owner)], self.provider.engine_principal)
        return flag

    def evaluate(self, route: Route, request: Request, owner: Optional[str] = None) -> CompatibilityResult:
        """
        Evaluate one route/request pair.

        Args:
            route: Route record (its carrier is the default owner of the result)
            request: Request record
            owner: Principal to grant the result flags to

        Returns:
            CompatibilityResult with four ebool flags, all granted to
            engine + owner
        """
        p = self.provider
        owner = owner or route.carrier
        pickup_ok, drop_ok, capacity_ok, compatible = self._verdict(route, request)

        result = CompatibilityResult(
            route_id=route.route_id,
            request_id=request.request_id,
            pickup_in_bounds=p.grant_owner(pickup_ok, owner),
            drop_in_bounds=p.grant_owner(drop_ok, owner),
            within_capacity=p.grant_owner(capacity_ok, owner),
            compatible=p.grant_owner(compatible, owner),
        )
        require_grants(
            p.acl,
            [(name, flag, owner) for name, flag in result.flags().items()],
            p.engine_principal,
        )
        return result

    def compatible(self, route: Route, request: Request, owner: Optional[str] = None) -> EncryptedBool:
        """Only the combined flag, granted to engine + owner; the partial flags are left ungranted."""
        owner = owner or route.carrier
        flag = self.provider.grant_owner(self._verdict(route, request)[3], owner)
        require_grants(self.provider.acl, [("compatible", flag, owner)], self.provider.engine_principal)
        return flag
