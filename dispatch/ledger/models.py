"""
Record Store Models

Routes, requests and schedules as held by the Record Store, plus the
plaintext-only views returned by read accessors.

Encrypted fields are EncryptedValue handles. Views never carry handles.
"""

from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from dispatch.fhe.types import BitWidth, EncryptedValue

NO_ROUTE = 0

# Declared widths of the plaintext inputs, in argument order.
ROUTE_FIELD_WIDTHS: Dict[str, BitWidth] = {
    "start_x": BitWidth.U16,
    "start_y": BitWidth.U16,
    "end_x": BitWidth.U16,
    "end_y": BitWidth.U16,
    "capacity": BitWidth.U32,
    "priority": BitWidth.U16,
}

REQUEST_FIELD_WIDTHS: Dict[str, BitWidth] = {
    "pickup_x": BitWidth.U16,
    "pickup_y": BitWidth.U16,
    "drop_x": BitWidth.U16,
    "drop_y": BitWidth.U16,
    "weight": BitWidth.U32,
    "urgency": BitWidth.U16,
    "max_cost": BitWidth.U32,
}


class Route(BaseModel):
    """A carrier-owned corridor with encrypted bounds and capacity."""
    route_id: int
    start_x: EncryptedValue
    start_y: EncryptedValue
    end_x: EncryptedValue
    end_y: EncryptedValue
    capacity: EncryptedValue
    priority: EncryptedValue
    is_active: bool = True
    carrier: str
    created_at: datetime

    class Config:
        extra = "forbid"

    def encrypted_fields(self) -> Dict[str, EncryptedValue]:
        return {name: getattr(self, name) for name in ROUTE_FIELD_WIDTHS}


class Request(BaseModel):
    """
    A requester-owned cargo movement need.

    is_matched and assigned_route move together, once.
    """
    request_id: int
    pickup_x: EncryptedValue
    pickup_y: EncryptedValue
    drop_x: EncryptedValue
    drop_y: EncryptedValue
    weight: EncryptedValue
    urgency: EncryptedValue
    max_cost: EncryptedValue
    is_matched: bool = False
    requester: str
    assigned_route: int = NO_ROUTE
    submitted_at: datetime

    class Config:
        extra = "forbid"

    @model_validator(mode="after")
    def match_flags_agree(self):
        if self.is_matched != (self.assigned_route != NO_ROUTE):
            raise ValueError("is_matched must be true exactly when assigned_route is set")
        return self

    def encrypted_fields(self) -> Dict[str, EncryptedValue]:
        return {name: getattr(self, name) for name in REQUEST_FIELD_WIDTHS}


class Schedule(BaseModel):
    """
    Point-in-time optimization snapshot for one route.

    Requests submitted or matched afterwards are not reflected until the
    route is optimized again.
    """
    route_id: int
    candidate_request_ids: List[int] = Field(default_factory=list)
    total_load: EncryptedValue
    total_urgency: EncryptedValue
    efficiency: EncryptedValue
    compatibility: Dict[int, EncryptedValue] = Field(
        default_factory=dict,
        description="Per-candidate encrypted compatibility flag, readable by the carrier"
    )
    is_optimized: bool = True
    optimized_at: datetime
    inclusion_policy: str
    schedule_hash: str

    class Config:
        extra = "forbid"

    def encrypted_fields(self) -> Dict[str, EncryptedValue]:
        fields = {
            "total_load": self.total_load,
            "total_urgency": self.total_urgency,
            "efficiency": self.efficiency,
        }
        for request_id, flag in sorted(self.compatibility.items()):
            fields[f"compatibility[{request_id}]"] = flag
        return fields


# ===== Plaintext views =====

class RouteInfo(BaseModel):
    route_id: int
    carrier: str
    is_active: bool
    created_at: datetime


class RequestStatus(BaseModel):
    request_id: int
    requester: str
    is_matched: bool
    assigned_route: int
    submitted_at: datetime


class ScheduleInfo(BaseModel):
    route_id: int
    candidate_request_ids: List[int] = Field(default_factory=list)
    candidate_count: int = 0
    is_optimized: bool = False
    optimized_at: Optional[datetime] = None
    inclusion_policy: Optional[str] = None
    schedule_hash: Optional[str] = None

    @classmethod
    def from_schedule(cls, schedule: Schedule) -> "ScheduleInfo":
        return cls(
            route_id=schedule.route_id,
            candidate_request_ids=list(schedule.candidate_request_ids),
            candidate_count=len(schedule.candidate_request_ids),
            is_optimized=schedule.is_optimized,
            optimized_at=schedule.optimized_at,
            inclusion_policy=schedule.inclusion_policy,
            schedule_hash=schedule.schedule_hash,
        )


class Counters(BaseModel):
    route_counter: int
    request_counter: int


# (location, value, owner) triples consumed by the grant audit
EncryptedFieldRef = Tuple[str, EncryptedValue, str]
EncryptedFieldIter = Iterator[EncryptedFieldRef]
