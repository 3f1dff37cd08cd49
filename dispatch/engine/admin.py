"""
Dispatch API Endpoints

Public surface of the engine for the UI / indexing collaborator.

POST /api/v1/dispatch/routes                         - Register route (X-Principal = carrier)
POST /api/v1/dispatch/requests                       - Submit request (X-Principal = requester)
POST /api/v1/dispatch/routes/{route_id}/active       - Toggle route active (carrier only)
POST /api/v1/dispatch/routes/{route_id}/optimize     - Optimize schedule (carrier only)
POST /api/v1/dispatch/requests/{request_id}/match    - Match request to route (carrier only)
GET  /api/v1/dispatch/routes/{route_id}              - Route info
GET  /api/v1/dispatch/requests/{request_id}          - Request status
GET  /api/v1/dispatch/routes/{route_id}/schedule     - Schedule info
GET  /api/v1/dispatch/routes/{route_id}/handles      - Encrypted handles (carrier only)
GET  /api/v1/dispatch/requests/{request_id}/handles  - Encrypted handles (requester only)
GET  /api/v1/dispatch/carriers/{carrier}/routes      - Route ids of a carrier
GET  /api/v1/dispatch/requesters/{requester}/requests - Request ids of a requester
GET  /api/v1/dispatch/counters                       - Route / request counters
GET  /api/v1/dispatch/health                         - Health check
GET  /api/v1/dispatch/admin/grant-audit              - Grant completeness audit (X-Admin-API-Key)

Caller identity comes from the X-Principal header; wallet signing happens
upstream and is out of scope here.
"""

import os
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field

from dispatch.fhe.acl import GrantGap
from dispatch.ledger.errors import DispatchError
from dispatch.ledger.models import Counters, RequestStatus, RouteInfo, ScheduleInfo
from dispatch.shared.config import EngineConfig

from .engine import DispatchEngine


router = APIRouter(
    prefix="/api/v1/dispatch",
    tags=["dispatch"],
)

_engine: Optional[DispatchEngine] = None


def get_engine() -> DispatchEngine:
    """Process-wide engine, configured from the environment on first use."""
    global _engine
    if _engine is None:
        _engine = DispatchEngine(config=EngineConfig.from_env())
    return _engine


def verify_admin_key(x_admin_api_key: Optional[str] = Header(None)):
    """Verify admin API key."""
    expected_key = os.getenv("ADMIN_API_KEY")
    if not expected_key:
        # If no key configured, block all access
        raise HTTPException(status_code=403, detail="Admin access not configured")
    if x_admin_api_key != expected_key:
        raise HTTPException(status_code=403, detail="Invalid admin API key")
    return True


def _http_error(e: DispatchError) -> HTTPException:
    return HTTPException(
        status_code=e.http_code,
        detail={"error_code": e.error_code.value, "message": e.message},
    )


# Request models

class RouteCreate(BaseModel):
    start_x: int
    start_y: int
    end_x: int
    end_y: int
    capacity: int
    priority: int


class RequestCreate(BaseModel):
    pickup_x: int
    pickup_y: int
    drop_x: int
    drop_y: int
    weight: int
    urgency: int
    max_cost: int


class ToggleActive(BaseModel):
    active: bool


class OptimizeRequest(BaseModel):
    offset: int = Field(default=0, ge=0, description="Unmatched requests to skip")


class MatchCreate(BaseModel):
    route_id: int


# Response models

class RouteCreated(BaseModel):
    success: bool = True
    route_id: int


class RequestCreated(BaseModel):
    success: bool = True
    request_id: int


class HandlesResponse(BaseModel):
    """Opaque handle ids; decryption goes through the provider's user-decryption flow."""
    handles: Dict[str, str]


class GrantAuditResponse(BaseModel):
    complete: bool
    gaps: List[GrantGap]
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class DispatchHealthResponse(BaseModel):
    status: str = "ok"
    module: str = "dispatch_engine"
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


# Endpoints

@router.get("/health", response_model=DispatchHealthResponse)
async def dispatch_health():
    """Health check. Does not require authentication."""
    return DispatchHealthResponse()


@router.post("/routes", response_model=RouteCreated)
async def register_route(
    body: RouteCreate,
    x_principal: str = Header(...),
    engine: DispatchEngine = Depends(get_engine),
):
    try:
        route_id = engine.register_route(carrier=x_principal, **body.model_dump())
    except DispatchError as e:
        raise _http_error(e)
    return RouteCreated(route_id=route_id)


@router.post("/requests", response_model=RequestCreated)
async def submit_request(
    body: RequestCreate,
    x_principal: str = Header(...),
    engine: DispatchEngine = Depends(get_engine),
):
    try:
        request_id = engine.submit_request(requester=x_principal, **body.model_dump())
    except DispatchError as e:
        raise _http_error(e)
    return RequestCreated(request_id=request_id)


@router.post("/routes/{route_id}/active", response_model=RouteInfo)
async def toggle_route_active(
    route_id: int,
    body: ToggleActive,
    x_principal: str = Header(...),
    engine: DispatchEngine = Depends(get_engine),
):
    try:
        return engine.toggle_route_active(route_id, x_principal, body.active)
    except DispatchError as e:
        raise _http_error(e)


@router.post("/routes/{route_id}/optimize", response_model=ScheduleInfo)
async def optimize_schedule(
    route_id: int,
    body: Optional[OptimizeRequest] = None,
    x_principal: str = Header(...),
    engine: DispatchEngine = Depends(get_engine),
):
    offset = body.offset if body is not None else 0
    try:
        schedule = engine.optimize_schedule(route_id, x_principal, offset=offset)
        return ScheduleInfo.from_schedule(schedule)
    except DispatchError as e:
        raise _http_error(e)


@router.post("/requests/{request_id}/match", response_model=RequestStatus)
async def match_request(
    request_id: int,
    body: MatchCreate,
    x_principal: str = Header(...),
    engine: DispatchEngine = Depends(get_engine),
):
    try:
        return engine.match_request(request_id, body.route_id, x_principal)
    except DispatchError as e:
        raise _http_error(e)


@router.get("/routes/{route_id}", response_model=RouteInfo)
async def get_route_info(route_id: int, engine: DispatchEngine = Depends(get_engine)):
    try:
        return engine.get_route_info(route_id)
    except DispatchError as e:
        raise _http_error(e)


@router.get("/requests/{request_id}", response_model=RequestStatus)
async def get_request_status(request_id: int, engine: DispatchEngine = Depends(get_engine)):
    try:
        return engine.get_request_status(request_id)
    except DispatchError as e:
        raise _http_error(e)


@router.get("/routes/{route_id}/schedule", response_model=ScheduleInfo)
async def get_schedule_info(route_id: int, engine: DispatchEngine = Depends(get_engine)):
    try:
        return engine.get_schedule_info(route_id)
    except DispatchError as e:
        raise _http_error(e)


@router.get("/routes/{route_id}/handles", response_model=HandlesResponse)
async def get_route_handles(
    route_id: int,
    x_principal: str = Header(...),
    engine: DispatchEngine = Depends(get_engine),
):
    try:
        handles = engine.route_handles(route_id, x_principal)
    except DispatchError as e:
        raise _http_error(e)
    return HandlesResponse(handles={name: v.handle for name, v in handles.items()})


@router.get("/requests/{request_id}/handles", response_model=HandlesResponse)
async def get_request_handles(
    request_id: int,
    x_principal: str = Header(...),
    engine: DispatchEngine = Depends(get_engine),
):
    try:
        handles = engine.request_handles(request_id, x_principal)
    except DispatchError as e:
        raise _http_error(e)
    return HandlesResponse(handles={name: v.handle for name, v in handles.items()})


@router.get("/carriers/{carrier}/routes", response_model=List[int])
async def get_carrier_routes(carrier: str, engine: DispatchEngine = Depends(get_engine)):
    return engine.get_carrier_routes(carrier)


@router.get("/requesters/{requester}/requests", response_model=List[int])
async def get_user_requests(requester: str, engine: DispatchEngine = Depends(get_engine)):
    return engine.get_user_requests(requester)


@router.get("/counters", response_model=Counters)
async def get_counters(engine: DispatchEngine = Depends(get_engine)):
    return engine.counters()


@router.get("/admin/grant-audit", response_model=GrantAuditResponse)
async def grant_audit(
    x_admin_api_key: Optional[str] = Header(None),
    engine: DispatchEngine = Depends(get_engine),
):
    """Walk every persisted encrypted field and report missing grants."""
    verify_admin_key(x_admin_api_key)
    gaps = engine.audit_grants()
    return GrantAuditResponse(complete=not gaps, gaps=gaps)
