# app/routers/vehicles.py
"""Driver registration, login, approval and presence endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from app.dependencies import Fleet, get_fleet, require_admin, to_http
from app.exceptions import FleetError, LOCATION_ERRORS
from app.schemas.vehicle import (
    LocationErrorReport, LocationFix, LoginRequest, RegistrationRequest, VehicleOut, VehicleProfileUpdate,
)
from app.services.presence_service import state_of
from app.services.vehicle_service import authenticate_driver, is_pending
from app.services.vehicle_type_registry import parse_kind

router = APIRouter()


def _vehicle_or_404(fleet: Fleet, vehicle_id: str):
    vehicle = fleet.store.get(vehicle_id)
    if vehicle is None:
        raise HTTPException(status_code=404, detail=f"Vehicle '{vehicle_id}' not found")
    return vehicle


@router.post("/vehicles/register", response_model=VehicleOut, status_code=201, summary="Register a driver")
async def register_vehicle(body: RegistrationRequest, fleet: Fleet = Depends(get_fleet)):
    """Taxis start pending admin approval; every other type is approved at once. Nobody starts online."""
    try:
        return await fleet.presence.register(body)
    except FleetError as e:
        raise to_http(e)


@router.post("/vehicles/login", summary="Driver login")
async def login(body: LoginRequest, fleet: Fleet = Depends(get_fleet)):
    vehicle = authenticate_driver(fleet.store, body.email, body.password)
    if vehicle is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if is_pending(vehicle):
        raise HTTPException(status_code=403, detail="Your registration is pending admin approval")
    return {"status": state_of(vehicle).value, "vehicle": VehicleOut.model_validate(vehicle)}


@router.get("/vehicles", response_model=list[VehicleOut], summary="List vehicles",
            dependencies=[Depends(require_admin)])
async def list_vehicles(
    vehicle_type: Optional[str] = None,
    approved: Optional[bool] = None,
    online: Optional[bool] = None,
    fleet: Fleet = Depends(get_fleet),
):
    vehicles = fleet.store.get_all()
    if vehicle_type:
        try:
            kind = parse_kind(vehicle_type)
        except FleetError as e:
            raise to_http(e)
        vehicles = [v for v in vehicles if v.vehicle_type == kind]
    if approved is not None:
        vehicles = [v for v in vehicles if v.approved == approved]
    if online is not None:
        vehicles = [v for v in vehicles if v.online == online]
    return vehicles


@router.get("/vehicles/{vehicle_id}", response_model=VehicleOut, summary="Get one vehicle")
async def get_vehicle(vehicle_id: str, fleet: Fleet = Depends(get_fleet)):
    return _vehicle_or_404(fleet, vehicle_id)


@router.patch("/vehicles/{vehicle_id}", response_model=VehicleOut, summary="Edit driver details",
              dependencies=[Depends(require_admin)])
async def update_vehicle(vehicle_id: str, body: VehicleProfileUpdate, fleet: Fleet = Depends(get_fleet)):
    """Only the fields present in the body change. Approval and online state are not editable here."""
    try:
        return fleet.presence.update_profile(vehicle_id, body)
    except FleetError as e:
        raise to_http(e)


@router.delete("/vehicles/{vehicle_id}", summary="Remove a vehicle", dependencies=[Depends(require_admin)])
async def remove_vehicle(vehicle_id: str, fleet: Fleet = Depends(get_fleet)):
    fleet.tracker.stop(vehicle_id)
    try:
        fleet.presence.remove(vehicle_id)
    except FleetError as e:
        raise to_http(e)
    return {"status": "removed", "id": vehicle_id}


# ── Approval (admin) ─────────────────────────────────────────────────────────
@router.post("/vehicles/{vehicle_id}/approve", response_model=VehicleOut, summary="Approve a pending driver",
             dependencies=[Depends(require_admin)])
async def approve_vehicle(vehicle_id: str, fleet: Fleet = Depends(get_fleet)):
    try:
        return await fleet.presence.approve(vehicle_id)
    except FleetError as e:
        raise to_http(e)


@router.post("/vehicles/{vehicle_id}/reject", summary="Reject and remove a pending driver",
             dependencies=[Depends(require_admin)])
async def reject_vehicle(vehicle_id: str, fleet: Fleet = Depends(get_fleet)):
    try:
        fleet.presence.reject(vehicle_id)
    except FleetError as e:
        raise to_http(e)
    return {"status": "rejected", "id": vehicle_id}


# ── Presence ─────────────────────────────────────────────────────────────────
@router.post("/vehicles/{vehicle_id}/online", response_model=VehicleOut, summary="Go online")
async def go_online(vehicle_id: str, body: Optional[LocationFix] = None, fleet: Fleet = Depends(get_fleet)):
    """
    With a body, the given fix is used. Without one, waits for the device to
    push a position (LOCATION_TIMEOUT_SECONDS) before going online.
    """
    _vehicle_or_404(fleet, vehicle_id)
    try:
        fix = body or await fleet.tracker.locate(vehicle_id, explicit=True)
        vehicle = fleet.presence.go_online(vehicle_id, fix)
    except FleetError as e:
        raise to_http(e)
    fleet.tracker.start(vehicle_id)
    return vehicle


@router.post("/vehicles/{vehicle_id}/offline", response_model=VehicleOut, summary="Go offline")
async def go_offline(vehicle_id: str, fleet: Fleet = Depends(get_fleet)):
    fleet.tracker.stop(vehicle_id)
    try:
        return fleet.presence.go_offline(vehicle_id)
    except FleetError as e:
        raise to_http(e)


@router.post("/vehicles/{vehicle_id}/location", response_model=VehicleOut, summary="Device position fix")
async def push_location(vehicle_id: str, body: LocationFix, fleet: Fleet = Depends(get_fleet)):
    """Leaving the service area while online takes the vehicle offline."""
    _vehicle_or_404(fleet, vehicle_id)
    if not fleet.locations.push(vehicle_id, body):
        try:
            fleet.presence.apply_location_update(vehicle_id, body)
        except FleetError as e:
            raise to_http(e)
    return _vehicle_or_404(fleet, vehicle_id)


@router.post("/vehicles/{vehicle_id}/location-error", response_model=VehicleOut, summary="Device location failure")
async def push_location_error(vehicle_id: str, body: LocationErrorReport, fleet: Fleet = Depends(get_fleet)):
    _vehicle_or_404(fleet, vehicle_id)
    error = LOCATION_ERRORS[body.error](f"Device reported {body.error}")
    if not fleet.locations.push_error(vehicle_id, error):
        fleet.tracker.record_error(vehicle_id, error)
    return _vehicle_or_404(fleet, vehicle_id)
