# app/routers/vehicle_types.py
"""Vehicle type registry: listing, display edits and enable/disable."""

from fastapi import APIRouter, Depends

from app.dependencies import Fleet, get_fleet, require_admin, to_http
from app.exceptions import FleetError
from app.schemas.vehicle_type import VehicleType, VehicleTypeUpdate

router = APIRouter()


@router.get("/vehicle-types", response_model=list[VehicleType], summary="List vehicle types")
async def list_vehicle_types(enabled_only: bool = False, fleet: Fleet = Depends(get_fleet)):
    return fleet.registry.enabled() if enabled_only else fleet.registry.all()


@router.patch("/vehicle-types/{type_id}", response_model=VehicleType, summary="Edit name, icon or color",
              dependencies=[Depends(require_admin)])
async def update_vehicle_type(type_id: str, body: VehicleTypeUpdate, fleet: Fleet = Depends(get_fleet)):
    try:
        return fleet.registry.update(type_id, body)
    except FleetError as e:
        raise to_http(e)


@router.post("/vehicle-types/{type_id}/toggle", response_model=VehicleType, summary="Enable or disable a type",
             dependencies=[Depends(require_admin)])
async def toggle_vehicle_type(type_id: str, fleet: Fleet = Depends(get_fleet)):
    """Disabling hides the type from filters and registration; its vehicles are kept."""
    try:
        return fleet.registry.toggle(type_id)
    except FleetError as e:
        raise to_http(e)
