# app/routers/live_map.py
"""Passenger map: visible-vehicle snapshot, type filters and the live WebSocket feed."""

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.dependencies import Fleet, get_fleet, to_http
from app.exceptions import FleetError
from app.schemas.dashboard import FilterState, FilterUpdate
from app.schemas.vehicle import VisibleVehicle
from app.utils.ws_manager import map_manager

router = APIRouter()


def _filter_state(fleet: Fleet) -> FilterState:
    return FilterState(
        active_types=sorted(k.value for k in fleet.filters.active_types),
        all_active=fleet.filters.all_active,
    )


@router.get("/map/snapshot", response_model=list[VisibleVehicle], summary="Vehicles currently on the map")
async def get_snapshot(fresh: bool = False, fleet: Fleet = Depends(get_fleet)):
    """The last refresh tick's snapshot, or a freshly computed one with ?fresh=true."""
    return fleet.snapshots.compute() if fresh else fleet.snapshots.latest


@router.get("/map/filters", response_model=FilterState, summary="Active type filters")
async def get_filters(fleet: Fleet = Depends(get_fleet)):
    return _filter_state(fleet)


@router.put("/map/filters", response_model=FilterState, summary="Replace the active type set")
async def set_filters(body: FilterUpdate, fleet: Fleet = Depends(get_fleet)):
    try:
        fleet.filters.set_active_types(body.active_types)
    except FleetError as e:
        raise to_http(e)
    return _filter_state(fleet)


@router.post("/map/filters/toggle/{type_id}", response_model=FilterState, summary="Toggle one type")
async def toggle_filter(type_id: str, fleet: Fleet = Depends(get_fleet)):
    try:
        fleet.filters.toggle_type(type_id)
    except FleetError as e:
        raise to_http(e)
    return _filter_state(fleet)


@router.post("/map/filters/toggle-all", response_model=FilterState, summary="Select all / clear all")
async def toggle_all_filters(fleet: Fleet = Depends(get_fleet)):
    fleet.filters.toggle_all()
    return _filter_state(fleet)


@router.websocket("/map/ws")
async def map_feed(websocket: WebSocket, fleet: Fleet = Depends(get_fleet)):
    await map_manager.connect(websocket)
    try:
        await websocket.send_json({
            "type": "snapshot",
            "vehicles": [v.model_dump(mode="json") for v in fleet.snapshots.latest],
        })
        while True:
            await websocket.receive_text()   # keep-alive pings from the client
    except WebSocketDisconnect:
        pass
    finally:
        map_manager.disconnect(websocket)
