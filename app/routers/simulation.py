# app/routers/simulation.py
"""Movement simulation status and control."""

from fastapi import APIRouter, Depends, Query

from app.dependencies import Fleet, get_fleet, require_admin

router = APIRouter()


@router.get("/simulation/status", summary="Movement simulation status")
async def simulation_status(fleet: Fleet = Depends(get_fleet)):
    return fleet.simulator.status()


@router.post("/simulation/toggle", summary="Start / stop simulated movement", dependencies=[Depends(require_admin)])
async def toggle_simulation(fleet: Fleet = Depends(get_fleet)):
    return {"enabled": fleet.simulator.toggle()}


@router.post("/simulation/tick", summary="Force one movement step", dependencies=[Depends(require_admin)])
async def force_tick(fleet: Fleet = Depends(get_fleet)):
    """Runs even while the simulation is disabled, then refreshes the map."""
    report = fleet.simulator.force_tick()
    fleet.snapshots.refresh()
    return {
        "moved": len(report.moved),
        "blocked": len(report.blocked),
        "skipped": report.skipped,
    }


@router.post("/simulation/test-drivers", summary="Bring approved offline drivers online",
             dependencies=[Depends(require_admin)])
async def enable_test_drivers(limit: int = Query(5, ge=1, le=50), fleet: Fleet = Depends(get_fleet)):
    enabled = fleet.presence.enable_test_drivers(limit=limit, rng=fleet.simulator.rng)
    fleet.snapshots.refresh()
    return {"enabled": len(enabled), "ids": [v.id for v in enabled]}
