# app/routers/dashboard.py
"""Admin dashboard counters."""

from fastapi import APIRouter, Depends

from app.dependencies import Fleet, get_fleet, require_admin
from app.schemas.dashboard import DashboardStats

router = APIRouter()


@router.get("/dashboard/stats", response_model=DashboardStats, summary="Fleet statistics",
            dependencies=[Depends(require_admin)])
async def dashboard_stats(refresh: bool = False, fleet: Fleet = Depends(get_fleet)):
    """Last dashboard-job result; ?refresh=true recomputes now."""
    return fleet.dashboard.refresh() if refresh else fleet.dashboard.stats()
