# app/routers/health.py
"""
System health check endpoint.
Returns status of backend + document storage + scheduler.
"""

from datetime import datetime

from fastapi import APIRouter, Depends

from app.dependencies import Fleet, get_fleet
from app.exceptions import StorageError
from app.services.document_store import VEHICLES_KEY

router = APIRouter()


@router.get("/health", summary="System health check")
async def health_check(fleet: Fleet = Depends(get_fleet)):
    """
    Returns:
    - Backend status
    - Storage connectivity
    - Scheduler job counters and last snapshot time
    """
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "storage": "unknown",
        "simulation": fleet.simulator.enabled,
        "last_refresh": fleet.snapshots.refreshed_at.isoformat() if fleet.snapshots.refreshed_at else None,
        "jobs": {},
    }

    # Check storage
    try:
        fleet.documents.get(VEHICLES_KEY)
        result["storage"] = "ok"
    except StorageError as e:
        result["storage"] = f"error: {e.message}"
        result["status"] = "degraded"

    for kind, job in fleet.scheduler.jobs.items():
        result["jobs"][kind] = {"runs": job.runs, "failures": job.failures}

    return result
