# app/dependencies.py
"""
Fleet wiring and FastAPI dependencies.

One Fleet object per process holds the shared store, registry, geofence and
every service built on them. Routers get it through `get_fleet`; tests swap
it with `app.dependency_overrides[get_fleet]`.
"""

from datetime import datetime
from typing import Callable, Optional

from fastapi import HTTPException, Request, status

from app.config import settings
from app.exceptions import FleetError
from app.services.dashboard_service import DashboardService
from app.services.document_store import DocumentStore, SqlDocumentStore
from app.services.filter_engine import FilterEngine
from app.services.geofence import GeofenceValidator, load_geofence
from app.services.location_source import PushLocationSource
from app.services.location_tracker import LiveLocationTracker
from app.services.movement_simulator import MovementSimulator
from app.services.notification_service import NotificationService
from app.services.presence_service import PresenceStateMachine
from app.services.scheduler import Scheduler
from app.services.snapshot_service import SnapshotService
from app.services.vehicle_store import VehicleStore
from app.services.vehicle_type_registry import VehicleTypeRegistry
from app.utils.logger import get_logger

logger = get_logger(__name__)


class Fleet:
    def __init__(
        self,
        documents: DocumentStore,
        geofence: Optional[GeofenceValidator] = None,
        notifier: Optional[NotificationService] = None,
        rng=None,
        clock: Callable[[], datetime] = datetime.utcnow,
        simulation_enabled: Optional[bool] = None,
    ):
        if simulation_enabled is None:
            simulation_enabled = settings.MOVEMENT_SIMULATION_ENABLED

        self.documents = documents
        self.geofence = geofence or load_geofence(settings.GEOFENCE_FILE)
        self.registry = VehicleTypeRegistry(documents)
        self.store = VehicleStore(documents)
        self.notifier = notifier or NotificationService()

        self.presence = PresenceStateMachine(self.store, self.registry, self.geofence, self.notifier, clock=clock)
        self.simulator = MovementSimulator(self.store, self.registry, self.geofence,
                                           rng=rng, clock=clock, enabled=simulation_enabled)
        self.filters = FilterEngine(self.registry)
        self.registry.subscribe(self.filters.sync_with_registry)
        self.snapshots = SnapshotService(self.store, self.registry, self.filters, clock=clock)
        self.dashboard = DashboardService(self.store, self.notifier, clock=clock)

        self.locations = PushLocationSource()
        self.tracker = LiveLocationTracker(self.locations, self.presence)

        self.scheduler = Scheduler()
        jobs = {
            "refresh":   self.snapshots.refresh,
            "movement":  self.simulator.tick,
            "dashboard": self.dashboard.refresh,
            "status":    self.log_status,
        }
        for kind, interval in settings.SCHEDULE.items():
            self.scheduler.add_job(kind, interval, jobs[kind])

    def log_status(self):
        s = self.simulator.status()
        logger.info(f"[SCHED] Fleet status: {s['online']}/{s['total']} online, "
                    f"simulation {'on' if s['enabled'] else 'off'}")


_fleet: Optional[Fleet] = None


def init_fleet(fleet: Optional[Fleet] = None) -> Fleet:
    global _fleet
    _fleet = fleet or Fleet(SqlDocumentStore())
    return _fleet


def get_fleet() -> Fleet:
    """FastAPI dependency: the process-wide Fleet (built on first use)."""
    return _fleet or init_fleet()


# ── Admin gate ───────────────────────────────────────────────────────────────
CredentialVerifier = Callable[[Request], bool]


def api_key_verifier(request: Request) -> bool:
    """Default verifier: X-Admin-Key must equal ADMIN_API_KEY. Leave the key empty to disable auth."""
    if not settings.ADMIN_API_KEY:
        return True
    return request.headers.get("X-Admin-Key") == settings.ADMIN_API_KEY


_verifier: CredentialVerifier = api_key_verifier


def set_credential_verifier(verifier: CredentialVerifier):
    global _verifier
    _verifier = verifier


def require_admin(request: Request):
    if not _verifier(request):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing admin key")


def to_http(e: FleetError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)
