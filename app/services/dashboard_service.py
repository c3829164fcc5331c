# app/services/dashboard_service.py
"""Admin dashboard statistics, recomputed by the scheduler's dashboard job."""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from app.schemas.dashboard import DashboardStats
from app.schemas.vehicle import VehicleRecord
from app.schemas.vehicle_type import VehicleKind
from app.utils.logger import get_logger

logger = get_logger(__name__)

RECENT_WINDOW = timedelta(days=7)


def compute_stats(vehicles: Iterable[VehicleRecord], now: datetime, notifications_sent: int = 0) -> DashboardStats:
    vehicles = list(vehicles)
    cutoff = now - RECENT_WINDOW
    by_type = {kind.value: 0 for kind in VehicleKind}
    for v in vehicles:
        by_type[v.vehicle_type.value] += 1

    return DashboardStats(
        total_vehicles=len(vehicles),
        online_vehicles=sum(1 for v in vehicles if v.approved and v.online),
        pending_approvals=sum(1 for v in vehicles if not v.approved),
        registered_last_week=sum(1 for v in vehicles if v.registered_at >= cutoff),
        by_type=by_type,
        notifications_sent=notifications_sent,
        computed_at=now,
    )


class DashboardService:
    def __init__(self, store, notifier, clock=datetime.utcnow):
        self.store = store
        self.notifier = notifier
        self._clock = clock
        self.latest: Optional[DashboardStats] = None

    def refresh(self) -> DashboardStats:
        self.latest = compute_stats(self.store.get_all(), self._clock(), self.notifier.sent)
        logger.debug(f"[DASH] {self.latest.total_vehicles} vehicles, {self.latest.online_vehicles} online, "
                     f"{self.latest.pending_approvals} pending")
        return self.latest

    def stats(self) -> DashboardStats:
        return self.latest or self.refresh()
