# app/services/snapshot_service.py
"""
Snapshot service: computes the visible-vehicle snapshot on every refresh
tick and hands it to the registered render surfaces (map clients).

The store is read at refresh time, never from a cache; `latest` is only what
the last refresh produced, kept for the HTTP snapshot endpoint.
"""

from datetime import datetime
from typing import Callable, Optional, Protocol

from app.schemas.vehicle import VehicleRecord, VisibleVehicle
from app.services.filter_engine import FilterEngine
from app.services.vehicle_store import VehicleStore
from app.services.vehicle_type_registry import VehicleTypeRegistry
from app.utils.logger import get_logger

logger = get_logger(__name__)


class RenderSurface(Protocol):
    def render_snapshot(self, vehicles: list[VisibleVehicle]) -> None: ...


def to_visible(vehicle: VehicleRecord, registry: VehicleTypeRegistry) -> VisibleVehicle:
    vehicle_type = registry.get(vehicle.vehicle_type)
    route_label = None
    if vehicle_type.shows_route_label and vehicle.route_from and vehicle.route_to:
        route_label = f"{vehicle.route_from} → {vehicle.route_to}"
    return VisibleVehicle(
        id=vehicle.id,
        vehicle_type=vehicle.vehicle_type,
        name=vehicle.name,
        plate=vehicle.plate,
        lat=vehicle.location.lat,
        lng=vehicle.location.lng,
        icon=vehicle_type.icon,
        color=vehicle_type.color,
        route_label=route_label,
        taxi_number=vehicle.taxi_number,
    )


class SnapshotService:
    def __init__(
        self,
        store: VehicleStore,
        registry: VehicleTypeRegistry,
        filters: FilterEngine,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.registry = registry
        self.filters = filters
        self._clock = clock
        self._surfaces: list[RenderSurface] = []
        self.latest: list[VisibleVehicle] = []
        self.refreshed_at: Optional[datetime] = None

    def add_surface(self, surface: RenderSurface):
        self._surfaces.append(surface)

    def compute(self) -> list[VisibleVehicle]:
        visible = self.filters.visible_vehicles(self.store.get_all())
        return [to_visible(v, self.registry) for v in visible]

    def refresh(self) -> list[VisibleVehicle]:
        snapshot = self.compute()
        self.latest = snapshot
        self.refreshed_at = self._clock()

        for surface in self._surfaces:
            try:
                surface.render_snapshot(snapshot)
            except Exception as e:
                logger.error(f"[SNAPSHOT] Render surface {type(surface).__name__} failed: {e}", exc_info=True)

        logger.debug(f"[SNAPSHOT] {len(snapshot)} vehicles visible")
        return snapshot
