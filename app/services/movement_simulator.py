# app/services/movement_simulator.py
"""
Simulated vehicle movement (no live fleet exists, so the map is kept alive
with a bounded random walk).

Per movement tick, for every approved online vehicle with a location:
  1. step r = the vehicle type's movement magnitude
  2. Δlat, Δlng drawn uniformly in [-r/2, r/2]
  3. candidate = location + (Δlat, Δlng), clamped into the geofence bounding box
  4. candidate inside the geofence → committed with a fresh timestamp,
     otherwise the vehicle stays put for this tick (single attempt, no retry)
"""

import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from app.exceptions import FleetError
from app.schemas.vehicle import Location
from app.services.geofence import GeofenceValidator
from app.services.presence_service import PresenceState, state_of
from app.services.vehicle_store import VehicleStore
from app.services.vehicle_type_registry import VehicleTypeRegistry
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class MovementReport:
    moved: list[str] = field(default_factory=list)
    blocked: list[str] = field(default_factory=list)    # candidate fell outside the geofence
    skipped: int = 0                                    # not online / no location
    ran: bool = True


class MovementSimulator:
    def __init__(
        self,
        store: VehicleStore,
        registry: VehicleTypeRegistry,
        geofence: GeofenceValidator,
        rng: random.Random = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        enabled: bool = True,
    ):
        self.store = store
        self.registry = registry
        self.geofence = geofence
        self.rng = rng or random.Random()
        self._clock = clock
        self.enabled = enabled

    def toggle(self) -> bool:
        self.enabled = not self.enabled
        logger.info(f"[MOVE] Movement simulation {'ENABLED' if self.enabled else 'DISABLED'}")
        return self.enabled

    def propose(self, location: Location, step: float) -> tuple[float, float]:
        """Candidate position for one tick, already clamped to the bounding box."""
        half = step / 2
        d_lat = self.rng.uniform(-half, half)
        d_lng = self.rng.uniform(-half, half)
        return self.geofence.clamp(location.lat + d_lat, location.lng + d_lng)

    def tick(self) -> MovementReport:
        """Scheduled entry point. Does nothing while the simulation is disabled."""
        if not self.enabled:
            logger.debug("[MOVE] Simulation disabled, tick skipped")
            return MovementReport(ran=False)
        return self.force_tick()

    def force_tick(self) -> MovementReport:
        """Run one movement step for every eligible vehicle regardless of `enabled`."""
        report = MovementReport()
        vehicles = self.store.get_all()

        for vehicle in vehicles:
            if state_of(vehicle) != PresenceState.approved_online or vehicle.location is None:
                report.skipped += 1
                continue

            try:
                step = self.registry.step_for(vehicle.vehicle_type)
            except FleetError as e:
                logger.warning(f"[MOVE] {vehicle.id}: {e.message}")
                report.skipped += 1
                continue

            lat, lng = self.propose(vehicle.location, step)
            if not self.geofence.contains(lat, lng):
                report.blocked.append(vehicle.id)
                logger.debug(f"[MOVE] {vehicle.id} candidate {lat:.4f},{lng:.4f} outside geofence, holding")
                continue

            now = self._clock()
            vehicle.location = Location(lat=lat, lng=lng, timestamp=now)
            vehicle.last_seen = now
            report.moved.append(vehicle.id)

        if report.moved:
            self.store.replace_all(vehicles)
        logger.info(f"[MOVE] Tick: {len(report.moved)} moved, {len(report.blocked)} held at border, "
                    f"{report.skipped} not eligible")
        return report

    def status(self) -> dict:
        vehicles = self.store.get_all()
        approved = [v for v in vehicles if v.approved]
        online = [v for v in approved if v.online]
        return {
            "enabled": self.enabled,
            "total": len(vehicles),
            "approved": len(approved),
            "online": len(online),
            "with_location": len([v for v in online if v.location is not None]),
        }
