# app/services/location_tracker.py
"""
Live location tracking for online drivers.

start()  opens a watch on the device and routes every fix to the presence
         state machine (geofence exits force the vehicle offline).
stop()   cancels the watch; no callback fires after it returns.

A permission denial suspends automatic location attempts for the vehicle
until the driver explicitly asks again (locate(..., explicit=True)).
"""

from typing import Optional

from app.exceptions import FleetError, LocationError, PermissionDenied
from app.schemas.vehicle import LocationFix, VehicleRecord
from app.services.location_source import LocationSource, WatchHandle
from app.services.presence_service import PresenceStateMachine
from app.utils.logger import get_logger

logger = get_logger(__name__)


class LiveLocationTracker:
    def __init__(self, source: LocationSource, presence: PresenceStateMachine):
        self.source = source
        self.presence = presence
        self._watches: dict[str, WatchHandle] = {}
        self._suspended: set[str] = set()

    def is_tracking(self, vehicle_id: str) -> bool:
        return vehicle_id in self._watches

    def is_suspended(self, vehicle_id: str) -> bool:
        return vehicle_id in self._suspended

    def start(self, vehicle_id: str) -> WatchHandle:
        if vehicle_id in self._watches:
            return self._watches[vehicle_id]
        handle = self.source.watch_location(vehicle_id, self._on_update, self._on_error)
        self._watches[vehicle_id] = handle
        logger.info(f"[TRACK] Watching {vehicle_id}")
        return handle

    def stop(self, vehicle_id: str):
        handle = self._watches.pop(vehicle_id, None)
        if handle is None:
            return
        self.source.cancel_watch(handle)
        logger.info(f"[TRACK] Stopped watching {vehicle_id}")

    def stop_all(self):
        for vehicle_id in list(self._watches):
            self.stop(vehicle_id)

    async def locate(self, vehicle_id: str, explicit: bool = False, timeout: float = None) -> Optional[LocationFix]:
        """
        One-shot position query. Returns None when automatic attempts are
        suspended for this vehicle and the request is not explicit.
        """
        if vehicle_id in self._suspended:
            if not explicit:
                logger.debug(f"[TRACK] {vehicle_id}: automatic location suspended")
                return None
            self._suspended.discard(vehicle_id)

        try:
            return await self.source.get_current_location(vehicle_id, timeout)
        except LocationError as e:
            self.record_error(vehicle_id, e)
            raise

    def record_error(self, vehicle_id: str, error: LocationError):
        if isinstance(error, PermissionDenied):
            self._suspended.add(vehicle_id)
            logger.warning(f"[TRACK] {vehicle_id}: location permission denied, automatic attempts suspended")
        try:
            self.presence.handle_location_error(vehicle_id, error)
        except FleetError as e:
            logger.warning(f"[TRACK] {vehicle_id}: {e.message}")

    # ── watch callbacks ───────────────────────────────────────────────────
    def _on_update(self, vehicle_id: str, fix: LocationFix):
        try:
            vehicle: VehicleRecord = self.presence.apply_location_update(vehicle_id, fix)
        except FleetError as e:
            logger.warning(f"[TRACK] {vehicle_id}: update rejected: {e.message}")
            self.stop(vehicle_id)
            return
        if vehicle is None or not vehicle.online:
            self.stop(vehicle_id)

    def _on_error(self, vehicle_id: str, error: LocationError):
        self.record_error(vehicle_id, error)
        self.stop(vehicle_id)
