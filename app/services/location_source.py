# app/services/location_source.py
"""
Device location sources.

A LocationSource answers one-shot position queries and keeps watch
subscriptions open until cancelled. PushLocationSource is fed by the driver
apps over HTTP: each pushed fix (or error) resolves any pending query for that
vehicle and is fanned out to the active watches.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional

from app.config import settings
from app.exceptions import LocationError, LocationTimeout
from app.schemas.vehicle import LocationFix
from app.utils.logger import get_logger

logger = get_logger(__name__)

UpdateCallback = Callable[[str, LocationFix], None]
ErrorCallback = Callable[[str, LocationError], None]


@dataclass(eq=False)
class WatchHandle:
    vehicle_id: str
    on_update: UpdateCallback
    on_error: ErrorCallback
    active: bool = True


class LocationSource:
    """Interface. Subclasses deliver fixes for a vehicle's device."""

    async def get_current_location(self, vehicle_id: str, timeout: Optional[float] = None) -> LocationFix:
        raise NotImplementedError

    def watch_location(self, vehicle_id: str, on_update: UpdateCallback, on_error: ErrorCallback) -> WatchHandle:
        raise NotImplementedError

    def cancel_watch(self, handle: WatchHandle):
        raise NotImplementedError


class PushLocationSource(LocationSource):
    def __init__(self, default_timeout: float = None):
        self.default_timeout = default_timeout if default_timeout is not None else settings.LOCATION_TIMEOUT_SECONDS
        self._pending: dict[str, list[asyncio.Future]] = {}
        self._watches: dict[str, list[WatchHandle]] = {}

    async def get_current_location(self, vehicle_id: str, timeout: Optional[float] = None) -> LocationFix:
        timeout = self.default_timeout if timeout is None else timeout
        future = asyncio.get_running_loop().create_future()
        self._pending.setdefault(vehicle_id, []).append(future)
        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[TRACK] {vehicle_id}: no position within {timeout}s")
            raise LocationTimeout("Location request timed out")
        finally:
            waiting = self._pending.get(vehicle_id, [])
            if future in waiting:
                waiting.remove(future)
            if not waiting:
                self._pending.pop(vehicle_id, None)

    def watch_location(self, vehicle_id: str, on_update: UpdateCallback, on_error: ErrorCallback) -> WatchHandle:
        handle = WatchHandle(vehicle_id, on_update, on_error)
        self._watches.setdefault(vehicle_id, []).append(handle)
        return handle

    def cancel_watch(self, handle: WatchHandle):
        handle.active = False
        watches = self._watches.get(handle.vehicle_id, [])
        if handle in watches:
            watches.remove(handle)
        if not watches:
            self._watches.pop(handle.vehicle_id, None)

    def is_watched(self, vehicle_id: str) -> bool:
        return bool(self._watches.get(vehicle_id))

    def _resolve(self, vehicle_id: str, fix: LocationFix = None, error: LocationError = None) -> int:
        delivered = 0
        for future in self._pending.pop(vehicle_id, []):
            if future.done():
                continue
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(fix)
            delivered += 1
        return delivered

    def push(self, vehicle_id: str, fix: LocationFix) -> int:
        """Deliver a device fix. Returns how many queries and watches received it."""
        delivered = self._resolve(vehicle_id, fix=fix)
        for handle in list(self._watches.get(vehicle_id, [])):
            if handle.active:   # a previous callback may have cancelled it
                handle.on_update(vehicle_id, fix)
                delivered += 1
        return delivered

    def push_error(self, vehicle_id: str, error: LocationError) -> int:
        delivered = self._resolve(vehicle_id, error=error)
        for handle in list(self._watches.get(vehicle_id, [])):
            if handle.active:
                handle.on_error(vehicle_id, error)
                delivered += 1
        return delivered
