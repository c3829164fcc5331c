# app/services/filter_engine.py
"""
Viewer-side vehicle type filter.

The active set is always explicit: it starts as the registry's enabled types
and an empty set means "show nothing". The "all" indicator is derived
(active set == enabled set) and never stored.
"""

from typing import Iterable

from app.exceptions import ValidationError
from app.schemas.vehicle import VehicleRecord
from app.schemas.vehicle_type import VehicleKind
from app.services.vehicle_type_registry import VehicleTypeRegistry, parse_kind
from app.utils.logger import get_logger

logger = get_logger(__name__)


class FilterEngine:
    def __init__(self, registry: VehicleTypeRegistry):
        self.registry = registry
        self._active: set[VehicleKind] = set(registry.enabled_ids())

    @property
    def active_types(self) -> set[VehicleKind]:
        return set(self._active)

    @property
    def all_active(self) -> bool:
        return self._active == self.registry.enabled_ids()

    def _enabled_kind(self, value) -> VehicleKind:
        kind = parse_kind(value)
        if kind not in self.registry.enabled_ids():
            raise ValidationError(f"Vehicle type '{kind.value}' is disabled")
        return kind

    def sync_with_registry(self):
        """Reset to every enabled type (the filter bar is rebuilt after a registry change)."""
        self._active = set(self.registry.enabled_ids())
        logger.info(f"[FILTER] Reset to enabled types: {sorted(k.value for k in self._active)}")

    def set_active_types(self, ids: Iterable[str]):
        self._active = {self._enabled_kind(i) for i in ids}

    def toggle_type(self, type_id) -> bool:
        """Flip one type in or out of the active set. Returns the new membership."""
        kind = self._enabled_kind(type_id)
        if kind in self._active:
            self._active.discard(kind)
        else:
            self._active.add(kind)
        return kind in self._active

    def toggle_all(self) -> bool:
        """Clear when everything is active, otherwise select every enabled type. Returns all_active."""
        if self.all_active:
            self._active = set()
        else:
            self._active = set(self.registry.enabled_ids())
        return self.all_active

    def is_visible(self, vehicle: VehicleRecord) -> bool:
        return (
            vehicle.approved
            and vehicle.online
            and vehicle.location is not None
            and vehicle.vehicle_type in self._active
        )

    def visible_vehicles(self, vehicles: Iterable[VehicleRecord]) -> list[VehicleRecord]:
        return [v for v in vehicles if self.is_visible(v)]
