# app/services/vehicle_type_registry.py
"""
Vehicle type registry.
Holds the closed set of vehicle kinds with their display metadata and
movement step. Seeded with the defaults on first run; stored records that
name an unknown kind fail the load instead of being silently defaulted.
"""

from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from app.exceptions import NotFound, StorageError, ValidationError
from app.schemas.vehicle_type import VehicleKind, VehicleType, VehicleTypeUpdate
from app.services.document_store import DocumentStore, VEHICLE_TYPES_KEY
from app.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_VEHICLE_TYPES: tuple[VehicleType, ...] = (
    VehicleType(id=VehicleKind.taxi, name="Taxi", icon="🚕", color="#FFD700",
                step=0.005, requires_approval=True),
    VehicleType(id=VehicleKind.minibus, name="Minibus", icon="🚐", color="#4CAF50",
                step=0.003, shows_route_label=True),
    VehicleType(id=VehicleKind.tuk_tuk, name="Tuk-tuk", icon="🛺", color="#FF9800",
                step=0.002),
    VehicleType(id=VehicleKind.van, name="Van", icon="🚐", color="#2196F3",
                step=0.004),
    VehicleType(id=VehicleKind.bus, name="Bus", icon="🚌", color="#F44336",
                step=0.001, requires_route=True, shows_route_label=True),
)

_DEFAULTS_BY_ID = {t.id: t for t in DEFAULT_VEHICLE_TYPES}


def parse_kind(value) -> VehicleKind:
    """Turn a raw type string into a VehicleKind, or raise ValidationError."""
    try:
        return VehicleKind(value)
    except ValueError:
        raise ValidationError(f"Unknown vehicle type '{value}'") from None


class VehicleTypeRegistry:
    def __init__(self, documents: DocumentStore):
        self._documents = documents
        self._listeners: list[Callable[[], None]] = []
        self._types: dict[VehicleKind, VehicleType] = self._load()

    def _load(self) -> dict:
        try:
            raw = self._documents.get(VEHICLE_TYPES_KEY)
        except StorageError as e:
            logger.error(f"[TYPES] {e.message}, using default vehicle types")
            return {t.id: t for t in DEFAULT_VEHICLE_TYPES}

        if raw is None:
            logger.info("[TYPES] No vehicle types stored, seeding defaults")
            types = {t.id: t for t in DEFAULT_VEHICLE_TYPES}
            self._documents.set(VEHICLE_TYPES_KEY, [t.model_dump(mode="json") for t in types.values()])
            return types

        if not isinstance(raw, list) or not all(isinstance(item, dict) for item in raw):
            logger.error(f"[TYPES] '{VEHICLE_TYPES_KEY}' document is malformed, using default vehicle types")
            return {t.id: t for t in DEFAULT_VEHICLE_TYPES}

        types = {}
        for item in raw:
            kind = parse_kind(item.get("id"))
            if kind in types:
                raise ValidationError(f"Duplicate vehicle type '{kind.value}'")
            # Records written before step/policy flags existed take them from the defaults
            merged = {**_DEFAULTS_BY_ID[kind].model_dump(), **item}
            try:
                types[kind] = VehicleType.model_validate(merged)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid vehicle type '{kind.value}': {e.error_count()} errors") from e

        for kind, default in _DEFAULTS_BY_ID.items():
            if kind not in types:
                logger.warning(f"[TYPES] '{kind.value}' missing from store, adding default")
                types[kind] = default
        return types

    def _save(self):
        self._documents.set(VEHICLE_TYPES_KEY, [t.model_dump(mode="json") for t in self._types.values()])
        for listener in self._listeners:
            listener()

    def subscribe(self, listener: Callable[[], None]):
        """Call `listener` after every registry change."""
        self._listeners.append(listener)

    def all(self) -> list[VehicleType]:
        return list(self._types.values())

    def get(self, kind) -> VehicleType:
        kind = parse_kind(kind)
        vehicle_type = self._types.get(kind)
        if vehicle_type is None:
            raise NotFound(f"Vehicle type '{kind.value}' not found")
        return vehicle_type

    def enabled_ids(self) -> set:
        return {t.id for t in self._types.values() if t.enabled}

    def enabled(self) -> list[VehicleType]:
        return [t for t in self._types.values() if t.enabled]

    def step_for(self, kind) -> float:
        return self.get(kind).step

    def set_enabled(self, kind, enabled: bool) -> VehicleType:
        current = self.get(kind)
        updated = current.model_copy(update={"enabled": enabled})
        self._types[current.id] = updated
        self._save()
        logger.info(f"[TYPES] '{current.id.value}' {'enabled' if enabled else 'disabled'}")
        return updated

    def toggle(self, kind) -> VehicleType:
        return self.set_enabled(kind, not self.get(kind).enabled)

    def update(self, kind, changes: VehicleTypeUpdate) -> VehicleType:
        current = self.get(kind)
        fields = {k: v.strip() for k, v in changes.model_dump(exclude_none=True).items()}
        if not fields:
            return current
        blank = sorted(k for k, v in fields.items() if not v)
        if blank:
            raise ValidationError(f"Vehicle type fields cannot be blank: {', '.join(blank)}")
        updated = current.model_copy(update=fields)
        self._types[current.id] = updated
        self._save()
        logger.info(f"[TYPES] '{current.id.value}' updated: {sorted(fields)}")
        return updated

    def find(self, kind) -> Optional[VehicleType]:
        try:
            return self._types.get(VehicleKind(kind))
        except ValueError:
            return None
