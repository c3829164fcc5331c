# app/services/vehicle_store.py
"""
Vehicle collection on top of the document store.
The whole fleet lives in one ordered `vehicles` document; the store order is
the iteration order used by the movement simulator.
"""

from typing import Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from app.exceptions import StorageError
from app.schemas.vehicle import VehicleRecord
from app.services.document_store import DocumentStore, VEHICLES_KEY
from app.utils.logger import get_logger

logger = get_logger(__name__)


class VehicleStore:
    def __init__(self, documents: DocumentStore):
        self._documents = documents

    def _load(self, strict: bool) -> list[VehicleRecord]:
        try:
            raw = self._documents.get(VEHICLES_KEY)
        except StorageError as e:
            if strict:
                raise
            logger.error(f"[STORE] {e.message}, treating fleet as empty")
            return []

        if raw is None:
            return []
        if not isinstance(raw, list):
            if strict:
                raise StorageError(f"Document '{VEHICLES_KEY}' is not a list")
            logger.error(f"[STORE] '{VEHICLES_KEY}' is not a list, treating fleet as empty")
            return []

        vehicles = []
        for item in raw:
            try:
                vehicles.append(VehicleRecord.model_validate(item))
            except PydanticValidationError as e:
                if strict:
                    raise StorageError(f"Corrupt vehicle record: {e.error_count()} errors") from e
                logger.warning(f"[STORE] Skipping corrupt vehicle record {item.get('id') if isinstance(item, dict) else item!r}")
        return vehicles

    def _save(self, vehicles: Iterable[VehicleRecord]):
        self._documents.set(VEHICLES_KEY, [v.model_dump(mode="json") for v in vehicles])

    def get_all(self) -> list[VehicleRecord]:
        """All readable vehicles in store order. Never raises on unreadable storage."""
        return self._load(strict=False)

    def get(self, vehicle_id: str) -> Optional[VehicleRecord]:
        return next((v for v in self.get_all() if v.id == vehicle_id), None)

    def find_by_email(self, email: str) -> Optional[VehicleRecord]:
        email = email.strip().lower()
        return next((v for v in self.get_all() if v.email.lower() == email), None)

    def upsert(self, vehicle: VehicleRecord) -> VehicleRecord:
        vehicles = self._load(strict=True)
        for i, existing in enumerate(vehicles):
            if existing.id == vehicle.id:
                vehicles[i] = vehicle
                break
        else:
            vehicles.append(vehicle)
        self._save(vehicles)
        return vehicle

    def delete(self, vehicle_id: str) -> bool:
        vehicles = self._load(strict=True)
        remaining = [v for v in vehicles if v.id != vehicle_id]
        if len(remaining) == len(vehicles):
            return False
        self._save(remaining)
        return True

    def replace_all(self, vehicles: list[VehicleRecord]):
        """Write the whole collection at once (one write per movement tick)."""
        ids = [v.id for v in vehicles]
        if len(ids) != len(set(ids)):
            raise StorageError("Duplicate vehicle ids in collection")
        self._save(vehicles)
