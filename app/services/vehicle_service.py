# app/services/vehicle_service.py
"""
Driver lookup and login helpers.
Used by the vehicles router.
"""

from typing import Optional

from app.schemas.vehicle import VehicleRecord
from app.services.vehicle_store import VehicleStore
from app.utils.logger import get_logger
from app.utils.password_hashing import verify_password

logger = get_logger(__name__)


def lookup_driver_by_email(store: VehicleStore, email: str) -> Optional[VehicleRecord]:
    """Find a registered driver by e-mail (case-insensitive). Returns None if not found."""
    return store.find_by_email(email)


def authenticate_driver(store: VehicleStore, email: str, password: str) -> Optional[VehicleRecord]:
    """Return the driver whose stored hash matches `password`, else None. Approval is not checked here."""
    vehicle = lookup_driver_by_email(store, email)
    if vehicle is None or not verify_password(password, vehicle.password_hash):
        logger.info(f"[AUTH] Failed login for {email.strip()}")
        return None
    return vehicle


def is_pending(vehicle: VehicleRecord) -> bool:
    return not vehicle.approved
