# app/services/presence_service.py
"""
Presence state machine: approval and online/offline transitions.

States (derived from the record's `approved` / `online` flags):
  PendingApproval ──approve──▶ ApprovedOffline ──go_online──▶ ApprovedOnline
        │                           ▲                              │
      reject                        └───go_offline / forced────────┘
        ▼
     removed

Approval-required types start in PendingApproval, every other type is
auto-approved at registration. Going online requires approval and a
location inside the geofence. Forced offline (geofence exit, device location
failure) is silent apart from the log and the recorded `offline_reason`.
"""

import random
import uuid
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Union

from app.exceptions import (
    InvalidTransition, LocationError, NotFound, OutsideGeofence, ValidationError,
)
from app.schemas.vehicle import (
    Location, LocationFix, RegistrationRequest, VehicleProfileUpdate, VehicleRecord,
)
from app.services.geofence import GeofenceValidator, IRAQ_CENTER
from app.services.notification_service import NotificationEvent, NotificationService
from app.services.vehicle_store import VehicleStore
from app.services.vehicle_type_registry import VehicleTypeRegistry, parse_kind
from app.utils.logger import get_logger
from app.utils.password_hashing import hash_password

logger = get_logger(__name__)

REQUIRED_FIELDS = ("name", "email", "phone", "license_number", "plate", "vehicle_type", "password")

OUTSIDE_GEOFENCE = "outside_geofence"

OPTIONAL_PROFILE_FIELDS = ("route_from", "route_to", "taxi_number", "governorate")

TEST_DRIVER_CITIES = (
    (33.3152, 44.3661),  # Baghdad
    (36.1911, 44.0094),  # Erbil
    (35.5492, 45.4394),  # Sulaymaniyah
    (30.5085, 47.7804),  # Basra
)


class PresenceState(str, Enum):
    pending_approval = "PendingApproval"
    approved_offline = "ApprovedOffline"
    approved_online = "ApprovedOnline"


def state_of(vehicle: VehicleRecord) -> PresenceState:
    if not vehicle.approved:
        return PresenceState.pending_approval
    if vehicle.online:
        return PresenceState.approved_online
    return PresenceState.approved_offline


class PresenceStateMachine:
    def __init__(
        self,
        store: VehicleStore,
        registry: VehicleTypeRegistry,
        geofence: GeofenceValidator,
        notifier: NotificationService,
        clock: Callable[[], datetime] = datetime.utcnow,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
        default_location=IRAQ_CENTER,
    ):
        self.store = store
        self.registry = registry
        self.geofence = geofence
        self.notifier = notifier
        self._clock = clock
        self._id_factory = id_factory
        self._default_location = default_location

    # ── helpers ───────────────────────────────────────────────────────────
    def _require(self, vehicle_id: str) -> VehicleRecord:
        vehicle = self.store.get(vehicle_id)
        if vehicle is None:
            raise NotFound(f"Vehicle '{vehicle_id}' not found")
        return vehicle

    def _location(self, fix: Union[LocationFix, Location]) -> Location:
        return Location(lat=fix.lat, lng=fix.lng, timestamp=fix.timestamp or self._clock())

    def _new_id(self) -> str:
        vehicle_id = self._id_factory()
        while self.store.get(vehicle_id) is not None:
            vehicle_id = self._id_factory()
        return vehicle_id

    async def _notify(self, event: NotificationEvent, vehicle: VehicleRecord) -> bool:
        try:
            result = await self.notifier.notify(event, vehicle)
        except Exception as e:
            logger.error(f"[PRESENCE] {event.value} notification for {vehicle.id} raised: {e}", exc_info=True)
            return False
        if not result.success:
            logger.error(f"[PRESENCE] {event.value} notification for {vehicle.id} failed: {result.error}")
        return result.success

    def validate_registration(self, request: RegistrationRequest):
        missing = [f for f in REQUIRED_FIELDS if not (getattr(request, f) or "").strip()]
        if missing:
            raise ValidationError(f"Please fill all required fields: {', '.join(missing)}")

        vehicle_type = self.registry.get(parse_kind(request.vehicle_type.strip()))
        if not vehicle_type.enabled:
            raise ValidationError(f"Vehicle type '{vehicle_type.name}' is not open for registration")

        if vehicle_type.requires_route and not ((request.route_from or "").strip() and (request.route_to or "").strip()):
            raise ValidationError(f"{vehicle_type.name} drivers must specify routes")

        if self.store.find_by_email(request.email) is not None:
            raise ValidationError(f"Email {request.email.strip()} is already registered")

        if request.location and not self.geofence.contains(request.location.lat, request.location.lng):
            raise OutsideGeofence(request.location.lat, request.location.lng,
                                  "Registration only available within the service area")
        return vehicle_type

    # ── transitions ───────────────────────────────────────────────────────
    async def register(self, request: RegistrationRequest) -> VehicleRecord:
        vehicle_type = self.validate_registration(request)
        now = self._clock()

        def clean(value):
            value = (value or "").strip()
            return value or None

        vehicle = VehicleRecord(
            id=self._new_id(),
            name=request.name.strip(),
            email=request.email.strip(),
            phone=request.phone.strip(),
            license_number=request.license_number.strip(),
            plate=request.plate.strip(),
            vehicle_type=vehicle_type.id,
            route_from=clean(request.route_from),
            route_to=clean(request.route_to),
            taxi_number=clean(request.taxi_number),
            governorate=clean(request.governorate),
            password_hash=hash_password(request.password),
            location=self._location(request.location) if request.location else None,
            approved=not vehicle_type.requires_approval,
            online=False,
            registered_at=now,
            last_seen=now,
        )
        self.store.upsert(vehicle)
        logger.info(f"[PRESENCE] Registered {vehicle.id} ({vehicle.vehicle_type.value}) → {state_of(vehicle).value}")

        await self._notify(NotificationEvent.registered, vehicle)
        await self._notify(NotificationEvent.admin_alert, vehicle)
        return vehicle

    async def approve(self, vehicle_id: str) -> VehicleRecord:
        vehicle = self._require(vehicle_id)
        if state_of(vehicle) != PresenceState.pending_approval:
            raise InvalidTransition(f"Vehicle '{vehicle_id}' is already approved")

        vehicle.approved = True
        vehicle.last_seen = self._clock()
        if vehicle.location is None and self._default_location is not None:
            lat, lng = self._default_location
            if self.geofence.contains(lat, lng):
                vehicle.location = Location(lat=lat, lng=lng, timestamp=vehicle.last_seen)
        self.store.upsert(vehicle)
        logger.info(f"[PRESENCE] Approved {vehicle_id}")

        await self._notify(NotificationEvent.approved, vehicle)
        return vehicle

    def reject(self, vehicle_id: str):
        vehicle = self._require(vehicle_id)
        if state_of(vehicle) != PresenceState.pending_approval:
            raise InvalidTransition(f"Vehicle '{vehicle_id}' is not pending approval")
        self.store.delete(vehicle_id)
        logger.info(f"[PRESENCE] Rejected and removed {vehicle_id}")

    def remove(self, vehicle_id: str):
        if not self.store.delete(vehicle_id):
            raise NotFound(f"Vehicle '{vehicle_id}' not found")
        logger.info(f"[PRESENCE] Removed {vehicle_id}")

    def go_online(self, vehicle_id: str, fix: Union[LocationFix, Location]) -> VehicleRecord:
        vehicle = self._require(vehicle_id)
        state = state_of(vehicle)
        if state == PresenceState.pending_approval:
            raise InvalidTransition("Registration is pending admin approval, cannot go online yet")
        if state == PresenceState.approved_online:
            raise InvalidTransition(f"Vehicle '{vehicle_id}' is already online")

        if not self.geofence.contains(fix.lat, fix.lng):
            logger.info(f"[PRESENCE] {vehicle_id} go-online refused at {fix.lat:.4f},{fix.lng:.4f}")
            raise OutsideGeofence(fix.lat, fix.lng, "Must be inside the service area to go online")

        vehicle.location = self._location(fix)
        vehicle.last_seen = self._clock()
        vehicle.online = True
        vehicle.offline_reason = None
        self.store.upsert(vehicle)
        logger.info(f"[PRESENCE] {vehicle_id} is online at {fix.lat:.4f},{fix.lng:.4f}")
        return vehicle

    def go_offline(self, vehicle_id: str) -> VehicleRecord:
        vehicle = self._require(vehicle_id)
        if not vehicle.online:
            return vehicle
        vehicle.online = False
        vehicle.last_seen = self._clock()
        vehicle.offline_reason = None
        self.store.upsert(vehicle)
        logger.info(f"[PRESENCE] {vehicle_id} went offline")
        return vehicle

    def force_offline(self, vehicle_id: str, cause: str) -> Optional[VehicleRecord]:
        vehicle = self.store.get(vehicle_id)
        if vehicle is None or not vehicle.online:
            return vehicle
        vehicle.online = False
        vehicle.last_seen = self._clock()
        vehicle.offline_reason = cause
        self.store.upsert(vehicle)
        logger.warning(f"[PRESENCE] {vehicle_id} forced offline: {cause}")
        return vehicle

    def apply_location_update(self, vehicle_id: str, fix: Union[LocationFix, Location]) -> VehicleRecord:
        """Commit a device fix. An online vehicle leaving the geofence is taken offline."""
        vehicle = self._require(vehicle_id)
        if not self.geofence.contains(fix.lat, fix.lng):
            if vehicle.online:
                return self.force_offline(vehicle_id, OUTSIDE_GEOFENCE)
            raise OutsideGeofence(fix.lat, fix.lng, "Must be inside the service area")

        vehicle.location = self._location(fix)
        vehicle.last_seen = self._clock()
        self.store.upsert(vehicle)
        return vehicle

    def handle_location_error(self, vehicle_id: str, error: LocationError) -> VehicleRecord:
        vehicle = self._require(vehicle_id)
        if vehicle.online:
            return self.force_offline(vehicle_id, error.cause)
        logger.info(f"[PRESENCE] {vehicle_id} location error while offline: {error.cause}")
        return vehicle

    # ── admin ─────────────────────────────────────────────────────────────
    def update_profile(self, vehicle_id: str, changes: VehicleProfileUpdate) -> VehicleRecord:
        """
        Admin edit of driver details. The edited record must still pass the
        registration rules; approval and online state are left alone.
        """
        vehicle = self._require(vehicle_id)
        fields = changes.model_dump(exclude_unset=True)
        if not fields:
            return vehicle

        blank = [f for f in REQUIRED_FIELDS if f in fields and not (fields[f] or "").strip()]
        if blank:
            raise ValidationError(f"Please fill all required fields: {', '.join(blank)}")

        updates = {}
        for field in ("name", "email", "phone", "license_number", "plate"):
            if field in fields:
                updates[field] = fields[field].strip()
        for field in OPTIONAL_PROFILE_FIELDS:
            if field in fields:
                updates[field] = (fields[field] or "").strip() or None

        vehicle_type = self.registry.get(vehicle.vehicle_type)
        if "vehicle_type" in fields:
            vehicle_type = self.registry.get(parse_kind(fields["vehicle_type"].strip()))
            if vehicle_type.id != vehicle.vehicle_type and not vehicle_type.enabled:
                raise ValidationError(f"Vehicle type '{vehicle_type.name}' is not enabled")
            updates["vehicle_type"] = vehicle_type.id

        route_from = updates.get("route_from", vehicle.route_from)
        route_to = updates.get("route_to", vehicle.route_to)
        if vehicle_type.requires_route and not (route_from and route_to):
            raise ValidationError(f"{vehicle_type.name} drivers must specify routes")

        if "email" in updates:
            owner = self.store.find_by_email(updates["email"])
            if owner is not None and owner.id != vehicle_id:
                raise ValidationError(f"Email {updates['email']} is already registered")

        if "password" in fields:
            updates["password_hash"] = hash_password(fields["password"])

        updated = vehicle.model_copy(update=updates)
        self.store.upsert(updated)
        logger.info(f"[PRESENCE] Profile of {vehicle_id} updated: {sorted(fields)}")
        return updated

    def _test_driver_fix(self, rng: random.Random) -> LocationFix:
        lat, lng = rng.choice(TEST_DRIVER_CITIES)
        jittered = (lat + (rng.random() - 0.5) * 0.05, lng + (rng.random() - 0.5) * 0.05)
        if self.geofence.contains(*jittered):
            lat, lng = jittered
        return LocationFix(lat=lat, lng=lng)

    def enable_test_drivers(self, limit: int = 5, rng: Optional[random.Random] = None) -> list[VehicleRecord]:
        """Bring up to `limit` approved offline vehicles online so the map has something to move."""
        rng = rng or random.Random()
        enabled = []
        for vehicle in self.store.get_all():
            if len(enabled) >= limit:
                break
            if state_of(vehicle) != PresenceState.approved_offline:
                continue
            loc = vehicle.location
            if loc is not None and self.geofence.contains(loc.lat, loc.lng):
                fix = LocationFix(lat=loc.lat, lng=loc.lng)
            else:
                fix = self._test_driver_fix(rng)
            try:
                enabled.append(self.go_online(vehicle.id, fix))
            except OutsideGeofence:
                logger.warning(f"[PRESENCE] No position inside the service area for test driver {vehicle.id}")
        logger.info(f"[PRESENCE] Enabled {len(enabled)} test drivers")
        return enabled
