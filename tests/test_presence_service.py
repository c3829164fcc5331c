# tests/test_presence_service.py
"""Unit tests for the presence state machine (registration, approval, online/offline)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import random
import pytest
from unittest.mock import MagicMock, AsyncMock
from datetime import datetime
from app.exceptions import (
    InvalidTransition, LocationTimeout, NotFound, OutsideGeofence, PermissionDenied, ValidationError,
)
from app.schemas.vehicle import LocationFix, RegistrationRequest, VehicleProfileUpdate
from app.services.document_store import MemoryDocumentStore
from app.services.geofence import GeofenceValidator
from app.services.notification_service import NotificationEvent, NotificationResult
from app.services.presence_service import (
    OUTSIDE_GEOFENCE, PresenceState, PresenceStateMachine, state_of,
)
from app.services.vehicle_store import VehicleStore
from app.services.vehicle_type_registry import VehicleTypeRegistry
from app.utils.password_hashing import verify_password

BAGHDAD = LocationFix(lat=33.3152, lng=44.3661)
NOWHERE = LocationFix(lat=10.0, lng=10.0)


def make_machine(notify_result=None):
    documents = MemoryDocumentStore()
    registry = VehicleTypeRegistry(documents)
    store = VehicleStore(documents)
    notifier = MagicMock()
    notifier.notify = AsyncMock(return_value=notify_result or NotificationResult(success=True))
    machine = PresenceStateMachine(store, registry, GeofenceValidator(), notifier)
    return machine, store, notifier


def make_request(**overrides):
    fields = dict(
        name="Ali Hassan", email="ali@example.com", phone="07901234567",
        license_number="BG001234", plate="بغداد 1234", vehicle_type="van",
        password="secret", location=BAGHDAD,
    )
    fields.update(overrides)
    return RegistrationRequest(**fields)


async def make_online(machine, vehicle_type="van", email="ali@example.com"):
    vehicle = await machine.register(make_request(vehicle_type=vehicle_type, email=email))
    if not vehicle.approved:
        await machine.approve(vehicle.id)
    return machine.go_online(vehicle.id, BAGHDAD)


class TestRegistration:
    @pytest.mark.asyncio
    async def test_van_is_approved_and_offline(self):
        machine, store, _ = make_machine()
        vehicle = await machine.register(make_request(vehicle_type="van"))
        assert vehicle.approved is True
        assert vehicle.online is False
        assert state_of(vehicle) == PresenceState.approved_offline
        assert store.get(vehicle.id) == vehicle

    @pytest.mark.asyncio
    async def test_taxi_is_pending(self):
        machine, _, _ = make_machine()
        vehicle = await machine.register(make_request(vehicle_type="taxi"))
        assert vehicle.approved is False
        assert state_of(vehicle) == PresenceState.pending_approval

    @pytest.mark.asyncio
    async def test_password_is_hashed(self):
        machine, _, _ = make_machine()
        vehicle = await machine.register(make_request())
        assert vehicle.password_hash != "secret"
        assert verify_password("secret", vehicle.password_hash)

    @pytest.mark.asyncio
    async def test_missing_field_rejected_before_mutation(self):
        machine, store, notifier = make_machine()
        with pytest.raises(ValidationError):
            await machine.register(make_request(plate="  "))
        assert store.get_all() == []
        notifier.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_type_rejected(self):
        machine, store, _ = make_machine()
        with pytest.raises(ValidationError):
            await machine.register(make_request(vehicle_type="rickshaw"))
        assert store.get_all() == []

    @pytest.mark.asyncio
    async def test_disabled_type_rejected(self):
        machine, _, _ = make_machine()
        machine.registry.set_enabled("van", False)
        with pytest.raises(ValidationError):
            await machine.register(make_request(vehicle_type="van"))

    @pytest.mark.asyncio
    async def test_bus_needs_routes(self):
        machine, _, _ = make_machine()
        with pytest.raises(ValidationError):
            await machine.register(make_request(vehicle_type="bus", route_from="Tahrir Square"))
        vehicle = await machine.register(make_request(
            vehicle_type="bus", route_from="Tahrir Square", route_to="Baghdad Airport"))
        assert vehicle.route_to == "Baghdad Airport"

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self):
        machine, _, _ = make_machine()
        await machine.register(make_request())
        with pytest.raises(ValidationError):
            await machine.register(make_request(email="ALI@example.com"))

    @pytest.mark.asyncio
    async def test_location_outside_geofence_rejected(self):
        machine, store, _ = make_machine()
        with pytest.raises(OutsideGeofence):
            await machine.register(make_request(location=NOWHERE))
        assert store.get_all() == []

    @pytest.mark.asyncio
    async def test_driver_and_admin_notified(self):
        machine, _, notifier = make_machine()
        await machine.register(make_request())
        events = [c.args[0] for c in notifier.notify.call_args_list]
        assert events == [NotificationEvent.registered, NotificationEvent.admin_alert]

    @pytest.mark.asyncio
    async def test_failed_notification_does_not_block(self):
        machine, store, notifier = make_machine(NotificationResult(success=False, error="smtp down"))
        vehicle = await machine.register(make_request())
        assert store.get(vehicle.id) is not None

    @pytest.mark.asyncio
    async def test_raising_notifier_does_not_block(self):
        machine, store, notifier = make_machine()
        notifier.notify.side_effect = RuntimeError("boom")
        vehicle = await machine.register(make_request())
        assert store.get(vehicle.id) is not None


class TestApproval:
    @pytest.mark.asyncio
    async def test_approve_pending(self):
        machine, _, notifier = make_machine()
        vehicle = await machine.register(make_request(vehicle_type="taxi"))
        approved = await machine.approve(vehicle.id)
        assert state_of(approved) == PresenceState.approved_offline
        assert notifier.notify.call_args_list[-1].args[0] == NotificationEvent.approved

    @pytest.mark.asyncio
    async def test_approve_assigns_default_location(self):
        machine, _, _ = make_machine()
        vehicle = await machine.register(make_request(vehicle_type="taxi", location=None))
        approved = await machine.approve(vehicle.id)
        assert (approved.location.lat, approved.location.lng) == (33.3152, 44.3661)

    @pytest.mark.asyncio
    async def test_approve_twice_is_invalid(self):
        machine, _, _ = make_machine()
        vehicle = await machine.register(make_request(vehicle_type="van"))
        with pytest.raises(InvalidTransition):
            await machine.approve(vehicle.id)

    @pytest.mark.asyncio
    async def test_reject_removes(self):
        machine, store, _ = make_machine()
        vehicle = await machine.register(make_request(vehicle_type="taxi"))
        machine.reject(vehicle.id)
        assert store.get(vehicle.id) is None

    @pytest.mark.asyncio
    async def test_reject_approved_is_invalid(self):
        machine, _, _ = make_machine()
        vehicle = await machine.register(make_request(vehicle_type="van"))
        with pytest.raises(InvalidTransition):
            machine.reject(vehicle.id)

    def test_unknown_id(self):
        machine, _, _ = make_machine()
        with pytest.raises(NotFound):
            machine.remove("ghost")
        with pytest.raises(NotFound):
            machine.go_offline("ghost")


class TestOnlineOffline:
    @pytest.mark.asyncio
    async def test_go_online_inside(self):
        machine, _, _ = make_machine()
        vehicle = await make_online(machine)
        assert state_of(vehicle) == PresenceState.approved_online
        assert vehicle.location.lat == BAGHDAD.lat

    @pytest.mark.asyncio
    async def test_go_online_outside_leaves_vehicle_untouched(self):
        machine, store, _ = make_machine()
        vehicle = await machine.register(make_request(vehicle_type="van"))
        before = store.get(vehicle.id).location
        with pytest.raises(OutsideGeofence):
            machine.go_online(vehicle.id, NOWHERE)
        after = store.get(vehicle.id)
        assert after.online is False
        assert after.location == before

    @pytest.mark.asyncio
    async def test_pending_cannot_go_online(self):
        machine, store, _ = make_machine()
        vehicle = await machine.register(make_request(vehicle_type="taxi"))
        with pytest.raises(InvalidTransition):
            machine.go_online(vehicle.id, BAGHDAD)
        assert store.get(vehicle.id).online is False

    @pytest.mark.asyncio
    async def test_already_online_is_invalid(self):
        machine, _, _ = make_machine()
        vehicle = await make_online(machine)
        with pytest.raises(InvalidTransition):
            machine.go_online(vehicle.id, BAGHDAD)

    @pytest.mark.asyncio
    async def test_go_offline_is_idempotent(self):
        machine, _, _ = make_machine()
        vehicle = await make_online(machine)
        assert machine.go_offline(vehicle.id).online is False
        assert machine.go_offline(vehicle.id).online is False


class TestLocationUpdates:
    @pytest.mark.asyncio
    async def test_inside_update_commits(self):
        machine, _, _ = make_machine()
        vehicle = await make_online(machine)
        updated = machine.apply_location_update(vehicle.id, LocationFix(lat=33.34, lng=44.40))
        assert updated.online is True
        assert (updated.location.lat, updated.location.lng) == (33.34, 44.40)

    @pytest.mark.asyncio
    async def test_leaving_geofence_forces_offline(self):
        machine, _, _ = make_machine()
        vehicle = await make_online(machine)
        updated = machine.apply_location_update(vehicle.id, NOWHERE)
        assert updated.online is False
        assert updated.offline_reason == OUTSIDE_GEOFENCE
        assert updated.location.lat == BAGHDAD.lat

    @pytest.mark.asyncio
    async def test_outside_update_while_offline_rejected(self):
        machine, _, _ = make_machine()
        vehicle = await machine.register(make_request())
        with pytest.raises(OutsideGeofence):
            machine.apply_location_update(vehicle.id, NOWHERE)

    @pytest.mark.asyncio
    async def test_location_error_forces_offline_with_cause(self):
        machine, _, _ = make_machine()
        vehicle = await make_online(machine)
        updated = machine.handle_location_error(vehicle.id, PermissionDenied("denied"))
        assert updated.online is False
        assert updated.offline_reason == "permission_denied"

    @pytest.mark.asyncio
    async def test_location_error_while_offline_is_ignored(self):
        machine, _, _ = make_machine()
        vehicle = await machine.register(make_request())
        updated = machine.handle_location_error(vehicle.id, LocationTimeout("slow"))
        assert updated.online is False
        assert updated.offline_reason is None

    @pytest.mark.asyncio
    async def test_going_online_again_clears_reason(self):
        machine, _, _ = make_machine()
        vehicle = await make_online(machine)
        machine.apply_location_update(vehicle.id, NOWHERE)
        back = machine.go_online(vehicle.id, BAGHDAD)
        assert back.offline_reason is None


class TestProfileEdits:
    @pytest.mark.asyncio
    async def test_edit_details_keeps_approval_and_presence(self):
        machine, store, _ = make_machine()
        online = await make_online(machine)
        updated = machine.update_profile(online.id, VehicleProfileUpdate(name=" Ali H. ", plate="بغداد 9999"))
        assert updated.name == "Ali H."
        assert updated.plate == "بغداد 9999"
        assert updated.approved and updated.online
        assert store.get(online.id).name == "Ali H."

    @pytest.mark.asyncio
    async def test_blank_required_field_rejected(self):
        machine, store, _ = make_machine()
        vehicle = await machine.register(make_request())
        with pytest.raises(ValidationError):
            machine.update_profile(vehicle.id, VehicleProfileUpdate(phone="  "))
        assert store.get(vehicle.id).phone == "07901234567"

    @pytest.mark.asyncio
    async def test_switch_to_bus_needs_routes(self):
        machine, _, _ = make_machine()
        vehicle = await machine.register(make_request())
        with pytest.raises(ValidationError):
            machine.update_profile(vehicle.id, VehicleProfileUpdate(vehicle_type="bus"))
        bus = machine.update_profile(vehicle.id, VehicleProfileUpdate(
            vehicle_type="bus", route_from="Bab Al-Sharqi", route_to="Kadhimiya"))
        assert bus.vehicle_type.value == "bus"

    @pytest.mark.asyncio
    async def test_clearing_bus_route_rejected(self):
        machine, _, _ = make_machine()
        bus = await machine.register(make_request(vehicle_type="bus", route_from="A", route_to="B"))
        with pytest.raises(ValidationError):
            machine.update_profile(bus.id, VehicleProfileUpdate(route_to=None))

    @pytest.mark.asyncio
    async def test_switch_to_disabled_or_unknown_type_rejected(self):
        machine, _, _ = make_machine()
        vehicle = await machine.register(make_request())
        machine.registry.set_enabled("minibus", False)
        with pytest.raises(ValidationError):
            machine.update_profile(vehicle.id, VehicleProfileUpdate(vehicle_type="minibus"))
        with pytest.raises(ValidationError):
            machine.update_profile(vehicle.id, VehicleProfileUpdate(vehicle_type="rickshaw"))

    @pytest.mark.asyncio
    async def test_email_must_stay_unique(self):
        machine, _, _ = make_machine()
        await machine.register(make_request(email="first@example.com"))
        second = await machine.register(make_request(email="second@example.com"))
        with pytest.raises(ValidationError):
            machine.update_profile(second.id, VehicleProfileUpdate(email="FIRST@example.com"))
        same = machine.update_profile(second.id, VehicleProfileUpdate(email="second@example.com"))
        assert same.email == "second@example.com"

    @pytest.mark.asyncio
    async def test_password_change_rehashes(self):
        machine, _, _ = make_machine()
        vehicle = await machine.register(make_request())
        updated = machine.update_profile(vehicle.id, VehicleProfileUpdate(password="n3w-pass"))
        assert verify_password("n3w-pass", updated.password_hash)

    def test_unknown_vehicle(self):
        machine, _, _ = make_machine()
        with pytest.raises(NotFound):
            machine.update_profile("ghost", VehicleProfileUpdate(name="X"))


class TestTestDrivers:
    @pytest.mark.asyncio
    async def test_brings_at_most_limit_online(self):
        machine, store, _ = make_machine()
        for i in range(7):
            await machine.register(make_request(email=f"d{i}@example.com"))
        enabled = machine.enable_test_drivers(limit=5, rng=random.Random(3))
        assert len(enabled) == 5
        assert sum(v.online for v in store.get_all()) == 5

    @pytest.mark.asyncio
    async def test_pending_and_online_vehicles_skipped(self):
        machine, store, _ = make_machine()
        pending = await machine.register(make_request(vehicle_type="taxi", email="t@example.com"))
        online = await make_online(machine, email="o@example.com")
        assert machine.enable_test_drivers(rng=random.Random(3)) == []
        assert store.get(pending.id).online is False
        assert store.get(online.id).online is True

    @pytest.mark.asyncio
    async def test_vehicle_without_location_placed_inside(self):
        machine, store, _ = make_machine()
        vehicle = await machine.register(make_request(location=None))
        [enabled] = machine.enable_test_drivers(rng=random.Random(3))
        assert enabled.id == vehicle.id
        assert machine.geofence.contains(enabled.location.lat, enabled.location.lng)


class TestInvariant:
    @pytest.mark.asyncio
    async def test_online_never_without_approval(self):
        machine, store, _ = make_machine()
        taxi = await machine.register(make_request(vehicle_type="taxi", email="t@example.com"))
        van = await machine.register(make_request(vehicle_type="van", email="v@example.com"))
        for vid, fix in [(taxi.id, BAGHDAD), (van.id, BAGHDAD), (van.id, NOWHERE)]:
            try:
                machine.go_online(vid, fix)
            except (InvalidTransition, OutsideGeofence):
                pass
        for vehicle in store.get_all():
            assert not (vehicle.online and not vehicle.approved)
            if vehicle.online:
                assert machine.geofence.contains(vehicle.location.lat, vehicle.location.lng)

    def test_uses_injected_clock(self):
        fixed = datetime(2024, 1, 1, 12, 0, 0)
        documents = MemoryDocumentStore()
        machine = PresenceStateMachine(VehicleStore(documents), VehicleTypeRegistry(documents),
                                       GeofenceValidator(), MagicMock(), clock=lambda: fixed)
        assert machine._location(BAGHDAD).timestamp == fixed
