# tests/test_snapshot_service.py
"""Unit tests for map snapshots and the WebSocket render surface."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import pytest
from unittest.mock import MagicMock, AsyncMock
from datetime import datetime
from app.schemas.vehicle import Location, VehicleRecord
from app.schemas.vehicle_type import VehicleKind
from app.services.document_store import MemoryDocumentStore
from app.services.filter_engine import FilterEngine
from app.services.snapshot_service import SnapshotService, to_visible
from app.services.vehicle_store import VehicleStore
from app.services.vehicle_type_registry import VehicleTypeRegistry
from app.utils.ws_manager import ConnectionManager


def make_vehicle(vehicle_id, kind, online=True, **overrides):
    now = datetime.utcnow()
    fields = dict(
        id=vehicle_id, name="Driver", email=f"{vehicle_id}@example.com", phone="0790",
        license_number="L", plate="P", vehicle_type=kind, password_hash="x",
        location=Location(lat=33.3, lng=44.4, timestamp=now),
        approved=True, online=online, registered_at=now, last_seen=now,
    )
    fields.update(overrides)
    return VehicleRecord(**fields)


def make_service(vehicles):
    documents = MemoryDocumentStore()
    registry = VehicleTypeRegistry(documents)
    store = VehicleStore(documents)
    store.replace_all(vehicles)
    return SnapshotService(store, registry, FilterEngine(registry)), store, registry


class TestVisibleVehicle:
    def test_bus_gets_route_label(self):
        _, _, registry = make_service([])
        bus = make_vehicle("b", VehicleKind.bus, route_from="Tahrir Square", route_to="Baghdad Airport")
        visible = to_visible(bus, registry)
        assert visible.route_label == "Tahrir Square → Baghdad Airport"
        assert visible.icon == "🚌"
        assert visible.color == "#F44336"

    def test_van_has_no_route_label(self):
        _, _, registry = make_service([])
        van = make_vehicle("v", VehicleKind.van, route_from="A", route_to="B")
        assert to_visible(van, registry).route_label is None

    def test_minibus_without_both_ends_has_no_label(self):
        _, _, registry = make_service([])
        minibus = make_vehicle("m", VehicleKind.minibus, route_from="A")
        assert to_visible(minibus, registry).route_label is None


class TestRefresh:
    def test_refresh_reads_store_each_time(self):
        service, store, _ = make_service([make_vehicle("v1", VehicleKind.van)])
        assert [v.id for v in service.refresh()] == ["v1"]
        store.upsert(make_vehicle("v2", VehicleKind.van))
        assert [v.id for v in service.refresh()] == ["v1", "v2"]
        assert [v.id for v in service.latest] == ["v1", "v2"]
        assert service.refreshed_at is not None

    def test_offline_vehicles_not_in_snapshot(self):
        service, _, _ = make_service([make_vehicle("v1", VehicleKind.van, online=False)])
        assert service.refresh() == []

    def test_surfaces_receive_snapshot(self):
        service, _, _ = make_service([make_vehicle("v1", VehicleKind.van)])
        surface = MagicMock()
        service.add_surface(surface)
        snapshot = service.refresh()
        surface.render_snapshot.assert_called_once_with(snapshot)

    def test_failing_surface_does_not_stop_others(self):
        service, _, _ = make_service([make_vehicle("v1", VehicleKind.van)])
        broken = MagicMock()
        broken.render_snapshot.side_effect = RuntimeError("canvas gone")
        healthy = MagicMock()
        service.add_surface(broken)
        service.add_surface(healthy)
        service.refresh()
        healthy.render_snapshot.assert_called_once()


class TestConnectionManager:
    @pytest.mark.asyncio
    async def test_render_snapshot_broadcasts(self):
        manager = ConnectionManager()
        websocket = MagicMock()
        websocket.accept = AsyncMock()
        websocket.send_json = AsyncMock()
        await manager.connect(websocket)

        service, _, _ = make_service([make_vehicle("v1", VehicleKind.van)])
        service.add_surface(manager)
        service.refresh()
        await asyncio.sleep(0)

        message = websocket.send_json.call_args.args[0]
        assert message["type"] == "snapshot"
        assert message["vehicles"][0]["id"] == "v1"

    @pytest.mark.asyncio
    async def test_dead_client_is_dropped(self):
        manager = ConnectionManager()
        websocket = MagicMock()
        websocket.accept = AsyncMock()
        websocket.send_json = AsyncMock(side_effect=RuntimeError("closed"))
        await manager.connect(websocket)
        await manager.broadcast({"type": "snapshot", "vehicles": []})
        assert manager.active_connections == []

    @pytest.mark.asyncio
    async def test_broadcast_task_held_until_done(self):
        manager = ConnectionManager()
        websocket = MagicMock()
        websocket.accept = AsyncMock()
        websocket.send_json = AsyncMock(side_effect=ValueError("bad payload"))
        await manager.connect(websocket)

        manager.render_snapshot([])
        assert len(manager._pending) == 1
        for _ in range(3):
            await asyncio.sleep(0)
        assert manager._pending == set()
        websocket.send_json.assert_awaited_once()

    def test_no_clients_no_work(self):
        ConnectionManager().render_snapshot([])
