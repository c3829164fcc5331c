# app/utils/ws_manager.py
"""
WebSocket connection manager for map clients.
Acts as a render surface: every refreshed snapshot is pushed to all
connected clients as {"type": "snapshot", ...}.
"""

import asyncio
from typing import List, Set

from fastapi import WebSocket, WebSocketDisconnect

from app.schemas.vehicle import VisibleVehicle
from app.utils.logger import get_logger

logger = get_logger(__name__)


class ConnectionManager:
    def __init__(self):
        self.active_connections: List[WebSocket] = []
        self._pending: Set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info(f"[WS] Map client connected ({len(self.active_connections)} total)")

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
            logger.info(f"[WS] Map client disconnected ({len(self.active_connections)} total)")

    async def broadcast(self, message: dict):
        disconnected = []
        for connection in self.active_connections[:]:  # copy, disconnect() mutates the list
            try:
                await connection.send_json(message)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.warning(f"[WS] Dropping client after send error: {e}")
                disconnected.append(connection)

        for connection in disconnected:
            self.disconnect(connection)

    def render_snapshot(self, vehicles: list[VisibleVehicle]):
        if not self.active_connections:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("[WS] No running event loop, snapshot not pushed")
            return
        message = {
            "type": "snapshot",
            "vehicles": [v.model_dump(mode="json") for v in vehicles],
        }
        task = loop.create_task(self.broadcast(message))
        self._pending.add(task)
        task.add_done_callback(self._broadcast_done)

    def _broadcast_done(self, task: asyncio.Task):
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"[WS] Snapshot broadcast failed: {task.exception()}")


map_manager = ConnectionManager()   # For /map/ws
