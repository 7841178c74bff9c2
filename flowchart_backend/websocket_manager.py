"""
WebSocket Manager - renderer connections and event fan-out.

Renderers connected over /ws receive:
- {"type": "flowchart_updated"} after any editor mutation
- {"type": "edit_requested", "node_id": ..., "label": ...} when a node
  should be opened for label editing
"""
import asyncio
import json
import logging
from typing import Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Tracks open renderer sockets and broadcasts JSON events to them."""

    def __init__(self):
        self._connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        logger.info("Renderer connected (%d open)", self.connection_count)

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self._connections.discard(websocket)
        logger.info("Renderer disconnected (%d open)", self.connection_count)

    async def broadcast(self, event: dict):
        """Send one event to every renderer; sockets that fail are dropped."""
        if not self._connections:
            return

        payload = json.dumps(event)
        async with self._lock:
            dead = set()
            for websocket in self._connections:
                try:
                    await websocket.send_text(payload)
                except Exception as exc:
                    logger.warning("Dropping renderer after failed send: %s", exc)
                    dead.add(websocket)
            self._connections.difference_update(dead)

    async def notify_flowchart_updated(self):
        """Renderers re-fetch GET /api/flowchart on this event."""
        await self.broadcast({"type": "flowchart_updated"})

    async def notify_edit_requested(self, node_id: str, label: str):
        await self.broadcast({"type": "edit_requested", "node_id": node_id, "label": label})


# Global instance
ws_manager = WebSocketManager()
