"""
WebSocket Manager - Handles real-time connections and broadcasts.

Connected editors are told when the document changed (and should re-fetch
GET /api/document) and when the autosave status moved. A client may follow
a single stored document; it then only hears about that document.
"""
import asyncio
import json
import logging
from typing import Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Tracks WebSocket clients and the document each one follows."""

    def __init__(self):
        # websocket -> followed document id (None follows every document)
        self._subscriptions: dict[WebSocket, Optional[str]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, document_id: Optional[str] = None):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._subscriptions[websocket] = document_id
        logger.info("WebSocket connected (following %s). Total connections: %d",
                    document_id or "all documents", len(self._subscriptions))

    async def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection."""
        async with self._lock:
            self._subscriptions.pop(websocket, None)
        logger.info("WebSocket disconnected. Total connections: %d", len(self._subscriptions))

    def _recipients(self, document_id: Optional[str]) -> list[WebSocket]:
        return [
            ws for ws, followed in self._subscriptions.items()
            if followed is None or followed == document_id
        ]

    async def broadcast(self, message: dict):
        """
        Send a message to every client following its `document_id`.

        Clients whose send fails are dropped.
        """
        async with self._lock:
            recipients = self._recipients(message.get("document_id"))
            if not recipients:
                return

            message_text = json.dumps(message)
            for websocket in recipients:
                try:
                    await websocket.send_text(message_text)
                except Exception as e:
                    logger.debug("Dropping WebSocket client: %s", e)
                    self._subscriptions.pop(websocket, None)

    async def notify_document_updated(self, document_id: Optional[str] = None):
        """Tell clients to re-fetch the document."""
        await self.broadcast({
            "type": "document_updated",
            "document_id": document_id
        })

    async def notify_sync_status(self, status: str, document_id: Optional[str] = None):
        """Tell clients the autosave badge changed."""
        await self.broadcast({
            "type": "sync_status",
            "status": status,
            "document_id": document_id
        })

    @property
    def connection_count(self) -> int:
        """Get the number of active connections."""
        return len(self._subscriptions)
