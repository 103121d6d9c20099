import logging
from typing import List

from fastapi import WebSocket

from app.db.models import Order
from app.schemas.order import OrderResponse, PushMessage

logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(self):
        # Every dashboard gets every order event
        self.connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.connections.append(websocket)
        logger.info(f"WebSocket client connected ({len(self.connections)} open)")

    def disconnect(self, websocket: WebSocket):
        if websocket in self.connections:
            self.connections.remove(websocket)
            logger.info(f"WebSocket client disconnected ({len(self.connections)} open)")

    async def broadcast(self, message: dict):
        to_remove = []
        for connection in list(self.connections):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.warning(f"Dropping dead WebSocket connection: {e}")
                to_remove.append(connection)

        for dead_conn in to_remove:
            self.disconnect(dead_conn)

    async def broadcast_order(self, event_type: str, order: Order):
        message = PushMessage(type=event_type, order=OrderResponse.model_validate(order))
        await self.broadcast(message.model_dump(mode="json", by_alias=True))


manager = ConnectionManager()
