import asyncio
import logging
from typing import Callable

import websockets
from websockets.exceptions import WebSocketException

from app.core.exceptions import InvalidOrderError
from app.ledger.models import PushEvent
from app.ledger.parsing import parse_push_message

logger = logging.getLogger(__name__)


class PushListener:
    """
    Follows the store's WebSocket order feed.

    Every valid message is handed to `on_event`; a dropped connection is
    retried after a fixed delay until `stop()` is called.
    """

    def __init__(
        self,
        url: str,
        on_event: Callable[[PushEvent], None],
        reconnect_delay: float = 3.0,
        connect=websockets.connect,
    ):
        self.url = url
        self.on_event = on_event
        self.reconnect_delay = reconnect_delay
        self._connect = connect
        self._stopped = asyncio.Event()
        self.connected = False

    def handle_message(self, raw) -> bool:
        try:
            event = parse_push_message(raw)
        except InvalidOrderError as e:
            logger.error(f"Error parsing WebSocket message: {e}")
            return False
        self.on_event(event)
        return True

    async def _listen_once(self):
        async with self._connect(self.url) as ws:
            self.connected = True
            logger.info(f"WebSocket connected to {self.url}")
            try:
                async for message in ws:
                    if self._stopped.is_set():
                        break
                    self.handle_message(message)
            finally:
                self.connected = False

    async def run(self):
        while not self._stopped.is_set():
            try:
                await self._listen_once()
                logger.info("WebSocket disconnected")
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.warning(f"WebSocket error: {e!r}")

            if self._stopped.is_set():
                break
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.reconnect_delay)
            except asyncio.TimeoutError:
                logger.info(f"Reconnecting to {self.url}")

    def stop(self):
        self._stopped.set()
