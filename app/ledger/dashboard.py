import asyncio
import logging
from typing import List, Optional

from pydantic import BaseModel

from app.core.config import Settings, settings as default_settings
from app.core.exceptions import (
    CompletionInProgressError,
    InvalidOrderError,
    OrderNotFoundError,
    StoreError,
)
from app.core.store_client import OrderStoreClient
from app.ledger.boundary import BoundaryStore
from app.ledger.ledger import OrderLedger
from app.ledger.models import LedgerState, Order, PushEvent
from app.ledger.push import PushListener

logger = logging.getLogger(__name__)


class Notification(BaseModel):
    title: str
    message: str
    level: str = "info"


class Notifier:
    """Collects the toasts the dashboard would show and logs each one."""

    def __init__(self, limit: int = 50):
        self.limit = limit
        self.notifications: List[Notification] = []

    def notify(self, title: str, message: str, level: str = "info"):
        self.notifications.append(Notification(title=title, message=message, level=level))
        del self.notifications[:-self.limit]
        log_level = logging.WARNING if level == "error" else logging.INFO
        logger.log(log_level, f"{title}: {message}")


class Dashboard:
    def __init__(
        self,
        config: Settings = None,
        store: Optional[OrderStoreClient] = None,
        ledger: Optional[OrderLedger] = None,
        notifier: Optional[Notifier] = None,
        listener: Optional[PushListener] = None,
    ):
        self.config = config or default_settings
        self.store = store or OrderStoreClient(
            base_url=self.config.ORDER_STORE_BASE_URL,
            timeout=self.config.REQUEST_TIMEOUT_SECONDS,
        )
        self.notifier = notifier or Notifier()
        self.ledger = ledger or OrderLedger(
            store=self.store,
            boundary_store=BoundaryStore(self.config.LEDGER_STATE_FILE),
            restaurant_id=self.config.RESTAURANT_ID,
            highlight_seconds=self.config.HIGHLIGHT_SECONDS,
            request_timeout=self.config.REQUEST_TIMEOUT_SECONDS,
        )
        self.ledger.on_new_order = self._announce_new_order
        self.listener = listener or PushListener(
            self.config.push_url,
            on_event=self.handle_push_event,
            reconnect_delay=self.config.PUSH_RECONNECT_DELAY_SECONDS,
        )
        self._stopped = asyncio.Event()

    def _announce_new_order(self, order: Order):
        table = f" from table {order.table_number}" if order.table_number else ""
        self.notifier.notify("New Order", f"Order #{order.id}{table} ({order.display_name})")

    def handle_push_event(self, event: PushEvent):
        self.ledger.apply_push_event(event)

    async def poll_once(self) -> bool:
        try:
            orders = await self.store.list_orders(self.config.RESTAURANT_ID, since=self.ledger.boundary.reset_at)
            self.ledger.reconcile_snapshot(orders)
        except StoreError as e:
            logger.warning(f"Order poll failed: {e}")
            self.notifier.notify("Connection problem", "Could not refresh orders; retrying shortly.", "error")
            return False
        return True

    async def complete_order(self, order_id) -> Optional[Order]:
        try:
            order = await self.ledger.mark_completed(order_id)
        except OrderNotFoundError:
            self.notifier.notify("Error", f"Order #{order_id} no longer exists.", "error")
        except CompletionInProgressError:
            self.notifier.notify("Please wait", f"Order #{order_id} is already being completed.")
        except InvalidOrderError as e:
            self.notifier.notify("Error", f"Order #{order_id} could not be completed: {e}", "error")
        except StoreError:
            self.notifier.notify("Error", "Failed to complete order.", "error")
        else:
            self.notifier.notify("Order Completed", f"Order #{order.id} marked as completed.")
            return order
        return None

    def reset(self):
        try:
            self.ledger.reset()
        except OSError as e:
            logger.error(f"Could not persist reset boundary: {e}")
            self.notifier.notify("Error", "Reset applied but could not be saved.", "error")
            return
        self.notifier.notify("Reset Done", "Counters restarted from zero.")

    def state(self) -> LedgerState:
        return self.ledger.state()

    async def _poll_forever(self):
        while not self._stopped.is_set():
            await self.poll_once()
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.config.POLL_INTERVAL_SECONDS)
            except asyncio.TimeoutError:
                pass

    async def run(self):
        logger.info(f"Dashboard following {self.config.RESTAURANT_ID} at {self.store.base_url}")
        listener_task = asyncio.create_task(self.listener.run())
        try:
            await self._poll_forever()
        finally:
            self.listener.stop()
            listener_task.cancel()
            try:
                await listener_task
            except asyncio.CancelledError:
                pass
            await self.store.close()

    def stop(self):
        self._stopped.set()
