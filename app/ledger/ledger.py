import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel

from app.core.exceptions import CompletionInProgressError, OrderNotFoundError, StoreUnavailableError
from app.db.models import OrderStatus
from app.ledger.boundary import BoundaryStore
from app.ledger.models import (
    STATUS_RANK,
    LedgerState,
    Order,
    PushEvent,
    PushEventKind,
    ResetBoundary,
    RevenueSnapshot,
)
from app.ledger.parsing import parse_order

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def merge_orders(current: Order, incoming: Order) -> Order:
    """
    Overlay the fields `incoming` knows about onto `current`.

    Missing fields never erase known ones and the status only moves forward.
    """
    updates = {}
    for field in ("restaurant_id", "customer_name", "table_number", "total_price", "created_at"):
        value = getattr(incoming, field)
        if value is not None:
            updates[field] = value
    if incoming.items:
        updates["items"] = incoming.items
    if STATUS_RANK[incoming.status] > STATUS_RANK[current.status]:
        updates["status"] = incoming.status
    return current.model_copy(update=updates)


class LedgerEntry(BaseModel):
    order: Order
    first_seen: datetime
    # Seen in at least one store snapshot or confirmed by a store response
    synced: bool = False
    optimistic_status: Optional[OrderStatus] = None

    @property
    def status(self) -> OrderStatus:
        return self.optimistic_status or self.order.status

    @property
    def sort_time(self) -> datetime:
        return self.order.created_at or self.first_seen

    @property
    def unconfirmed(self) -> bool:
        return not self.synced or self.optimistic_status is not None

    def view(self) -> Order:
        if self.optimistic_status is None:
            return self.order
        return self.order.model_copy(update={"status": self.optimistic_status})


def _display_key(entry: LedgerEntry):
    order_id = entry.order.id
    id_key = (1, int(order_id), "") if order_id.isdecimal() else (0, 0, order_id)
    return entry.sort_time, id_key


class OrderLedger:
    """
    Client-side view of the restaurant's orders.

    Poll snapshots, push events and the dashboard's own completions all go
    through this object; it de-duplicates by order id, keeps statuses
    monotonic and derives the revenue shown since the last reset.
    """

    def __init__(
        self,
        store=None,
        boundary_store: Optional[BoundaryStore] = None,
        restaurant_id: Optional[str] = None,
        highlight_seconds: float = 5.0,
        request_timeout: float = 10.0,
        on_new_order: Optional[Callable[[Order], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.boundary_store = boundary_store
        self.restaurant_id = restaurant_id
        self.highlight_seconds = highlight_seconds
        self.request_timeout = request_timeout
        self.on_new_order = on_new_order
        self._clock = clock
        self._now = now

        self._entries: Dict[str, LedgerEntry] = {}
        self._highlights: Dict[str, float] = {}
        self.boundary = boundary_store.load() if boundary_store else ResetBoundary()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, order_id) -> bool:
        return str(order_id) in self._entries

    def get(self, order_id) -> Optional[Order]:
        entry = self._entries.get(str(order_id))
        return entry.view() if entry else None

    # -- input channels ---------------------------------------------------

    def reconcile_snapshot(self, server_orders) -> LedgerState:
        incoming: Dict[str, Order] = {}
        for raw in server_orders:
            order = parse_order(raw)
            if order.id in incoming:
                order = merge_orders(incoming[order.id], order)
            incoming[order.id] = order

        entries: Dict[str, LedgerEntry] = {}
        for order_id, order in incoming.items():
            entry = self._entries.get(order_id)
            if entry is None:
                entry = LedgerEntry(order=order, first_seen=self._now())
            else:
                entry.order = merge_orders(entry.order, order)
            entry.synced = True
            entries[order_id] = entry

        retained = 0
        for order_id, entry in self._entries.items():
            if order_id not in entries and entry.unconfirmed:
                entries[order_id] = entry
                retained += 1

        dropped = sum(1 for order_id in self._entries if order_id not in entries)
        self._entries = entries
        logger.debug(
            f"Reconciled snapshot of {len(incoming)} orders "
            f"({retained} unconfirmed kept, {dropped} dropped)"
        )
        return self.state()

    def apply_push_event(self, event: PushEvent) -> LedgerState:
        order = event.order
        # The push channel carries every restaurant's orders
        if self.restaurant_id and order.restaurant_id and order.restaurant_id != self.restaurant_id:
            logger.debug(f"Ignoring order {order.id} for restaurant {order.restaurant_id}")
            return self.state()

        entry = self._entries.get(order.id)
        if entry is not None:
            entry.order = merge_orders(entry.order, order)
            return self.state()

        if event.kind == PushEventKind.NEW_ORDER:
            if order.created_at is not None and not self.boundary.includes(order.created_at):
                logger.info(f"Ignoring replayed order {order.id} from before the last reset")
                return self.state()

            first_seen = self._now()
            if order.created_at is None:
                # Live creation event, so arrival time is creation time
                order = order.model_copy(update={"created_at": first_seen})
            self._entries[order.id] = LedgerEntry(order=order, first_seen=first_seen)
            self._highlights[order.id] = self._clock() + self.highlight_seconds
            logger.info(f"New order {order.id} received")
            if self.on_new_order:
                self.on_new_order(order)
        else:
            # The creation event was missed; take the update as the order itself
            self._entries[order.id] = LedgerEntry(order=order, first_seen=self._now())
            logger.info(f"Update for unknown order {order.id}; inserted")

        return self.state()

    async def mark_completed(self, order_id) -> Order:
        """
        Complete an order: flip it locally, then confirm with the store.

        The flip is undone if the store call fails for any reason; revenue
        only counts the order once the store has confirmed it.
        """
        if self.store is None:
            raise RuntimeError("OrderLedger has no order store to confirm completions with")

        order_id = str(order_id)
        entry = self._entries.get(order_id)
        if entry is None:
            raise OrderNotFoundError(order_id)
        if entry.optimistic_status is not None:
            raise CompletionInProgressError(order_id)
        if entry.order.is_completed:
            return entry.order

        entry.optimistic_status = OrderStatus.COMPLETED
        try:
            raw = await asyncio.wait_for(
                self.store.update_order_status(order_id, OrderStatus.COMPLETED.value),
                timeout=self.request_timeout,
            )
            confirmed = parse_order(raw)
        except asyncio.TimeoutError:
            raise StoreUnavailableError(f"Timed out completing order {order_id}") from None
        finally:
            entry.optimistic_status = None

        entry.order = merge_orders(entry.order, confirmed)
        entry.synced = True
        logger.info(f"Order {order_id} completed ({entry.order.amount})")
        return entry.order

    def reset(self) -> ResetBoundary:
        self.boundary = ResetBoundary(reset_at=self._now())
        if self.boundary_store:
            self.boundary_store.save(self.boundary)
        self._highlights.clear()
        logger.info(f"Dashboard reset at {self.boundary.reset_at.isoformat()}")
        return self.boundary

    # -- derived views ----------------------------------------------------

    def is_highlighted(self, order_id) -> bool:
        deadline = self._highlights.get(str(order_id))
        return deadline is not None and self._clock() < deadline

    def highlighted_ids(self) -> List[str]:
        now = self._clock()
        for order_id in [i for i, deadline in self._highlights.items() if deadline <= now]:
            del self._highlights[order_id]
        return sorted(self._highlights)

    def _after_reset(self, entry: LedgerEntry) -> bool:
        # An undated order cannot be placed after the boundary, so it counts as history
        if entry.order.created_at is None:
            return self.boundary.reset_at is None
        return self.boundary.includes(entry.order.created_at)

    def _visible(self) -> List[LedgerEntry]:
        entries = [e for e in self._entries.values() if self._after_reset(e)]
        return sorted(entries, key=_display_key, reverse=True)

    def pending_orders(self) -> List[Order]:
        return [e.view() for e in self._visible() if e.status == OrderStatus.PENDING]

    def completed_orders(self) -> List[Order]:
        return [e.view() for e in self._visible() if e.status == OrderStatus.COMPLETED]

    def revenue(self) -> RevenueSnapshot:
        return RevenueSnapshot.from_orders(e.order for e in self._visible() if e.order.is_completed)

    def state(self) -> LedgerState:
        return LedgerState(
            pending=self.pending_orders(),
            completed=self.completed_orders(),
            revenue=self.revenue(),
            highlighted=self.highlighted_ids(),
            boundary=self.boundary,
        )
