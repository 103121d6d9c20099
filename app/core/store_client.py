import logging
import httpx
from typing import Optional
from datetime import datetime

from app.core.config import settings
from app.core.exceptions import InvalidOrderError, OrderNotFoundError, StoreUnavailableError

logger = logging.getLogger(__name__)


class OrderStoreClient:
    """HTTP client for the order store API."""

    def __init__(self, base_url: str = None, timeout: float = None, transport: httpx.AsyncBaseTransport = None):
        self.base_url = (base_url or settings.ORDER_STORE_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.REQUEST_TIMEOUT_SECONDS
        self.transport = transport
        self.client = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=self.timeout, transport=self.transport)
        return self.client

    async def _request(self, method: str, path: str, **kwargs):
        client = await self._get_client()
        url = f"{self.base_url}{path}"
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e!r}")
            raise StoreUnavailableError(f"Order store unreachable: {e}") from e

        if response.status_code >= 400:
            logger.warning(f"{method} {url} returned {response.status_code}: {response.text}")

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise StoreUnavailableError(f"Order store returned {e.response.status_code}") from e

        try:
            return response.json()
        except ValueError as e:
            raise StoreUnavailableError("Order store sent a non-JSON response") from e

    async def list_orders(self, restaurant_id: str, since: Optional[datetime] = None) -> list:
        """
        GET /api/orders?restaurant_id=...&since=...

        Returns the raw order objects; `since` limits the list to orders
        created after that instant.
        """
        params = {"restaurant_id": restaurant_id}
        if since:
            params["since"] = since.isoformat()

        data = await self._request("GET", "/api/orders", params=params)
        if not isinstance(data, list):
            raise StoreUnavailableError(f"Expected a list of orders, got {type(data).__name__}")

        logger.debug(f"Fetched {len(data)} orders for {restaurant_id}")
        return data

    async def create_order(self, payload: dict) -> dict:
        logger.info(f"Creating order for {payload.get('customerName') or 'guest'}")
        try:
            return await self._request("POST", "/api/orders", json=payload)
        except StoreUnavailableError as e:
            status_code = _status_of(e)
            if status_code in (400, 422):
                raise InvalidOrderError("Order store rejected the order") from e
            raise

    async def update_order_status(self, order_id, status: str) -> dict:
        """
        PATCH /api/orders/{order_id} {"status": status}

        Raises OrderNotFoundError on 404, InvalidOrderError on 400/422 and
        StoreUnavailableError for anything else that goes wrong.
        """
        logger.info(f"Setting order {order_id} to {status}")
        try:
            return await self._request("PATCH", f"/api/orders/{order_id}", json={"status": status})
        except StoreUnavailableError as e:
            status_code = _status_of(e)
            if status_code == 404:
                raise OrderNotFoundError(order_id) from e
            if status_code in (400, 422):
                raise InvalidOrderError(f"Order store rejected status {status!r} for order {order_id}") from e
            raise

    async def close(self):
        """Close HTTP client."""
        if self.client:
            await self.client.aclose()
            self.client = None


def _status_of(error: Exception) -> Optional[int]:
    cause = error.__cause__
    if isinstance(cause, httpx.HTTPStatusError):
        return cause.response.status_code
    return None
