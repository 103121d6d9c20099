class StoreError(Exception):
    """Base class for failures talking to the order store."""


class StoreUnavailableError(StoreError):
    """Network failure, timeout or unexpected response from the store."""


class OrderNotFoundError(StoreError, LookupError):
    def __init__(self, order_id):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class InvalidOrderError(StoreError, ValueError):
    """Rejected status value or malformed order payload."""


class CompletionInProgressError(StoreError):
    def __init__(self, order_id):
        super().__init__(f"Order {order_id} is already being completed")
        self.order_id = order_id
