from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./orders.db"

    # Order store
    DEFAULT_RESTAURANT_ID: str = "res-1"
    SIMULATE_ORDERS: bool = False
    SIMULATE_INTERVAL_SECONDS: float = 8.0

    # Dashboard client
    ORDER_STORE_BASE_URL: str = "http://localhost:8000"
    PUSH_URL: Optional[str] = None
    RESTAURANT_ID: str = "res-1"
    POLL_INTERVAL_SECONDS: float = 8.0
    HIGHLIGHT_SECONDS: float = 5.0
    PUSH_RECONNECT_DELAY_SECONDS: float = 3.0
    REQUEST_TIMEOUT_SECONDS: float = 10.0
    LEDGER_STATE_FILE: str = ".dashboard_state.json"

    @property
    def push_url(self) -> str:
        if self.PUSH_URL:
            return self.PUSH_URL
        base = self.ORDER_STORE_BASE_URL.rstrip("/")
        if base.startswith("https://"):
            return "wss://" + base[len("https://"):] + "/ws"
        return "ws://" + base.split("://", 1)[-1] + "/ws"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
