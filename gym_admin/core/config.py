from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, HttpUrl, ValidationError


class Settings(BaseModel):
    supabase_url: HttpUrl
    supabase_service_key: str
    bot_token: str | None = None
    environment: Literal["local", "staging", "production"] = "local"
    request_timeout_s: float = 10.0
    realtime_heartbeat_s: float = 25.0
    resubscribe_delay_s: float = 15.0

    @property
    def is_debug(self) -> bool:
        return self.environment == "local"

    @property
    def rest_url(self) -> str:
        return f"{str(self.supabase_url).rstrip('/')}/rest/v1"

    @property
    def realtime_url(self) -> str:
        base_url = str(self.supabase_url).rstrip("/")
        if base_url.startswith("https://"):
            base_url = "wss://" + base_url[len("https://"):]
        elif base_url.startswith("http://"):
            base_url = "ws://" + base_url[len("http://"):]
        return f"{base_url}/realtime/v1/websocket"


def _build_settings() -> Settings:
    # Load .env file once on first settings build (for local development)
    load_dotenv()

    try:
        return Settings(
            supabase_url=os.environ["SUPABASE_URL"],
            supabase_service_key=os.environ["SUPABASE_SERVICE_KEY"],
            bot_token=os.getenv("BOT_TOKEN"),
            environment=os.getenv("ENVIRONMENT", "local"),
            request_timeout_s=os.getenv("REQUEST_TIMEOUT_S", "10"),
            realtime_heartbeat_s=os.getenv("REALTIME_HEARTBEAT_S", "25"),
            resubscribe_delay_s=os.getenv("RESUBSCRIBE_DELAY_S", "15"),
        )
    except KeyError as exc:
        required_keys = ("SUPABASE_URL", "SUPABASE_SERVICE_KEY")
        missing = [key for key in required_keys if key not in os.environ]
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}"
        ) from exc
    except ValidationError as exc:
        raise RuntimeError(f"Invalid settings: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Reads environment variables once and validates them with Pydantic.
    """

    return _build_settings()
