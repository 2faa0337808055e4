"""Configuration for the relay service and the chat client."""

import os
from typing import Optional

from pydantic import BaseModel

DEFAULT_UPSTREAM_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_RELAY_URL = "http://localhost:8000/api/chat"


def _optional_float(value: Optional[str]) -> Optional[float]:
    return float(value) if value else None


class RelaySettings(BaseModel):
    """Settings for the relay. The API key may be absent; requests then fail."""

    api_key: Optional[str] = None
    upstream_url: str = DEFAULT_UPSTREAM_URL
    model: str = DEFAULT_MODEL
    max_tokens: int = 900
    temperature: float = 0.7
    timeout_seconds: float = 60.0

    @classmethod
    def from_env(cls) -> "RelaySettings":
        return cls(
            api_key=os.getenv("OPENAI_API_KEY") or None,
            upstream_url=os.getenv("OPENAI_API_URL", DEFAULT_UPSTREAM_URL),
            model=os.getenv("OPENAI_MODEL", DEFAULT_MODEL),
            max_tokens=int(os.getenv("OPENAI_MAX_TOKENS", "900")),
            temperature=float(os.getenv("OPENAI_TEMPERATURE", "0.7")),
            timeout_seconds=float(os.getenv("RELAY_TIMEOUT_SECONDS", "60")),
        )


class ClientSettings(BaseModel):
    """Settings for the conversation manager."""

    relay_url: str = DEFAULT_RELAY_URL
    storage_dir: Optional[str] = None
    # None waits for the relay however long the completion takes
    timeout_seconds: Optional[float] = None

    @classmethod
    def from_env(cls) -> "ClientSettings":
        return cls(
            relay_url=os.getenv("ENERGY_CHAT_RELAY_URL", DEFAULT_RELAY_URL),
            storage_dir=os.getenv("ENERGY_CHAT_STORAGE_DIR") or None,
            timeout_seconds=_optional_float(os.getenv("ENERGY_CHAT_TIMEOUT_SECONDS")),
        )
