"""HTTP client the conversation manager uses to reach the relay."""

import json
from dataclasses import dataclass
from typing import Any, List, Optional

import httpx
import structlog

from ..domain.models import ChatTurn
from .conversation_state import SendResult

logger = structlog.get_logger()


@dataclass
class RelayReply:
    """Raw relay response: status plus undecoded body text."""

    status_code: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class RelayClient:
    """Posts the assembled message sequence to the relay endpoint."""

    def __init__(
        self,
        relay_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self.relay_url = relay_url
        # timeout=None waits until the relay answers or the connection fails
        self._client = httpx.AsyncClient(transport=transport, timeout=timeout)

    async def post_messages(self, messages: List[ChatTurn]) -> RelayReply:
        response = await self._client.post(
            self.relay_url,
            json={"messages": [m.model_dump() for m in messages]},
        )
        return RelayReply(status_code=response.status_code, body=response.text)

    async def aclose(self) -> None:
        await self._client.aclose()


def parse_body(body: str) -> Any:
    """Decode a relay body, tolerating empty and non-JSON payloads."""
    if not body:
        return {}
    try:
        data = json.loads(body)
    except ValueError:
        logger.error("relay_non_json_response", body=body[:500])
        return {}
    return {} if data is None else data


def _error_message(data: Any, status_code: int) -> str:
    if isinstance(data, dict):
        error = data.get("error")
        # Upstream passthrough errors nest the text under error.message
        if isinstance(error, dict):
            error = error.get("message")
        message = error or data.get("message")
        if message:
            return str(message)
    elif isinstance(data, str) and data:
        return data
    return f"Request failed with status {status_code}"


def interpret_reply(reply: RelayReply) -> SendResult:
    """Turn a relay reply into a success or failure result."""
    data = parse_body(reply.body)
    if not reply.ok:
        return SendResult.failure(_error_message(data, reply.status_code))
    if isinstance(data, dict) and data.get("error"):
        return SendResult.failure(_error_message(data, reply.status_code))
    text = data.get("text") if isinstance(data, dict) else None
    return SendResult.success(text if isinstance(text, str) else "")
