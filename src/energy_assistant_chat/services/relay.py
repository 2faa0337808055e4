"""Relay service forwarding chat messages to the upstream completion API."""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
import structlog

from ..config import RelaySettings
from .errors import (
    BadRequest,
    MethodNotAllowed,
    Misconfigured,
    ResponseParseError,
    UpstreamError,
    UpstreamUnreachable,
)

logger = structlog.get_logger()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "POST,OPTIONS",
}


@dataclass
class RelayResponse:
    """Framework-independent response produced by the relay."""

    status_code: int
    body: bytes = b""
    media_type: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=lambda: dict(CORS_HEADERS))


def extract_text(data: Any) -> str:
    """Return choices[0].message.content, or "" when the path is missing."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""


class RelayService:
    """Stateless translator between chat clients and the completion API.

    The only state held is the configuration and a reusable HTTP client.
    """

    def __init__(
        self,
        settings: RelaySettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._client = httpx.AsyncClient(
            transport=transport, timeout=settings.timeout_seconds
        )
        logger.info(
            "relay_service_init",
            model=settings.model,
            credential_configured=bool(settings.api_key),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _parse_messages(self, body: bytes) -> Any:
        """Decode the body and return its messages, forwarded as sent."""
        try:
            payload = json.loads(body or b"{}")
        except ValueError:
            raise BadRequest("Invalid JSON body")
        if not isinstance(payload, dict):
            return []
        return payload.get("messages") or []

    async def complete(self, messages: Any) -> str:
        """Issue one upstream completion call and return the reply text."""
        try:
            response = await self._client.post(
                self.settings.upstream_url,
                headers={"Authorization": f"Bearer {self.settings.api_key}"},
                json={
                    "model": self.settings.model,
                    "messages": messages,
                    "max_tokens": self.settings.max_tokens,
                    "temperature": self.settings.temperature,
                },
            )
        except httpx.HTTPError as e:
            logger.error("upstream_unreachable", error=str(e), error_type=type(e).__name__)
            raise UpstreamUnreachable(str(e) or "Server error in chat relay")

        raw_body = response.content
        if not response.is_success:
            logger.error(
                "upstream_error",
                status=response.status_code,
                body=raw_body.decode("utf-8", errors="replace"),
            )
            raise UpstreamError(response.status_code, raw_body)

        try:
            data = json.loads(raw_body)
        except ValueError as e:
            logger.error("upstream_parse_error", error=str(e))
            raise ResponseParseError("Failed to parse OpenAI response JSON")

        text = extract_text(data)
        logger.info("upstream_completed", reply_length=len(text))
        return text

    async def handle(self, method: str, body: bytes) -> RelayResponse:
        """Run one relay invocation. Failures are raised as RelayError subclasses."""
        method = method.upper()
        if method == "OPTIONS":
            return RelayResponse(status_code=200)
        if method != "POST":
            raise MethodNotAllowed("Method not allowed")
        if not self.settings.api_key:
            raise Misconfigured(
                "Missing OPENAI_API_KEY env variable. "
                "Set it in the environment of the relay service."
            )

        messages = self._parse_messages(body)
        logger.info(
            "relay_request",
            message_count=len(messages) if isinstance(messages, list) else None,
        )
        text = await self.complete(messages)
        return RelayResponse(
            status_code=200,
            body=json.dumps({"text": text}).encode("utf-8"),
            media_type="application/json",
        )
