"""Relay error taxonomy. Each error knows the HTTP response it maps to."""

import json
from typing import Optional


class RelayError(Exception):
    """Base class for failures surfaced to the relay caller."""

    status_code = 500
    kind = "relay_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    @property
    def body(self) -> bytes:
        return json.dumps({"error": self.message}).encode("utf-8")

    @property
    def media_type(self) -> Optional[str]:
        return "application/json"


class MethodNotAllowed(RelayError):
    status_code = 405
    kind = "method_not_allowed"


class Misconfigured(RelayError):
    status_code = 500
    kind = "misconfigured"


class BadRequest(RelayError):
    status_code = 400
    kind = "bad_request"


class UpstreamUnreachable(RelayError):
    status_code = 500
    kind = "upstream_unreachable"


class ResponseParseError(RelayError):
    status_code = 500
    kind = "response_parse_error"


class UpstreamError(RelayError):
    """Upstream answered with a non-success status; its body is passed through."""

    kind = "upstream_error"

    def __init__(self, status_code: int, raw_body: bytes):
        super().__init__(f"Upstream returned status {status_code}", status_code)
        self.raw_body = raw_body

    @property
    def body(self) -> bytes:
        return self.raw_body or json.dumps({"error": "OpenAI error"}).encode("utf-8")

    @property
    def media_type(self) -> Optional[str]:
        # Raw passthrough; no content type of our own.
        return None
