"""
FastAPI Application Module

HTTP surface of the chat relay. Browser clients post their conversation to
/api/chat; the relay attaches the server-side credential, forwards the
messages to the completion API and returns {"text": ...}.

Key Features:
- Same handler mounted on /api/chat and the serverless function path
- Permissive CORS headers on every response, including errors
- Structured logging and Prometheus metrics
- OpenTelemetry request tracing

Configuration is passed to create_app and kept on app.state; nothing is
read from module globals at request time.
"""

from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, Request, Response
from fastapi.exception_handlers import http_exception_handler
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import CollectorRegistry, Counter, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException
from structlog import get_logger

from ..config import RelaySettings
from ..services.errors import MethodNotAllowed, RelayError
from ..services.relay import CORS_HEADERS, RelayService

logger = get_logger()

RELAY_PATHS = ("/api/chat", "/.netlify/functions/chatgpt")
RELAY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_app(
    settings: Optional[RelaySettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the relay application around explicit settings."""
    settings = settings or RelaySettings.from_env()
    relay_service = RelayService(settings, transport=transport)

    # Registry per app so metrics stay isolated between instances
    registry = CollectorRegistry()
    requests_total = Counter(
        "relay_requests_total", "Total relay invocations", ["method"], registry=registry
    )
    errors_total = Counter(
        "relay_errors_total", "Total relay failures by kind", ["kind"], registry=registry
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Releases the upstream HTTP client on shutdown"""
        logger.info("application_startup_complete")
        yield
        await relay_service.aclose()
        logger.info("application_shutdown_complete")

    app = FastAPI(
        title="Energy Assistant Chat Relay",
        description="Relay between the energy assistant chat client and the completion API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.relay_service = relay_service
    app.state.metrics_registry = registry

    FastAPIInstrumentor.instrument_app(app)

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Logs each request and stamps CORS headers on the response"""
        logger.info("request_started", path=request.url.path, method=request.method)
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("request_failed", path=request.url.path, error=str(e))
            raise
        response.headers.update(CORS_HEADERS)
        return response

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> Response:
        errors_total.labels(kind=exc.kind).inc()
        logger.warning(
            "relay_request_failed",
            kind=exc.kind,
            status=exc.status_code,
            error=exc.message,
        )
        return Response(
            content=exc.body,
            status_code=exc.status_code,
            media_type=exc.media_type,
            headers=CORS_HEADERS,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> Response:
        """Answers methods the router rejects on relay paths with the relay error body"""
        if exc.status_code == 405 and request.url.path in RELAY_PATHS:
            return await relay_error_handler(request, MethodNotAllowed("Method not allowed"))
        return await http_exception_handler(request, exc)

    async def chat(
        request: Request,
        relay_service: RelayService = Depends(get_relay_service),
    ) -> Response:
        """Relays a chat conversation to the completion API"""
        requests_total.labels(method=request.method).inc()
        body = await request.body()
        result = await relay_service.handle(request.method, body)
        return Response(
            content=result.body,
            status_code=result.status_code,
            media_type=result.media_type,
            headers=result.headers,
        )

    for path in RELAY_PATHS:
        app.add_api_route(path, chat, methods=RELAY_METHODS)

    @app.get("/metrics")
    async def metrics():
        """Provides Prometheus metrics for system monitoring"""
        return Response(generate_latest(registry), media_type="text/plain")

    return app


def get_relay_service(request: Request) -> RelayService:
    """Returns the relay service owned by the running app"""
    return request.app.state.relay_service
