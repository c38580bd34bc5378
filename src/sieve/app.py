"""Sieve - FastAPI application.

Everything the backend would receive passes through here. Series
submissions lose the series matching the configured prefix on the way.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
import logfire
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from .config import FilterConfig
from .errors import SieveError
from .protocol import MetricsSink
from .proxy import Forwarder, build_client
from .router import Router, build_router

logger = logging.getLogger(__name__)

# Answered by the proxy itself; backends own /health
HEALTH_PATH = "/_sieve/health"

METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


@dataclass
class AppContext:
    """Process-wide state, built once per app."""

    config: FilterConfig
    client: httpx.AsyncClient
    sink: MetricsSink
    router: Router
    forwarder: Forwarder
    owns_client: bool = False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    ctx: AppContext = app.state.sieve
    logfire.info(
        "Sieve is ready",
        backend=ctx.config.backend_url,
        prefix=ctx.config.name_prefix,
        routes=[route.path for route in ctx.router.routes],
    )
    yield
    logfire.info("Sieve is shutting down...")
    if ctx.owns_client:
        await ctx.client.aclose()
    ctx.sink.close()


async def handle_sieve_error(request: Request, exc: SieveError) -> PlainTextResponse:
    logfire.error(
        "Request failed",
        method=request.method,
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    body = "" if exc.status_code == 502 else str(exc)
    return PlainTextResponse(body, status_code=exc.status_code)


def create_app(
    config: FilterConfig,
    sink: MetricsSink,
    *,
    client: httpx.AsyncClient | None = None,
    json_route: bool = True,
    protobuf_route: bool = True,
    request_timeout: float = 60.0,
) -> FastAPI:
    """Build the proxy application.

    A client passed in stays the caller's to close. Otherwise one is created
    and closed on shutdown. The sink is always closed on shutdown.
    """
    owns_client = client is None
    if client is None:
        client = build_client(timeout=request_timeout)

    ctx = AppContext(
        config=config,
        client=client,
        sink=sink,
        router=build_router(config, sink, json_route, protobuf_route),
        forwarder=Forwarder(client, config.backend_url),
        owns_client=owns_client,
    )

    app = FastAPI(
        title="Sieve",
        description="Drops metric series by name prefix on the way to the backend.",
        lifespan=lifespan,
    )
    app.state.sieve = ctx
    app.add_exception_handler(SieveError, handle_sieve_error)

    @app.get(HEALTH_PATH)
    async def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "sieve"}

    @app.api_route("/{path:path}", methods=METHODS)
    async def handle_request(request: Request, path: str):
        """Route requests through the appropriate pattern."""
        ctx: AppContext = request.app.state.sieve
        pattern = ctx.router.select(request.method, request.url.path)

        prepared = await pattern.request(request.stream(), request.headers)

        raw_path = request.scope.get("raw_path") or request.url.path.encode()
        return await ctx.forwarder.forward(
            method=request.method,
            path=raw_path.decode("latin-1"),
            query=request.url.query,
            raw_headers=request.headers.raw,
            prepared=prepared,
        )

    return app
