"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest
from starlette.responses import Response

from username_attestor import __version__
from username_attestor.api.v1 import v1_router
from username_attestor.config.settings import AppConfig
from username_attestor.engine.client import AttestorEngine
from username_attestor.errors.attestor_errors import AttestorError
from username_attestor.metrics.middleware import PrometheusMiddleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialise the engine on startup and shut it down on exit."""
    engine: AttestorEngine = app.state.engine
    try:
        await engine.initialize()
        logger.info("Username attestor engine initialized")
        yield
    finally:
        await engine.close()
        logger.info("Username attestor engine shut down")


def create_app(
    *, config: AppConfig | None = None, engine: AttestorEngine | None = None
) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        config: Optional AppConfig. If *None*, one is created from the environment.
        engine: Optional pre-built engine (tests inject one wired to fakes);
            it is initialised by the app's lifespan either way.
    """
    if engine is None:
        engine = AttestorEngine(config or AppConfig())

    app = FastAPI(
        title="username-attestor",
        version=__version__,
        description="Paid username reservation and on-ledger attestation",
        lifespan=_lifespan,
    )
    app.state.engine = engine

    @app.exception_handler(AttestorError)
    async def _attestor_error_handler(request: Request, exc: AttestorError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "message": exc.message},
        )

    @app.get("/health", tags=["base"])
    async def health() -> dict[str, str]:
        return await engine.health_check()

    @app.get("/metrics", tags=["base"], include_in_schema=False)
    async def metrics_endpoint() -> Response:
        """Prometheus metrics endpoint."""
        body = generate_latest(engine.metrics.registry) if engine.metrics else b""
        return Response(
            content=body,
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    if engine.metrics is not None:
        app.add_middleware(PrometheusMiddleware, metrics=engine.metrics)

    app.include_router(v1_router)

    return app
