"""FastAPI dependency injection helpers.

Usage in a route::

    @router.post("/messages", dependencies=[Depends(require_callback_token)])
    async def message(
        body: MessageRequest,
        engine: Annotated[AttestorEngine, Depends(get_engine)],
    ) -> ...:
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, Request

from username_attestor.api.middleware.auth import CALLBACK_TOKEN_HEADER, verify_callback_token
from username_attestor.engine.client import AttestorEngine  # noqa: TC001
from username_attestor.errors.attestor_errors import AttestorError


def get_engine(request: Request) -> AttestorEngine:
    """Retrieve the engine stored on ``app.state`` during lifespan startup.

    Raises:
        AttestorError: 503 if the engine is not running.
    """
    engine: AttestorEngine | None = getattr(request.app.state, "engine", None)
    if engine is None or not engine.is_initialized:
        raise AttestorError("engine not initialized", status_code=503, code="not-ready")
    return engine


def require_callback_token(
    engine: Annotated[AttestorEngine, Depends(get_engine)],
    x_callback_token: Annotated[str, Header(alias=CALLBACK_TOKEN_HEADER)] = "",
) -> None:
    verify_callback_token(engine.config.callback_token, x_callback_token)
