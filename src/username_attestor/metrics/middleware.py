"""Request accounting for the callback API."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from starlette.middleware.base import BaseHTTPMiddleware

if TYPE_CHECKING:
    from collections.abc import Callable

    from starlette.requests import Request
    from starlette.responses import Response

    from username_attestor.metrics.collector import EngineMetrics


def route_label(request: Request) -> str:
    """Matched route template, so ``/admin/reservations/{identifier}`` is one series."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class PrometheusMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: object, *, metrics: EngineMetrics) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._metrics = metrics

    async def dispatch(
        self, request: Request, call_next: Callable  # type: ignore[type-arg]
    ) -> Response:
        started = time.monotonic()
        response: Response = await call_next(request)
        self._metrics.observe_request(
            request.method,
            route_label(request),
            response.status_code,
            time.monotonic() - started,
        )
        return response
