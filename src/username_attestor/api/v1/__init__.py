"""V1 REST API routes, combined under the ``/api/v1`` prefix."""

from fastapi import APIRouter

from username_attestor.api.v1.admin import router as admin_router
from username_attestor.api.v1.chat import router as chat_router
from username_attestor.api.v1.ledger import router as ledger_router

v1_router = APIRouter(prefix="/api/v1")

v1_router.include_router(chat_router)
v1_router.include_router(ledger_router)
v1_router.include_router(admin_router)

__all__ = ["v1_router"]
