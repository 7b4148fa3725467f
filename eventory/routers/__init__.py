"""API routers for the Eventory backend."""
from fastapi import APIRouter

from . import admin, apikeys, health, payments, tickets, webhooks


def get_api_router() -> APIRouter:
    """Return the root API router."""

    api_router = APIRouter()
    api_router.include_router(health.router)
    api_router.include_router(payments.router)
    api_router.include_router(webhooks.router)
    api_router.include_router(tickets.router)
    api_router.include_router(admin.router)
    api_router.include_router(apikeys.router)
    return api_router
