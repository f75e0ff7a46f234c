"""API routers for the freightpay backend."""
from fastapi import APIRouter

from . import health, payfast, payments, pricing


def get_api_router() -> APIRouter:
    """Return the root API router."""

    api_router = APIRouter()
    api_router.include_router(health.router)
    api_router.include_router(pricing.router)
    api_router.include_router(payments.router)
    api_router.include_router(payments.drivers_router)
    api_router.include_router(payfast.router)
    return api_router
