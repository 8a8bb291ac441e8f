"""API routers for the civictrust service."""
from fastapi import APIRouter

from . import analytics, auth, bins, complaints, disposals, fraud, health, location, sync, wallet


def get_api_router() -> APIRouter:
    """Return the root API router."""

    api_router = APIRouter()
    api_router.include_router(health.router)
    api_router.include_router(auth.router)
    api_router.include_router(location.router)
    api_router.include_router(bins.router)
    api_router.include_router(disposals.router)
    api_router.include_router(complaints.router)
    api_router.include_router(wallet.router)
    api_router.include_router(fraud.router)
    api_router.include_router(analytics.router)
    api_router.include_router(sync.router)
    return api_router
