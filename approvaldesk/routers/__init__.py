"""API routers for the approval desk backend."""
from fastapi import APIRouter

from . import approvals, audit, health


def get_api_router() -> APIRouter:
    """Return the root API router."""

    api_router = APIRouter()
    api_router.include_router(health.router)
    api_router.include_router(approvals.router)
    api_router.include_router(audit.router)
    return api_router
