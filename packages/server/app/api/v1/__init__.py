"""
API v1 Router

Charity onboarding and read endpoints live under /api/v1/charity.
"""

from fastapi import APIRouter
from . import charities

router = APIRouter()

router.include_router(charities.router, prefix="/charity", tags=["Charities"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/charity",
            "/charity/new",
            "/charity/{charityId}",
        ],
    }
