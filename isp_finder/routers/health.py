"""
Health check API router.
"""

from typing import Dict, Any
from fastapi import APIRouter

from isp_finder import __version__
from isp_finder.services.isp_finder_service import get_health_status


router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint.

    Returns:
        Dictionary with health status and version information
    """
    return await get_health_status()


@router.get("/")
async def root() -> Dict[str, Any]:
    """
    Root endpoint with API information.

    Returns:
        Dictionary with API metadata and available endpoints
    """
    return {
        "title": "ISP Finder API",
        "version": __version__,
        "description": "Find, rank and compare internet service providers available in a city",
        "endpoints": {
            "search": "/search",
            "cities": "/cities",
            "favorites": "/favorites",
            "comparison": "/comparison",
            "recent_searches": "/recent-searches",
            "geolocation": "/geolocation",
            "status": "/status/{city_id}",
            "speed_test": "/speed-test/{city_id}",
            "health": "/health",
            "docs": "/docs",
        },
        "features": [
            "City resolution from IP geolocation",
            "Multi-criteria filtering and ranking",
            "Side-by-side comparison of up to three providers",
            "Live ISP status per city",
            "Speed test with server fallback",
        ]
    }
