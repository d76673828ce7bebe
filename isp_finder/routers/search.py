"""
Search API router - handles ISP search and catalog lookup endpoints.
"""

from typing import List

from fastapi import APIRouter, HTTPException, Query

from isp_finder.models import City, ISP, SearchRequest, SearchResponse
from isp_finder.services import isp_finder_service as service


router = APIRouter(tags=["search"])


@router.post("/search", response_model=SearchResponse)
async def search_isps(request: SearchRequest):
    """
    Filter and rank ISPs available in a city.

    Filters combine with AND semantics: coverage in the city at or above
    min_coverage, plan type, price range, minimum speed and connection types.
    Results are ordered by the requested sort mode, keeping catalog order
    for equal keys.

    Raises:
        HTTPException: 404 for an unknown city
    """
    try:
        return service.search_isps(request)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/cities", response_model=List[City])
async def list_cities(q: str = Query(default="", max_length=100), limit: int = Query(default=5, ge=1, le=50)):
    """All cities, or up to `limit` suggestions matching `q`."""
    if q:
        return service.suggest_cities(q, limit)
    return service.get_catalog().cities


@router.get("/cities/{city_id}", response_model=City)
async def get_city(city_id: str):
    city = service.get_catalog().get_city(city_id)
    if city is None:
        raise HTTPException(status_code=404, detail=f"Unknown city: {city_id}")
    return city


@router.get("/isps/{isp_id}", response_model=ISP)
async def get_isp(isp_id: str):
    isp = service.get_catalog().get_isp(isp_id)
    if isp is None:
        raise HTTPException(status_code=404, detail=f"Unknown ISP: {isp_id}")
    return isp
