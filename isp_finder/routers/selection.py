"""
Selection API router - favorites, comparison set and recent searches.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from isp_finder.core.session import (
    SelectionState,
    comparison_share_query,
    comparison_winners,
    export_comparison_text,
)
from isp_finder.models import ComparisonItem, RecentSearch
from isp_finder.services import isp_finder_service as service


router = APIRouter(tags=["selection"])


class FavoriteRequest(BaseModel):
    isp_id: str


class ComparisonRequest(BaseModel):
    isp_id: str
    city_id: str
    plan_id: Optional[str] = None


class RecentSearchRequest(BaseModel):
    city_id: str


@router.get("/selection", response_model=SelectionState)
async def get_selection():
    return service.get_session().state


# -------- Favorites --------

@router.get("/favorites", response_model=List[str])
async def list_favorites():
    return list(service.get_session().state.favorites)


@router.post("/favorites", response_model=List[str])
async def add_favorite(request: FavoriteRequest):
    try:
        state = service.add_favorite(request.isp_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return list(state.favorites)


@router.delete("/favorites/{isp_id}", response_model=List[str])
async def remove_favorite(isp_id: str):
    return list(service.remove_favorite(isp_id).favorites)


@router.delete("/favorites", response_model=List[str])
async def clear_favorites():
    return list(service.get_session().clear_favorites().favorites)


# -------- Comparison --------

@router.get("/comparison", response_model=List[ComparisonItem])
async def list_comparison():
    return list(service.get_session().state.comparison)


@router.post("/comparison", response_model=List[ComparisonItem])
async def add_to_comparison(request: ComparisonRequest):
    """
    Add an ISP offer to the comparison set.

    The set holds at most three ISPs; adding to a full set or re-adding an
    ISP leaves it unchanged.
    """
    try:
        state = service.add_to_comparison(request.isp_id, request.city_id, request.plan_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return list(state.comparison)


@router.delete("/comparison/{isp_id}", response_model=List[ComparisonItem])
async def remove_from_comparison(isp_id: str):
    return list(service.get_session().remove_from_comparison(isp_id).comparison)


@router.delete("/comparison", response_model=List[ComparisonItem])
async def clear_comparison():
    return list(service.get_session().clear_comparison().comparison)


@router.get("/comparison/winners")
async def get_comparison_winners() -> Dict[str, Any]:
    items = service.get_session().state.comparison
    return {
        "winners": comparison_winners(items),
        "share_query": comparison_share_query(items),
    }


@router.get("/comparison/export", response_class=PlainTextResponse)
async def export_comparison():
    return export_comparison_text(service.get_session().state.comparison)


# -------- Recent searches --------

@router.get("/recent-searches", response_model=List[RecentSearch])
async def list_recent_searches():
    return list(service.get_session().state.recent_searches)


@router.post("/recent-searches", response_model=List[RecentSearch])
async def add_recent_search(request: RecentSearchRequest):
    """Navigate to a city, recording it as the most recent search."""
    try:
        service.select_city(request.city_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return list(service.get_session().state.recent_searches)


@router.delete("/recent-searches", response_model=List[RecentSearch])
async def clear_recent_searches():
    return list(service.get_session().clear_recent_searches().recent_searches)
