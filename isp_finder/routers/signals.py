"""
External signals API router - geolocation, ISP status and speed tests.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from isp_finder.models import City, IspStatus, LocateResponse, SpeedTestResult
from isp_finder.providers.speed_test import SpeedTestError, SpeedTestErrorKind
from isp_finder.services import isp_finder_service as service


router = APIRouter(tags=["signals"])


class CitySelection(BaseModel):
    city_id: str


@router.put("/view/city", response_model=City)
async def select_city(request: CitySelection):
    """Navigate to a city; status and speed tests still running for the previous city are discarded."""
    try:
        return service.select_city(request.city_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/view")
async def get_view() -> Dict[str, Any]:
    return service.get_view().summary()


@router.get("/geolocation", response_model=LocateResponse)
async def locate():
    """
    Geolocate the caller and resolve the nearest known city.

    Provider failures come back in `outcome` with a typed reason rather than
    as an HTTP error, so clients can choose to hide the feature.
    """
    return await service.locate()


@router.post("/status/{city_id}", response_model=List[IspStatus])
async def refresh_status(city_id: str):
    if service.get_view().status_busy.busy:
        raise HTTPException(status_code=409, detail="Status fetch already in progress")
    try:
        statuses: Optional[List[IspStatus]] = await service.refresh_status(city_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if statuses is None:
        raise HTTPException(status_code=409, detail="Status fetch was superseded")
    return statuses


@router.post("/speed-test/{city_id}", response_model=SpeedTestResult)
async def run_speed_test(city_id: str):
    """
    Run a speed test from the server's connection.

    Raises:
        HTTPException: 409 when a test is already running, 503 when the
            measurement server is unreachable, 502 for other failures
    """
    if service.get_view().speed_test_busy.busy:
        raise HTTPException(status_code=409, detail="Speed test already running")
    try:
        result = await service.start_speed_test(city_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SpeedTestError as e:
        status_code = 503 if e.kind == SpeedTestErrorKind.NETWORK else 502
        raise HTTPException(status_code=status_code, detail=e.message)
    if result is None:
        raise HTTPException(status_code=409, detail="Speed test was superseded")
    return result
