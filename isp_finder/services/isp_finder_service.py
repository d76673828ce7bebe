"""
ISP finder service - main business logic orchestrator.

Owns the process-wide catalog, the selection session and the state of the
city currently being viewed. Routers call into this module only.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from isp_finder import __version__
from isp_finder.config import settings
from isp_finder.core import engine, geo
from isp_finder.core.catalog import CatalogStore, load_catalog
from isp_finder.core.session import SelectionSession, SelectionState
from isp_finder.models import (
    City,
    ComparisonItem,
    GeolocationData,
    GeolocationSuccess,
    IspStatus,
    LocateResponse,
    RankedIsp,
    RecentSearch,
    SearchRequest,
    SearchResponse,
    SpeedTestPhase,
    SpeedTestResult,
)
from isp_finder.providers.geolocation import fetch_geolocation
from isp_finder.providers.speed_test import SpeedTestError, run_speed_test
from isp_finder.providers.status import fetch_isp_status_for_city
from isp_finder.utils.cancellation import BusyFlag, CancellationToken, OperationCancelled

logger = logging.getLogger(__name__)


@dataclass
class CityView:
    """What the user is currently looking at, plus its in-flight work."""
    city_id: Optional[str] = None
    geolocation: Optional[GeolocationData] = None
    statuses: Optional[List[IspStatus]] = None
    status_error: Optional[str] = None
    speed_test_result: Optional[SpeedTestResult] = None
    speed_test_error: Optional[str] = None
    speed_test_phase: SpeedTestPhase = SpeedTestPhase.IDLE
    status_busy: BusyFlag = field(default_factory=lambda: BusyFlag("Status fetch"))
    speed_test_busy: BusyFlag = field(default_factory=lambda: BusyFlag("Speed test"))
    tokens: List[CancellationToken] = field(default_factory=list)

    def new_token(self, label: str) -> CancellationToken:
        token = CancellationToken(f"{label}:{self.city_id}")
        self.tokens.append(token)
        return token

    def release_token(self, token: CancellationToken):
        if token in self.tokens:
            self.tokens.remove(token)

    def shows(self, city_id: Optional[str]) -> bool:
        return city_id == self.city_id

    def cancel_pending(self):
        for token in self.tokens:
            token.cancel()
        self.tokens.clear()

    def summary(self) -> Dict[str, Any]:
        return {
            "city_id": self.city_id,
            "statuses": [s.model_dump(mode="json") for s in self.statuses] if self.statuses is not None else None,
            "status_loading": self.status_busy.busy,
            "status_error": self.status_error,
            "speed_test_running": self.speed_test_busy.busy,
            "speed_test_phase": self.speed_test_phase.value,
            "speed_test_result": self.speed_test_result.model_dump(mode="json") if self.speed_test_result else None,
            "speed_test_error": self.speed_test_error,
        }


# Global service state
_catalog: Optional[CatalogStore] = None
_session = SelectionSession()
_view = CityView()
_http_client: Optional[httpx.AsyncClient] = None
_initialized = False


async def initialize(catalog_path: Optional[str] = None, http_client: Optional[httpx.AsyncClient] = None):
    """Load the catalog and reset session state."""
    global _catalog, _session, _view, _http_client, _initialized
    _catalog = load_catalog(catalog_path or settings.CATALOG_PATH)
    _session = SelectionSession()
    _view = CityView()
    _http_client = http_client
    _initialized = True


async def shutdown():
    global _initialized
    _view.cancel_pending()
    _initialized = False


def is_ready() -> bool:
    """Check if the service is ready to handle requests."""
    return _initialized and _catalog is not None


def _require_catalog() -> CatalogStore:
    if not is_ready():
        raise RuntimeError("Service not initialized. Call initialize() first.")
    return _catalog


def get_catalog() -> CatalogStore:
    return _require_catalog()


def get_session() -> SelectionSession:
    return _session


def get_view() -> CityView:
    return _view


def _require_city(city_id: str) -> City:
    city = _require_catalog().get_city(city_id)
    if city is None:
        raise LookupError(f"Unknown city: {city_id}")
    return city


# -------- Search --------

def search_isps(request: SearchRequest) -> SearchResponse:
    """
    Filter and rank ISPs for the requested city.

    Raises:
        LookupError: If the city id is not in the catalog
    """
    catalog = _require_catalog()
    if request.city_id:
        _require_city(request.city_id)

    started = time.perf_counter()
    result = engine.select(catalog.isps, request.city_id, request.filters, request.sort)
    elapsed = time.perf_counter() - started

    return SearchResponse(
        success=True,
        total_results=result.count,
        active_filter_count=result.active_filter_count,
        search_time_ms=int(elapsed * 1000),
        results=[
            RankedIsp(isp=isp, coverage=isp.coverage_for(request.city_id), best_plan=engine.best_plan(isp))
            for isp in result.isps
        ],
    )


def suggest_cities(query: str, limit: int = 5) -> List[City]:
    return geo.search_cities(query, _require_catalog().cities, limit)


# -------- Navigation --------

def select_city(city_id: str) -> City:
    """
    Navigate to a city.

    Work still running for the previous city is cancelled so its results are
    never applied, and the city is recorded as a recent search.
    """
    city = _require_city(city_id)
    if _view.city_id != city_id:
        _view.cancel_pending()
        _view.city_id = city_id
        _view.statuses = None
        _view.status_error = None
        _view.speed_test_result = None
        _view.speed_test_error = None
        _view.speed_test_phase = SpeedTestPhase.IDLE
        # in-flight work keeps and releases its own flags
        _view.status_busy = BusyFlag("Status fetch")
        _view.speed_test_busy = BusyFlag("Speed test")
    _session.add_recent_search(
        RecentSearch(city_id=city.id, city_name=city.name, timestamp=datetime.now(timezone.utc))
    )
    logger.info("Viewing city %s (%s)", city.name, city.id)
    return city


# -------- Selection --------

def add_favorite(isp_id: str) -> SelectionState:
    if _require_catalog().get_isp(isp_id) is None:
        raise LookupError(f"Unknown ISP: {isp_id}")
    return _session.add_favorite(isp_id)


def remove_favorite(isp_id: str) -> SelectionState:
    return _session.remove_favorite(isp_id)


def build_comparison_item(isp_id: str, city_id: str, plan_id: Optional[str] = None) -> ComparisonItem:
    """
    Snapshot an ISP offer in a city.

    Raises:
        LookupError: Unknown ISP, city or plan
        ValueError: The ISP has no coverage in the city or no plans
    """
    catalog = _require_catalog()
    isp = catalog.get_isp(isp_id)
    if isp is None:
        raise LookupError(f"Unknown ISP: {isp_id}")
    _require_city(city_id)

    if plan_id:
        plan = next((p for p in isp.plans if p.id == plan_id), None)
        if plan is None:
            raise LookupError(f"Unknown plan {plan_id} for ISP {isp_id}")
    else:
        plan = engine.best_plan(isp)
        if plan is None:
            raise ValueError(f"ISP {isp_id} has no plans")

    coverage = isp.coverage_for(city_id)
    if coverage is None:
        raise ValueError(f"ISP {isp_id} does not serve city {city_id}")
    return ComparisonItem(isp=isp, plan=plan, coverage=coverage)


def add_to_comparison(isp_id: str, city_id: str, plan_id: Optional[str] = None) -> SelectionState:
    item = build_comparison_item(isp_id, city_id, plan_id)
    return _session.add_to_comparison(item)


# -------- External signals --------

async def locate(api_key: Optional[str] = None) -> LocateResponse:
    """Geolocate the caller and resolve the nearest catalog city."""
    catalog = _require_catalog()
    outcome = await fetch_geolocation(api_key=api_key, client=_http_client)
    if not isinstance(outcome, GeolocationSuccess):
        return LocateResponse(outcome=outcome)

    data = outcome.data
    _view.geolocation = data
    city = geo.resolve_city(data, catalog.cities, settings.NEAREST_CITY_MAX_KM)
    suspicious = geo.is_suspicious_ip(data)
    if suspicious:
        logger.warning("Security alert for %s: proxy=%s tor=%s threat=%s %s", data.ip,
                       data.security.is_proxy, data.security.is_tor,
                       data.security.threat_level.value, data.security.threat_types)

    return LocateResponse(
        outcome=outcome,
        city=city,
        suspicious=suspicious,
        security_warning=geo.get_security_warning(data),
    )


async def refresh_status(city_id: Optional[str] = None) -> Optional[List[IspStatus]]:
    """
    Fetch ISP status for a city.

    Returns None without doing anything when a fetch is already running, and
    None when the fetch was superseded by navigating to another city. The
    view is only updated when city_id is the city being viewed.
    """
    catalog = _require_catalog()
    city_id = city_id or _view.city_id
    if not city_id:
        raise ValueError("No city selected")
    _require_city(city_id)

    busy = _view.status_busy
    if not busy.try_acquire():
        return None

    view = _view
    token = view.new_token("status")
    try:
        statuses = await fetch_isp_status_for_city(city_id, catalog.isps, token=token)
        if token.cancelled:
            logger.info("Discarding superseded status result for %s", city_id)
            return None
        if view.shows(city_id):
            view.statuses = statuses
            view.status_error = None
        return statuses
    except OperationCancelled:
        logger.info("Status fetch for %s cancelled", city_id)
        return None
    finally:
        busy.release()
        view.release_token(token)


async def start_speed_test(city_id: Optional[str] = None) -> Optional[SpeedTestResult]:
    """
    Run a speed test for a city.

    Returns None when a test is already running or the test was superseded.
    Phase, result and error reach the view only when city_id is the city
    being viewed.

    Raises:
        SpeedTestError: When the measurement fails
    """
    catalog = _require_catalog()
    city_id = city_id or _view.city_id
    if city_id:
        _require_city(city_id)

    busy = _view.speed_test_busy
    if not busy.try_acquire():
        return None

    view = _view
    token = view.new_token("speed-test")
    applies = view.shows(city_id)
    if applies:
        view.speed_test_error = None

    def on_progress(phase: SpeedTestPhase):
        if applies and not token.cancelled:
            view.speed_test_phase = phase

    try:
        result = await run_speed_test(city_id, catalog.isps, client=_http_client,
                                      on_progress=on_progress, token=token)
        if token.cancelled:
            return None
        if applies:
            view.speed_test_result = result
        return result
    except OperationCancelled:
        logger.info("Speed test for %s cancelled", city_id)
        return None
    except SpeedTestError as e:
        if applies and not token.cancelled:
            view.speed_test_error = e.message
        raise
    finally:
        busy.release()
        view.release_token(token)


async def get_health_status() -> Dict[str, Any]:
    """
    Get service health status.

    Returns:
        Dictionary with health information
    """
    return {
        "status": "healthy" if is_ready() else "not_ready",
        "version": __version__,
        "initialized": _initialized,
        "catalog_loaded": _catalog is not None,
        "cities": len(_catalog.cities) if _catalog else 0,
        "isps": len(_catalog.isps) if _catalog else 0,
        "geolocation_enabled": settings.geolocation_configured(),
    }
