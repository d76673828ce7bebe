"""
Pydantic models and data structures for the ISP finder application.
"""

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Tuple, Union
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ConnectionType(str, Enum):
    """Physical connection technology of a plan."""
    FIBER = "Fiber"
    CABLE = "Cable"
    DSL = "DSL"
    WIRELESS = "Wireless"
    SATELLITE = "Satellite"


class PlanType(str, Enum):
    RESIDENTIAL = "residential"
    BUSINESS = "business"


class PlanTypeFilter(str, Enum):
    """Plan type restriction; BOTH means no restriction."""
    RESIDENTIAL = "residential"
    BUSINESS = "business"
    BOTH = "both"


class SignalStrength(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class SortMode(str, Enum):
    """Supported result orderings."""
    RELEVANCE = "relevance"
    COVERAGE = "coverage"
    PRICE_LOW = "price-low"
    PRICE_HIGH = "price-high"
    SPEED = "speed"
    RATING = "rating"


class ThreatLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ---------------------------------------------------------------------------
# Catalog entities (read-only once loaded)
# ---------------------------------------------------------------------------

class Coordinates(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class City(BaseModel):
    """A city known to the catalog."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    state: str
    coordinates: Coordinates
    population: int = Field(default=0, ge=0)
    area_coverage: List[Coordinates] = []


class Plan(BaseModel):
    """A single subscription plan offered by an ISP."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: PlanType
    connection_type: ConnectionType
    speed: float = Field(..., gt=0, description="Download speed in Mbps")
    upload_speed: float = Field(..., gt=0, description="Upload speed in Mbps")
    price: float = Field(..., ge=0, description="Monthly price")
    data_cap: Optional[int] = Field(default=None, ge=0, description="GB per month, None for unlimited")
    contract_length: int = Field(default=0, ge=0, description="Months, 0 for no contract")
    installation_fee: float = Field(default=0, ge=0)
    equipment_fee: float = Field(default=0, ge=0, description="Monthly")
    features: List[str] = []


class Coverage(BaseModel):
    """Coverage of one ISP in one city. The percentage is authoritative for ranking."""
    model_config = ConfigDict(frozen=True)

    city_id: str
    city_name: str
    coverage_percentage: float = Field(..., ge=0, le=100)
    signal_strength: SignalStrength
    available_at: str = ""


class SpecialOffer(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str = ""
    discount: str = ""
    valid_until: str = ""
    terms: str = ""


class ISP(BaseModel):
    """An internet service provider with its plans and per-city coverage."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    logo: str = ""
    tagline: str = ""
    rating: float = Field(default=0, ge=0, le=5)
    total_reviews: int = Field(default=0, ge=0)
    plans: List[Plan] = []
    coverage: List[Coverage] = []
    features: List[str] = []
    special_offers: List[SpecialOffer] = []
    business_plans: bool = False
    website: str = ""

    def coverage_for(self, city_id: Optional[str]) -> Optional[Coverage]:
        """Coverage record for the given city, if the ISP serves it."""
        if not city_id:
            return None
        for coverage in self.coverage:
            if coverage.city_id == city_id:
                return coverage
        return None


class Catalog(BaseModel):
    """Raw catalog document as stored on disk."""
    cities: List[City] = []
    isps: List[ISP] = []


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

# Span of the price slider; a narrower range counts as an active filter
PRICE_SLIDER_RANGE: Tuple[float, float] = (0, 3000)

# Starting point for searches made through the API
BROWSE_FILTER_DEFAULTS = {
    "price_range": PRICE_SLIDER_RANGE,
    "plan_type": PlanTypeFilter.RESIDENTIAL,
}


class SearchFilters(BaseModel):
    """Filter configuration; every field defaults to 'no restriction'."""
    price_range: Optional[Tuple[float, float]] = None
    min_speed: float = Field(default=0, ge=0)
    connection_types: List[ConnectionType] = []
    min_coverage: float = Field(default=0, ge=0, le=100)
    plan_type: PlanTypeFilter = PlanTypeFilter.BOTH

    @model_validator(mode="after")
    def _check_price_range(self) -> "SearchFilters":
        if self.price_range is None:
            return self
        low, high = self.price_range
        if low < 0 or high < low:
            raise ValueError("price_range must be (min, max) with 0 <= min <= max")
        return self


def browse_filters(**overrides) -> SearchFilters:
    """Residential plans up to the top of the price slider, plus any overrides."""
    return SearchFilters(**{**BROWSE_FILTER_DEFAULTS, **overrides})


class SearchRequest(BaseModel):
    """
    Request model for ISP search.

    Filter fields the client leaves out start from BROWSE_FILTER_DEFAULTS.
    """
    city_id: Optional[str] = None
    filters: SearchFilters = Field(default_factory=browse_filters)
    sort: SortMode = SortMode.RELEVANCE

    @field_validator("filters", mode="before")
    @classmethod
    def _apply_browse_defaults(cls, value):
        if isinstance(value, dict):
            return {**BROWSE_FILTER_DEFAULTS, **value}
        return value


class RankedIsp(BaseModel):
    """One search hit with the data the result list shows next to it."""
    isp: ISP
    coverage: Optional[Coverage] = None
    best_plan: Optional[Plan] = None


class SearchResponse(BaseModel):
    """Response model for ISP search."""
    success: bool
    total_results: int
    active_filter_count: int
    search_time_ms: int
    results: List[RankedIsp]


# ---------------------------------------------------------------------------
# Selection state
# ---------------------------------------------------------------------------

class ComparisonItem(BaseModel):
    """Snapshot of an (ISP, plan, coverage) triple at the time it was added."""
    model_config = ConfigDict(frozen=True)

    isp: ISP
    plan: Plan
    coverage: Coverage


class RecentSearch(BaseModel):
    model_config = ConfigDict(frozen=True)

    city_id: str
    city_name: str
    timestamp: datetime


# ---------------------------------------------------------------------------
# Geolocation
# ---------------------------------------------------------------------------

class SecurityAssessment(BaseModel):
    is_proxy: bool = False
    is_tor: bool = False
    threat_level: ThreatLevel = ThreatLevel.LOW
    threat_types: List[str] = []


class GeolocationData(BaseModel):
    """Location derived from the caller's IP address."""
    ip: str
    city: str
    region: str = ""
    country: str = ""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    security: Optional[SecurityAssessment] = None


class GeolocationFailureReason(str, Enum):
    NOT_CONFIGURED = "not_configured"
    INVALID_KEY = "invalid_key"
    INACTIVE_ACCOUNT = "inactive_account"
    QUOTA_EXCEEDED = "quota_exceeded"
    NETWORK = "network"
    MALFORMED_RESPONSE = "malformed_response"
    UPSTREAM = "upstream"


class GeolocationSuccess(BaseModel):
    status: Literal["success"] = "success"
    data: GeolocationData
    degraded: bool = Field(default=False, description="True when fetched without the security module")


class GeolocationFailure(BaseModel):
    status: Literal["failure"] = "failure"
    reason: GeolocationFailureReason
    message: str


GeolocationOutcome = Annotated[Union[GeolocationSuccess, GeolocationFailure], Field(discriminator="status")]


class LocateResponse(BaseModel):
    """Response model for the geolocation endpoint."""
    outcome: GeolocationOutcome
    city: Optional[City] = None
    suspicious: bool = False
    security_warning: Optional[str] = None


# ---------------------------------------------------------------------------
# ISP status
# ---------------------------------------------------------------------------

class ServiceStatus(str, Enum):
    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    OUTAGE = "outage"
    MAINTENANCE = "maintenance"


class IncidentSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Incident(BaseModel):
    id: str
    title: str
    severity: IncidentSeverity
    started_at: datetime
    link: Optional[str] = None


class IspStatus(BaseModel):
    isp_id: str
    isp_name: str
    status: ServiceStatus
    message: str
    last_updated: datetime
    incidents: Optional[List[Incident]] = None


# ---------------------------------------------------------------------------
# Speed test
# ---------------------------------------------------------------------------

class SpeedTestPhase(str, Enum):
    IDLE = "idle"
    LOCATING_SERVER = "locating-server"
    MEASURING_PING = "measuring-ping"
    MEASURING_DOWNLOAD = "measuring-download"
    MEASURING_UPLOAD = "measuring-upload"
    COMPLETE = "complete"
    ERROR = "error"


class SpeedTestServer(BaseModel):
    """Measurement server chosen for a run."""
    hostname: str
    base_url: str
    site: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    ips: List[str] = []
    fallback: bool = False


class SpeedTestResult(BaseModel):
    download_mbps: float
    upload_mbps: float
    ping_ms: float
    jitter_ms: float
    timestamp: datetime
    isp_name: Optional[str] = None
    city_id: Optional[str] = None
    server: Optional[SpeedTestServer] = None
