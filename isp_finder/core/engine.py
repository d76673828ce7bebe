"""
Filter-and-sort pipeline over catalog ISPs.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from isp_finder.models import (
    ISP,
    Plan,
    PlanType,
    PRICE_SLIDER_RANGE,
    PlanTypeFilter,
    SearchFilters,
    SortMode,
)


@dataclass
class SearchResult:
    """Ordered matches plus the counters the result header shows."""
    isps: List[ISP]
    active_filter_count: int

    @property
    def count(self) -> int:
        return len(self.isps)


def relevant_plans(isp: ISP, plan_type: PlanTypeFilter) -> List[Plan]:
    """Plans matching the residential/business/both restriction."""
    if plan_type == PlanTypeFilter.BOTH:
        return list(isp.plans)
    return [plan for plan in isp.plans if plan.type.value == plan_type.value]


def matches_filters(isp: ISP, city_id: Optional[str], filters: SearchFilters) -> bool:
    """All filter dimensions must pass."""
    if city_id:
        coverage = isp.coverage_for(city_id)
        if coverage is None:
            return False
        if coverage.coverage_percentage < filters.min_coverage:
            return False

    plans = relevant_plans(isp, filters.plan_type)
    if not plans:
        return False

    if filters.price_range is not None:
        min_price, max_price = filters.price_range
        if not any(min_price <= plan.price <= max_price for plan in plans):
            return False

    if not any(plan.speed >= filters.min_speed for plan in plans):
        return False

    if filters.connection_types:
        selected = set(filters.connection_types)
        if not any(plan.connection_type in selected for plan in plans):
            return False

    return True


def _coverage_key(city_id: Optional[str]) -> Callable[[ISP], float]:
    def key(isp: ISP) -> float:
        coverage = isp.coverage_for(city_id)
        return -(coverage.coverage_percentage if coverage else 0)
    return key


def _min_price(isp: ISP) -> float:
    return min((plan.price for plan in isp.plans), default=0)


def _max_price(isp: ISP) -> float:
    return max((plan.price for plan in isp.plans), default=0)


def _max_speed(isp: ISP) -> float:
    return max((plan.speed for plan in isp.plans), default=0)


def sort_key(sort: SortMode, city_id: Optional[str]) -> Callable[[ISP], float]:
    """
    Ascending key for the given mode; descending modes negate their value so
    that a single stable ascending sort keeps ties in catalog order.
    """
    keys: Dict[SortMode, Callable[[ISP], float]] = {
        SortMode.RELEVANCE: _coverage_key(city_id),
        SortMode.COVERAGE: _coverage_key(city_id),
        SortMode.PRICE_LOW: _min_price,
        SortMode.PRICE_HIGH: lambda isp: -_max_price(isp),
        SortMode.SPEED: lambda isp: -_max_speed(isp),
        SortMode.RATING: lambda isp: -isp.rating,
    }
    return keys.get(sort, keys[SortMode.RELEVANCE])


def active_filter_count(filters: SearchFilters) -> int:
    """Number of filter dimensions narrowing the search (plan type excluded)."""
    slider_low, slider_high = PRICE_SLIDER_RANGE
    price_narrowed = False
    if filters.price_range is not None:
        low, high = filters.price_range
        price_narrowed = low > slider_low or high < slider_high
    return sum([
        price_narrowed,
        filters.min_speed > 0,
        len(filters.connection_types) > 0,
        filters.min_coverage > 0,
    ])


def select(
    catalog: Sequence[ISP],
    city_id: Optional[str] = None,
    filters: Optional[SearchFilters] = None,
    sort: SortMode = SortMode.RELEVANCE,
) -> SearchResult:
    """
    Filter and rank ISPs for a city.

    Args:
        catalog: ISPs in catalog order
        city_id: Target city; None disables coverage filtering and coverage sorts
        filters: Filter configuration, defaults when omitted
        sort: Ordering to apply

    Returns:
        SearchResult with the ordered ISPs and the active filter count
    """
    filters = filters or SearchFilters()
    matched = [isp for isp in catalog if matches_filters(isp, city_id, filters)]
    # sorted() is stable: equal keys keep their catalog order
    ranked = sorted(matched, key=sort_key(sort, city_id))
    return SearchResult(isps=ranked, active_filter_count=active_filter_count(filters))


def best_plan(isp: ISP) -> Optional[Plan]:
    """
    Plan shown as the ISP's headline offer.

    Starts from the first listed plan and moves to any cheaper residential
    plan, so a business plan listed first is kept when nothing residential
    undercuts it.
    """
    if not isp.plans:
        return None
    best = isp.plans[0]
    for plan in isp.plans:
        if plan.type == PlanType.RESIDENTIAL and plan.price < best.price:
            best = plan
    return best
