"""
Selection state: favorites, comparison set and recent searches.

SelectionState is an immutable value; every mutation returns a new state.
SelectionSession is the single handle through which the application reads
and replaces the current state for the lifetime of the process.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from isp_finder.models import ComparisonItem, RecentSearch

MAX_COMPARISON_ITEMS = 3
MAX_RECENT_SEARCHES = 5


class SelectionState(BaseModel):
    model_config = ConfigDict(frozen=True)

    favorites: Tuple[str, ...] = ()
    comparison: Tuple[ComparisonItem, ...] = ()
    recent_searches: Tuple[RecentSearch, ...] = ()

    # -------- Favorites --------

    def add_favorite(self, isp_id: str) -> "SelectionState":
        if isp_id in self.favorites:
            return self
        return self.model_copy(update={"favorites": self.favorites + (isp_id,)})

    def remove_favorite(self, isp_id: str) -> "SelectionState":
        if isp_id not in self.favorites:
            return self
        return self.model_copy(update={"favorites": tuple(f for f in self.favorites if f != isp_id)})

    def is_favorite(self, isp_id: str) -> bool:
        return isp_id in self.favorites

    def clear_favorites(self) -> "SelectionState":
        return self.model_copy(update={"favorites": ()})

    # -------- Comparison --------

    def in_comparison(self, isp_id: str) -> bool:
        return any(item.isp.id == isp_id for item in self.comparison)

    def add_to_comparison(self, item: ComparisonItem) -> "SelectionState":
        """Append a snapshot; ignored when full or when the ISP is already compared."""
        if len(self.comparison) >= MAX_COMPARISON_ITEMS or self.in_comparison(item.isp.id):
            return self
        snapshot = item.model_copy(deep=True)
        return self.model_copy(update={"comparison": self.comparison + (snapshot,)})

    def remove_from_comparison(self, isp_id: str) -> "SelectionState":
        if not self.in_comparison(isp_id):
            return self
        return self.model_copy(update={"comparison": tuple(i for i in self.comparison if i.isp.id != isp_id)})

    def clear_comparison(self) -> "SelectionState":
        return self.model_copy(update={"comparison": ()})

    # -------- Recent searches --------

    def add_recent_search(self, search: RecentSearch) -> "SelectionState":
        """Move the city to the front, keeping at most MAX_RECENT_SEARCHES entries."""
        others = tuple(s for s in self.recent_searches if s.city_id != search.city_id)
        recent = ((search,) + others)[:MAX_RECENT_SEARCHES]
        return self.model_copy(update={"recent_searches": recent})

    def clear_recent_searches(self) -> "SelectionState":
        return self.model_copy(update={"recent_searches": ()})


class SelectionSession:
    """
    Holder of the current SelectionState.

    Each mutator applies a state transition, stores the result and returns it.
    """

    def __init__(self, state: Optional[SelectionState] = None):
        self._state = state or SelectionState()

    @property
    def state(self) -> SelectionState:
        return self._state

    def _apply(self, new_state: SelectionState) -> SelectionState:
        self._state = new_state
        return new_state

    def add_favorite(self, isp_id: str) -> SelectionState:
        return self._apply(self._state.add_favorite(isp_id))

    def remove_favorite(self, isp_id: str) -> SelectionState:
        return self._apply(self._state.remove_favorite(isp_id))

    def is_favorite(self, isp_id: str) -> bool:
        return self._state.is_favorite(isp_id)

    def clear_favorites(self) -> SelectionState:
        return self._apply(self._state.clear_favorites())

    def add_to_comparison(self, item: ComparisonItem) -> SelectionState:
        return self._apply(self._state.add_to_comparison(item))

    def remove_from_comparison(self, isp_id: str) -> SelectionState:
        return self._apply(self._state.remove_from_comparison(isp_id))

    def clear_comparison(self) -> SelectionState:
        return self._apply(self._state.clear_comparison())

    def add_recent_search(self, search: RecentSearch) -> SelectionState:
        return self._apply(self._state.add_recent_search(search))

    def clear_recent_searches(self) -> SelectionState:
        return self._apply(self._state.clear_recent_searches())

    def reset(self) -> SelectionState:
        return self._apply(SelectionState())


# ---------------------------------------------------------------------------
# Comparison helpers
# ---------------------------------------------------------------------------

def comparison_winners(items: Sequence[ComparisonItem]) -> Dict[str, str]:
    """
    Winning ISP id per category: lowest price, highest speed, highest coverage,
    highest rating. The earliest item wins ties.
    """
    if not items:
        return {}

    price = speed = coverage = rating = items[0]
    for item in items[1:]:
        if item.plan.price < price.plan.price:
            price = item
        if item.plan.speed > speed.plan.speed:
            speed = item
        if item.coverage.coverage_percentage > coverage.coverage.coverage_percentage:
            coverage = item
        if item.isp.rating > rating.isp.rating:
            rating = item

    return {
        "price": price.isp.id,
        "speed": speed.isp.id,
        "coverage": coverage.isp.id,
        "rating": rating.isp.id,
    }


def _fmt(value: float) -> str:
    return f"{value:g}"


def export_comparison_text(items: Sequence[ComparisonItem], currency: str = "₨") -> str:
    """Plain-text report of the comparison set."""
    lines: List[str] = ["=== ISP COMPARISON ===", ""]
    for index, item in enumerate(items, 1):
        lines.append(f"{index}. {item.isp.name}")
        lines.append(f"   Plan: {item.plan.name}")
        lines.append(f"   Speed: {_fmt(item.plan.speed)} Mbps")
        lines.append(f"   Price: {currency}{_fmt(item.plan.price)}/month")
        lines.append(f"   Coverage: {_fmt(item.coverage.coverage_percentage)}%")
        lines.append(f"   Rating: {_fmt(item.isp.rating)}/5 ({item.isp.total_reviews} reviews)")
        lines.append("")
    return "\n".join(lines)


def comparison_share_query(items: Sequence[ComparisonItem]) -> str:
    """Query string that reproduces the comparison set, e.g. compare=a,b."""
    return "compare=" + ",".join(item.isp.id for item in items)
