import pytest
from pydantic import ValidationError

from isp_finder.core.engine import active_filter_count, best_plan, relevant_plans, select
from isp_finder.models import PlanTypeFilter, SearchFilters, SearchRequest, SortMode, browse_filters

from conftest import make_coverage, make_isp, make_plan

RESIDENTIAL = dict(plan_type="residential")


def ids(result):
    return [isp.id for isp in result.isps]


class TestFiltering:
    def test_city_with_and_without_coverage(self):
        a = make_isp("A", coverage=[make_coverage("ktm", 80)])
        b = make_isp("B", coverage=[make_coverage("pokhara", 90)])
        result = select([a, b], "ktm", SearchFilters(), SortMode.COVERAGE)
        assert ids(result) == ["A"]
        assert result.count == 1

    def test_default_filters_equal_has_coverage(self, isps, cities):
        for city in cities:
            expected = {isp.id for isp in isps if isp.coverage_for(city.id) is not None}
            assert set(ids(select(isps, city.id))) == expected

    def test_default_filters_keep_business_only_and_premium_isps(self):
        business = make_isp("biz", plans=[make_plan("b", plan_type="business")], coverage=[make_coverage("ktm", 70)])
        premium = make_isp("premium", plans=[make_plan("p", price=5000)], coverage=[make_coverage("ktm", 60)])
        assert ids(select([business, premium], "ktm", SearchFilters())) == ["biz", "premium"]

    def test_browse_filters_limit_to_affordable_residential(self, isps):
        assert ids(select(isps, "ktm", browse_filters())) == ["beta", "alpha", "gamma"]

    def test_search_request_starts_from_browse_filters(self):
        assert SearchRequest().filters == browse_filters()
        request = SearchRequest.model_validate({"filters": {"min_speed": 50}})
        assert request.filters == browse_filters(min_speed=50)
        request = SearchRequest.model_validate({"filters": {"plan_type": "both"}})
        assert request.filters.plan_type == PlanTypeFilter.BOTH
        assert request.filters.price_range == (0, 3000)

    def test_min_coverage_is_inclusive(self, isps):
        assert ids(select(isps, "ktm", SearchFilters(min_coverage=80))) == ["beta", "alpha", "gamma"]
        assert ids(select(isps, "ktm", SearchFilters(min_coverage=81))) == ["beta"]

    def test_plan_type(self, isps):
        assert "delta" not in ids(select(isps, "ktm", SearchFilters(**RESIDENTIAL)))
        business = select(isps, "ktm", SearchFilters(plan_type="business", price_range=(0, 100000)))
        assert set(ids(business)) == {"alpha", "delta"}

    def test_price_range_inclusive(self, isps):
        assert ids(select(isps, "ktm", SearchFilters(price_range=(0, 800)))) == ["gamma"]
        assert ids(select(isps, "ktm", SearchFilters(price_range=(1200, 1200)))) == ["alpha"]

    def test_min_speed_uses_relevant_plans_only(self, isps):
        # alpha's 500 Mbps plan is a business plan and does not count for residential searches
        assert ids(select(isps, "ktm", SearchFilters(min_speed=200, **RESIDENTIAL))) == ["gamma"]
        both = select(isps, "ktm", SearchFilters(min_speed=200))
        assert set(ids(both)) == {"alpha", "gamma", "delta"}

    def test_connection_types(self, isps):
        assert ids(select(isps, "ktm", SearchFilters(connection_types=["Cable"]))) == ["beta"]
        assert set(ids(select(isps, "ktm", SearchFilters(connection_types=["DSL", "Cable"])))) == {"beta", "gamma"}

    def test_no_city_ignores_coverage(self, isps):
        result = select(isps, None, SearchFilters(), SortMode.COVERAGE)
        assert ids(result) == ["alpha", "beta", "gamma", "delta"]

    def test_unknown_city_yields_nothing(self, isps):
        assert select(isps, "nowhere").count == 0

    def test_invalid_price_range(self):
        with pytest.raises(ValidationError):
            SearchFilters(price_range=(500, 100))


class TestSorting:
    def test_relevance_by_city_coverage(self, isps):
        assert ids(select(isps, "ktm")) == ["beta", "alpha", "gamma", "delta"]

    def test_price_low(self, isps):
        assert ids(select(isps, "ktm", SearchFilters(), SortMode.PRICE_LOW)) == ["gamma", "beta", "alpha", "delta"]

    def test_price_high(self, isps):
        assert ids(select(isps, "ktm", SearchFilters(), SortMode.PRICE_HIGH)) == ["alpha", "delta", "gamma", "beta"]

    def test_speed_ties_keep_catalog_order(self, isps):
        assert ids(select(isps, "ktm", SearchFilters(), SortMode.SPEED)) == ["alpha", "gamma", "delta", "beta"]

    def test_rating(self, isps):
        assert ids(select(isps, "ktm", SearchFilters(), SortMode.RATING)) == ["gamma", "alpha", "delta", "beta"]

    @pytest.mark.parametrize("filters", [
        SearchFilters(),
        browse_filters(),
        SearchFilters(plan_type="business"),
        SearchFilters(connection_types=["Fiber", "DSL"], min_coverage=60),
    ])
    def test_price_low_is_non_decreasing(self, isps, filters):
        result = select(isps, "ktm", filters, SortMode.PRICE_LOW)
        prices = [min(p.price for p in isp.plans) for isp in result.isps]
        assert prices == sorted(prices)

    def test_equal_keys_are_stable(self):
        catalog = [make_isp(f"isp{i}", coverage=[make_coverage("ktm", 70)], rating=4.0) for i in range(20)]
        expected = [isp.id for isp in catalog]
        for mode in SortMode:
            assert ids(select(catalog, "ktm", SearchFilters(), mode)) == expected


class TestActiveFilterCount:
    def test_defaults(self):
        assert active_filter_count(SearchFilters()) == 0
        assert active_filter_count(browse_filters()) == 0
        assert active_filter_count(SearchFilters(price_range=(0, 5000))) == 0

    def test_each_dimension_counts_once(self):
        assert active_filter_count(SearchFilters(price_range=(0, 2000))) == 1
        assert active_filter_count(SearchFilters(price_range=(100, 3000))) == 1
        filters = SearchFilters(price_range=(100, 2000), min_speed=10, connection_types=["Fiber", "DSL"],
                                min_coverage=20)
        assert active_filter_count(filters) == 4

    def test_plan_type_not_counted(self):
        assert active_filter_count(SearchFilters(plan_type="business")) == 0

    def test_exposed_on_result(self, isps):
        assert select(isps, "ktm", SearchFilters(min_speed=50)).active_filter_count == 1


class TestPlans:
    def test_relevant_plans(self, isps):
        alpha = isps[0]
        assert [p.id for p in relevant_plans(alpha, PlanTypeFilter.RESIDENTIAL)] == ["a-home"]
        assert [p.id for p in relevant_plans(alpha, PlanTypeFilter.BOTH)] == ["a-home", "a-biz"]

    def test_best_plan_cheapest_residential(self, isps):
        assert best_plan(isps[0]).id == "a-home"
        assert best_plan(isps[2]).id == "g-dsl"

    def test_best_plan_falls_back_to_first(self, isps):
        assert best_plan(isps[3]).id == "d-biz"

    def test_best_plan_keeps_cheaper_business_plan_listed_first(self):
        isp = make_isp("mixed", plans=[
            make_plan("biz", price=500, plan_type="business"),
            make_plan("home", price=900),
            make_plan("home-plus", price=700),
        ])
        assert best_plan(isp).id == "biz"

    def test_best_plan_moves_to_cheaper_residential(self):
        isp = make_isp("mixed", plans=[
            make_plan("biz", price=5000, plan_type="business"),
            make_plan("home", price=900),
            make_plan("home-plus", price=700),
        ])
        assert best_plan(isp).id == "home-plus"

    def test_best_plan_without_plans(self):
        assert best_plan(make_isp("empty", plans=[])) is None

    def test_business_only_isp(self):
        isp = make_isp("biz", plans=[make_plan("x", plan_type="business")], coverage=[make_coverage("ktm", 90)])
        assert select([isp], "ktm", SearchFilters(**RESIDENTIAL)).count == 0
        assert select([isp], "ktm").count == 1
