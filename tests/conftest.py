from typing import List, Optional

import pytest

from isp_finder.models import City, Coordinates, Coverage, ISP, Plan


def make_city(city_id: str, name: str, lat: float, lng: float, state: str = "Bagmati") -> City:
    return City(id=city_id, name=name, state=state, coordinates=Coordinates(lat=lat, lng=lng))


def make_plan(plan_id: str, price: float = 1000, speed: float = 100, plan_type: str = "residential",
              connection_type: str = "Fiber") -> Plan:
    return Plan(
        id=plan_id,
        name=plan_id.title(),
        type=plan_type,
        connection_type=connection_type,
        speed=speed,
        upload_speed=speed,
        price=price,
    )


def make_coverage(city_id: str, percentage: float) -> Coverage:
    if percentage >= 80:
        strength = "excellent"
    elif percentage >= 60:
        strength = "good"
    elif percentage >= 40:
        strength = "fair"
    else:
        strength = "poor"
    return Coverage(city_id=city_id, city_name=city_id.title(), coverage_percentage=percentage,
                    signal_strength=strength)


def make_isp(isp_id: str, plans: Optional[List[Plan]] = None, coverage: Optional[List[Coverage]] = None,
             rating: float = 4.0) -> ISP:
    return ISP(
        id=isp_id,
        name=isp_id.upper(),
        rating=rating,
        total_reviews=10,
        plans=plans if plans is not None else [make_plan(f"{isp_id}-basic")],
        coverage=coverage or [],
    )


@pytest.fixture
def cities() -> List[City]:
    return [
        make_city("ktm", "Kathmandu", 27.7172, 85.324),
        make_city("pokhara", "Pokhara", 28.2096, 83.9856, state="Gandaki"),
        make_city("lalitpur", "Lalitpur", 27.6588, 85.3247),
    ]


@pytest.fixture
def isps() -> List[ISP]:
    return [
        make_isp(
            "alpha",
            plans=[make_plan("a-home", price=1200, speed=100), make_plan("a-biz", price=8000, speed=500, plan_type="business")],
            coverage=[make_coverage("ktm", 80), make_coverage("pokhara", 35)],
            rating=4.2,
        ),
        make_isp(
            "beta",
            plans=[make_plan("b-cable", price=900, speed=60, connection_type="Cable")],
            coverage=[make_coverage("ktm", 95)],
            rating=3.8,
        ),
        make_isp(
            "gamma",
            plans=[make_plan("g-dsl", price=700, speed=16, connection_type="DSL"),
                   make_plan("g-fiber", price=2500, speed=300)],
            coverage=[make_coverage("ktm", 80), make_coverage("lalitpur", 55)],
            rating=4.6,
        ),
        make_isp(
            "delta",
            plans=[make_plan("d-biz", price=6000, speed=300, plan_type="business")],
            coverage=[make_coverage("ktm", 50)],
            rating=4.0,
        ),
    ]
