"""
Read-only catalog of cities and ISPs, loaded once at startup.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from pydantic import ValidationError

from isp_finder.models import Catalog, City, ISP

logger = logging.getLogger(__name__)


class CatalogError(ValueError):
    """Raised when the catalog file is missing, unparsable or inconsistent."""


class CatalogStore:
    """
    In-memory collection of City and ISP records.

    Records keep catalog order, which doubles as the tie-break order for
    every ranking done on top of the store.
    """

    def __init__(self, cities: Sequence[City], isps: Sequence[ISP]):
        self._cities: List[City] = list(cities)
        self._isps: List[ISP] = list(isps)
        self._cities_by_id: Dict[str, City] = {}
        self._isps_by_id: Dict[str, ISP] = {}
        self._index()

    def _index(self):
        for city in self._cities:
            if city.id in self._cities_by_id:
                raise CatalogError(f"Duplicate city id: {city.id}")
            self._cities_by_id[city.id] = city

        for isp in self._isps:
            if isp.id in self._isps_by_id:
                raise CatalogError(f"Duplicate ISP id: {isp.id}")
            seen_cities = set()
            for coverage in isp.coverage:
                if coverage.city_id in seen_cities:
                    raise CatalogError(f"ISP {isp.id} has more than one coverage record for city {coverage.city_id}")
                seen_cities.add(coverage.city_id)
            self._isps_by_id[isp.id] = isp

    @property
    def cities(self) -> List[City]:
        return list(self._cities)

    @property
    def isps(self) -> List[ISP]:
        return list(self._isps)

    def get_city(self, city_id: str) -> Optional[City]:
        return self._cities_by_id.get(city_id)

    def get_isp(self, isp_id: str) -> Optional[ISP]:
        return self._isps_by_id.get(isp_id)


def load_catalog(path: str) -> CatalogStore:
    """
    Load and validate a catalog JSON document.

    Args:
        path: Path to a JSON file with top-level "cities" and "isps" arrays

    Returns:
        CatalogStore with the validated records

    Raises:
        CatalogError: If the file cannot be read or fails validation
    """
    catalog_path = Path(path)
    try:
        with open(catalog_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"Unable to read catalog {catalog_path}: {e}") from e

    try:
        catalog = Catalog.model_validate(raw)
    except ValidationError as e:
        raise CatalogError(f"Invalid catalog {catalog_path}: {e}") from e

    store = CatalogStore(catalog.cities, catalog.isps)
    logger.info("Loaded catalog %s: %d cities, %d ISPs", catalog_path.name, len(store.cities), len(store.isps))
    return store
