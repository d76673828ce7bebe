"""
Configuration settings for the ISP finder application.
"""

import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Value shipped in .env.example; treated the same as a missing key
PLACEHOLDER_IPSTACK_KEY = "your_ipstack_api_key_here"

_DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "data" / "catalog.json"


class Settings:
    """Application settings and configuration."""

    # IPStack Configuration (geolocation is disabled when unset)
    IPSTACK_API_KEY: Optional[str] = os.environ.get("IPSTACK_API_KEY")
    IPSTACK_BASE_URL: str = os.environ.get("IPSTACK_BASE_URL", "http://api.ipstack.com")

    # Catalog Configuration
    CATALOG_PATH: str = os.environ.get("CATALOG_PATH", str(_DEFAULT_CATALOG_PATH))

    # Geo resolution
    NEAREST_CITY_MAX_KM: float = float(os.environ.get("NEAREST_CITY_MAX_KM", "500"))

    # Speed test Configuration
    SPEED_TEST_LOCATE_URL: str = os.environ.get(
        "SPEED_TEST_LOCATE_URL", "https://locate.measurementlab.net/v2/nearest/ndt/ndt7"
    )
    SPEED_TEST_FALLBACK_URL: str = os.environ.get("SPEED_TEST_FALLBACK_URL", "https://speed.cloudflare.com")
    SPEED_TEST_PING_SAMPLES: int = 5
    SPEED_TEST_DOWNLOAD_BYTES: int = 10_000_000
    SPEED_TEST_UPLOAD_BYTES: int = 2_000_000

    # Status Configuration (placeholder provider latency)
    STATUS_SIMULATED_DELAY_SEC: float = float(os.environ.get("STATUS_SIMULATED_DELAY_SEC", "0"))

    # HTTP Configuration
    HTTP_CLIENT_TIMEOUT: int = 15

    # Logging
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # API Configuration
    API_TITLE: str = "ISP Finder API"
    API_VERSION: str = "1.0.0"

    def geolocation_configured(self) -> bool:
        """Whether a usable IPStack key is present."""
        key = (self.IPSTACK_API_KEY or "").strip()
        return bool(key) and key != PLACEHOLDER_IPSTACK_KEY

    def validate_required_vars(self):
        """Validate that all required environment variables are set."""
        missing = []

        if not Path(self.CATALOG_PATH).is_file():
            missing.append(f"CATALOG_PATH (file not found: {self.CATALOG_PATH})")

        if missing:
            raise ValueError(f"Required configuration not usable: {', '.join(missing)}")


# Global settings instance
settings = Settings()

# Missing geolocation key only disables that feature, so warn instead of failing
import warnings

if not settings.geolocation_configured():
    warnings.warn("IPSTACK_API_KEY environment variable not set. Geolocation features will be disabled.")
