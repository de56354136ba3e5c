import os
from typing import Optional, Tuple
from dotenv import load_dotenv

from zonemap.utils.exceptions import ConfigurationError

# Load environment variables
load_dotenv()


def _parse_bounds(raw: str) -> Optional[Tuple[float, float, float, float]]:
    """Parse "south,west,north,east" into a tuple, empty means no sanity box"""
    if not raw:
        return None
    parts = [float(p) for p in raw.split(",")]
    if len(parts) != 4:
        raise ConfigurationError(f"GEOCODER_BOUNDS needs 4 values, got {raw!r}")
    return tuple(parts)


class Settings:
    """Application configuration settings"""

    # Viewport filter
    MIN_ZOOM: int = int(os.getenv("MIN_ZOOM", "15"))
    SAMPLING_ZOOM: int = int(os.getenv("SAMPLING_ZOOM", "17"))
    SAMPLE_FRACTION: float = float(os.getenv("SAMPLE_FRACTION", "0.05"))
    SAMPLE_MAX: int = int(os.getenv("SAMPLE_MAX", "150"))
    VIEWPORT_CAP: int = int(os.getenv("VIEWPORT_CAP", "300"))
    POLYGON_CAP: int = int(os.getenv("POLYGON_CAP", "1000"))
    SEARCH_FIELDS: tuple = tuple(
        f.strip() for f in os.getenv(
            "SEARCH_FIELDS",
            "address,floor,reference,street_name,door,block,population,owner_name"
        ).split(",") if f.strip()
    )

    # Debounce window for interactive recomputation
    DEBOUNCE_SECONDS: float = float(os.getenv("DEBOUNCE_SECONDS", "0.3"))

    # Geocoding (Nominatim usage policy: max 1 request/second)
    GEOCODER_BASE_URL: str = os.getenv("GEOCODER_BASE_URL", "https://nominatim.openstreetmap.org")
    # Optional second service tried by reverse lookups when the first one fails
    GEOCODER_FALLBACK_URL: str = os.getenv("GEOCODER_FALLBACK_URL", "")
    GEOCODER_USER_AGENT: str = os.getenv("GEOCODER_USER_AGENT", "ZoneMap-CRM/1.0")
    GEOCODER_LANGUAGE: str = os.getenv("GEOCODER_LANGUAGE", "es")
    GEOCODER_REGION_SUFFIX: str = os.getenv("GEOCODER_REGION_SUFFIX", "")
    GEOCODER_BOUNDS: Optional[Tuple[float, float, float, float]] = _parse_bounds(
        os.getenv("GEOCODER_BOUNDS", "")
    )
    GEOCODER_TIMEOUT: float = float(os.getenv("GEOCODER_TIMEOUT", "10"))
    GEOCODE_MIN_INTERVAL: float = float(os.getenv("GEOCODE_MIN_INTERVAL", "1.0"))
    GEOCODE_CACHE_TTL: int = int(os.getenv("GEOCODE_CACHE_TTL", "86400"))  # 24 hours
    GEOCODE_BATCH_MAX: int = int(os.getenv("GEOCODE_BATCH_MAX", "100"))

    # Flask
    DEBUG: bool = os.getenv("DEBUG", "true").lower() == "true"
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-key")
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "5000"))
    API_VERSION: str = os.getenv("API_VERSION", "v1")
    ALLOWED_ORIGINS: list = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")

    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "120"))
    RATE_LIMIT_STORAGE_URI: str = os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json")

    # Monitoring
    SLOW_RECOMPUTE_SECONDS: float = float(os.getenv("SLOW_RECOMPUTE_SECONDS", "0.05"))
    SLOW_REQUEST_SECONDS: float = float(os.getenv("SLOW_REQUEST_SECONDS", "2.0"))

    @classmethod
    def validate(cls) -> None:
        """Validate settings"""
        if cls.MIN_ZOOM > cls.SAMPLING_ZOOM:
            raise ConfigurationError(
                f"MIN_ZOOM ({cls.MIN_ZOOM}) must not exceed SAMPLING_ZOOM ({cls.SAMPLING_ZOOM})"
            )

        if not 0 < cls.SAMPLE_FRACTION <= 1:
            raise ConfigurationError(f"Invalid SAMPLE_FRACTION: {cls.SAMPLE_FRACTION}")

        if cls.VIEWPORT_CAP <= 0 or cls.POLYGON_CAP <= 0:
            raise ConfigurationError("VIEWPORT_CAP and POLYGON_CAP must be positive")

        if cls.GEOCODE_MIN_INTERVAL < 1.0 and "nominatim.openstreetmap.org" in cls.GEOCODER_BASE_URL:
            raise ConfigurationError("The public Nominatim service allows at most 1 request per second")

        if cls.LOG_FORMAT not in ["json", "console"]:
            raise ConfigurationError(f"Invalid LOG_FORMAT: {cls.LOG_FORMAT}")

# Create singleton instance
settings = Settings()
