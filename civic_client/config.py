"""
Client configuration using Pydantic Settings.

Every value can be overridden with an environment variable prefixed
``CIVIC_`` (e.g. ``CIVIC_API_URL``) or from a ``.env`` file.
"""

from functools import lru_cache
from typing import List, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CIVIC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Backend REST API
    api_url: str = Field(default="http://localhost:5000/api", description="Backend API base URL")
    request_timeout: float = Field(default=30.0, description="Default request timeout (seconds)")
    issues_timeout: float = Field(default=15.0, description="Timeout for issue listing (seconds)")

    # Geocoding / routing
    nominatim_user_agent: str = "CivicIssues/1.0"
    geocode_cache_ttl: float = Field(default=300.0, description="Reverse geocode cache lifetime (seconds)")
    geocode_min_delay: float = 1.0
    osrm_url: str = "https://router.project-osrm.org"
    ip_lookup_url: str = "http://ip-api.com/json"
    default_center: Tuple[float, float] = (12.9716, 77.5946)  # Bengaluru

    # Image analysis
    ai_enabled: bool = True
    upload_max_bytes: int = 5 * 1024 * 1024
    max_batch_size: int = 5
    supported_image_types: List[str] = ["image/jpeg", "image/jpg", "image/png", "image/webp"]

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()
