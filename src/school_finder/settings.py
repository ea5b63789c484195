from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


PRIVATE_LAYER_URL = (
    "https://services1.arcgis.com/Ua5sjt3LWTPigjyD/arcgis/rest/services/"
    "Private_School_Locations_Current/FeatureServer/0"
)
PUBLIC_LAYER_URL = (
    "https://services1.arcgis.com/Ua5sjt3LWTPigjyD/arcgis/rest/services/"
    "Public_School_Location_201819/FeatureServer/0"
)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    v = str(raw).strip().lower()
    if v in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if v in {"0", "false", "f", "no", "n", "off"}:
        return False
    return default


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        return default
    if value < minimum:
        return default
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = float(str(raw).strip())
    except ValueError:
        return default
    if value <= 0:
        return default
    return value


def _env_str(*names: str) -> Optional[str]:
    for name in names:
        raw = os.getenv(name)
        if raw is not None and raw.strip():
            return raw.strip()
    return None


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, read from the environment once.

    Only the map collaborator depends on ``maps_api_key``; every search
    setting has a working default.
    """

    private_layer_url: str
    public_layer_url: str
    district_record_cap: int
    school_record_cap: int
    http_timeout_s: float
    http_retries: int
    user_agent: str
    debounce_ms: int
    min_query_length: int
    cache_enabled: bool
    cache_max_entries: int
    maps_api_key: Optional[str]

    @property
    def debounce_s(self) -> float:
        return self.debounce_ms / 1000.0

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            private_layer_url=_env_str("SF_PRIVATE_LAYER_URL") or PRIVATE_LAYER_URL,
            public_layer_url=_env_str("SF_PUBLIC_LAYER_URL") or PUBLIC_LAYER_URL,
            district_record_cap=_env_int("SF_DISTRICT_RECORD_CAP", 500, minimum=1),
            school_record_cap=_env_int("SF_SCHOOL_RECORD_CAP", 100, minimum=1),
            http_timeout_s=_env_float("SF_HTTP_TIMEOUT_S", 20.0),
            http_retries=_env_int("SF_HTTP_RETRIES", 0),
            user_agent=_env_str("SF_HTTP_USER_AGENT") or "school-finder",
            debounce_ms=_env_int("SF_DEBOUNCE_MS", 700),
            min_query_length=_env_int("SF_MIN_QUERY_LENGTH", 2, minimum=1),
            cache_enabled=_env_bool("SF_CACHE", True),
            cache_max_entries=_env_int("SF_CACHE_MAX_ENTRIES", 512, minimum=1),
            maps_api_key=_env_str("MAPS_API_KEY", "VITE_MAPS_API_KEY"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


def reset_settings_cache() -> None:
    """Test helper to force env re-read."""

    get_settings.cache_clear()
