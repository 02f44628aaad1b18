"""Project configuration.

Loads overrides from studyspots_config.json when available, falling back to
sensible defaults. Keep feed request shapes and cache parameters centralized here.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

_REPO_ROOT = Path(__file__).resolve().parent.parent

# --- API endpoints ---

OVERPASS_URL = "https://overpass-api.de/api/interpreter"
IP_GEOLOCATION_URL = "https://ipapi.co/json/"

# --- Place feed request shape ---

FEED_AMENITIES: List[str] = ["cafe", "library", "coworking_space"]
OVERPASS_QUERY_TIMEOUT_SECONDS = 25

# --- Place cache ---

PLACE_CACHE_TTL_SECONDS = 8 * 60 * 60
# Three decimal degrees is roughly 100 m, below which GPS jitter is ignored.
COORD_PRECISION = 3
PLACE_CACHE_KEY_PREFIX = "osm_places"

# --- Location ---

DEFAULT_LOCATION: Tuple[float, float] = (47.36450050601848, 8.534532028862294)
LOCATE_TIMEOUT_SECONDS = 10.0

# --- Filters and search ---

DEFAULT_RADIUS_M = 1000
RADIUS_OPTIONS: List[int] = [500, 1000, 2000, 5000]
SEARCH_RESULT_LIMIT = 5

# --- Rating store ---

RATINGS_STALE_SECONDS = 30.0
MAX_RATING_EDITS = 1

# --- HTTP ---

HTTP_TIMEOUT_SECONDS = 30
HTTP_RETRY_MAX = 3
HTTP_BACKOFF_BASE = 0.5
HTTP_BACKOFF_MAX = 8.0
HTTP_USER_AGENT = "studyspots/0.1"

# --- Storage ---

CACHE_DB_PATH = "cache.db"
RATINGS_DB_PATH = "ratings.db"


def load_app_config(path: Optional[str] = None) -> bool:
    """Load configuration overrides from a JSON file.

    Updates module-level globals with values from the config file.
    Returns True if config was loaded, False if file not found.
    """
    if path is None:
        path = str(_REPO_ROOT / "studyspots_config.json")

    config_path = Path(path)
    if not config_path.exists():
        return False

    with open(config_path, "r", encoding="utf-8") as f:
        data: Dict[str, Any] = json.load(f)

    globals_ref = globals()

    default_location = data.get("default_location", {})
    lat = default_location.get("lat")
    lon = default_location.get("lon")
    if lat is not None and lon is not None:
        globals_ref["DEFAULT_LOCATION"] = (float(lat), float(lon))

    radius = data.get("default_radius_m")
    if radius is not None:
        globals_ref["DEFAULT_RADIUS_M"] = int(radius)

    radius_options = data.get("radius_options", [])
    if radius_options:
        globals_ref["RADIUS_OPTIONS"] = [int(r) for r in radius_options]

    ttl_hours = data.get("place_cache_ttl_hours")
    if ttl_hours is not None:
        globals_ref["PLACE_CACHE_TTL_SECONDS"] = int(float(ttl_hours) * 3600)

    overpass_url = data.get("overpass_url")
    if overpass_url:
        globals_ref["OVERPASS_URL"] = str(overpass_url)

    ip_url = data.get("ip_geolocation_url")
    if ip_url:
        globals_ref["IP_GEOLOCATION_URL"] = str(ip_url)

    search_limit = data.get("search_result_limit")
    if search_limit is not None:
        globals_ref["SEARCH_RESULT_LIMIT"] = int(search_limit)

    for key, name in (
        ("cache_db_path", "CACHE_DB_PATH"),
        ("ratings_db_path", "RATINGS_DB_PATH"),
    ):
        value = data.get(key)
        if value:
            globals_ref[name] = str(value)

    return True
