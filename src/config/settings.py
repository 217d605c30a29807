# src/config/settings.py

"""Central configuration for the catalog_browser client."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the catalog_browser client."""

    # --- Remote data source ---
    API_BASE: str = os.getenv(
        "CATALOG_API_BASE", "https://dummyjson.com/products"
    )
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out

    # --- Query synchronisation ---
    FRESH_TTL: float = 120.0            # Served without any network call
    RETENTION_TTL: float = 600.0        # Served stale + revalidated, then evicted
    MAX_RETRIES: int = 2                # Extra attempts after the first failure
    RETRY_BASE_DELAY: float = 1.0       # First backoff step (secs)
    RETRY_MAX_DELAY: float = 30.0       # Backoff ceiling (secs)

    # --- Pagination ---
    ALLOWED_LIMITS: list[int] = [5, 10, 20, 30, 50]
    DEFAULT_LIMIT: int = 10
    MOBILE_BREAKPOINT: int = 80         # Terminal columns below which the pager is compact

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "application/json",
        "Accept-Language": "en-US,en;q=0.9",
        "sec-fetch-dest": "empty",
        "sec-fetch-mode": "cors",
        "sec-fetch-site": "cross-site",
    }

    # --- Asset cache ---
    ASSET_ORIGIN: str = os.getenv(
        "CATALOG_ASSET_ORIGIN", "https://dummyjson.com"
    )
    ASSET_CACHE_PREFIX: str = "catalog-cache"
    ASSET_CACHE_VERSION: str = "v1"
    PRECACHE_PATHS: list[str] = [
        "/",
        "/products/category-list",
    ]

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    LOGS_DIR: Path = BASE_DIR / "logs"
    ASSET_CACHE_DIR: Path = BASE_DIR / ".asset_cache"
