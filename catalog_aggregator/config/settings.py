# catalog_aggregator/config/settings.py

"""Central configuration for the catalog aggregator."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, ignoring garbage values."""
    raw = os.getenv(name, "")
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    """Read a float environment variable, ignoring garbage values."""
    raw = os.getenv(name, "")
    try:
        return float(raw)
    except ValueError:
        return default


class Settings:
    """Central configuration for the catalog aggregator."""

    # --- Upstream ---
    UPSTREAM_BASE_URL: str = os.getenv("API_BASE_URL", "").rstrip("/")
    UPSTREAM_API_KEY: str = os.getenv("PERSEO_API_KEY", "")
    ENDPOINTS: dict[str, str] = {
        "categories": "productos_categorias_consulta",
        "products": "productos_consulta",
        "images": "productos_imagenes_consulta",
        "stock": "existencia_producto",
        "warehouses": "almacenes_consulta",
    }
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "application/json",
        "Content-Type": "application/json",
    }

    # --- Timeouts & retries ---
    LISTING_TIMEOUT: float = 30.0       # Bulk products / categories
    WAREHOUSE_TIMEOUT: float = 10.0     # Warehouse listing
    ITEM_REQUEST_TIMEOUT: float = _env_float(
        "ITEM_REQUEST_TIMEOUT", 3.0
    )                                   # Per-product image / stock call
    ITEM_MAX_RETRIES: int = 1           # Retries after the first attempt

    # --- Concurrency ---
    MAX_CONCURRENT_REQUESTS: int = 100     # Products hydrated at once
    MAX_CONCURRENT_COMPRESSION: int = 100  # Codec calls at once

    # --- Image compression ---
    MAX_IMAGE_SIZE: int = 250           # Max px on either side
    IMAGE_QUALITY: int = 65             # WebP quality
    COMPRESSION_EFFORT: int = 0         # WebP method (0 = fastest)
    SKIP_COMPRESSION_IF_SMALL: bool = True
    MIN_IMAGE_SIZE_TO_COMPRESS: int = 50_000  # Bytes of encoded input

    # --- Warehouses ---
    DEFAULT_WAREHOUSE_ID: int = _env_int("ALMACEN_ID", 2)

    # --- Cache TTLs (seconds) ---
    CACHE_TTL_CATEGORIES: float = 30 * 60
    CACHE_TTL_PRODUCTS: float = 15 * 60
    CACHE_TTL_WAREHOUSES: float = 30 * 60

    # --- Health ---
    HEALTH_SLOW_THRESHOLD_MS: float = 5000.0

    # --- Logging ---
    CONSOLE_LOG_LEVEL: str = os.getenv("LOG_LEVEL", "WARNING").upper()

    # --- Runtime ---
    DEV_MODE: bool = os.getenv("APP_ENV", "production") == "development"

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    LOGS_DIR: Path = BASE_DIR / "logs"
