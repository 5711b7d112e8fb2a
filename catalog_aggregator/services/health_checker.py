# catalog_aggregator/services/health_checker.py

"""Upstream connectivity and configuration health check."""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from catalog_aggregator.config.settings import Settings
from catalog_aggregator.errors import AggregatorError
from catalog_aggregator.models.reference import Warehouse

logger = logging.getLogger("catalog_aggregator.health")


class ProbeTarget(Protocol):
    base_url: str

    @property
    def api_key_configured(self) -> bool: ...

    def fetch_warehouses(self) -> list[Warehouse]: ...


@dataclass
class HealthResult:
    """Result of one upstream probe."""

    status: str  # "ok", "slow", "down"
    latency_ms: float
    message: str


def probe_upstream(gateway: ProbeTarget) -> HealthResult:
    """Time a cheap listing call against the upstream."""
    start = time.monotonic()
    try:
        warehouses = gateway.fetch_warehouses()
    except AggregatorError as exc:
        elapsed_ms = (time.monotonic() - start) * 1000
        return HealthResult(
            status="down",
            latency_ms=elapsed_ms,
            message=f"{exc.code}: {exc.message}"[:80],
        )
    except Exception as exc:
        elapsed_ms = (time.monotonic() - start) * 1000
        return HealthResult(
            status="down",
            latency_ms=elapsed_ms,
            message=str(exc)[:80],
        )

    elapsed_ms = (time.monotonic() - start) * 1000
    if elapsed_ms > Settings.HEALTH_SLOW_THRESHOLD_MS:
        return HealthResult(
            status="slow",
            latency_ms=elapsed_ms,
            message="High latency",
        )
    return HealthResult(
        status="ok",
        latency_ms=elapsed_ms,
        message=f"{len(warehouses)} warehouses listed",
    )


class HealthChecker:
    """Reports configuration and upstream reachability."""

    def __init__(self, gateway: ProbeTarget) -> None:
        self.gateway = gateway

    def config_summary(self) -> dict[str, Any]:
        """Non-secret view of the active configuration."""
        return {
            "apiKeyConfigured": self.gateway.api_key_configured,
            "apiBaseUrlConfigured": bool(self.gateway.base_url),
            "apiBaseUrl": self.gateway.base_url,
            "maxConcurrentRequests": Settings.MAX_CONCURRENT_REQUESTS,
            "maxConcurrentCompression": Settings.MAX_CONCURRENT_COMPRESSION,
            "cacheEnabled": True,
            "cacheTTLCategories": Settings.CACHE_TTL_CATEGORIES,
            "cacheTTLProducts": Settings.CACHE_TTL_PRODUCTS,
        }

    async def check(self) -> dict[str, Any]:
        """Probe the upstream and return a health payload."""
        result = await asyncio.to_thread(probe_upstream, self.gateway)
        logger.info(
            "Health check upstream: %s (%.0fms) %s",
            result.status,
            result.latency_ms,
            result.message,
        )
        return {
            "success": result.status != "down",
            "status": result.status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "upstream": {
                "latencyMs": round(result.latency_ms, 1),
                "message": result.message,
            },
            "config": self.config_summary(),
        }
