# catalog_aggregator/services/warehouse_directory.py

"""Cached warehouse list and warehouse id validation."""

import asyncio
import logging
from typing import Any, Protocol

from catalog_aggregator.errors import InvalidInput, NotFound
from catalog_aggregator.models.reference import Warehouse
from catalog_aggregator.storage.result_cache import (
    WAREHOUSES_KEY,
    ResultCache,
)

logger = logging.getLogger("catalog_aggregator.warehouses")


class WarehouseSource(Protocol):
    def fetch_warehouses(self) -> list[Warehouse]: ...


def parse_warehouse_id(value: Any) -> int:
    """Coerce caller input to a positive warehouse id or raise InvalidInput."""
    if isinstance(value, bool):
        raise InvalidInput("warehouseId must be a positive integer.")
    try:
        warehouse_id = int(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidInput(
            "warehouseId must be a positive integer."
        ) from None
    if warehouse_id <= 0:
        raise InvalidInput("warehouseId must be a positive integer.")
    return warehouse_id


class WarehouseDirectory:
    """Looks up warehouses, caching the upstream list with its own TTL."""

    def __init__(self, gateway: WarehouseSource, cache: ResultCache) -> None:
        self.gateway = gateway
        self.cache = cache

    async def list_warehouses(self) -> list[Warehouse]:
        """Return all warehouses, from cache when fresh."""
        cached = self.cache.get(WAREHOUSES_KEY)
        if cached is not None:
            return list(cached)

        warehouses = await asyncio.to_thread(self.gateway.fetch_warehouses)
        if warehouses:
            self.cache.set(WAREHOUSES_KEY, tuple(warehouses))
        return warehouses

    async def validate(self, warehouse_id: Any) -> Warehouse:
        """Return the warehouse for *warehouse_id*.

        Raises InvalidInput for malformed ids and NotFound for ids the
        upstream does not know (or when it lists no warehouses at all).
        """
        wid = parse_warehouse_id(warehouse_id)
        warehouses = await self.list_warehouses()
        if not warehouses:
            logger.warning("Upstream returned no warehouses")
            raise NotFound(f"Warehouse {wid} was not found.")

        for warehouse in warehouses:
            if warehouse.id == wid:
                return warehouse

        logger.info("Rejected unknown warehouse id %d", wid)
        raise NotFound(f"Warehouse {wid} was not found.")
