# catalog_aggregator/bootstrap.py

"""Composition root: builds and tears down the aggregator's components.

This is the only module that constructs the caches, pools and gateway;
everything else receives them by injection.
"""

import logging
from dataclasses import dataclass

from catalog_aggregator.config.settings import Settings
from catalog_aggregator.imaging.compression_pool import CompressionPool
from catalog_aggregator.imaging.image_codec import ImageCodec
from catalog_aggregator.services.aggregation_service import CatalogAggregator
from catalog_aggregator.services.health_checker import HealthChecker
from catalog_aggregator.services.hydration_pipeline import HydrationPipeline
from catalog_aggregator.services.warehouse_directory import (
    WarehouseDirectory,
)
from catalog_aggregator.storage.result_cache import ResultCache
from catalog_aggregator.upstream.gateway import UpstreamGateway

logger = logging.getLogger("catalog_aggregator.bootstrap")


@dataclass
class Application:
    """Every long-lived component of one process."""

    gateway: UpstreamGateway
    compression_pool: CompressionPool
    pipeline: HydrationPipeline
    aggregator: CatalogAggregator
    health: HealthChecker

    def close(self) -> None:
        """Release worker threads, upstream sessions and cached results."""
        self.pipeline.close()
        self.compression_pool.close()
        self.gateway.close()
        self.aggregator.clear_cache()
        logger.info("Application components shut down")


def build_application(gateway: UpstreamGateway | None = None) -> Application:
    """Wire the default component graph from :class:`Settings`."""
    gateway = gateway or UpstreamGateway()

    categories_cache = ResultCache(
        Settings.CACHE_TTL_CATEGORIES, name="categories"
    )
    products_cache = ResultCache(
        Settings.CACHE_TTL_PRODUCTS, name="products"
    )
    warehouses_cache = ResultCache(
        Settings.CACHE_TTL_WAREHOUSES, name="warehouses"
    )

    compression_pool = CompressionPool(ImageCodec())
    pipeline = HydrationPipeline(gateway, compression_pool)
    aggregator = CatalogAggregator(
        gateway=gateway,
        pipeline=pipeline,
        warehouses=WarehouseDirectory(gateway, warehouses_cache),
        categories_cache=categories_cache,
        products_cache=products_cache,
    )
    logger.info(
        "Application built (upstream=%s, hydration=%d, compression=%d)",
        gateway.base_url,
        pipeline.max_concurrent,
        compression_pool.max_workers,
    )
    return Application(
        gateway=gateway,
        compression_pool=compression_pool,
        pipeline=pipeline,
        aggregator=aggregator,
        health=HealthChecker(gateway),
    )
