# catalog_aggregator/services/hydration_pipeline.py

"""Enrich raw products with compressed images and warehouse stock."""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Protocol

from catalog_aggregator.config.settings import Settings
from catalog_aggregator.imaging.compression_pool import (
    CompressionPool,
    ImageJob,
)
from catalog_aggregator.models.product import HydratedProduct, RawProduct

logger = logging.getLogger("catalog_aggregator.hydration")


class ItemFetcher(Protocol):
    """The two per-product upstream calls the pipeline fans out over."""

    def fetch_images_for_product(self, product_id: int) -> list[bytes]: ...

    def fetch_stock_for_product(
        self, product_id: int, warehouse_id: int,
    ) -> int: ...


@dataclass
class HydrationReport:
    """Hydrated products plus the counters logged for the batch."""

    products: list[HydratedProduct] = field(
        default_factory=lambda: list[HydratedProduct]()
    )
    with_id: int = 0
    without_id: int = 0
    with_images: int = 0
    total_images: int = 0
    with_stock: int = 0
    total_stock: int = 0
    degraded: int = 0
    elapsed: float = 0.0


@dataclass
class _Download:
    """Phase-one output for one product: raw images and stock."""

    images: list[bytes] = field(default_factory=lambda: list[bytes]())
    stock: int = 0
    degraded: bool = False


class HydrationPipeline:
    """Two-phase hydration: bounded download fan-out, then global compression.

    Phase 1 downloads images and stock for up to ``max_concurrent``
    products at a time; a product's two calls run side by side.
    Phase 2 flattens every image of the batch into one job list for
    the :class:`CompressionPool`, which has its own worker cap.
    Results are reassembled by index, so completion order never
    leaks into the output.
    """

    def __init__(
        self,
        gateway: ItemFetcher,
        compression_pool: CompressionPool,
        max_concurrent: int | None = None,
    ) -> None:
        self.settings = Settings()
        self.gateway = gateway
        self.compression_pool = compression_pool
        self.max_concurrent = (
            max_concurrent
            if max_concurrent is not None
            else self.settings.MAX_CONCURRENT_REQUESTS
        )
        # Two blocking calls per in-flight product
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_concurrent * 2,
            thread_name_prefix="hydrate",
        )

    # ── Phase 1: downloads ───────────────────────────────

    async def _download_one(
        self,
        semaphore: asyncio.Semaphore,
        index: int,
        product: RawProduct,
        warehouse_id: int,
    ) -> _Download:
        """Fetch images and stock for one product under the semaphore."""
        product_id = product.identifier
        if not product_id:
            logger.info(
                "Product #%d (code=%s) has no id, skipping downloads",
                index,
                product.code or "?",
            )
            return _Download()

        async with semaphore:
            loop = asyncio.get_running_loop()
            start = time.monotonic()
            images, stock = await asyncio.gather(
                loop.run_in_executor(
                    self._executor,
                    self.gateway.fetch_images_for_product,
                    product_id,
                ),
                loop.run_in_executor(
                    self._executor,
                    self.gateway.fetch_stock_for_product,
                    product_id,
                    warehouse_id,
                ),
                return_exceptions=True,
            )
            elapsed = time.monotonic() - start

        download = _Download()
        if isinstance(images, BaseException):
            logger.warning(
                "Image fetch crashed for product %s: %s",
                product_id,
                images,
                exc_info=images,
            )
            download.degraded = True
        else:
            download.images = list(images)

        if isinstance(stock, BaseException):
            logger.warning(
                "Stock fetch crashed for product %s: %s",
                product_id,
                stock,
                exc_info=stock,
            )
            download.degraded = True
        else:
            download.stock = max(0, int(stock))

        logger.debug(
            "Product %s: %d images, %d in stock (%.2fs)",
            product_id,
            len(download.images),
            download.stock,
            elapsed,
        )
        return download

    async def _download_all(
        self,
        raw_products: list[RawProduct],
        warehouse_id: int,
    ) -> list[_Download]:
        semaphore = asyncio.Semaphore(self.max_concurrent)
        outcomes = await asyncio.gather(
            *(
                self._download_one(semaphore, i, p, warehouse_id)
                for i, p in enumerate(raw_products)
            ),
            return_exceptions=True,
        )

        downloads: list[_Download] = []
        for i, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                logger.error(
                    "Hydration of product #%d failed: %s",
                    i,
                    outcome,
                    exc_info=outcome,
                )
                downloads.append(_Download(degraded=True))
            else:
                downloads.append(outcome)
        return downloads

    # ── Entry point ──────────────────────────────────────

    async def hydrate(
        self,
        raw_products: list[RawProduct],
        warehouse_id: int,
    ) -> HydrationReport:
        """Hydrate every product; per-item failures degrade, never abort.

        ``report.products[i]`` always corresponds to ``raw_products[i]``.
        """
        start = time.monotonic()
        report = HydrationReport()
        logger.info(
            "Hydrating %d products for warehouse %d "
            "(max %d concurrent)",
            len(raw_products),
            warehouse_id,
            self.max_concurrent,
        )

        downloads = await self._download_all(raw_products, warehouse_id)
        logger.info(
            "Downloads finished in %.2fs",
            time.monotonic() - start,
        )

        jobs = [
            ImageJob(product_index=pi, image_index=ii, data=data)
            for pi, download in enumerate(downloads)
            for ii, data in enumerate(download.images)
        ]
        compressed = await self.compression_pool.compress_all(jobs)

        for pi, (raw, download) in enumerate(zip(raw_products, downloads)):
            images = tuple(
                compressed.get((pi, ii), data)
                for ii, data in enumerate(download.images)
            )
            report.products.append(
                HydratedProduct(
                    raw=raw,
                    images=images,
                    total_stock=download.stock,
                )
            )
            if raw.identifier:
                report.with_id += 1
            else:
                report.without_id += 1
            if images:
                report.with_images += 1
                report.total_images += len(images)
            if download.stock > 0:
                report.with_stock += 1
                report.total_stock += download.stock
            if download.degraded:
                report.degraded += 1

        report.elapsed = time.monotonic() - start
        logger.info(
            "Hydration summary: %d products (%d with id, %d without), "
            "%d with images (%d total), %d with stock (%d units), "
            "%d degraded, %.2fs",
            len(report.products),
            report.with_id,
            report.without_id,
            report.with_images,
            report.total_images,
            report.with_stock,
            report.total_stock,
            report.degraded,
            report.elapsed,
        )
        return report

    def close(self) -> None:
        """Stop the download worker threads."""
        self._executor.shutdown(wait=True)
