# catalog_aggregator/services/aggregation_service.py

"""Façade that turns a category + warehouse into grouped, hydrated products."""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Protocol

from catalog_aggregator.config.settings import Settings
from catalog_aggregator.errors import (
    AggregatorError,
    Internal,
    InvalidInput,
    NotFound,
)
from catalog_aggregator.grouping.variant_grouper import VariantGrouper
from catalog_aggregator.models.product import RawProduct
from catalog_aggregator.models.reference import Category
from catalog_aggregator.services.hydration_pipeline import HydrationPipeline
from catalog_aggregator.services.warehouse_directory import (
    WarehouseDirectory,
)
from catalog_aggregator.storage.result_cache import (
    CATEGORIES_ALL_KEY,
    CATEGORIES_SIMPLE_KEY,
    ResultCache,
    products_key,
)

logger = logging.getLogger("catalog_aggregator.aggregator")


class CatalogSource(Protocol):
    def fetch_categories(self) -> list[dict[str, Any]]: ...

    def fetch_products_by_category(
        self, category_id: int,
    ) -> list[RawProduct]: ...


class Stage(Enum):
    """Steps of one aggregation request, in order."""

    RESOLVE_CATEGORY = "resolve_category"
    VALIDATE_WAREHOUSE = "validate_warehouse"
    CACHE_LOOKUP = "cache_lookup"
    FETCH_PRODUCTS = "fetch_products"
    HYDRATE = "hydrate"
    GROUP = "group"
    CACHE_WRITE = "cache_write"
    DONE = "done"


def _category_from_record(record: dict[str, Any]) -> Category:
    raw_id = record.get("productos_categoriasid")
    try:
        category_id = int(raw_id)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        category_id = 0
    return Category(
        id=category_id,
        name=str(record.get("descripcion") or ""),
    )


def parse_category_id(value: Any) -> int:
    """Coerce caller input to a positive category id or raise InvalidInput."""
    if isinstance(value, bool):
        raise InvalidInput("categoryId must be a positive integer.")
    try:
        category_id = int(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidInput(
            "categoryId must be a positive integer."
        ) from None
    if category_id <= 0:
        raise InvalidInput("categoryId must be a positive integer.")
    return category_id


class CatalogAggregator:
    """Entry point for the outer layer (CLI, HTTP).

    All collaborators, including the caches, are injected; their
    lifecycle belongs to the composition root.
    """

    def __init__(
        self,
        gateway: CatalogSource,
        pipeline: HydrationPipeline,
        warehouses: WarehouseDirectory,
        categories_cache: ResultCache,
        products_cache: ResultCache,
        default_warehouse_id: int | None = None,
    ) -> None:
        self.settings = Settings()
        self.gateway = gateway
        self.pipeline = pipeline
        self.warehouses = warehouses
        self.categories_cache = categories_cache
        self.products_cache = products_cache
        self.default_warehouse_id = (
            default_warehouse_id
            if default_warehouse_id is not None
            else self.settings.DEFAULT_WAREHOUSE_ID
        )

    # ── Categories ───────────────────────────────────────

    async def all_categories(self) -> dict[str, Any]:
        """Full upstream category records, cached."""
        cached = self.categories_cache.get(CATEGORIES_ALL_KEY)
        if cached is not None:
            logger.info("Categories served from cache")
            return cached

        records = await asyncio.to_thread(self.gateway.fetch_categories)
        if not records:
            raise NotFound("No categories were found upstream.")

        result = {"success": True, "data": records}
        self.categories_cache.set(CATEGORIES_ALL_KEY, result)
        return result

    async def list_categories(self) -> dict[str, Any]:
        """Simplified ``{id, name}`` category list, cached."""
        cached = self.categories_cache.get(CATEGORIES_SIMPLE_KEY)
        if cached is not None:
            return cached

        full = await self.all_categories()
        categories = [_category_from_record(r) for r in full["data"]]
        result = {
            "success": True,
            "total": len(categories),
            "categories": [
                {"id": c.id, "name": c.name} for c in categories
            ],
        }
        self.categories_cache.set(CATEGORIES_SIMPLE_KEY, result)
        return result

    async def resolve_category(
        self,
        category_id: Any = None,
        category_name: str | None = None,
    ) -> int:
        """Turn either a category id or a category name into an id.

        Exactly one of the two must be given.  Names match the cached
        category list trimmed and case-insensitively.
        """
        has_id = category_id is not None and str(category_id).strip() != ""
        has_name = (
            category_name is not None and str(category_name).strip() != ""
        )
        if has_id == has_name:
            raise InvalidInput(
                "Provide exactly one of categoryId or categoryName."
            )

        if has_id:
            return parse_category_id(category_id)

        wanted = str(category_name).strip().lower()
        full = await self.all_categories()
        for record in full["data"]:
            name = record.get("descripcion")
            if name and str(name).strip().lower() == wanted:
                category = _category_from_record(record)
                logger.info(
                    "Category '%s' resolved to id %d",
                    category_name,
                    category.id,
                )
                return category.id

        raise NotFound(f'Category "{category_name}" was not found.')

    # ── Warehouses ───────────────────────────────────────

    async def list_warehouses(self) -> dict[str, Any]:
        """Simplified ``{id, name}`` warehouse list."""
        warehouses = await self.warehouses.list_warehouses()
        if not warehouses:
            raise NotFound("No warehouses were found upstream.")
        return {
            "success": True,
            "total": len(warehouses),
            "warehouses": [
                {"id": w.id, "name": w.name} for w in warehouses
            ],
        }

    # ── Products ─────────────────────────────────────────

    async def aggregate(
        self,
        category_id: Any = None,
        category_name: str | None = None,
        warehouse_id: Any = None,
    ) -> dict[str, Any]:
        """Grouped, hydrated products of a category for one warehouse.

        The warehouse is validated before any product is fetched.
        Unexpected faults surface as :class:`Internal`.
        """
        stage = Stage.RESOLVE_CATEGORY
        try:
            start = time.monotonic()
            category = await self.resolve_category(
                category_id, category_name
            )

            stage = Stage.VALIDATE_WAREHOUSE
            wid = (
                warehouse_id
                if warehouse_id is not None
                else self.default_warehouse_id
            )
            warehouse = await self.warehouses.validate(wid)

            stage = Stage.CACHE_LOOKUP
            key = products_key(category, warehouse.id)
            cached = self.products_cache.get(key)
            if cached is not None:
                logger.info(
                    "Products of category %d (warehouse %d) served "
                    "from cache",
                    category,
                    warehouse.id,
                )
                return cached

            stage = Stage.FETCH_PRODUCTS
            raw_products = await asyncio.to_thread(
                self.gateway.fetch_products_by_category, category
            )
            if not raw_products:
                raise NotFound("No products were found in this category.")

            stage = Stage.HYDRATE
            report = await self.pipeline.hydrate(raw_products, warehouse.id)

            stage = Stage.GROUP
            groups = VariantGrouper.group(report.products)
            result = {
                "success": True,
                "categoryQueried": category,
                "totalGroups": len(groups),
                "items": [g.to_dict() for g in groups],
            }

            stage = Stage.CACHE_WRITE
            self.products_cache.set(key, result)

            stage = Stage.DONE
            logger.info(
                "Category %d aggregated: %d products, %d groups in %.2fs",
                category,
                len(raw_products),
                len(groups),
                time.monotonic() - start,
            )
            return result
        except AggregatorError as exc:
            logger.warning(
                "Aggregation stopped at %s: %s (%s)",
                stage.value,
                exc.code,
                exc.message,
            )
            raise
        except Exception as exc:
            logger.error(
                "Unexpected failure at %s: %s",
                stage.value,
                exc,
                exc_info=True,
            )
            raise Internal(detail=str(exc)) from exc

    # ── Cache introspection ──────────────────────────────

    def cache_stats(self) -> dict[str, Any]:
        """Counters for the category and product caches."""
        return {
            "success": True,
            "categories": self.categories_cache.stats().to_dict(),
            "products": self.products_cache.stats().to_dict(),
        }

    def clear_cache(self) -> dict[str, Any]:
        """Flush both result caches."""
        removed = (
            self.categories_cache.flush_all()
            + self.products_cache.flush_all()
        )
        return {
            "success": True,
            "message": "Cache cleared.",
            "removed": removed,
        }
