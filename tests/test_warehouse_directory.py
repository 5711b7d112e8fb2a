# tests/test_warehouse_directory.py

"""Tests for warehouse listing and validation."""

import unittest
from unittest.mock import MagicMock

from catalog_aggregator.errors import InvalidInput, NotFound, UpstreamUnavailable
from catalog_aggregator.models.reference import Warehouse
from catalog_aggregator.services.warehouse_directory import (
    WarehouseDirectory,
    parse_warehouse_id,
)
from catalog_aggregator.storage.result_cache import ResultCache

WAREHOUSES = [Warehouse(1, "MATRIZ"), Warehouse(2, "CEDI PROMOCIONAL")]


class TestParseWarehouseId(unittest.TestCase):
    """parse_warehouse_id input rules."""

    def test_accepts_positive_ints_and_digit_strings(self) -> None:
        self.assertEqual(parse_warehouse_id(2), 2)
        self.assertEqual(parse_warehouse_id(" 7 "), 7)

    def test_rejects_bad_values(self) -> None:
        for bad in (0, -3, "abc", "", None, 2.5, True):
            with self.subTest(value=bad):
                with self.assertRaises(InvalidInput):
                    parse_warehouse_id(bad)


class TestWarehouseDirectory(unittest.IsolatedAsyncioTestCase):
    """WarehouseDirectory behaviour."""

    def setUp(self) -> None:
        self.gateway = MagicMock()
        self.gateway.fetch_warehouses.return_value = list(WAREHOUSES)
        self.cache = ResultCache(default_ttl=60.0, name="warehouses")
        self.directory = WarehouseDirectory(self.gateway, self.cache)

    async def test_validate_known_warehouse(self) -> None:
        warehouse = await self.directory.validate(2)
        self.assertEqual(warehouse.name, "CEDI PROMOCIONAL")

    async def test_validate_unknown_warehouse(self) -> None:
        with self.assertRaises(NotFound):
            await self.directory.validate(999)

    async def test_validate_malformed_id_skips_upstream(self) -> None:
        with self.assertRaises(InvalidInput):
            await self.directory.validate(-1)
        self.gateway.fetch_warehouses.assert_not_called()

    async def test_list_is_cached(self) -> None:
        await self.directory.list_warehouses()
        await self.directory.validate(1)
        await self.directory.validate(2)
        self.assertEqual(self.gateway.fetch_warehouses.call_count, 1)

    async def test_empty_upstream_list_not_cached(self) -> None:
        self.gateway.fetch_warehouses.return_value = []
        with self.assertRaises(NotFound):
            await self.directory.validate(1)
        self.assertEqual(self.cache.stats().keys, 0)

    async def test_upstream_failure_propagates(self) -> None:
        self.gateway.fetch_warehouses.side_effect = UpstreamUnavailable()
        with self.assertRaises(UpstreamUnavailable):
            await self.directory.validate(1)


if __name__ == "__main__":
    unittest.main()
