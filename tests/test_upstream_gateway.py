# tests/test_upstream_gateway.py

"""Tests for the upstream gateway using mocked HTTP responses."""

import json
import threading
import unittest
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

from catalog_aggregator.errors import (
    ConfigurationError,
    UpstreamRejected,
    UpstreamUnavailable,
)
from catalog_aggregator.upstream.gateway import UpstreamGateway

FIXTURES_DIR = Path(__file__).parent / "fixtures"
SESSION_PATH = "catalog_aggregator.upstream.gateway.curl_requests.Session"
BASE_URL = "https://upstream.test/api"
API_KEY = "secret-key-123"


def _fixture(name: str) -> Any:
    with open(FIXTURES_DIR / name, encoding="utf-8") as f:
        return json.load(f)


def _resp(status: int = 200, data: Any = None) -> MagicMock:
    """Create a mock response with the given status and JSON body."""
    mock_resp = MagicMock()
    mock_resp.status_code = status
    mock_resp.json.return_value = data
    return mock_resp


@patch(SESSION_PATH)
class TestGatewayConstruction(unittest.TestCase):
    """Configuration handling."""

    def test_missing_base_url_raises(self, _session: MagicMock) -> None:
        with self.assertRaises(ConfigurationError):
            UpstreamGateway(base_url="", api_key=API_KEY)

    def test_trailing_slash_stripped(self, _session: MagicMock) -> None:
        gw = UpstreamGateway(base_url=BASE_URL + "/", api_key=API_KEY)
        self.assertEqual(gw.base_url, BASE_URL)

    def test_one_session_per_thread(self, session_cls: MagicMock) -> None:
        """Each worker thread lazily builds its own session."""
        session_cls.return_value.post.return_value = _resp(
            200, {"existencias": []}
        )
        gw = UpstreamGateway(base_url=BASE_URL, api_key=API_KEY)
        gw.fetch_stock_for_product(1, 2)
        gw.fetch_stock_for_product(1, 2)
        worker = threading.Thread(
            target=gw.fetch_stock_for_product, args=(1, 2)
        )
        worker.start()
        worker.join()
        self.assertEqual(session_cls.call_count, 2)

    def test_close_closes_every_thread_session(self, session_cls: MagicMock) -> None:
        """close() reaches sessions built on other threads too."""
        main_session, worker_session, fresh_session = (
            MagicMock(), MagicMock(), MagicMock(),
        )
        for s in (main_session, worker_session, fresh_session):
            s.post.return_value = _resp(200, {"existencias": []})
        session_cls.side_effect = [main_session, worker_session, fresh_session]
        gw = UpstreamGateway(base_url=BASE_URL, api_key=API_KEY)
        gw.fetch_stock_for_product(1, 2)
        worker = threading.Thread(
            target=gw.fetch_stock_for_product, args=(1, 2)
        )
        worker.start()
        worker.join()

        gw.close()

        main_session.close.assert_called_once()
        worker_session.close.assert_called_once()
        gw.fetch_stock_for_product(1, 2)
        fresh_session.post.assert_called_once()

    def test_close_without_sessions(self, session_cls: MagicMock) -> None:
        gw = UpstreamGateway(base_url=BASE_URL, api_key=API_KEY)
        gw.close()
        session_cls.assert_not_called()


@patch(SESSION_PATH)
class TestListingCalls(unittest.TestCase):
    """Categories, products and warehouses."""

    def _gateway(self, session_cls: MagicMock) -> tuple[UpstreamGateway, MagicMock]:
        session = session_cls.return_value
        return UpstreamGateway(base_url=BASE_URL, api_key=API_KEY), session

    def test_categories_parsed(self, session_cls: MagicMock) -> None:
        gw, session = self._gateway(session_cls)
        session.post.return_value = _resp(200, _fixture("categorias.json"))

        records = gw.fetch_categories()

        self.assertEqual(len(records), 3)
        self.assertEqual(records[0]["productos_categoriasid"], 126)
        args, kwargs = session.post.call_args
        self.assertEqual(
            args[0], f"{BASE_URL}/productos_categorias_consulta"
        )
        self.assertEqual(
            kwargs["json"], {"api_key": API_KEY, "descripcion": ""}
        )
        self.assertEqual(kwargs["timeout"], 30.0)

    def test_categories_network_error(self, session_cls: MagicMock) -> None:
        gw, session = self._gateway(session_cls)
        session.post.side_effect = ConnectionError("refused")
        with self.assertRaises(UpstreamUnavailable):
            gw.fetch_categories()
        self.assertEqual(session.post.call_count, 1)

    def test_categories_error_status(self, session_cls: MagicMock) -> None:
        gw, session = self._gateway(session_cls)
        session.post.return_value = _resp(401, {"error": "api_key"})
        with self.assertRaises(UpstreamRejected) as ctx:
            gw.fetch_categories()
        self.assertEqual(ctx.exception.status, 401)
        self.assertEqual(ctx.exception.payload, {"error": "api_key"})
        self.assertEqual(ctx.exception.http_status, 401)

    def test_products_parsed(self, session_cls: MagicMock) -> None:
        gw, session = self._gateway(session_cls)
        session.post.return_value = _resp(
            200, _fixture("productos_consulta.json")
        )

        products = gw.fetch_products_by_category(126)

        self.assertEqual(
            [p.code for p in products], ["A1-red", "A1-blue", "B2"]
        )
        self.assertEqual(products[0].identifier, 1001)
        self.assertEqual(products[0].fields["unidad"], "UND")
        body = session.post.call_args.kwargs["json"]
        self.assertEqual(body["categoriasid"], 126)
        self.assertEqual(body["usuario_creacion"], "ADMIN")
        self.assertEqual(body["dispositivo"], "API")

    def test_products_4xx_is_empty_success(self, session_cls: MagicMock) -> None:
        """Statuses below 500 are not errors for the product listing."""
        gw, session = self._gateway(session_cls)
        session.post.return_value = _resp(404, {"productos": []})
        self.assertEqual(gw.fetch_products_by_category(5), [])

    def test_products_5xx_rejected(self, session_cls: MagicMock) -> None:
        gw, session = self._gateway(session_cls)
        session.post.return_value = _resp(502, {"msg": "bad gateway"})
        with self.assertRaises(UpstreamRejected) as ctx:
            gw.fetch_products_by_category(5)
        self.assertEqual(ctx.exception.status, 502)

    def test_products_timeout_not_retried(self, session_cls: MagicMock) -> None:
        gw, session = self._gateway(session_cls)
        session.post.side_effect = TimeoutError("timed out")
        with self.assertRaises(UpstreamUnavailable):
            gw.fetch_products_by_category(5)
        self.assertEqual(session.post.call_count, 1)

    def test_products_non_json_is_empty(self, session_cls: MagicMock) -> None:
        """An HTML 404 page or a null body reads as no products."""
        gw, session = self._gateway(session_cls)
        html_404 = _resp(404)
        html_404.json.side_effect = ValueError("not json")
        for resp in (html_404, _resp(200, None), _resp(200, ["x"])):
            with self.subTest(status=resp.status_code):
                session.post.return_value = resp
                self.assertEqual(gw.fetch_products_by_category(126), [])

    def test_categories_non_json_rejected(self, session_cls: MagicMock) -> None:
        """Strict listings still reject a body that is not an object."""
        gw, session = self._gateway(session_cls)
        resp = _resp(200)
        resp.json.side_effect = ValueError("not json")
        session.post.return_value = resp
        with self.assertRaises(UpstreamRejected):
            gw.fetch_categories()
        session.post.return_value = _resp(200, None)
        with self.assertRaises(UpstreamRejected):
            gw.fetch_warehouses()

    def test_warehouses_parsed(self, session_cls: MagicMock) -> None:
        gw, session = self._gateway(session_cls)
        session.post.return_value = _resp(
            200, _fixture("almacenes_consulta.json")
        )
        warehouses = gw.fetch_warehouses()
        self.assertEqual([w.id for w in warehouses], [1, 2, 3])
        self.assertEqual(warehouses[1].name, "CEDI PROMOCIONAL")
        self.assertEqual(warehouses[2].name, "Warehouse 3")
        self.assertEqual(session.post.call_args.kwargs["timeout"], 10.0)


@patch(SESSION_PATH)
class TestItemCalls(unittest.TestCase):
    """Per-product image and stock calls with retry-once-then-degrade."""

    def _gateway(self, session_cls: MagicMock) -> tuple[UpstreamGateway, MagicMock]:
        session = session_cls.return_value
        gw = UpstreamGateway(
            base_url=BASE_URL, api_key=API_KEY, item_timeout=2.5
        )
        return gw, session

    def test_images_decoded_in_order(self, session_cls: MagicMock) -> None:
        """Empty entries are dropped; data URIs are unwrapped."""
        gw, session = self._gateway(session_cls)
        session.post.return_value = _resp(
            200, _fixture("productos_imagenes.json")
        )
        images = gw.fetch_images_for_product(1001)
        self.assertEqual(images, [b"first-image", b"second-image"])
        self.assertEqual(session.post.call_args.kwargs["timeout"], 2.5)
        self.assertEqual(
            session.post.call_args.kwargs["json"],
            {"api_key": API_KEY, "productosid": 1001},
        )

    def test_images_no_information(self, session_cls: MagicMock) -> None:
        """informacion: false means no images, without a retry."""
        gw, session = self._gateway(session_cls)
        session.post.return_value = _resp(
            200, {"informacion": False, "productos_imagenes": []}
        )
        self.assertEqual(gw.fetch_images_for_product(1), [])
        self.assertEqual(session.post.call_count, 1)

    def test_images_retry_then_success(self, session_cls: MagicMock) -> None:
        gw, session = self._gateway(session_cls)
        session.post.side_effect = [
            TimeoutError("slow"),
            _resp(200, _fixture("productos_imagenes.json")),
        ]
        images = gw.fetch_images_for_product(1)
        self.assertEqual(len(images), 2)
        self.assertEqual(session.post.call_count, 2)
        for call in session.post.call_args_list:
            self.assertEqual(call.kwargs["timeout"], 2.5)

    def test_images_degrade_after_one_retry(self, session_cls: MagicMock) -> None:
        gw, session = self._gateway(session_cls)
        session.post.side_effect = ConnectionError("down")
        self.assertEqual(gw.fetch_images_for_product(1), [])
        self.assertEqual(session.post.call_count, 2)

    def test_images_5xx_retried(self, session_cls: MagicMock) -> None:
        gw, session = self._gateway(session_cls)
        session.post.return_value = _resp(503, None)
        self.assertEqual(gw.fetch_images_for_product(1), [])
        self.assertEqual(session.post.call_count, 2)

    def test_stock_for_configured_warehouse(self, session_cls: MagicMock) -> None:
        gw, session = self._gateway(session_cls)
        session.post.return_value = _resp(
            200, _fixture("existencia_producto.json")
        )
        self.assertEqual(gw.fetch_stock_for_product(1001, 2), 5)
        self.assertEqual(gw.fetch_stock_for_product(1001, 1), 7)

    def test_stock_unknown_warehouse_is_zero(self, session_cls: MagicMock) -> None:
        gw, session = self._gateway(session_cls)
        session.post.return_value = _resp(
            200, _fixture("existencia_producto.json")
        )
        self.assertEqual(gw.fetch_stock_for_product(1001, 99), 0)
        self.assertEqual(session.post.call_count, 1)

    def test_stock_values_coerced(self, session_cls: MagicMock) -> None:
        """String and negative quantities become non-negative ints."""
        gw, session = self._gateway(session_cls)
        session.post.return_value = _resp(
            200,
            {
                "existencias": [
                    {"almacenesid": "2", "existencias": "12.0"},
                    {"almacenesid": 3, "existencias": -4},
                ]
            },
        )
        self.assertEqual(gw.fetch_stock_for_product(1, 2), 12)
        self.assertEqual(gw.fetch_stock_for_product(1, 3), 0)

    def test_stock_degrades_to_zero(self, session_cls: MagicMock) -> None:
        gw, session = self._gateway(session_cls)
        session.post.side_effect = ConnectionError("down")
        self.assertEqual(gw.fetch_stock_for_product(1, 2), 0)
        self.assertEqual(session.post.call_count, 2)

    def test_api_key_never_logged(self, session_cls: MagicMock) -> None:
        """Failure logs mention the product, not the shared secret."""
        gw, session = self._gateway(session_cls)
        session.post.side_effect = ConnectionError("down")
        with self.assertLogs("catalog_aggregator.gateway", "DEBUG") as logs:
            gw.fetch_images_for_product(42)
        self.assertTrue(any("42" in line for line in logs.output))
        self.assertFalse(any(API_KEY in line for line in logs.output))


if __name__ == "__main__":
    unittest.main()
