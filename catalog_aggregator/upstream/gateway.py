# catalog_aggregator/upstream/gateway.py

"""Client for the upstream catalog service (categories, products, images, stock)."""

import base64
import binascii
import logging
import threading
import time
from collections.abc import Callable
from typing import Any, TypeVar

from curl_cffi import requests as curl_requests

from catalog_aggregator.config.settings import Settings
from catalog_aggregator.errors import (
    ConfigurationError,
    UpstreamRejected,
    UpstreamUnavailable,
)
from catalog_aggregator.models.product import RawProduct
from catalog_aggregator.models.reference import Warehouse

T = TypeVar("T")


def _to_int(value: Any) -> int:
    """Coerce an upstream number (int, float or numeric string) to int."""
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _decode_image(encoded: Any) -> bytes | None:
    """Decode one base64 image field, tolerating a ``data:`` URI prefix."""
    if not encoded or not isinstance(encoded, str):
        return None
    if encoded.startswith("data:") and "," in encoded:
        encoded = encoded.split(",", 1)[1]
    try:
        data = base64.b64decode(encoded)
    except (binascii.Error, ValueError):
        return None
    return data or None


class UpstreamGateway:
    """Thin, stateless wrapper over the upstream's POST endpoints.

    Every request body carries the shared ``api_key``; it is never
    logged nor handed back to callers.  Listing calls (categories,
    products, warehouses) raise on failure.  Per-product calls (images,
    stock) retry once with the same timeout and then degrade to an
    empty default.

    Methods are blocking and safe to call from many worker threads:
    each thread lazily gets its own ``curl_cffi`` session.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        item_timeout: float | None = None,
        item_retries: int | None = None,
    ) -> None:
        self.logger = logging.getLogger("catalog_aggregator.gateway")
        self.settings = Settings()
        self.base_url = (
            base_url
            if base_url is not None
            else self.settings.UPSTREAM_BASE_URL
        ).rstrip("/")
        if not self.base_url:
            raise ConfigurationError()
        self._api_key = (
            api_key
            if api_key is not None
            else self.settings.UPSTREAM_API_KEY
        )
        self.item_timeout = (
            item_timeout
            if item_timeout is not None
            else self.settings.ITEM_REQUEST_TIMEOUT
        )
        self.item_retries = (
            item_retries
            if item_retries is not None
            else self.settings.ITEM_MAX_RETRIES
        )
        self._local = threading.local()
        self._sessions: list[curl_requests.Session] = []
        self._sessions_lock = threading.Lock()

    @property
    def api_key_configured(self) -> bool:
        return bool(self._api_key)

    # ── Transport ────────────────────────────────────────

    def _session(self) -> curl_requests.Session:
        """Return this thread's session, creating it on first use."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = curl_requests.Session(
                headers=dict(self.settings.DEFAULT_HEADERS)
            )
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def close(self) -> None:
        """Close every session created by any worker thread."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            try:
                session.close()
            except Exception as exc:
                self.logger.debug("Session close failed: %s", exc)
        # Threads that outlive close() build a fresh session on next use
        self._local = threading.local()
        self.logger.info("Closed %d upstream session(s)", len(sessions))

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/{self.settings.ENDPOINTS[endpoint]}"

    def _post(
        self,
        endpoint: str,
        payload: dict[str, Any],
        timeout: float,
    ) -> curl_requests.Response:
        body = {"api_key": self._api_key, **payload}
        return self._session().post(
            self._url(endpoint),
            json=body,
            timeout=timeout,
        )

    def _fetch_listing(
        self,
        endpoint: str,
        payload: dict[str, Any],
        timeout: float,
        reject_from: int,
    ) -> dict[str, Any]:
        """POST a must-succeed listing call and return its JSON body.

        Raises :class:`UpstreamUnavailable` on transport failure and
        :class:`UpstreamRejected` when the status is ``>= reject_from``.
        A body that is not a JSON object is rejected for strict calls
        (``reject_from < 500``) and read as ``{}`` for lenient ones.
        No retry.
        """
        url = self._url(endpoint)
        self.logger.info("POST %s", url)
        start = time.monotonic()
        try:
            resp = self._post(endpoint, payload, timeout)
        except Exception as exc:
            self.logger.error(
                "Upstream unreachable at %s: %s", url, exc, exc_info=True
            )
            raise UpstreamUnavailable(detail=str(exc)) from exc

        elapsed = time.monotonic() - start
        self.logger.info(
            "HTTP %d from %s in %.2fs", resp.status_code, url, elapsed
        )

        try:
            data = resp.json()
        except Exception:
            data = None

        if resp.status_code >= reject_from:
            self.logger.error(
                "Upstream rejected %s with HTTP %d", url, resp.status_code
            )
            raise UpstreamRejected(status=resp.status_code, payload=data)

        if not isinstance(data, dict):
            if reject_from >= 500:
                self.logger.warning(
                    "Non-JSON body from %s (HTTP %d), treated as empty",
                    url,
                    resp.status_code,
                )
                return {}
            raise UpstreamRejected(
                message="The upstream returned a non-JSON response.",
                status=resp.status_code,
            )
        return data

    def _with_retry(
        self,
        label: str,
        call: Callable[[], T],
        default: T,
    ) -> T:
        """Run *call*, retrying up to ``item_retries`` times, else *default*."""
        attempts = 1 + self.item_retries
        for attempt in range(1, attempts + 1):
            try:
                return call()
            except Exception as exc:
                self.logger.debug(
                    "%s failed on attempt %d/%d: %s",
                    label,
                    attempt,
                    attempts,
                    exc,
                )
        self.logger.warning(
            "%s degraded to default after %d attempts", label, attempts
        )
        return default

    # ── Listing calls ────────────────────────────────────

    def fetch_categories(self) -> list[dict[str, Any]]:
        """Return every category record (``productos_categoriasid``, ``descripcion``, ...)."""
        data = self._fetch_listing(
            "categories",
            {"descripcion": ""},
            self.settings.LISTING_TIMEOUT,
            reject_from=400,
        )
        categories = data.get("categorias") or []
        self.logger.info("Categories received: %d", len(categories))
        return list(categories)

    def fetch_products_by_category(
        self, category_id: int,
    ) -> list[RawProduct]:
        """Return the raw products of a category (possibly empty)."""
        data = self._fetch_listing(
            "products",
            {
                "categoriasid": category_id,
                "usuario_creacion": "ADMIN",
                "dispositivo": "API",
            },
            self.settings.LISTING_TIMEOUT,
            reject_from=500,
        )
        records = data.get("productos") or []
        self.logger.info(
            "Products received for category %s: %d",
            category_id,
            len(records),
        )
        return [
            RawProduct.from_upstream(r)
            for r in records
            if isinstance(r, dict)
        ]

    def fetch_warehouses(self) -> list[Warehouse]:
        """Return every warehouse known to the upstream."""
        data = self._fetch_listing(
            "warehouses",
            {},
            self.settings.WAREHOUSE_TIMEOUT,
            reject_from=400,
        )
        records = data.get("almacenes") or []
        warehouses: list[Warehouse] = []
        for r in records:
            if not isinstance(r, dict) or r.get("almacenesid") is None:
                continue
            wid = _to_int(r["almacenesid"])
            warehouses.append(
                Warehouse(
                    id=wid,
                    name=str(r.get("descripcion") or f"Warehouse {wid}"),
                )
            )
        self.logger.info("Warehouses received: %d", len(warehouses))
        return warehouses

    # ── Per-product calls ────────────────────────────────

    def _request_images(self, product_id: int) -> list[bytes]:
        resp = self._post(
            "images", {"productosid": product_id}, self.item_timeout
        )
        if resp.status_code >= 500:
            raise UpstreamRejected(status=resp.status_code)
        data = resp.json()
        if not isinstance(data, dict) or data.get("informacion") is not True:
            return []
        entries = data.get("productos_imagenes") or []
        images: list[bytes] = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            decoded = _decode_image(entry.get("imagen"))
            if decoded:
                images.append(decoded)
        return images

    def _request_stock(self, product_id: int, warehouse_id: int) -> int:
        resp = self._post(
            "stock", {"productosid": product_id}, self.item_timeout
        )
        if resp.status_code >= 500:
            raise UpstreamRejected(status=resp.status_code)
        data = resp.json()
        if not isinstance(data, dict):
            return 0
        for entry in data.get("existencias") or []:
            if not isinstance(entry, dict):
                continue
            if _to_int(entry.get("almacenesid")) == warehouse_id:
                return max(0, _to_int(entry.get("existencias")))
        return 0

    def fetch_images_for_product(self, product_id: int) -> list[bytes]:
        """Return the product's raw image bytes in upstream order."""
        return self._with_retry(
            f"Images for product {product_id}",
            lambda: self._request_images(product_id),
            [],
        )

    def fetch_stock_for_product(
        self, product_id: int, warehouse_id: int,
    ) -> int:
        """Return the product's stock in *warehouse_id* (0 if unknown)."""
        return self._with_retry(
            f"Stock for product {product_id}",
            lambda: self._request_stock(product_id, warehouse_id),
            0,
        )
