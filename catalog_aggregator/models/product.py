# catalog_aggregator/models/product.py

"""Product data models flowing through the hydration pipeline."""

import base64
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

# Upstream id fields, highest priority first
ID_FIELDS: tuple[str, ...] = ("productosid", "productoid", "id")
CODE_FIELD = "productocodigo"


@dataclass(frozen=True)
class RawProduct:
    """A product record exactly as the upstream returned it.

    Unknown upstream fields are kept and passed through on
    serialisation.  A missing identifier is a valid state.
    """

    fields: Mapping[str, Any]

    @classmethod
    def from_upstream(cls, record: Mapping[str, Any]) -> "RawProduct":
        """Wrap an upstream record in a read-only view."""
        return cls(fields=MappingProxyType(dict(record)))

    @property
    def identifier(self) -> int | None:
        """First usable id field in priority order, as an int, or ``None``.

        Numeric strings such as ``"12"`` are coerced; zero, empty and
        non-numeric values fall through to the next field.
        """
        for name in ID_FIELDS:
            value = self.fields.get(name)
            if not value or isinstance(value, bool):
                continue
            try:
                product_id = int(float(value))
            except (TypeError, ValueError):
                continue
            if product_id > 0:
                return product_id
        return None

    @property
    def code(self) -> str:
        value = self.fields.get(CODE_FIELD)
        return str(value) if value is not None else ""

    @property
    def description(self) -> str:
        return str(self.fields.get("descripcion") or "")

    @property
    def price(self) -> Any:
        return self.fields.get("precio")


@dataclass(frozen=True)
class HydratedProduct:
    """A raw product enriched with compressed images and stock."""

    raw: RawProduct
    images: tuple[bytes, ...] = ()
    total_stock: int = 0

    @property
    def code(self) -> str:
        return self.raw.code

    def to_dict(self) -> dict[str, Any]:
        """Serialise as upstream fields + base64 images + stock."""
        data = dict(self.raw.fields)
        data["images"] = [
            base64.b64encode(img).decode("ascii") for img in self.images
        ]
        data["totalStock"] = self.total_stock
        return data


@dataclass
class ProductGroup:
    """Products sharing a parent code, in first-seen order."""

    parent_code: str
    has_variants: bool = False
    variants: list[HydratedProduct] = field(
        default_factory=lambda: list[HydratedProduct]()
    )

    def to_dict(self) -> dict[str, Any]:
        """Serialise the group with its variants."""
        return {
            "parentCode": self.parent_code,
            "hasVariants": self.has_variants,
            "variants": [v.to_dict() for v in self.variants],
        }
