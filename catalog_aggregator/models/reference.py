# catalog_aggregator/models/reference.py

"""Read-only reference data fetched from the upstream."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Category:
    """A product category as listed by the upstream."""

    id: int
    name: str


@dataclass(frozen=True)
class Warehouse:
    """A warehouse whose stock figures can be resolved."""

    id: int
    name: str
