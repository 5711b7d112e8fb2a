# catalog_aggregator/grouping/variant_grouper.py

"""Group hydrated products into parent/variant families by SKU prefix."""

import logging

from catalog_aggregator.models.product import HydratedProduct, ProductGroup

logger = logging.getLogger("catalog_aggregator.grouping")


class VariantGrouper:
    """Reshape a flat product list into parent/variant groups."""

    @staticmethod
    def parent_code(code: str) -> str:
        """Return the SKU prefix before the first ``-``.

        A leading ``-`` is not a split point: codes without a hyphen,
        or starting with one, are their own parent.
        """
        idx = code.find("-")
        return code[:idx] if idx > 0 else code

    @staticmethod
    def group(products: list[HydratedProduct]) -> list[ProductGroup]:
        """Group products by parent code in a single pass.

        The output lists groups in the order their parent code first
        appears in *products*; variants keep their input order.
        """
        groups_by_parent: dict[str, ProductGroup] = {}
        groups: list[ProductGroup] = []

        for product in products:
            parent = VariantGrouper.parent_code(product.code)

            group = groups_by_parent.get(parent)
            if group is None:
                group = ProductGroup(parent_code=parent)
                groups_by_parent[parent] = group
                groups.append(group)

            group.variants.append(product)
            if len(group.variants) == 2:
                group.has_variants = True

        if groups:
            with_variants = sum(1 for g in groups if g.has_variants)
            logger.info(
                "Grouped %d products into %d groups (%d with variants)",
                len(products),
                len(groups),
                with_variants,
            )

        return groups

    @staticmethod
    def flatten(groups: list[ProductGroup]) -> list[HydratedProduct]:
        """Concatenate group variants back into a flat list."""
        return [v for g in groups for v in g.variants]
