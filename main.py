# main.py

"""Entry point for the catalog aggregator headless CLI."""

import argparse
import asyncio
import logging
import sys

from catalog_aggregator.config.logging_config import setup_logging

logger = logging.getLogger("catalog_aggregator.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="catalog_aggregator",
        description=(
            "Fetch a catalog category, hydrate its products with "
            "images and stock, and group them by parent code."
        ),
    )
    sub = parser.add_subparsers(dest="command", required=True)

    products = sub.add_parser(
        "products", help="Aggregate the products of one category."
    )
    products.add_argument(
        "category",
        help="Category id (digits) or category name.",
    )
    products.add_argument(
        "-w",
        "--warehouse",
        type=int,
        default=None,
        dest="warehouse_id",
        help="Warehouse id for stock figures (default: ALMACEN_ID).",
    )

    categories = sub.add_parser("categories", help="List categories.")
    warehouses = sub.add_parser("warehouses", help="List warehouses.")
    for p in (products, categories, warehouses):
        p.add_argument(
            "-f",
            "--format",
            choices=["json", "table"],
            default="json",
            dest="output_format",
            help="Output format (default: json).",
        )

    sub.add_parser("health", help="Check upstream connectivity.")
    return parser


def main() -> None:
    """Dispatch to the requested sub-command and exit with its code."""
    log_file = setup_logging()
    logger.info("catalog_aggregator starting, log file: %s", log_file)

    args = _build_parser().parse_args()

    from catalog_aggregator.cli import runner

    if args.command == "products":
        coro = runner.run_products(
            args.category, args.warehouse_id, args.output_format
        )
    elif args.command == "categories":
        coro = runner.run_categories(args.output_format)
    elif args.command == "warehouses":
        coro = runner.run_warehouses(args.output_format)
    else:
        coro = runner.run_health_check()

    try:
        exit_code = asyncio.run(coro)
    except Exception:
        logger.critical("Fatal error during CLI run", exc_info=True)
        raise
    finally:
        logger.info("catalog_aggregator shutting down")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
