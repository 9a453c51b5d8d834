"""
Command-line interface for CJ Fulfillment operations.

Provides manual access to the supplier gateway (catalog, categories, freight
quotes), order placement, tracking refresh and status reconciliation, plus
configuration checks and database setup.
"""

import argparse
import asyncio
import json
import sys
from typing import Any, Optional, List

from cj_fulfillment.core.models import OperationResult, OrderLineItem, to_plain
from cj_fulfillment.database.connection import get_db_context, init_db
from cj_fulfillment.database.operations import OrderRepository
from cj_fulfillment.services.order_placement import OrderPlacementService
from cj_fulfillment.services.scheduler import StatusSyncScheduler
from cj_fulfillment.services.status_sync import run_status_sync
from cj_fulfillment.services.tracking_service import TrackingService
from cj_fulfillment.suppliers.cj_client import CJDropshippingClient
from cj_fulfillment.utils.config import get_config, reload_config, validate_configuration
from cj_fulfillment.utils.logger import get_logger, setup_logging


# Setup CLI-specific logging
cli_logger = get_logger(__name__)


def _print_json(data: Any) -> None:
    print(json.dumps(to_plain(data), indent=2, ensure_ascii=False, default=str))


def _print_result(result: OperationResult) -> int:
    _print_json(result.to_dict())
    return 0 if result.success else 1


def parse_line_item(value: str) -> OrderLineItem:
    """Parse a ``VID:QTY`` argument; the quantity defaults to 1."""
    variant_id, _, quantity = value.partition(":")
    if not variant_id:
        raise argparse.ArgumentTypeError(f"invalid line item: {value!r}")
    try:
        return OrderLineItem(variant_id, int(quantity or 1))
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid quantity in line item: {value!r}")


class FulfillmentCLI:
    """Command-line interface for CJ Fulfillment operations."""

    def __init__(self):
        self.config = None
        self._gateway: Optional[CJDropshippingClient] = None

    def _init_services(self):
        """Initialize services (lazy loading)."""
        if not self.config:
            self.config = get_config()
            cli_logger.debug("Configuration loaded")

    @property
    def gateway(self) -> CJDropshippingClient:
        if self._gateway is None:
            self._init_services()
            self._gateway = CJDropshippingClient(self.config.cj, pricing=self.config.pricing)
        return self._gateway

    async def close(self) -> None:
        if self._gateway is not None:
            await self._gateway.aclose()
            await self._gateway.tokens.aclose()

    async def cmd_config(self, args) -> int:
        """Handle configuration commands."""
        if args.config_action == "validate":
            cli_logger.info("Validating configuration...")
            validation_result = validate_configuration()

            if validation_result["valid"]:
                print("✅ Configuration is valid")
                print(f"📊 Summary: {json.dumps(validation_result['summary'], indent=2)}")
                return 0

            print(f"❌ Configuration validation failed: {validation_result['error']}")
            return 1

        if args.config_action == "show":
            self._init_services()
            cj = self.config.cj
            print("📋 Current configuration:")
            _print_json({
                "cj_dropshipping": {
                    "api_url": cj.api_url,
                    "timeout": cj.timeout,
                    "auth_timeout": cj.auth_timeout,
                    "default_country_code": cj.default_country_code,
                    "has_credentials": cj.has_credentials,
                    "can_sign_requests": cj.can_sign,
                },
                "pricing": self.config.pricing.model_dump(),
                "storefront": {
                    "url": self.config.store.url,
                    "tracking_url_base": self.config.store.tracking_url_base,
                    "status_emails_enabled": self.config.store.status_emails_enabled,
                },
                "application": {
                    "log_level": self.config.app.log_level,
                    "log_dir": self.config.app.log_dir,
                    "debug_mode": self.config.app.debug_mode,
                    "status_sync_interval_minutes": self.config.app.status_sync_interval_minutes,
                },
            })
            return 0

        if args.config_action == "reload":
            reload_config()
            self.config = None
            print("✅ Configuration reloaded successfully")
            return 0

        return 1

    async def cmd_categories(self, args) -> int:
        return _print_result(await self.gateway.get_categories())

    async def cmd_search(self, args) -> int:
        search = self.gateway.search_my_products if args.mine else self.gateway.search_products
        result = await search(
            keywords=args.keywords,
            category_id=args.category,
            page=args.page,
            page_size=args.page_size,
        )
        return _print_result(result)

    async def cmd_product(self, args) -> int:
        if args.variants:
            return _print_result(await self.gateway.get_product_variants(args.product_id))
        return _print_result(await self.gateway.get_product(args.product_id))

    async def cmd_shipping(self, args) -> int:
        result = await self.gateway.get_shipping_rates(
            args.product_id,
            args.country.upper(),
            variant_id=args.vid,
            quantity=args.quantity,
            weight_kg=args.weight,
        )
        return _print_result(result)

    async def cmd_order_shipping(self, args) -> int:
        result = await self.gateway.get_order_shipping_rates(
            args.country.upper(),
            args.items,
            total_weight_kg=args.weight,
        )
        return _print_result(result)

    async def cmd_track(self, args) -> int:
        self._init_services()
        with get_db_context() as db:
            service = TrackingService(OrderRepository(db), self.gateway, self.config.store.tracking_url_base)
            result = await service.refresh_tracking(args.order_id)
        _print_json(result.to_dict())
        return 0 if result.success else 1

    async def cmd_place(self, args) -> int:
        self._init_services()
        with get_db_context() as db:
            service = OrderPlacementService(
                OrderRepository(db), self.gateway, self.config.cj.default_country_code
            )
            result = await service.place_order(args.order_id, logistic_name=args.logistic)
        return _print_result(result)

    async def cmd_sync_statuses(self, args) -> int:
        stats = await run_status_sync(self.gateway)
        _print_json(stats)
        return 0 if not stats["errors"] else 1

    async def cmd_schedule(self, args) -> int:
        gateway = self.gateway
        scheduler = StatusSyncScheduler(lambda: run_status_sync(gateway), args.interval)
        scheduler.start(run_immediately=args.now)
        print(f"⏰ Status sync scheduled every {scheduler.interval_minutes} minutes (Ctrl+C to stop)")
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.stop()
        return 0

    async def cmd_init_db(self, args) -> int:
        init_db()
        print("✅ Database tables created")
        return 0


def create_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="cj-fulfillment",
        description="CJ Fulfillment CLI - CJ Dropshipping catalog, orders and tracking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  cj-fulfillment config validate               # Validate configuration
  cj-fulfillment search "phone case"           # Search the CJ catalog
  cj-fulfillment search case --mine            # Search products in my CJ account
  cj-fulfillment shipping --country ZA --product P1 --vid V1
  cj-fulfillment order-shipping --country ZA --item V1:2 --item V2:1 --weight 1.2
  cj-fulfillment place <order_id>              # Place a paid order with CJ
  cj-fulfillment track <order_id>              # Refresh tracking for an order
  cj-fulfillment sync-statuses                 # Reconcile all open orders
        """
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Configuration commands
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument(
        "config_action",
        choices=["validate", "show", "reload"],
        help="Configuration action to perform"
    )

    # Catalog commands
    subparsers.add_parser("categories", help="List CJ leaf categories")

    search_parser = subparsers.add_parser("search", help="Search CJ products")
    search_parser.add_argument("keywords", nargs="?", help="Search keywords")
    search_parser.add_argument("--mine", action="store_true", help="Search my CJ products instead of the catalog")
    search_parser.add_argument("--category", help="CJ category id")
    search_parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    search_parser.add_argument("--page-size", type=int, default=20, help="Page size (default: 20)")

    product_parser = subparsers.add_parser("product", help="Show one CJ product")
    product_parser.add_argument("product_id", help="CJ product id (pid)")
    product_parser.add_argument("--variants", action="store_true", help="Show variants only")

    shipping_parser = subparsers.add_parser("shipping", help="Quote CJ freight for a product")
    shipping_parser.add_argument("--country", required=True, help="Destination country code")
    shipping_parser.add_argument("--product", dest="product_id", default="", help="CJ product id")
    shipping_parser.add_argument("--vid", help="CJ variant id")
    shipping_parser.add_argument("--quantity", type=int, default=1, help="Quantity (default: 1)")
    shipping_parser.add_argument("--weight", type=float, default=0.0, help="Fallback weight for weight-based quotes")

    order_shipping_parser = subparsers.add_parser("order-shipping", help="Quote CJ freight for a whole order")
    order_shipping_parser.add_argument("--country", required=True, help="Destination country code")
    order_shipping_parser.add_argument("--item", dest="items", action="append", required=True,
                                       type=parse_line_item, metavar="VID:QTY", help="Order line (repeatable)")
    order_shipping_parser.add_argument("--weight", type=float, help="Total order weight in kg for the fallback quote")

    # Order commands
    track_parser = subparsers.add_parser("track", help="Refresh tracking for a local order")
    track_parser.add_argument("order_id", help="Local order id")

    place_parser = subparsers.add_parser("place", help="Place a paid local order with CJ")
    place_parser.add_argument("order_id", help="Local order id")
    place_parser.add_argument("--logistic", help="CJ logistics method name")

    subparsers.add_parser("sync-statuses", help="Reconcile open order statuses with CJ tracking")

    schedule_parser = subparsers.add_parser("schedule", help="Run status sync periodically")
    schedule_parser.add_argument("--interval", type=int, help="Minutes between runs")
    schedule_parser.add_argument("--now", action="store_true", help="Also run once immediately")

    subparsers.add_parser("init-db", help="Create database tables")

    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # Setup logging for CLI
    if args.verbose:
        setup_logging(level="DEBUG", debug_mode=True)
    else:
        setup_logging()

    if not args.command:
        parser.print_help()
        return 1

    cli = FulfillmentCLI()
    handlers = {
        "config": cli.cmd_config,
        "categories": cli.cmd_categories,
        "search": cli.cmd_search,
        "product": cli.cmd_product,
        "shipping": cli.cmd_shipping,
        "order-shipping": cli.cmd_order_shipping,
        "track": cli.cmd_track,
        "place": cli.cmd_place,
        "sync-statuses": cli.cmd_sync_statuses,
        "schedule": cli.cmd_schedule,
        "init-db": cli.cmd_init_db,
    }

    handler = handlers.get(args.command)
    if handler is None:
        print(f"❌ Unknown command: {args.command}")
        return 1

    try:
        return await handler(args)
    except KeyboardInterrupt:
        print("\n⏹️  Operation cancelled by user")
        return 130
    except Exception as e:
        cli_logger.error(f"CLI operation failed: {e}", exc_info=True)
        print(f"❌ Operation failed: {e}")
        return 1
    finally:
        await cli.close()


def cli_entry_point():
    """Entry point for console script."""
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\n⏹️  Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    cli_entry_point()
