"""
Command-line entry point for the SendIT parcel core.

Usage Examples:
    # Create the database tables
    sendit-parcel init-db

    # Price a shipment payload without writing anything
    sendit-parcel quote shipment.json

    # Quick estimate from weight, package type and delivery speed
    sendit-parcel estimate 2.5 --unit kg --package-type STANDARD_BOX --delivery-type EXPRESS

    # Show the active tariff
    sendit-parcel tariff
"""

import argparse
import json
import logging
import sys

from src.services.database import initialize_app_database
from src.services.exceptions import ServiceError
from src.services.parcel_creation_service import calculate_pricing
from src.services.pricing_config import get_pricing_config
from src.services.pricing_engine import PricingEngine
from src.utils.config import get_config

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure the root handler from SENDIT_LOG_LEVEL."""
    config = get_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def init_db_cmd() -> int:
    """Create the database tables if they don't exist."""
    config = get_config()
    print(f"Initializing {config.database_type} database ({config.environment})...")
    initialize_app_database()
    print("Database ready")
    return 0


def quote_cmd(payload_file: str) -> int:
    """Print the price breakdown for a JSON payload."""
    with open(payload_file, "r", encoding="utf-8") as fh:
        payload = json.load(fh)

    breakdown = calculate_pricing(payload)
    print(json.dumps(breakdown.to_dict(), indent=2))
    return 0


def estimate_cmd(weight: float, unit: str, package_type: str, delivery_type: str) -> int:
    """Print a quick estimate."""
    engine = PricingEngine(get_pricing_config())
    total = engine.quick_estimate(weight, unit, package_type, delivery_type)
    print(f"{engine.config.currency} {total:.2f}")
    return 0


def tariff_cmd() -> int:
    """Print the active tariff as JSON."""
    engine = PricingEngine(get_pricing_config())
    print(json.dumps(engine.describe_tariff(), indent=2))
    return 0


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="SendIT parcel core utilities",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("init-db", help="Create database tables")

    quote_parser = subparsers.add_parser("quote", help="Price a shipment payload (JSON file)")
    quote_parser.add_argument("file", help="JSON payload path")

    estimate_parser = subparsers.add_parser("estimate", help="Quick price estimate")
    estimate_parser.add_argument("weight", type=float, help="Package weight")
    estimate_parser.add_argument("--unit", default="kg", help="Weight unit (default: kg)")
    estimate_parser.add_argument(
        "--package-type", default="STANDARD_BOX", help="Package type (default: STANDARD_BOX)"
    )
    estimate_parser.add_argument(
        "--delivery-type", default="STANDARD", help="Delivery type (default: STANDARD)"
    )

    subparsers.add_parser("tariff", help="Show the active tariff")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    configure_logging()

    try:
        if args.command == "init-db":
            return init_db_cmd()
        elif args.command == "quote":
            return quote_cmd(args.file)
        elif args.command == "estimate":
            return estimate_cmd(args.weight, args.unit, args.package_type, args.delivery_type)
        elif args.command == "tariff":
            return tariff_cmd()
        else:
            print(f"Unknown command: {args.command}")
            return 1
    except ServiceError as e:
        print(f"ERROR: {e}")
        return 1
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
