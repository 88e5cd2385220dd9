#!/usr/bin/env python
"""
Main entry point for the Order Manager.

Usage:
    python main.py dispatch '{"action": "make", "orderId": "o1", ...}'
    python main.py dispatch trigger.json --wait --timeout 30
    python main.py show ORDER_ID
    python main.py stale --max-age 600
    python main.py load-menu menu.json
"""

import sys
import json
import argparse
from dataclasses import replace
from pathlib import Path

# Add src to path - must be done before any local imports
_src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(_src_path))

from orchestration import create_orchestrator, setup_logging, ApplicationConfig
from domain.exceptions import OrderManagerError
from presentation.formatters import (
    error_formatter,
    order_formatter,
    result_formatter,
    suspension_formatter,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Coffee shop Order Manager",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  dispatch   - Route one trigger (submit/make/unmake/complete/cancel)
  show       - Display the stored record for an order
  stale      - List orders whose caller has been waiting too long
  load-menu  - Store a menu JSON document in the config table
        """
    )

    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Override the directory holding databases and the event log"
    )

    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    dispatch = subparsers.add_parser("dispatch", help="Route one trigger")
    dispatch.add_argument("trigger", help="Trigger as a JSON string or a path to a JSON file")
    dispatch.add_argument(
        "--wait",
        action="store_true",
        help="For submissions, block until the order completes or is cancelled"
    )
    dispatch.add_argument("--timeout", type=float, default=None, help="Seconds to wait with --wait")

    show = subparsers.add_parser("show", help="Display an order")
    show.add_argument("order_id")

    stale = subparsers.add_parser("stale", help="Report long-suspended orders")
    stale.add_argument("--max-age", type=float, default=None, help="Threshold in seconds")

    load_menu = subparsers.add_parser("load-menu", help="Load the menu document")
    load_menu.add_argument("path", type=Path)

    return parser


def load_trigger(raw: str) -> dict:
    """Parse a trigger given inline or as a file path."""
    candidate = Path(raw)
    if not raw.lstrip().startswith("{") and candidate.is_file():
        raw = candidate.read_text(encoding="utf-8")
    return json.loads(raw)


def build_config(args: argparse.Namespace) -> ApplicationConfig:
    config = ApplicationConfig.from_defaults()

    if args.data_dir:
        config = replace(
            config,
            order_db_path=args.data_dir / config.order_db_path.name,
            menu_db_path=args.data_dir / config.menu_db_path.name,
            event_log_path=args.data_dir / config.event_log_path.name,
        )

    if args.log_level:
        config = replace(config, log_level=args.log_level.upper())

    return config


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = build_config(args)
        setup_logging(config.log_level)
        orchestrator = create_orchestrator(config)

        if args.command == "dispatch":
            try:
                trigger = load_trigger(args.trigger)
            except json.JSONDecodeError as e:
                print(error_formatter.error(f"Trigger is not valid JSON: {e}"))
                return 2

            result = orchestrator.dispatch(trigger)
            print(result_formatter.format_result(result))

            if args.wait and result.put_result is not None and result.put_result.admitted:
                print(result_formatter.info(f"Waiting for order {result.order_id}..."))
                payload = result.put_result.suspension.wait(args.timeout)
                if payload is None:
                    print(result_formatter.warning("Stopped waiting before the order finished"))
                    return 3
                print(order_formatter.format_order(orchestrator.show_order(result.order_id)))

            return 0 if result.success else 1

        if args.command == "show":
            record = orchestrator.show_order(args.order_id)
            print(order_formatter.format_order(record, args.order_id))
            return 0 if record is not None else 1

        if args.command == "stale":
            threshold = args.max_age if args.max_age is not None else config.stale_after_seconds
            stale = orchestrator.report_stale(threshold)
            print(suspension_formatter.format_stale_report(stale, threshold))
            return 0

        if args.command == "load-menu":
            count = orchestrator.load_menu(args.path)
            print(order_formatter.success(f"Loaded menu with {count} drink(s)"))
            return 0

        return 2

    except KeyboardInterrupt:
        print("\n\n[CANCELLED] Application interrupted by user")
        return 1

    except OrderManagerError as e:
        print(error_formatter.format_error(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
