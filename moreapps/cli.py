#!/usr/bin/env python3
"""Command-line interface for moreapps.

The CLI exposes the catalog pipeline from the terminal, which is handy when
setting up a developer id or checking what a view would show:

- fetch: Print the developer's raw catalog (cache or single lookup)
- show: Run the retrying loader and print the partitioned catalog
- cache: Clear the cached catalog or show cache statistics
- validate: Validate settings
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from moreapps.core.config import Settings, get_settings
from moreapps.core.data_models import CatalogRecord, PlatformFilter
from moreapps.core.error_recovery import RetryPolicy
from moreapps.core.errors import MoreAppsError
from moreapps.core.kit import MoreApps
from moreapps.core.logging_setup import configure_logging
from moreapps.core.orchestrator import LoadState


def parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="moreapps",
        description="Show a developer's apps from the App Store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  moreapps fetch --developer 1499619759
  moreapps show --developer 1499619759 --bundle-id com.example.notes --show-current
  moreapps cache clear
  moreapps validate --strict
        """,
    )
    parser.add_argument("--config", help="Path to a YAML or TOML settings file")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (default: from settings, INFO)",
    )
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file")
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Use JSON structured logging format",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    fetch_parser = subparsers.add_parser("fetch", help="Print the developer's catalog")
    _add_catalog_arguments(fetch_parser)
    fetch_parser.add_argument("--json", action="store_true", help="Output as JSON")

    show_parser = subparsers.add_parser("show", help="Print the partitioned catalog")
    _add_catalog_arguments(show_parser)
    show_parser.add_argument("--bundle-id", help="Bundle id of the running app")
    show_parser.add_argument(
        "--platform",
        choices=[f.value for f in PlatformFilter],
        help="Only show apps for this platform",
    )
    show_parser.add_argument(
        "--exclude", action="append", default=[], metavar="BUNDLE_ID", help="Hide an app"
    )
    show_parser.add_argument(
        "--show-current", action="store_true", help="Show the running app separately"
    )
    show_parser.add_argument("--max-retries", type=int, default=3, help="Load retries (default: 3)")

    cache_parser = subparsers.add_parser("cache", help="Manage the cached catalog")
    cache_subparsers = cache_parser.add_subparsers(dest="cache_action", required=True)
    cache_subparsers.add_parser("clear", help="Remove the cached catalog")
    cache_stats_parser = cache_subparsers.add_parser("stats", help="Show cache statistics")
    cache_stats_parser.add_argument("--json", action="store_true", help="Output as JSON")

    validate_parser = subparsers.add_parser("validate", help="Validate settings")
    validate_parser.add_argument(
        "--strict", action="store_true", help="Exit with an error if settings are invalid"
    )

    return parser.parse_args(argv)


def _add_catalog_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--developer", help="Developer id (default: catalog.developer_id)")
    parser.add_argument("--country", help="Store country code (default: from locale)")
    parser.add_argument(
        "--no-region-fallback",
        action="store_true",
        help="Do not fall back to the US store when the local store is empty",
    )


def _build_kit(args: argparse.Namespace, settings: Settings, **overrides) -> MoreApps:
    if args.country:
        settings.set("lookup.default_country", args.country)
    if getattr(args, "bundle_id", None):
        settings.set("catalog.bundle_id", args.bundle_id)
    if args.no_region_fallback:
        overrides["region_fallback"] = False
    return MoreApps.from_settings(settings, developer_id=args.developer, **overrides)


def _format_record(record: CatalogRecord) -> str:
    rating = f"{record.average_rating:.1f}" if record.average_rating is not None else "-"
    return (
        f"{record.track_id:<12} {record.name[:32]:<32} {record.price:<10} "
        f"{rating:<5} {record.platform.name.lower():<9} {record.bundle_id}"
    )


def _print_records(records: List[CatalogRecord]) -> None:
    print(f"{'ID':<12} {'Name':<32} {'Price':<10} {'Rate':<5} {'Platform':<9} Bundle")
    print("-" * 90)
    for record in records:
        print(_format_record(record))


async def handle_fetch(args: argparse.Namespace, settings: Settings) -> int:
    """Handle the fetch command."""
    kit = _build_kit(args, settings)
    records = await kit.fetch_apps()

    if args.json:
        print(json.dumps([r.to_dict() for r in records], indent=2))
    elif not records:
        print("No apps found.")
    else:
        _print_records(records)
    return 0


async def handle_show(args: argparse.Namespace, settings: Settings) -> int:
    """Handle the show command."""
    if args.exclude:
        settings.set(
            "catalog.exclude_bundle_ids",
            settings.get_list("catalog.exclude_bundle_ids") + list(args.exclude),
        )
    kit = _build_kit(
        args,
        settings,
        platform_filter=PlatformFilter(args.platform) if args.platform else None,
        show_current_app=True if args.show_current else None,
    )

    orchestrator = kit.make_orchestrator(retry_policy=RetryPolicy(max_retries=args.max_retries))
    orchestrator.load()
    await orchestrator.wait()

    if orchestrator.state is LoadState.FAILED:
        print(f"Could not load apps: {orchestrator.last_error}", file=sys.stderr)
        return 1

    if orchestrator.current is not None:
        print("Current app:")
        print(f"  {_format_record(orchestrator.current)}")
        print()

    others = orchestrator.others
    if not others:
        print("No other apps.")
    else:
        print(f"Other apps ({len(others)}):")
        _print_records(others)
    return 0


async def handle_cache(args: argparse.Namespace, settings: Settings) -> int:
    """Handle the cache command."""
    kit = MoreApps.from_settings(settings)

    if args.cache_action == "clear":
        kit.clear_cache()
        print("Cleared cached catalog.")
    elif args.cache_action == "stats":
        entry = kit.cache.peek()
        stats = {
            "path": str(kit.cache.store.path),
            "developer_id": entry.developer_id if entry else None,
            "country": entry.country if entry else None,
            "records": len(entry.records) if entry else 0,
            "timestamp": entry.timestamp.isoformat() if entry else None,
        }
        if args.json:
            print(json.dumps(stats, indent=2))
        else:
            print("Cache Statistics")
            print("=" * 30)
            for key, value in stats.items():
                print(f"{key + ':':<14}{value if value is not None else '-'}")

    return 0


async def handle_validate(args: argparse.Namespace, settings: Settings) -> int:
    """Handle the validate command."""
    result = settings.validate()

    print(result)

    if args.strict and not result.is_valid:
        return 1

    return 0


async def main_async(args: argparse.Namespace, settings: Optional[Settings] = None) -> int:
    """Main async entry point.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    settings = settings or get_settings(args.config)

    level_name = (args.log_level or str(settings.get("logging.level", "INFO"))).upper()
    log_file = args.log_file
    if log_file is None and settings.get("logging.file"):
        log_file = Path(settings.get("logging.file"))
    configure_logging(
        log_file=log_file,
        level=getattr(logging, level_name, logging.INFO),
        use_json=args.json_logs or settings.get_bool("logging.json"),
    )

    logger = logging.getLogger(__name__)
    logger.debug(f"moreapps CLI started with command: {args.command}")

    handlers = {
        "fetch": handle_fetch,
        "show": handle_show,
        "cache": handle_cache,
        "validate": handle_validate,
    }
    try:
        return await handlers[args.command](args, settings)
    except MoreAppsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2


def main() -> None:
    args = parse_args(sys.argv[1:])
    try:
        exit_code = asyncio.run(main_async(args))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nAborted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
