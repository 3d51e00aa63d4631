"""Command-line interface for autodata.

Look up UK vehicles from the terminal and inspect the local cache.

Usage:
    autodata lookup "AB12 CDE"
    autodata lookup AB12CDE --category valuation --mileage 42000
    autodata lookup AB12CDE --format json
    autodata cache AB12CDE
"""

import argparse
import asyncio
import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from pathlib import Path
from typing import Optional

from autodata import __version__
from autodata.cache.store import CacheStore
from autodata.config import settings
from autodata.errors import InvalidRegistrationIdentifier
from autodata.pipeline.orchestrator import LookupResult, Orchestrator, build_backend
from autodata.record import Category, VehicleRecord
from autodata.registration import validate_registration

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=1)


def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="autodata",
        description="autodata: UK vehicle data aggregation with a merge-on-write cache",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  autodata lookup "AB12 CDE"
  autodata lookup AB12CDE --category valuation --mileage 42000
  autodata lookup AB12CDE --format json --force-refresh
  autodata cache AB12CDE
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    lookup_parser = subparsers.add_parser(
        "lookup",
        help="Look up a vehicle by registration",
        description="Serve from cache or buy missing data from providers, cheapest first",
    )
    lookup_parser.add_argument(
        "registration",
        type=str,
        help="UK registration mark (e.g. 'AB12 CDE')",
    )
    lookup_parser.add_argument(
        "--category",
        action="append",
        choices=[c.value for c in Category],
        default=None,
        help="Category to require; repeat for several (default: all)",
    )
    lookup_parser.add_argument(
        "--format",
        type=str,
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    lookup_parser.add_argument(
        "--force-refresh",
        action="store_true",
        help="Call providers even if the cache covers the request",
    )
    lookup_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Lookup deadline in seconds (default: from settings)",
    )
    lookup_parser.add_argument(
        "--mileage",
        type=int,
        default=None,
        help="Mileage for the valuation (default: from settings)",
    )
    lookup_parser.add_argument(
        "--cache-dir",
        type=Path,
        default=None,
        help="Directory for the Parquet cache (default: from settings)",
    )

    cache_parser = subparsers.add_parser(
        "cache",
        help="Show the cached entry for a registration",
    )
    cache_parser.add_argument("registration", type=str, help="UK registration mark")
    cache_parser.add_argument(
        "--cache-dir",
        type=Path,
        default=None,
        help="Directory for the Parquet cache (default: from settings)",
    )

    subparsers.add_parser("version", help="Show version information")

    return parser


def _run_async(coro):
    """Run an async coroutine from synchronous CLI context.

    Spins up a new event loop in a dedicated thread to avoid conflicts
    with any existing event loop.
    """
    def _target():
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(coro)
        finally:
            loop.close()

    future = _executor.submit(_target)
    return future.result()


def _settings_for(args: argparse.Namespace):
    if getattr(args, "cache_dir", None) is None:
        return settings
    return settings.model_copy(update={"cache_dir": str(args.cache_dir)})


def format_record(record: VehicleRecord) -> str:
    """Render a record as indented ``path: value [source]`` lines."""
    lines: list[str] = []
    for category in Category:
        section = record.section(category)
        if not section:
            continue
        lines.append(f"{category.value}:")
        prefix = f"{category.value}."
        for path in sorted(section):
            fv = section[path]
            lines.append(f"  {path.removeprefix(prefix)}: {fv.value} [{fv.source}]")
    return "\n".join(lines) if lines else "(no data)"


def format_result(result: LookupResult) -> str:
    """Human-readable lookup summary."""
    ledger = result.ledger
    source = "cache" if ledger.served_from_cache else (", ".join(ledger.providers_called) or "none")
    lines = [
        f"Registration: {result.registration}",
        f"Sources: {source}",
        f"Cost: £{ledger.total_cost:.2f}",
    ]
    if not result.complete:
        lines.append("Status: INCOMPLETE (deadline exceeded)")
    lines.append("")
    lines.append(format_record(result.record))
    if result.warnings:
        lines.append("")
        lines.append("Warnings:")
        lines.extend(f"  [{w.code.value}] {w.message}" for w in result.warnings)
    return "\n".join(lines)


def cmd_lookup(args: argparse.Namespace) -> int:
    """Execute the lookup command.

    Returns:
        Exit code (0 success, 2 invalid registration, 1 failure, 130 interrupt)
    """
    try:
        orchestrator = Orchestrator(settings=_settings_for(args))
        result = _run_async(
            orchestrator.lookup(
                args.registration,
                args.category,
                timeout=args.timeout,
                force_refresh=args.force_refresh,
                mileage=args.mileage,
            )
        )

        if args.format == "json":
            print(json.dumps(result.to_dict(), indent=2, default=str))
        else:
            print(format_result(result))
        return 0

    except InvalidRegistrationIdentifier as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except Exception as e:
        logger.error("Lookup failed: %s", e, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_cache(args: argparse.Namespace) -> int:
    """Execute the cache command."""
    try:
        key = validate_registration(args.registration)
        cfg = _settings_for(args)
        store = CacheStore(build_backend(cfg), ttl=timedelta(days=cfg.cache_ttl_days))
        entry = _run_async(store.read(key))
        if entry is None:
            print(f"No cache entry for {key}")
            return 0

        state = "fresh" if store.is_fresh(entry) else "cold"
        print(f"Registration: {entry.key}")
        print(f"Last refreshed: {entry.last_refreshed_at.isoformat()} ({state})")
        print(f"Providers: {', '.join(sorted(entry.providers_consulted)) or 'none'}")
        print("")
        print(format_record(entry.record))
        return 0

    except InvalidRegistrationIdentifier as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except Exception as e:
        logger.error("Cache read failed: %s", e, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_version(args: argparse.Namespace) -> int:
    """Execute the version command."""
    print(f"autodata v{__version__}")
    print("UK vehicle data aggregation & caching engine")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command == "lookup":
        return cmd_lookup(args)
    elif args.command == "cache":
        return cmd_cache(args)
    elif args.command == "version":
        return cmd_version(args)
    else:
        parser.print_help()
        return 0


def cli_entry() -> None:
    """Console script entry point for setuptools."""
    sys.exit(main())


if __name__ == "__main__":
    cli_entry()
