"""
Stratum — MySQL stored routine loader CLI

Commands:
  load    Load every stale routine (or only the given files) and update the
          metadata store.
  check   Parse the annotations of source files only (no database needed).

Usage examples:
  stratum load
  stratum load lib/psql/abc_user_get_rows.psql
  stratum load --dry-run
  stratum check lib/psql/*.psql

Environment variables (also read from a .env file):
  DB_HOST, DB_PORT, DB_USER, DB_PASSWORD, DB_NAME   MySQL credentials
  SOURCE_DIR, SOURCE_EXTENSION, METADATA_PATH, CONSTANTS_PATH,
  SQL_MODE, CHARACTER_SET, COLLATION, DROP_OBSOLETE, DRY_RUN

Exit codes:
  0  Success
  1  One or more routines failed
  2  Configuration error (missing credentials, unreadable store)
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from stratum.configs.config import LoaderConfig
from stratum.configs.exceptions import DataLayerConnectionError, MetadataError
from stratum.discovery.mysql_client import MySqlDataLayer, connect
from stratum.discovery.source_reader import discover_sources
from stratum.pipeline import BatchResult, RoutineResult, check, load_all

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        level=level,
        stream=sys.stdout,
    )


# ---------------------------------------------------------------------------
# Config builder from env + CLI overrides
# ---------------------------------------------------------------------------

def _build_config(args: argparse.Namespace) -> LoaderConfig:
    kwargs = {}
    if getattr(args, "source_dir", None):
        kwargs["source_dir"] = Path(args.source_dir)
    if getattr(args, "extension", None):
        kwargs["source_extension"] = args.extension
    if getattr(args, "metadata", None):
        kwargs["metadata_path"] = Path(args.metadata)
    if getattr(args, "constants", None):
        kwargs["constants_path"] = Path(args.constants)
    if getattr(args, "dry_run", False):
        kwargs["dry_run"] = True
    return LoaderConfig(**kwargs)


# ---------------------------------------------------------------------------
# MySQL connection builder
# ---------------------------------------------------------------------------

def _build_connection() -> MySqlDataLayer:
    """
    Open a MySQL connection from the DB_* environment variables.

    Raises SystemExit(2) if required credentials are missing or the port
    isn't a number.
    """
    settings = {
        "DB_HOST": os.environ.get("DB_HOST"),
        "DB_USER": os.environ.get("DB_USER"),
        "DB_PASSWORD": os.environ.get("DB_PASSWORD"),
        "DB_NAME": os.environ.get("DB_NAME"),
    }
    missing = [name for name, value in settings.items() if value is None or value == ""]
    if missing:
        print(f"ERROR: Missing required credentials: {', '.join(missing)}", file=sys.stderr)
        print("Set them via environment variables or a .env file.", file=sys.stderr)
        sys.exit(2)

    try:
        port = int(os.environ.get("DB_PORT", "3306"))
    except ValueError:
        print(f"ERROR: DB_PORT is not a number: {os.environ['DB_PORT']!r}", file=sys.stderr)
        sys.exit(2)

    return connect(
        host=settings["DB_HOST"],
        user=settings["DB_USER"],
        password=settings["DB_PASSWORD"],
        database=settings["DB_NAME"],
        port=port,
    )


# ---------------------------------------------------------------------------
# Result printer
# ---------------------------------------------------------------------------

def _print_result(result: RoutineResult) -> None:
    if not result.success:
        print(f"✗ {result.routine_name}: {result.error}")
        return
    if result.reloaded:
        print(f"✓ {result.routine_name}: loaded ({result.reason})")
    elif result.reason:
        print(f"· {result.routine_name}: stale ({result.reason})")
    for warning in result.warnings:
        print(f"  warning: {warning}")


def _print_batch(batch: BatchResult) -> None:
    for result in batch.results:
        _print_result(result)
    for name in batch.dropped:
        print(f"- {name}: dropped (no source file)")

    print("\n── Summary ──────────────────────────────────────────")
    print(f"  Routines : {len(batch.results)}")
    print(f"  Loaded   : {sum(1 for r in batch.results if r.reloaded and r.success)}")
    print(f"  Failed   : {len(batch.failed)}")
    print(f"  Dropped  : {len(batch.dropped)}")
    if batch.dry_run:
        print("  (dry-run: nothing was changed)")


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------

def _cmd_load(args: argparse.Namespace) -> int:
    config = _build_config(args)
    only = list(args.files) or None

    try:
        with _build_connection() as data_layer:
            batch = load_all(data_layer, config, only=only)
    except MetadataError as e:
        logger.error("%s", e)
        return 2
    except DataLayerConnectionError as e:
        logger.error("Batch aborted: %s", e)
        return 1

    _print_batch(batch)
    return 0 if batch.success else 1


def _cmd_check(args: argparse.Namespace) -> int:
    config = _build_config(args)
    paths = list(args.files) or discover_sources(config.source_dir, config.source_extension)

    try:
        results = check(paths, config)
    except MetadataError as e:
        logger.error("%s", e)
        return 2

    for result in results:
        if result.success:
            print(f"✓ {result.source_path}")
        else:
            print(f"✗ {result.source_path}: {result.error}")
    return 0 if all(r.success for r in results) else 1


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stratum",
        description="MySQL stored routine loader",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    def _add_config_args(p):
        p.add_argument("--source-dir", default=None, dest="source_dir",
                       help="Directory with routine sources (overrides SOURCE_DIR)")
        p.add_argument("--extension", default=None,
                       help="Routine source file extension (overrides SOURCE_EXTENSION)")
        p.add_argument("--metadata", default=None,
                       help="Metadata store path (overrides METADATA_PATH)")
        p.add_argument("--constants", default=None,
                       help="Placeholder constants file (overrides CONSTANTS_PATH)")
        p.add_argument("files", nargs="*", metavar="FILE",
                       help="Routine source files (default: all under the source dir)")

    # load
    p_load = sub.add_parser("load", help="Load stale routines into MySQL")
    p_load.add_argument("--dry-run", action="store_true", dest="dry_run",
                        help="Report stale routines without changing anything")
    _add_config_args(p_load)

    # check
    p_check = sub.add_parser("check", help="Parse routine annotations only (no MySQL)")
    _add_config_args(p_check)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    handlers = {
        "load":  _cmd_load,
        "check": _cmd_check,
    }
    exit_code = handlers[args.command](args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
