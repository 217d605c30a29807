# main.py

"""Entry point for the catalog_browser application (TUI or headless CLI)."""

import argparse
import asyncio
import logging
import sys

from src.config.logging_config import setup_logging
from src.config.settings import Settings

logger = logging.getLogger("catalog_browser.main")


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return number


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="catalog_browser",
        description="Paginated product catalog browser.",
        epilog=f"Data source: {Settings.API_BASE}",
    )
    parser.add_argument(
        "page",
        nargs="?",
        default=None,
        type=_positive_int,
        help="Page to print headlessly. Omit to launch the interactive TUI.",
    )
    parser.add_argument(
        "-l",
        "--limit",
        type=int,
        choices=Settings.ALLOWED_LIMITS,
        default=Settings.DEFAULT_LIMIT,
        help=f"Items per page (default: {Settings.DEFAULT_LIMIT}).",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "--sync-assets",
        action="store_true",
        default=False,
        dest="sync_assets",
        help="Pre-cache static assets and remove old cache versions.",
    )
    parser.add_argument(
        "--asset",
        default=None,
        metavar="PATH",
        help="Fetch one asset path cache-first.",
    )
    return parser


def _run_tui() -> None:
    """Launch the interactive Textual TUI."""
    from src.ui.app import CatalogBrowserApp

    try:
        app = CatalogBrowserApp()
        app.run()
    except Exception:
        logger.critical("Fatal error during TUI run", exc_info=True)
        raise
    finally:
        logger.info("catalog_browser TUI shutting down")


def _run_cli(args: argparse.Namespace) -> None:
    """Print one page headlessly and exit."""
    from src.cli.runner import cli_browse

    exit_code = asyncio.run(
        cli_browse(
            page=args.page,
            limit=args.limit,
            output_format=args.output_format,
        )
    )
    sys.exit(exit_code)


def _run_sync_assets() -> None:
    from src.cli.runner import run_sync_assets

    sys.exit(asyncio.run(run_sync_assets()))


def _run_fetch_asset(path: str) -> None:
    from src.cli.runner import run_fetch_asset

    sys.exit(asyncio.run(run_fetch_asset(path)))


def main() -> None:
    """Route to TUI (no args), asset commands, or a headless page."""
    log_file = setup_logging()
    logger.info("catalog_browser starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    if args.sync_assets:
        _run_sync_assets()
    elif args.asset is not None:
        _run_fetch_asset(args.asset)
    elif args.page is None:
        _run_tui()
    else:
        _run_cli(args)


if __name__ == "__main__":
    main()
