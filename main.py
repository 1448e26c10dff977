# main.py

"""Entry point for the shopwhiz headless CLI."""

import argparse
import asyncio
import logging
import sys

from shopwhiz.config.logging_config import setup_logging
from shopwhiz.config.settings import Settings

logger = logging.getLogger("shopwhiz.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="shopwhiz",
        description="Product discovery across live shopping sources.",
    )
    parser.add_argument(
        "query",
        nargs="?",
        default=None,
        help="Search text or a product URL.",
    )
    parser.add_argument(
        "--synthetic",
        action="store_true",
        default=False,
        help="Generate listings instead of querying live sources.",
    )
    parser.add_argument(
        "-n",
        "--max-results",
        type=int,
        default=Settings.DEFAULT_MAX_RESULTS,
        dest="max_results",
        help=f"Maximum records (default: {Settings.DEFAULT_MAX_RESULTS}).",
    )
    parser.add_argument(
        "--min-price", type=float, default=None, dest="min_price",
    )
    parser.add_argument(
        "--max-price", type=float, default=None, dest="max_price",
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
        "--health",
        action="store_true",
        default=False,
        help="Check source connectivity and provider status.",
    )
    return parser


def _run_cli(args: argparse.Namespace) -> None:
    """Run a headless search and exit."""
    from shopwhiz.cli.runner import cli_search
    from shopwhiz.services.query_router import SearchOptions

    options = SearchOptions(
        use_real_data=not args.synthetic,
        max_results=args.max_results,
        min_price=args.min_price,
        max_price=args.max_price,
    )
    exit_code = asyncio.run(
        cli_search(args.query, options, args.output_format)
    )
    sys.exit(exit_code)


def _run_health_check() -> None:
    """Run source connectivity health check."""
    from shopwhiz.cli.runner import run_health_check

    exit_code = asyncio.run(run_health_check())
    sys.exit(exit_code)


def main() -> None:
    """Route to the health check or a headless search."""
    log_file = setup_logging()
    logger.info("shopwhiz starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    if args.health:
        _run_health_check()
    elif args.query is None:
        parser.print_help(sys.stderr)
        sys.exit(2)
    else:
        _run_cli(args)


if __name__ == "__main__":
    main()
