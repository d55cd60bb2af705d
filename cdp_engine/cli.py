"""Command-line interface for the collateral engine."""
from __future__ import annotations

import argparse
import asyncio
import sys

from .config import load_config
from .constants import MAX_UINT256, PRECISION
from .health import calculate_health_factor
from .logging_setup import configure_logging
from .services import Simulator, load_scenario


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="cdp-engine",
        description="Collateralized-debt accounting engine",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("assets", help="List registered collateral and current prices")

    health_parser = sub.add_parser(
        "health", help="Health factor for a debt and a collateral value (18 decimals)"
    )
    health_parser.add_argument("debt", type=int, help="Total debt, 18-decimal fixed point")
    health_parser.add_argument(
        "collateral_value", type=int, help="Collateral value in USD, 18-decimal fixed point"
    )

    simulate_parser = sub.add_parser("simulate", help="Run a YAML scenario")
    simulate_parser.add_argument("scenario", help="Path to the scenario file")

    return parser


def _print_health(debt: int, collateral_value: int) -> None:
    factor = calculate_health_factor(debt, collateral_value)
    if factor == MAX_UINT256:
        print(f"{factor} (no debt)")
    else:
        print(f"{factor} ({factor / PRECISION:.4f})")


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command; returns the exit code."""
    configure_logging(args.log_level)

    if args.command == "health":
        _print_health(args.debt, args.collateral_value)
        return 0

    config = load_config(args.config)
    simulator = Simulator(config)
    await simulator.refresh_prices()

    if args.command == "assets":
        print(simulator.build_assets_table())
        return 0

    if args.command == "simulate":
        results = simulator.run(load_scenario(args.scenario))
        for r in results:
            mark = "✅" if r.ok else "❌"
            suffix = f" — {r.error}" if r.error else ""
            print(f"{mark} {r.index:>3} {r.op}{suffix}")
        print()
        print(simulator.build_report())
        return 0 if all(r.ok for r in results) else 1

    build_parser().print_help()
    return 1


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        code = asyncio.run(_run(args))
    except (FileNotFoundError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(2)
    sys.exit(code)
