#!/usr/bin/env python3
"""CLI runner for the BESS dispatch optimization model.

This script provides a command-line interface for building and solving the
battery profit-maximisation model.

Usage:
    # Run optimization with sample/demo data
    python run_dispatch.py --demo

    # Run optimization with prices from a CSV file
    python run_dispatch.py --prices prices.csv --consider-lifetime --lifetime-cycles 1

    # Print the formulation the current configuration builds
    python run_dispatch.py --formulation --consider-fees

Environment variables:
    BESS_CONSIDER_LIFETIME: Add the cycle-lifetime sub-model
    BESS_LIFETIME_CYCLES: Cycle budget over the horizon
    BESS_CONSIDER_FEES: Track operational cost and capex
    OPT_SOLVER: LP solver to use (CBC, GLPK, HIGHS)
    OPT_TIME_LIMIT: Solver time limit in seconds
"""

import argparse
import logging
import math
import sys
from datetime import datetime, timedelta, timezone
from typing import Optional

import pandas as pd
from dotenv import load_dotenv

load_dotenv()

from bess_dispatch.optimization import (
    BatteryParameters,
    DispatchConfig,
    DispatchError,
    DispatchInputs,
    DispatchResult,
    DispatchSolver,
)
from bess_dispatch.optimization.formulation import write_formulation

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def load_price_csv(path: str) -> DispatchInputs:
    """Load market data from a long-format CSV.

    Required columns are ``timestamp``, ``market`` and ``price``. Optional
    ``operational_cost`` and ``capex`` columns hold one value per timestamp;
    the first value seen for each timestamp is used.

    Args:
        path: Path to the CSV file

    Returns:
        DispatchInputs covering every market and timestamp in the file
    """
    df = pd.read_csv(path, parse_dates=["timestamp"])
    missing = {"timestamp", "market", "price"} - set(df.columns)
    if missing:
        raise ValueError(f"{path} is missing columns: {', '.join(sorted(missing))}")

    datetimes = sorted(df["timestamp"].unique())
    datetimes = [pd.Timestamp(t) for t in datetimes]
    markets = list(dict.fromkeys(df["market"]))
    price = {
        (row.market, pd.Timestamp(row.timestamp)): float(row.price)
        for row in df.itertuples(index=False)
    }

    per_step = df.drop_duplicates("timestamp").set_index("timestamp")
    operational_costs = None
    capex = None
    if "operational_cost" in df.columns:
        operational_costs = {
            pd.Timestamp(t): float(v) for t, v in per_step["operational_cost"].items()
        }
    if "capex" in df.columns:
        capex = {pd.Timestamp(t): float(v) for t, v in per_step["capex"].items()}

    logger.info(
        "Loaded %d prices for %d markets over %d timestamps from %s",
        len(price),
        len(markets),
        len(datetimes),
        path,
    )
    return DispatchInputs(
        markets=markets,
        datetimes=datetimes,
        price=price,
        operational_costs=operational_costs,
        capex=capex,
    )


class DispatchRunner:
    """Runner for dispatch optimization operations.

    Provides methods for building, solving and reporting the dispatch
    model through the CLI.
    """

    def __init__(
        self,
        config: DispatchConfig,
        battery: BatteryParameters,
        horizon_hours: int = 24,
        time_step_minutes: int = 60,
    ) -> None:
        """Initialize the dispatch runner.

        Args:
            config: Dispatch configuration
            battery: Physical parameters of the storage asset
            horizon_hours: Demo horizon in hours
            time_step_minutes: Demo time step in minutes
        """
        self.config = config
        self.battery = battery
        self.horizon_hours = horizon_hours
        self.time_step_minutes = time_step_minutes
        self.solver = DispatchSolver(config)

    def run_demo(self) -> DispatchResult:
        """Run optimization with demo/sample data.

        Returns:
            DispatchResult with optimal schedule
        """
        logger.info("Running demo dispatch with sample data...")
        inputs = self._create_demo_inputs()
        result = self.solver.optimize(inputs, self.battery)
        self._display_result(result)
        return result

    def run_inputs(self, inputs: DispatchInputs) -> DispatchResult:
        """Run optimization for loaded market data."""
        result = self.solver.optimize(inputs, self.battery)
        self._display_result(result)
        return result

    def _create_demo_inputs(self) -> DispatchInputs:
        """Create demo inputs with a day-ahead and an intraday market.

        Returns:
            DispatchInputs with sample data
        """
        num_steps = self.horizon_hours * 60 // self.time_step_minutes
        step = timedelta(minutes=self.time_step_minutes)
        start_time = datetime.now(timezone.utc).replace(
            minute=0, second=0, microsecond=0
        )
        datetimes = [start_time + i * step for i in range(num_steps)]
        markets = ["day_ahead", "intraday"]

        price = {}
        for t in datetimes:
            hour = t.hour + t.minute / 60
            # Evening peak, overnight trough
            day_ahead = 60.0 + 25.0 * math.sin((hour - 12.0) / 24.0 * 2 * math.pi)
            if 17 <= hour < 21:
                day_ahead += 30.0
            price["day_ahead", t] = round(day_ahead, 2)
            price["intraday", t] = round(day_ahead * (1.05 if hour >= 12 else 0.97), 2)

        per_step_opex = 0.5
        per_step_capex = 1000.0 / num_steps
        return DispatchInputs(
            markets=markets,
            datetimes=datetimes,
            price=price,
            operational_costs={t: per_step_opex for t in datetimes},
            capex={t: per_step_capex for t in datetimes},
        )

    def _display_result(self, result: DispatchResult) -> None:
        """Display dispatch result summary.

        Args:
            result: Dispatch result to display
        """
        logger.info("=" * 70)
        logger.info("DISPATCH RESULT SUMMARY")
        logger.info("=" * 70)
        logger.info("Run ID: %s", result.run_id)
        logger.info("Status: %s", result.status)
        logger.info("Solver Time: %.3f seconds", result.solver_time_seconds)
        logger.info("")
        logger.info("PROFIT SUMMARY:")
        logger.info("  Gross Profit: %.2f", result.raw_profit)
        logger.info("  Net Profit: %.2f", result.net_profit)
        if result.cycles is not None:
            logger.info("  Equivalent Cycles: %.4f", result.cycles)
        logger.info("")
        logger.info("SCHEDULE PREVIEW (first 6 steps):")
        logger.info("-" * 70)
        logger.info("%-26s %10s %10s %10s %12s", "Time", "Charge", "Disch", "SOC", "Gross")
        logger.info("-" * 70)
        for point in result.schedule[:6]:
            logger.info(
                "%-26s %10.3f %10.3f %10.3f %12.2f",
                point.timestamp,
                point.total_charge,
                point.total_discharge,
                point.state_of_charge,
                point.raw_profit,
            )
        if len(result.schedule) > 6:
            logger.info("... (%d more time steps)", len(result.schedule) - 6)
        logger.info("=" * 70)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="BESS Dispatch Profit Maximisation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run demo optimization with sample data
    python run_dispatch.py --demo

    # Solve with prices from a CSV and a cycle budget
    python run_dispatch.py --prices prices.csv --consider-lifetime --lifetime-cycles 2

    # Output result to JSON file
    python run_dispatch.py --demo --output result.json
        """,
    )

    # Operation modes
    mode_group = parser.add_mutually_exclusive_group(required=True)
    mode_group.add_argument(
        "--demo",
        action="store_true",
        help="Run optimization with demo/sample data",
    )
    mode_group.add_argument(
        "--prices",
        type=str,
        help="CSV file with timestamp, market, price columns",
    )
    mode_group.add_argument(
        "--formulation",
        action="store_true",
        help="Print the formulation for the selected options and exit",
    )

    # Sub-models
    parser.add_argument(
        "--consider-lifetime",
        action="store_true",
        help="Bound discharge by an equivalent full cycle budget",
    )
    parser.add_argument(
        "--lifetime-cycles",
        type=float,
        default=5000,
        help="Equivalent full cycle budget (default: 5000)",
    )
    parser.add_argument(
        "--consider-fees",
        action="store_true",
        help="Deduct operational cost and capex from net profit",
    )
    parser.add_argument(
        "--solver",
        type=str,
        default="CBC",
        help="LP solver: CBC, GLPK or HIGHS (default: CBC)",
    )

    # Battery parameters
    parser.add_argument("--s-min", type=float, default=0.0, help="Min storage [MWh] (default: 0)")
    parser.add_argument("--s-max", type=float, default=10.0, help="Max storage [MWh] (default: 10)")
    parser.add_argument(
        "--gamma-s", type=float, default=1.0, help="Storage retention (default: 1.0)"
    )
    parser.add_argument(
        "--gamma-c", type=float, default=0.95, help="Charging efficiency (default: 0.95)"
    )
    parser.add_argument(
        "--gamma-d", type=float, default=0.95, help="Discharging efficiency (default: 0.95)"
    )
    parser.add_argument("--rr-c", type=float, default=5.0, help="Max charge rate [MW] (default: 5)")
    parser.add_argument(
        "--rr-d", type=float, default=5.0, help="Max discharge rate [MW] (default: 5)"
    )

    # Demo settings
    parser.add_argument(
        "--horizon",
        type=int,
        default=24,
        help="Demo horizon in hours (default: 24)",
    )
    parser.add_argument(
        "--time-step",
        type=int,
        default=60,
        help="Demo time step in minutes (default: 60)",
    )

    # Output settings
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        help="Output file for dispatch result (JSON)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)

    # Set logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = DispatchConfig(
            consider_lifetime=args.consider_lifetime,
            lifetime_cycles=args.lifetime_cycles,
            consider_fees=args.consider_fees,
            solver=args.solver,
        )

        if args.formulation:
            print(write_formulation(config))
            return 0

        battery = BatteryParameters(
            storage_min=args.s_min,
            storage_max=args.s_max,
            retention=args.gamma_s,
            charge_efficiency=args.gamma_c,
            discharge_efficiency=args.gamma_d,
            max_charge_rate=args.rr_c,
            max_discharge_rate=args.rr_d,
        )
        runner = DispatchRunner(
            config,
            battery,
            horizon_hours=args.horizon,
            time_step_minutes=args.time_step,
        )

        if args.demo:
            result = runner.run_demo()
        else:
            result = runner.run_inputs(load_price_csv(args.prices))

        # Save to file if requested
        if args.output:
            with open(args.output, "w") as f:
                f.write(result.to_json())
            logger.info("Result saved to %s", args.output)

        return 0 if result.is_optimal else 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except DispatchError as e:
        logger.error("Dispatch failed: %s", e)
        return 1

    except Exception:
        logger.exception("Fatal error in dispatch runner")
        return 1


if __name__ == "__main__":
    sys.exit(main())
