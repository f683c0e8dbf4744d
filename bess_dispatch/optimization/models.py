"""Data models for the BESS dispatch optimization model.

This module defines the inputs, the build context that carries declared
decision variables between builder steps, and the result structures
produced after a solve.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Hashable, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from bess_dispatch.optimization.exceptions import (
    ConfigurationError,
    DegenerateGridError,
)

logger = logging.getLogger(__name__)


def _to_hours(delta: Any) -> float:
    """Convert a timestamp difference to hours.

    timedelta-like differences are converted through pandas; plain numbers
    are taken to already be hours.
    """
    if isinstance(delta, (timedelta, np.timedelta64)):
        return pd.Timedelta(delta).total_seconds() / 3600.0
    return float(delta)


def _difference(prev: Any, current: Any) -> Any:
    """Subtract two timestamps, rejecting types that do not support it."""
    try:
        return current - prev
    except TypeError as e:
        raise ConfigurationError(
            f"timestamps must support subtraction, got {prev!r} and {current!r}"
        ) from e


def _is_finite(value: Any) -> bool:
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def _format_timestamp(value: Any) -> Any:
    """Render a timestamp for JSON output."""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


class TimeGrid:
    """Ordered, uniformly spaced sequence of timestamps.

    Attributes:
        datetimes: The timestamps, in increasing order
        step: Difference between consecutive timestamps
        step_hours: The step expressed in hours (tau)
    """

    def __init__(self, datetimes: Sequence[Hashable]) -> None:
        self.datetimes = tuple(datetimes)
        if len(self.datetimes) < 2:
            raise ConfigurationError(
                f"time grid needs at least 2 timestamps, got {len(self.datetimes)}"
            )

        self.step = _difference(self.datetimes[0], self.datetimes[1])
        self.step_hours = _to_hours(self.step)
        if self.step_hours <= 0:
            raise ConfigurationError("timestamps must be strictly increasing")

        for i, (prev, current) in enumerate(self.pairs(), start=1):
            hours = _to_hours(_difference(prev, current))
            if hours <= 0:
                raise ConfigurationError(
                    f"timestamps must be strictly increasing, "
                    f"{current!r} follows {prev!r}"
                )
            if not math.isclose(hours, self.step_hours, rel_tol=1e-9, abs_tol=1e-12):
                raise DegenerateGridError(
                    f"time grid is not uniform: step {i} is {hours} h, "
                    f"expected {self.step_hours} h"
                )

    def __len__(self) -> int:
        return len(self.datetimes)

    def __iter__(self):
        return iter(self.datetimes)

    def __contains__(self, item: Hashable) -> bool:
        return item in self.datetimes

    @property
    def first(self) -> Hashable:
        """First timestamp of the horizon (t0)."""
        return self.datetimes[0]

    @property
    def last(self) -> Hashable:
        """Final timestamp of the horizon."""
        return self.datetimes[-1]

    @property
    def after_first(self) -> tuple:
        """Every timestamp except t0."""
        return self.datetimes[1:]

    def pairs(self):
        """Yield ``(t - step, t)`` for every timestamp after the first."""
        return zip(self.datetimes[:-1], self.datetimes[1:])


@dataclass
class BatteryParameters:
    """Physical parameters of the storage asset.

    Attributes:
        storage_min: Minimum stored energy S_min (MWh)
        storage_max: Maximum stored energy S_max (MWh)
        retention: Self-discharge retention factor gamma_s per step (0-1]
        charge_efficiency: Charging efficiency gamma_c (0-1]
        discharge_efficiency: Discharging efficiency gamma_d (0-1]
        max_charge_rate: Aggregate charge limit across markets RR_c (MW)
        max_discharge_rate: Aggregate discharge limit across markets RR_d (MW)
    """

    storage_min: float
    storage_max: float
    retention: float
    charge_efficiency: float
    discharge_efficiency: float
    max_charge_rate: float
    max_discharge_rate: float

    def __post_init__(self) -> None:
        """Validate battery parameters after initialization."""
        if self.storage_min > self.storage_max:
            raise ConfigurationError(
                "storage limits must satisfy: storage_min <= storage_max"
            )
        if not 0 < self.retention <= 1:
            raise ConfigurationError("retention must be in (0, 1]")
        if not 0 < self.charge_efficiency <= 1:
            raise ConfigurationError("charge_efficiency must be in (0, 1]")
        if not 0 < self.discharge_efficiency <= 1:
            raise ConfigurationError("discharge_efficiency must be in (0, 1]")
        if self.max_charge_rate < 0:
            raise ConfigurationError("max_charge_rate must be non-negative")
        if self.max_discharge_rate < 0:
            raise ConfigurationError("max_discharge_rate must be non-negative")
        if not self.storage_min <= 0 <= self.storage_max:
            logger.warning(
                "Initial state of charge 0 lies outside [%s, %s]; "
                "the model will be infeasible",
                self.storage_min,
                self.storage_max,
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "storage_min": self.storage_min,
            "storage_max": self.storage_max,
            "retention": self.retention,
            "charge_efficiency": self.charge_efficiency,
            "discharge_efficiency": self.discharge_efficiency,
            "max_charge_rate": self.max_charge_rate,
            "max_discharge_rate": self.max_discharge_rate,
        }


@dataclass
class DispatchInputs:
    """Market data for one dispatch horizon.

    Attributes:
        markets: Market identifiers (non-empty, unique)
        datetimes: Strictly increasing, uniformly spaced timestamps
        price: Price for every (market, timestamp) pair
        operational_costs: Recurring cost allocated to each timestamp
        capex: Capital expenditure allocated to each timestamp
    """

    markets: list[Hashable]
    datetimes: list[Hashable]
    price: Mapping[tuple[Hashable, Hashable], float]
    operational_costs: Optional[Mapping[Hashable, float]] = None
    capex: Optional[Mapping[Hashable, float]] = None
    timegrid: TimeGrid = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate market coverage after initialization."""
        self.markets = list(self.markets)
        if not self.markets:
            raise ConfigurationError("markets must not be empty")
        if len(set(self.markets)) != len(self.markets):
            raise ConfigurationError(f"markets must be unique, got {self.markets!r}")

        self.timegrid = TimeGrid(self.datetimes)

        missing = [
            (m, t) for m in self.markets for t in self.timegrid if (m, t) not in self.price
        ]
        if missing:
            raise ConfigurationError(
                f"price is missing {len(missing)} (market, timestamp) pairs, "
                f"first: {missing[0]!r}"
            )
        non_finite = [
            (m, t)
            for m in self.markets
            for t in self.timegrid
            if not _is_finite(self.price[m, t])
        ]
        if non_finite:
            raise ConfigurationError(
                f"price has {len(non_finite)} non-finite values, "
                f"first: {non_finite[0]!r}"
            )

    def validate_costs(self) -> None:
        """Check that both cost schedules cover every timestamp with finite values.

        Raises:
            ConfigurationError: If either schedule is absent, incomplete or non-finite
        """
        for name, schedule in (
            ("operational_costs", self.operational_costs),
            ("capex", self.capex),
        ):
            if schedule is None:
                raise ConfigurationError(f"{name} is required when fees are considered")
            missing = [t for t in self.timegrid if t not in schedule]
            if missing:
                raise ConfigurationError(
                    f"{name} is missing {len(missing)} timestamps, first: {missing[0]!r}"
                )
            non_finite = [t for t in self.timegrid if not _is_finite(schedule[t])]
            if non_finite:
                raise ConfigurationError(
                    f"{name} has {len(non_finite)} non-finite values, "
                    f"first: {non_finite[0]!r}"
                )

    @property
    def total_capex(self) -> float:
        """Capital expenditure summed over the horizon."""
        if self.capex is None:
            return 0.0
        return float(sum(self.capex[t] for t in self.timegrid))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        data: dict[str, Any] = {
            "markets": list(self.markets),
            "datetimes": [_format_timestamp(t) for t in self.timegrid],
            "price": [
                {"market": m, "timestamp": _format_timestamp(t), "price": self.price[m, t]}
                for m in self.markets
                for t in self.timegrid
            ],
        }
        if self.operational_costs is not None:
            data["operational_costs"] = [
                self.operational_costs.get(t) for t in self.timegrid
            ]
        if self.capex is not None:
            data["capex"] = [self.capex.get(t) for t in self.timegrid]
        return data


@dataclass
class BessModel:
    """An assembled, unsolved dispatch model.

    Serves as the build context: each builder step reads the variable
    groups declared by earlier steps from here and registers its own.

    Attributes:
        problem: The underlying PuLP problem
        markets: Market identifiers the model was built over
        timegrid: Time grid the model was built over
        pc: Charge power keyed by (market, timestamp)
        pd: Discharge power keyed by (market, timestamp)
        s: State of charge keyed by timestamp
        z: Equivalent full cycles, or None when lifetime is not considered
        profits: Net cumulative profit keyed by timestamp
        raw_profits: Gross cumulative profit keyed by timestamp
    """

    problem: Any
    markets: list[Hashable]
    timegrid: TimeGrid
    pc: dict = field(default_factory=dict)
    pd: dict = field(default_factory=dict)
    s: dict = field(default_factory=dict)
    z: Any = None
    profits: dict = field(default_factory=dict)
    raw_profits: dict = field(default_factory=dict)

    @property
    def datetimes(self) -> tuple:
        """Timestamps of the horizon."""
        return self.timegrid.datetimes

    @property
    def solver(self) -> Any:
        """Solver backend bound to the problem."""
        return self.problem.solver


@dataclass
class SchedulePoint:
    """Solved decisions for one timestamp.

    Attributes:
        timestamp: Time of this schedule point
        charge: Charge power per market
        discharge: Discharge power per market
        state_of_charge: Stored energy at this timestamp
        raw_profit: Gross cumulative profit up to this timestamp
        profit: Net cumulative profit up to this timestamp
    """

    timestamp: Any
    charge: dict[Hashable, float]
    discharge: dict[Hashable, float]
    state_of_charge: float
    raw_profit: float
    profit: float

    @property
    def total_charge(self) -> float:
        """Charge power summed across markets."""
        return sum(self.charge.values())

    @property
    def total_discharge(self) -> float:
        """Discharge power summed across markets."""
        return sum(self.discharge.values())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "timestamp": _format_timestamp(self.timestamp),
            "charge": {str(m): round(v, 6) for m, v in self.charge.items()},
            "discharge": {str(m): round(v, 6) for m, v in self.discharge.items()},
            "state_of_charge": round(self.state_of_charge, 6),
            "raw_profit": round(self.raw_profit, 4),
            "profit": round(self.profit, 4),
        }


@dataclass
class DispatchResult:
    """Result of solving a dispatch model.

    Attributes:
        status: PuLP status string (Optimal, Infeasible, ...)
        run_id: Unique identifier for this run
        created_at: When the solve was run
        raw_profit: Gross cumulative profit at the final timestamp
        net_profit: Net cumulative profit at the final timestamp
        cycles: Equivalent full cycles, when lifetime is considered
        schedule: One schedule point per timestamp
        solver_time_seconds: Time taken by the solver
        message: Additional message from the solver
    """

    status: str
    run_id: str
    created_at: datetime
    raw_profit: float
    net_profit: float
    cycles: Optional[float]
    schedule: list[SchedulePoint]
    solver_time_seconds: float
    message: str = ""

    @property
    def is_optimal(self) -> bool:
        """Check if the solution is optimal."""
        return self.status == "Optimal"

    @property
    def total_discharge(self) -> float:
        """Discharge power summed across markets and timestamps."""
        return sum(p.total_discharge for p in self.schedule)

    @property
    def total_charge(self) -> float:
        """Charge power summed across markets and timestamps."""
        return sum(p.total_charge for p in self.schedule)

    def get_summary(self) -> dict[str, Any]:
        """Get a summary of the dispatch result.

        Returns:
            Dictionary with key metrics
        """
        return {
            "status": self.status,
            "run_id": self.run_id,
            "is_optimal": self.is_optimal,
            "raw_profit": round(self.raw_profit, 2),
            "net_profit": round(self.net_profit, 2),
            "cycles": None if self.cycles is None else round(self.cycles, 4),
            "total_charge": round(self.total_charge, 4),
            "total_discharge": round(self.total_discharge, 4),
            "num_time_steps": len(self.schedule),
            "solver_time_seconds": round(self.solver_time_seconds, 3),
            "created_at": self.created_at.isoformat(),
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to full dictionary representation."""
        data = self.get_summary()
        data["schedule"] = [p.to_dict() for p in self.schedule]
        data["message"] = self.message
        return data

    def to_json(self, indent: Optional[int] = 2) -> str:
        """Convert to JSON string.

        Args:
            indent: JSON indentation level

        Returns:
            JSON string representation
        """
        return json.dumps(self.to_dict(), indent=indent, default=str)
