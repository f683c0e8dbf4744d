"""Result extraction for solved dispatch models.

Reads solved variable values by the same (market, timestamp) and timestamp
keys the model was built with and turns them into DataFrames or a
DispatchResult.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Hashable, Mapping, Optional

import pandas as pd
import pulp

from bess_dispatch.optimization.models import BessModel, DispatchResult, SchedulePoint

logger = logging.getLogger(__name__)


def _value(var) -> float:
    return pulp.value(var) or 0.0


def charge_discharge_dataframe(model: BessModel) -> pd.DataFrame:
    """Tabulate solved charge, discharge and state of charge.

    Returns:
        DataFrame with a ``Date_Time`` column, ``Charge_<market>`` and
        ``Discharge_<market>`` columns per market, and ``State_Of_Charge``
    """
    datetimes = list(model.datetimes)
    columns = {"Date_Time": datetimes}
    for m in model.markets:
        columns[f"Charge_{m}"] = [_value(model.pc[m, t]) for t in datetimes]
        columns[f"Discharge_{m}"] = [_value(model.pd[m, t]) for t in datetimes]
    columns["State_Of_Charge"] = [_value(model.s[t]) for t in datetimes]
    return pd.DataFrame(columns)


def profits_dataframe(
    model: BessModel,
    operational_costs: Optional[Mapping[Hashable, float]] = None,
    capex: Optional[Mapping[Hashable, float]] = None,
) -> pd.DataFrame:
    """Tabulate solved gross and net cumulative profit.

    Args:
        model: A solved model
        operational_costs: Cost schedule to report alongside; zeros if None
        capex: Capex schedule whose total is reported on every row

    Returns:
        DataFrame with ``Date_Time``, ``Raw_Profits``, ``Std_Profits``,
        ``Operational_costs`` and ``Total_Capex`` columns
    """
    datetimes = list(model.datetimes)
    total_capex = float(sum(capex[t] for t in datetimes)) if capex is not None else 0.0
    return pd.DataFrame(
        {
            "Date_Time": datetimes,
            "Raw_Profits": [_value(model.raw_profits[t]) for t in datetimes],
            "Std_Profits": [_value(model.profits[t]) for t in datetimes],
            "Operational_costs": [
                float(operational_costs[t]) if operational_costs is not None else 0.0
                for t in datetimes
            ],
            "Total_Capex": [total_capex] * len(datetimes),
        }
    )


def extract_result(
    model: BessModel,
    status: str,
    solver_time_seconds: float,
    run_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
    message: str = "",
) -> DispatchResult:
    """Build a DispatchResult from a solved model.

    Args:
        model: A solved model
        status: PuLP status string for the solve
        solver_time_seconds: Wall time spent in the solver
        run_id: Identifier for the run (generated if None)
        created_at: Timestamp of the run (now if None)
        message: Additional message to attach

    Returns:
        DispatchResult with one schedule point per timestamp
    """
    schedule = [
        SchedulePoint(
            timestamp=t,
            charge={m: _value(model.pc[m, t]) for m in model.markets},
            discharge={m: _value(model.pd[m, t]) for m in model.markets},
            state_of_charge=_value(model.s[t]),
            raw_profit=_value(model.raw_profits[t]),
            profit=_value(model.profits[t]),
        )
        for t in model.datetimes
    ]
    last = model.timegrid.last

    result = DispatchResult(
        status=status,
        run_id=run_id or str(uuid.uuid4()),
        created_at=created_at or datetime.now(timezone.utc),
        raw_profit=_value(model.raw_profits[last]),
        net_profit=_value(model.profits[last]),
        cycles=None if model.z is None else _value(model.z),
        schedule=schedule,
        solver_time_seconds=solver_time_seconds,
        message=message,
    )
    logger.debug("Extracted %d schedule points for run %s", len(schedule), result.run_id)
    return result
