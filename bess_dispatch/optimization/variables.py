"""Decision variable registry for the dispatch model.

Every variable group is declared here with its index domain and static
bounds, and registered on the model before any constraint references it.
Variable names use positional indices so that market identifiers and
timestamps never need to be valid LP names.
"""

import logging

import pulp

from bess_dispatch.optimization.models import BessModel

logger = logging.getLogger(__name__)


def declare_power_variables(
    model: BessModel,
    rate_charge_max: float,
    rate_discharge_max: float,
) -> BessModel:
    """Declare charge and discharge power for every (market, timestamp).

    Both are bounded to ``[0, +inf)``. The rate limits apply to the sum over
    markets, so they are enforced by constraints rather than variable bounds;
    they are accepted here only to keep the declaration self-describing.
    """
    for j, m in enumerate(model.markets):
        for i, t in enumerate(model.timegrid):
            model.pc[m, t] = pulp.LpVariable(f"pc_{j}_{i}", lowBound=0)
            model.pd[m, t] = pulp.LpVariable(f"pd_{j}_{i}", lowBound=0)
    logger.debug(
        "Declared %d charge/discharge variable pairs (aggregate limits %s/%s)",
        len(model.pc),
        rate_charge_max,
        rate_discharge_max,
    )
    return model


def declare_soc_variable(model: BessModel, S_min: float, S_max: float) -> BessModel:
    """Declare state of charge for every timestamp, bounded ``[S_min, S_max]``."""
    for i, t in enumerate(model.timegrid):
        model.s[t] = pulp.LpVariable(f"s_{i}", lowBound=S_min, upBound=S_max)
    return model


def declare_cycle_variable(model: BessModel) -> BessModel:
    """Declare the single non-negative equivalent-full-cycle counter."""
    model.z = pulp.LpVariable("z", lowBound=0)
    return model


def declare_profit_variables(model: BessModel) -> BessModel:
    """Declare net and gross cumulative profit for every timestamp.

    Both are free variables: cumulative profit may be negative.
    """
    for i, t in enumerate(model.timegrid):
        model.profits[t] = pulp.LpVariable(f"profits_{i}")
        model.raw_profits[t] = pulp.LpVariable(f"raw_profits_{i}")
    return model
