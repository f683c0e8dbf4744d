"""Constraint builders for the dispatch model.

Each builder reads the variable groups it needs from the model, adds one
family of named constraints to ``model.problem`` and returns the model.
Recurrences step from the previous timestamp on the validated uniform grid.
"""

import logging
from typing import Hashable, Mapping

import pulp

from bess_dispatch.optimization.models import BessModel

logger = logging.getLogger(__name__)


def _market_revenue(model: BessModel, price: Mapping, t: Hashable):
    """Sum over markets of price * (discharge - charge) at ``t``."""
    return pulp.lpSum(
        float(price[m, t]) * (model.pd[m, t] - model.pc[m, t]) for m in model.markets
    )


def con_state_of_charge(
    model: BessModel,
    gamma_s: float,
    gamma_c: float,
    gamma_d: float,
) -> BessModel:
    """Add state of charge dynamics.

    s[t] = gamma_s * s[t - step] + tau * sum_m(gamma_c * pc[m, t] - pd[m, t] / gamma_d)

    with tau the grid step in hours, and s[t0] = 0. Constraints are named
    ``con_state_of_charge_<i>`` and ``con_state_of_charge_initial``.
    """
    prob = model.problem
    s = model.s
    tau = model.timegrid.step_hours

    for i, (prev, t) in enumerate(model.timegrid.pairs(), start=1):
        prob += (
            s[t]
            == gamma_s * s[prev]
            + tau
            * pulp.lpSum(
                gamma_c * model.pc[m, t] - model.pd[m, t] * (1.0 / gamma_d)
                for m in model.markets
            ),
            f"con_state_of_charge_{i}",
        )
    prob += s[model.timegrid.first] == 0.0, "con_state_of_charge_initial"
    return model


def con_charge_discharge_rates(model: BessModel, RR_c: float, RR_d: float) -> BessModel:
    """Add aggregate charge and discharge rate limits.

    For every timestamp after the first, 0 <= sum_m pc[m, t] <= RR_c and
    0 <= sum_m pd[m, t] <= RR_d, each bound its own constraint. At t0 both
    aggregates are pinned to zero. Constraints are named
    ``con_charge_rate_lo_<i>``, ``con_charge_rate_hi_<i>``,
    ``con_discharge_rate_lo_<i>``, ``con_discharge_rate_hi_<i>``,
    ``con_charge_rate_initial`` and ``con_discharge_rate_initial``.
    """
    prob = model.problem
    markets = model.markets

    for i, t in enumerate(model.timegrid.after_first, start=1):
        charge = pulp.lpSum(model.pc[m, t] for m in markets)
        discharge = pulp.lpSum(model.pd[m, t] for m in markets)
        prob += charge >= 0.0, f"con_charge_rate_lo_{i}"
        prob += discharge >= 0.0, f"con_discharge_rate_lo_{i}"
        prob += charge <= RR_c, f"con_charge_rate_hi_{i}"
        prob += discharge <= RR_d, f"con_discharge_rate_hi_{i}"

    h1 = model.timegrid.first
    prob += pulp.lpSum(model.pc[m, h1] for m in markets) == 0.0, "con_charge_rate_initial"
    prob += (
        pulp.lpSum(model.pd[m, h1] for m in markets) == 0.0,
        "con_discharge_rate_initial",
    )
    return model


def con_max_cycles(model: BessModel, lifetime_cycles: float, S_max: float) -> BessModel:
    """Add the battery lifetime bound in equivalent full cycles.

    One cycle is discharging energy equal to the full usable capacity, which
    does not have to happen in one go: charging to 75%, discharging to 0%,
    then charging to 25% and discharging to 0% still counts as one cycle.
    The count is the linear proxy

        z = S_max * sum_{m, t} pd[m, t],  z <= lifetime_cycles

    Constraints are named ``con_total_cycles`` and ``con_max_cycles``.
    """
    if model.z is None:
        raise ValueError("cycle variable must be declared before con_max_cycles")

    prob = model.problem
    prob += (
        model.z
        == S_max * pulp.lpSum(model.pd[m, t] for m in model.markets for t in model.timegrid),
        "con_total_cycles",
    )
    prob += model.z <= lifetime_cycles, "con_max_cycles"
    return model


def con_raw_profits_over_time(model: BessModel, price: Mapping) -> BessModel:
    """Add the fee-independent gross profit recurrence.

    raw_profits[t] = raw_profits[t - step] + sum_m price[m, t] * (pd[m, t] - pc[m, t])

    with raw_profits[t0] equal to the t0 revenue alone.
    """
    prob = model.problem
    raw = model.raw_profits

    for i, (prev, t) in enumerate(model.timegrid.pairs(), start=1):
        prob += (
            raw[t] == raw[prev] + _market_revenue(model, price, t),
            f"con_raw_profits_over_time_{i}",
        )
    h1 = model.timegrid.first
    prob += (
        raw[h1] == _market_revenue(model, price, h1),
        "con_raw_profits_over_time_initial",
    )
    return model


def con_profits_over_time(model: BessModel, price: Mapping) -> BessModel:
    """Add profit accrual without fees.

    Net profit follows the same recurrence as gross profit. The gross
    recurrence is added as well, so both groups are always constrained.
    """
    prob = model.problem
    profits = model.profits

    for i, (prev, t) in enumerate(model.timegrid.pairs(), start=1):
        prob += (
            profits[t] == profits[prev] + _market_revenue(model, price, t),
            f"con_profits_over_time_{i}",
        )
    h1 = model.timegrid.first
    prob += (
        profits[h1] == _market_revenue(model, price, h1),
        "con_profits_over_time_initial",
    )
    return con_raw_profits_over_time(model, price)


def con_profits_over_time_with_fees(
    model: BessModel,
    price: Mapping,
    operational_costs: Mapping,
    capex: Mapping,
) -> BessModel:
    """Add profit accrual net of operational cost and capex.

    profits[t] = profits[t - step] + sum_m price[m, t] * (pd[m, t] - pc[m, t]) - operational_costs[t]

    profits[t0] additionally subtracts the capex summed over the whole
    horizon, charged up front. The gross recurrence is added as well.
    """
    prob = model.problem
    profits = model.profits
    total_capex = float(sum(capex[t] for t in model.timegrid))

    for i, (prev, t) in enumerate(model.timegrid.pairs(), start=1):
        prob += (
            profits[t]
            == profits[prev] + _market_revenue(model, price, t) - float(operational_costs[t]),
            f"con_profits_over_time_{i}",
        )
    h1 = model.timegrid.first
    prob += (
        profits[h1]
        == _market_revenue(model, price, h1) - float(operational_costs[h1]) - total_capex,
        "con_profits_over_time_initial",
    )
    logger.debug("Charged total capex %.2f at %s", total_capex, h1)
    return con_raw_profits_over_time(model, price)
