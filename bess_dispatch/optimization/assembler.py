"""Model assembly for BESS profit maximisation.

The assembler composes the variable registry, the constraint builders, the
optional sub-model policies and the objective into one PuLP problem:

    max  raw_profits[t_last]

Subject to:
    - SOC dynamics: s[t] = gamma_s*s[t-1] + tau*sum_m(gamma_c*pc[m,t] - pd[m,t]/gamma_d), s[t0] = 0
    - Rate limits: 0 <= sum_m pc[m,t] <= RR_c, 0 <= sum_m pd[m,t] <= RR_d, both zero at t0
    - Cycle lifetime (optional): z = S_max*sum pd, z <= lifetime_cycles
    - Profit accrual: gross always, net of opex and capex when fees are considered

Every call builds a fresh problem; nothing is shared between models.
"""

import logging
from typing import Any, Hashable, Mapping, Optional, Sequence

import pulp

from bess_dispatch.optimization.config import DispatchConfig
from bess_dispatch.optimization.constraints import (
    con_charge_discharge_rates,
    con_state_of_charge,
)
from bess_dispatch.optimization.models import BatteryParameters, BessModel, DispatchInputs
from bess_dispatch.optimization.objective import obj_raw_profits
from bess_dispatch.optimization.policies import policies_for
from bess_dispatch.optimization.variables import (
    declare_power_variables,
    declare_profit_variables,
    declare_soc_variable,
)

logger = logging.getLogger(__name__)

PROBLEM_NAME = "BESS_Max_Profits"


def assemble_model(
    inputs: DispatchInputs,
    battery: BatteryParameters,
    config: Optional[DispatchConfig] = None,
    solver: Any = None,
) -> BessModel:
    """Build an unsolved dispatch model.

    Args:
        inputs: Validated market data for the horizon
        battery: Physical parameters of the storage asset
        config: Sub-model toggles (defaults to DispatchConfig())
        solver: PuLP solver to bind to the problem, or None

    Returns:
        BessModel with every variable group declared and the solver bound

    Raises:
        ConfigurationError: If the configuration or cost inputs are invalid
    """
    config = config or DispatchConfig()
    config.validate()

    policies = policies_for(config, inputs, battery)
    for policy in policies:
        policy.validate()

    model = BessModel(
        problem=pulp.LpProblem(PROBLEM_NAME, pulp.LpMaximize),
        markets=list(inputs.markets),
        timegrid=inputs.timegrid,
    )

    # Variables
    declare_power_variables(model, battery.max_charge_rate, battery.max_discharge_rate)
    declare_soc_variable(model, battery.storage_min, battery.storage_max)
    for policy in policies:
        policy.declare(model)
    declare_profit_variables(model)

    # Constraints
    con_state_of_charge(
        model,
        battery.retention,
        battery.charge_efficiency,
        battery.discharge_efficiency,
    )
    con_charge_discharge_rates(model, battery.max_charge_rate, battery.max_discharge_rate)
    for policy in policies:
        policy.constrain(model)

    # Objective
    obj_raw_profits(model)

    if solver is not None:
        model.problem.setSolver(solver)

    logger.info(
        "Built dispatch model: %d markets, %d time steps of %.3f h, "
        "%d variables, %d constraints (lifetime=%s, fees=%s)",
        len(model.markets),
        len(model.timegrid),
        model.timegrid.step_hours,
        model.problem.numVariables(),
        model.problem.numConstraints(),
        config.consider_lifetime,
        config.consider_fees,
    )
    return model


def build_max_bess_profits(
    solver: Any,
    markets: Sequence[Hashable],
    datetimes: Sequence[Hashable],
    price: Mapping[tuple[Hashable, Hashable], float],
    S_min: float,
    S_max: float,
    gamma_s: float,
    gamma_c: float,
    gamma_d: float,
    RR_c: float,
    RR_d: float,
    operational_costs: Optional[Mapping[Hashable, float]] = None,
    capex: Optional[Mapping[Hashable, float]] = None,
    *,
    consider_lifetime: bool = False,
    lifetime_cycles: float = 5000,
    consider_fees: bool = False,
) -> BessModel:
    """Build the model that maximises the profits of a BESS.

    Args:
        solver: The PuLP solver of choice, e.g. ``pulp.PULP_CBC_CMD(msg=0)``
        markets: The market IDs
        datetimes: The time periods considered in the model
        price: Price for each market and each period within datetimes
        S_min: Min storage volume [MWh]
        S_max: Max storage volume [MWh]
        gamma_s: Battery storage retention [fraction]
        gamma_c: Battery charging efficiency [fraction]
        gamma_d: Battery discharging efficiency [fraction]
        RR_c: Max charging rate [MW]
        RR_d: Max discharging rate [MW]
        operational_costs: Operational cost allocated to each datetime
        capex: Purchase and installation cost allocated to each datetime
        consider_lifetime: If True, battery lifetime is considered
        lifetime_cycles: Maximum battery lifetime in equivalent full cycles
        consider_fees: If True, operational costs and capex are deducted
            from ``profits``

    Returns:
        Unsolved BessModel with the solver bound
    """
    inputs = DispatchInputs(
        markets=list(markets),
        datetimes=list(datetimes),
        price=price,
        operational_costs=operational_costs,
        capex=capex,
    )
    battery = BatteryParameters(
        storage_min=S_min,
        storage_max=S_max,
        retention=gamma_s,
        charge_efficiency=gamma_c,
        discharge_efficiency=gamma_d,
        max_charge_rate=RR_c,
        max_discharge_rate=RR_d,
    )
    # Keyword arguments are authoritative here, environment overrides do not apply
    config = DispatchConfig(
        consider_lifetime=consider_lifetime,
        lifetime_cycles=lifetime_cycles,
        consider_fees=consider_fees,
        apply_env=False,
    )

    return assemble_model(inputs, battery, config, solver=solver)
