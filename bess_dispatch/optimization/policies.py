"""Optional sub-models composed into the dispatch model.

Each policy owns the variables and constraints of one optional feature.
The assembler runs every policy through the same three steps (validate,
declare, constrain) without knowing which features are active.
"""

import logging

from bess_dispatch.optimization.config import DispatchConfig
from bess_dispatch.optimization.constraints import (
    con_max_cycles,
    con_profits_over_time,
    con_profits_over_time_with_fees,
)
from bess_dispatch.optimization.exceptions import ConfigurationError
from bess_dispatch.optimization.models import BatteryParameters, BessModel, DispatchInputs
from bess_dispatch.optimization.variables import declare_cycle_variable

logger = logging.getLogger(__name__)


class SubModelPolicy:
    """Base class for an optional part of the formulation."""

    name = "base"

    def validate(self) -> None:
        """Check the inputs this policy consumes. Runs before anything is built."""

    def declare(self, model: BessModel) -> BessModel:
        """Declare the variables this policy owns."""
        return model

    def constrain(self, model: BessModel) -> BessModel:
        """Wire the constraints this policy owns."""
        return model


class CycleLifetimePolicy(SubModelPolicy):
    """Bound cumulative discharge in equivalent full cycles."""

    name = "cycle_lifetime"

    def __init__(self, lifetime_cycles: float, storage_max: float) -> None:
        self.lifetime_cycles = lifetime_cycles
        self.storage_max = storage_max

    def validate(self) -> None:
        if self.lifetime_cycles < 0:
            raise ConfigurationError("lifetime_cycles must be non-negative")

    def declare(self, model: BessModel) -> BessModel:
        return declare_cycle_variable(model)

    def constrain(self, model: BessModel) -> BessModel:
        return con_max_cycles(model, self.lifetime_cycles, self.storage_max)


class GrossProfitPolicy(SubModelPolicy):
    """Profit accrual from market revenue only."""

    name = "gross_profit"

    def __init__(self, inputs: DispatchInputs) -> None:
        self.inputs = inputs

    def constrain(self, model: BessModel) -> BessModel:
        return con_profits_over_time(model, self.inputs.price)


class NetProfitPolicy(SubModelPolicy):
    """Profit accrual net of operational cost, with capex charged at t0."""

    name = "net_profit"

    def __init__(self, inputs: DispatchInputs) -> None:
        self.inputs = inputs

    def validate(self) -> None:
        self.inputs.validate_costs()

    def constrain(self, model: BessModel) -> BessModel:
        return con_profits_over_time_with_fees(
            model,
            self.inputs.price,
            self.inputs.operational_costs,
            self.inputs.capex,
        )


def policies_for(
    config: DispatchConfig,
    inputs: DispatchInputs,
    battery: BatteryParameters,
) -> list[SubModelPolicy]:
    """Select the policies a configuration activates.

    Exactly one profit policy is always returned; the lifetime policy is
    added only when lifetime is considered.
    """
    policies: list[SubModelPolicy] = []
    if config.consider_lifetime:
        policies.append(CycleLifetimePolicy(config.lifetime_cycles, battery.storage_max))
    if config.consider_fees:
        policies.append(NetProfitPolicy(inputs))
    else:
        policies.append(GrossProfitPolicy(inputs))

    logger.debug("Active sub-models: %s", ", ".join(p.name for p in policies))
    return policies
