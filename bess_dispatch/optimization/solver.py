"""Solver binding for BESS dispatch models.

This module maps configured solver names onto PuLP solver commands, builds
models with the solver bound, runs the solve and extracts results. The LP
algorithm itself belongs to the backend; this module only hands the model
over and reports what came back.
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any

import pulp

from bess_dispatch.optimization.assembler import assemble_model
from bess_dispatch.optimization.config import DispatchConfig
from bess_dispatch.optimization.exceptions import SolverError
from bess_dispatch.optimization.models import (
    BatteryParameters,
    BessModel,
    DispatchInputs,
    DispatchResult,
)
from bess_dispatch.optimization.outputs import extract_result

logger = logging.getLogger(__name__)


def get_solver(config: DispatchConfig) -> Any:
    """Get the PuLP solver based on configuration.

    Returns:
        PuLP solver instance
    """
    solver_name = config.solver.upper()
    kwargs: dict[str, Any] = {"msg": config.solver_msg}
    if config.time_limit_seconds is not None:
        kwargs["timeLimit"] = config.time_limit_seconds

    if solver_name in (DispatchConfig.SOLVER_CBC, DispatchConfig.SOLVER_PULP_CBC_CMD):
        return pulp.PULP_CBC_CMD(**kwargs)
    elif solver_name == DispatchConfig.SOLVER_GLPK:
        return pulp.GLPK(**kwargs)
    elif solver_name == DispatchConfig.SOLVER_HIGHS:
        return pulp.HiGHS_CMD(**kwargs)
    else:
        # Default to CBC
        logger.warning(
            "Unknown solver %s, defaulting to CBC",
            solver_name,
        )
        return pulp.PULP_CBC_CMD(**kwargs)


class DispatchSolver:
    """Build, solve and report BESS dispatch models.

    Example:
        >>> solver = DispatchSolver(DispatchConfig(consider_lifetime=True))
        >>> result = solver.optimize(inputs, battery)
        >>> print(f"Gross profit: {result.raw_profit:.2f}")
    """

    def __init__(self, config: DispatchConfig) -> None:
        """Initialize the dispatch solver.

        Args:
            config: Dispatch configuration

        Raises:
            ConfigurationError: If configuration is invalid
        """
        config.validate()
        self.config = config

    def build(self, inputs: DispatchInputs, battery: BatteryParameters) -> BessModel:
        """Assemble a model with the configured backend bound."""
        return assemble_model(inputs, battery, self.config, solver=get_solver(self.config))

    def solve(self, model: BessModel) -> str:
        """Run the bound backend on a model.

        Args:
            model: An assembled model

        Returns:
            The PuLP status string, always "Optimal"

        Raises:
            SolverError: If the backend reports any other status
            pulp.PulpSolverError: If the backend itself fails
        """
        start = time.time()
        model.problem.solve()
        status = pulp.LpStatus[model.problem.status]
        logger.info(
            "Solve finished: status=%s, objective=%s, time=%.3fs",
            status,
            pulp.value(model.problem.objective),
            time.time() - start,
        )
        if status != "Optimal":
            raise SolverError(status)
        return status

    def optimize(self, inputs: DispatchInputs, battery: BatteryParameters) -> DispatchResult:
        """Build, solve and extract a dispatch schedule.

        Args:
            inputs: Market data for the horizon
            battery: Physical parameters of the storage asset

        Returns:
            DispatchResult for the optimal schedule
        """
        run_id = str(uuid.uuid4())
        created_at = datetime.now(timezone.utc)
        logger.info(
            "Starting dispatch run %s for %d time steps",
            run_id,
            len(inputs.timegrid),
        )

        model = self.build(inputs, battery)
        start = time.time()
        status = self.solve(model)
        solver_time = time.time() - start

        result = extract_result(
            model,
            status,
            solver_time,
            run_id=run_id,
            created_at=created_at,
        )
        logger.info(
            "Dispatch run %s completed: raw profit=%.2f, net profit=%.2f",
            run_id,
            result.raw_profit,
            result.net_profit,
        )
        return result
