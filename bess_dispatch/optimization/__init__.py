"""Profit-maximising dispatch model for battery energy storage.

This module formulates the LP that schedules BESS charge/discharge across
one or more markets, binds a solver backend and extracts solved schedules.
"""

from bess_dispatch.optimization.assembler import assemble_model, build_max_bess_profits
from bess_dispatch.optimization.config import DispatchConfig
from bess_dispatch.optimization.exceptions import (
    ConfigurationError,
    DegenerateGridError,
    DispatchError,
    SolverError,
)
from bess_dispatch.optimization.models import (
    BatteryParameters,
    BessModel,
    DispatchInputs,
    DispatchResult,
    SchedulePoint,
    TimeGrid,
)
from bess_dispatch.optimization.solver import DispatchSolver, get_solver

__all__ = [
    "DispatchConfig",
    "DispatchSolver",
    "DispatchInputs",
    "DispatchResult",
    "SchedulePoint",
    "BatteryParameters",
    "BessModel",
    "TimeGrid",
    "assemble_model",
    "build_max_bess_profits",
    "get_solver",
    "ConfigurationError",
    "DegenerateGridError",
    "DispatchError",
    "SolverError",
]
