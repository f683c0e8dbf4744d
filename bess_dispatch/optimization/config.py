"""Configuration for the BESS dispatch model.

This module provides configuration management for the optional sub-models
and the solver backend, following the same patterns as other modules.
"""

import os
from dataclasses import InitVar, dataclass
from typing import ClassVar, Optional

from bess_dispatch.optimization.exceptions import ConfigurationError

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _env_bool(name: str, current: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return current
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got: {value!r}")


@dataclass
class DispatchConfig:
    """Configuration for building and solving a dispatch model.

    Supports environment variable overrides:
    - BESS_CONSIDER_LIFETIME: Add the cycle-lifetime sub-model (default: false)
    - BESS_LIFETIME_CYCLES: Cycle budget over the horizon (default: 5000)
    - BESS_CONSIDER_FEES: Track operational cost and capex (default: false)
    - OPT_SOLVER: LP solver to use (default: CBC)
    - OPT_SOLVER_MSG: Show solver output (default: false)
    - OPT_TIME_LIMIT: Solver time limit in seconds (default: none)

    Attributes:
        consider_lifetime: Whether to declare the cycle variable and bound it
        lifetime_cycles: Maximum equivalent full cycles
        consider_fees: Whether net profit deducts operational cost and capex
        solver: LP solver to use (CBC, GLPK, HIGHS)
        solver_msg: Whether the solver prints its log
        time_limit_seconds: Solver time limit, or None for no limit
    """

    consider_lifetime: bool = False
    lifetime_cycles: float = 5000
    consider_fees: bool = False

    solver: str = "CBC"
    solver_msg: bool = False
    time_limit_seconds: Optional[float] = None
    apply_env: InitVar[bool] = True

    # Solver constants
    SOLVER_CBC: ClassVar[str] = "CBC"
    SOLVER_PULP_CBC_CMD: ClassVar[str] = "PULP_CBC_CMD"
    SOLVER_GLPK: ClassVar[str] = "GLPK"
    SOLVER_HIGHS: ClassVar[str] = "HIGHS"

    def __post_init__(self, apply_env: bool) -> None:
        """Apply environment variable overrides only when values are at defaults.

        Precedence: explicit args > env vars > defaults. Passing
        ``apply_env=False`` skips the environment entirely.
        """
        if not apply_env:
            return
        if self.consider_lifetime is False:
            self.consider_lifetime = _env_bool("BESS_CONSIDER_LIFETIME", False)
        if self.lifetime_cycles == 5000:
            env_cycles = os.environ.get("BESS_LIFETIME_CYCLES")
            if env_cycles:
                try:
                    self.lifetime_cycles = float(env_cycles)
                except ValueError as e:
                    raise ConfigurationError(
                        f"BESS_LIFETIME_CYCLES must be a number, got: {env_cycles!r}"
                    ) from e
        if self.consider_fees is False:
            self.consider_fees = _env_bool("BESS_CONSIDER_FEES", False)
        if self.solver == "CBC":
            self.solver = os.environ.get("OPT_SOLVER", self.solver)
        if self.solver_msg is False:
            self.solver_msg = _env_bool("OPT_SOLVER_MSG", False)
        if self.time_limit_seconds is None:
            env_limit = os.environ.get("OPT_TIME_LIMIT")
            if env_limit:
                try:
                    self.time_limit_seconds = float(env_limit)
                except ValueError as e:
                    raise ConfigurationError(
                        f"OPT_TIME_LIMIT must be a number, got: {env_limit!r}"
                    ) from e

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if self.lifetime_cycles < 0:
            raise ConfigurationError("lifetime_cycles must be non-negative")
        if self.time_limit_seconds is not None and self.time_limit_seconds <= 0:
            raise ConfigurationError("time_limit_seconds must be positive")
        if not self.solver:
            raise ConfigurationError("solver must not be empty")

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "consider_lifetime": self.consider_lifetime,
            "lifetime_cycles": self.lifetime_cycles,
            "consider_fees": self.consider_fees,
            "solver": self.solver,
            "solver_msg": self.solver_msg,
            "time_limit_seconds": self.time_limit_seconds,
        }
