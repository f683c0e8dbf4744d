"""Exceptions raised while building and solving dispatch models."""


class DispatchError(Exception):
    """Base class for dispatch model errors."""


class ConfigurationError(DispatchError, ValueError):
    """Inputs or configuration cannot produce a well-formed model."""


class DegenerateGridError(ConfigurationError):
    """The time grid is not uniformly spaced."""


class SolverError(DispatchError, RuntimeError):
    """The solver backend did not return an optimal solution.

    Attributes:
        status: PuLP status string reported by the backend
    """

    def __init__(self, status: str, message: str = "") -> None:
        self.status = status
        super().__init__(message or f"Solver returned status: {status}")
