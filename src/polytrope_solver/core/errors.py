"""
Exception hierarchy for the polytrope solver.

Construction-time errors (InvalidDomain, DuplicateName, ShapeMismatch)
signal a configuration mistake and abort setup. Evaluation-time errors
(UnboundVariable, NotDifferentiable) signal an incompletely wired equation
graph. SingularSystem is raised per iteration when the assembled linear
system has no unique correction, and ConvergenceFailure is the one
expected failure of ordinary operation.
"""

from typing import Dict, List, Optional

import numpy as np
from numpy.typing import NDArray


class PolytropeSolverError(Exception):
    """Base class for all solver errors."""


class InvalidDomain(PolytropeSolverError, ValueError):
    """Degenerate interval, too few points or unsupported grid geometry."""


class DuplicateName(PolytropeSolverError, ValueError):
    """A variable name was registered twice."""


class ShapeMismatch(PolytropeSolverError, ValueError):
    """An array does not have the shape the grid or system expects."""


class UnboundVariable(PolytropeSolverError, LookupError):
    """An expression references a variable with no value (or no registration)."""


class NotDifferentiable(PolytropeSolverError, LookupError):
    """Differentiation was requested with respect to an unregistered variable."""


class SingularSystem(PolytropeSolverError, np.linalg.LinAlgError):
    """The assembled block system is numerically singular."""


class ConvergenceFailure(PolytropeSolverError, RuntimeError):
    """
    Newton iteration stopped without reaching the tolerance.
    
    Attributes:
        error: Last correction norm of the primary unknown.
        iterations: Number of iterations performed.
        values: Copy of every unknown at the point of failure.
        history: Correction norm of every iteration.
    """
    
    def __init__(
        self,
        message: str,
        error: float,
        iterations: int,
        values: Optional[Dict[str, NDArray]] = None,
        history: Optional[List[float]] = None
    ):
        super().__init__(message)
        self.error = error
        self.iterations = iterations
        self.values = values if values is not None else {}
        self.history = history if history is not None else []
