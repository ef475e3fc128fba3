"""
Core module for the polytrope solver.

Contains the error taxonomy, solver defaults and parameter definitions.
"""

from polytrope_solver.core.errors import (
    PolytropeSolverError,
    InvalidDomain,
    DuplicateName,
    ShapeMismatch,
    UnboundVariable,
    NotDifferentiable,
    SingularSystem,
    ConvergenceFailure,
)
from polytrope_solver.core.constants import (
    SOLVER_DEFAULTS,
    load_defaults_from_json,
    get_defaults_json_path,
)
from polytrope_solver.core.parameters import NewtonParameters, PolytropeParameters

__all__ = [
    # Errors
    "PolytropeSolverError",
    "InvalidDomain",
    "DuplicateName",
    "ShapeMismatch",
    "UnboundVariable",
    "NotDifferentiable",
    "SingularSystem",
    "ConvergenceFailure",
    # Configuration
    "SOLVER_DEFAULTS",
    "load_defaults_from_json",
    "get_defaults_json_path",
    "NewtonParameters",
    "PolytropeParameters",
]
