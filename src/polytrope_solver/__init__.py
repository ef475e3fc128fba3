"""
Polytrope Solver - Spectral Newton solver for nonlinear radial BVPs

Solves nonlinear boundary-value problems on a radial Chebyshev grid:
equations are written symbolically, differentiated exactly into Jacobian
blocks, assembled with boundary-condition rows into one block system and
iterated with a damped Newton method.

Main Interface:
    from polytrope_solver import solve_polytrope

    result = solve_polytrope(omega=0.3)
    print(f"Lambda = {result.Lambda}")

Components:
- SpectralGrid: Chebyshev collocation points and operators
- SymbolicField / Expr: symbolic equations over named unknowns
- JacobianAssembler: exact Jacobian blocks
- NonlinearSystem: block system with boundary rows
- NewtonDriver: damped Newton iteration
- RotatingPolytropeSolver: the rotating polytrope problem
"""

from polytrope_solver.core import (
    PolytropeSolverError,
    InvalidDomain,
    DuplicateName,
    ShapeMismatch,
    UnboundVariable,
    NotDifferentiable,
    SingularSystem,
    ConvergenceFailure,
    NewtonParameters,
    PolytropeParameters,
)
from polytrope_solver.spatial import SpectralGrid
from polytrope_solver.symbolic import (
    Expr,
    FieldState,
    SymbolicField,
    JacobianAssembler,
    lap,
    grad,
    sqrt,
    pow,
    sin,
)
from polytrope_solver.solver import (
    NonlinearSystem,
    NewtonDriver,
    ConvergenceInfo,
)
from polytrope_solver.models import (
    RotatingPolytropeSolver,
    PolytropeResult,
    solve_polytrope,
)

__version__ = "0.1.0"

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
    "NewtonParameters",
    "PolytropeParameters",
    # Numerical core
    "SpectralGrid",
    "Expr",
    "FieldState",
    "SymbolicField",
    "JacobianAssembler",
    "lap",
    "grad",
    "sqrt",
    "pow",
    "sin",
    "NonlinearSystem",
    "NewtonDriver",
    "ConvergenceInfo",
    # Rotating polytrope (MAIN INTERFACE)
    "RotatingPolytropeSolver",
    "PolytropeResult",
    "solve_polytrope",
]
