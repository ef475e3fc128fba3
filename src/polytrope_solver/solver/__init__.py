"""
Nonlinear solver module for the polytrope solver.

- NonlinearSystem: per-iteration block system (bulk Jacobian blocks,
  boundary-condition rows, right-hand sides) and its dense solve
- NewtonDriver: damped Newton loop with adaptive relaxation
"""

from polytrope_solver.solver.system import BoundaryPosition, EquationSet, NonlinearSystem
from polytrope_solver.solver.newton import ConvergenceInfo, NewtonDriver, relaxation_factor

__all__ = [
    "BoundaryPosition",
    "EquationSet",
    "NonlinearSystem",
    "ConvergenceInfo",
    "NewtonDriver",
    "relaxation_factor",
]
