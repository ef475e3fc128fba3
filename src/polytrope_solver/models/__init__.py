"""
Problems built on the symbolic layer and the Newton solver.

- RotatingPolytropeSolver: potential of a rotating polytrope on one radial domain
"""

from polytrope_solver.models.polytrope import (
    PolytropeResult,
    RotatingPolytropeSolver,
    solve_polytrope,
)

__all__ = [
    "PolytropeResult",
    "RotatingPolytropeSolver",
    "solve_polytrope",
]
