"""
Symbolic layer for the polytrope solver.

- Expr and its constructors: immutable expression trees over unknowns,
  grid coordinates and the radial differential operators
- SymbolicField: variable registry and evaluation against a FieldState
- JacobianAssembler: exact Jacobian blocks of expressions
"""

from polytrope_solver.symbolic.expression import (
    Expr,
    as_expr,
    const,
    var,
    coord,
    pow,
    sqrt,
    sin,
    cos,
    exp,
    log,
    abs_,
    lap,
    grad,
)
from polytrope_solver.symbolic.field import FieldState, SymbolicField
from polytrope_solver.symbolic.jacobian import JacobianAssembler

__all__ = [
    "Expr",
    "as_expr",
    "const",
    "var",
    "coord",
    "pow",
    "sqrt",
    "sin",
    "cos",
    "exp",
    "log",
    "abs_",
    "lap",
    "grad",
    "FieldState",
    "SymbolicField",
    "JacobianAssembler",
]
