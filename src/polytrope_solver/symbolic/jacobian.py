"""
Exact Jacobian blocks of symbolic expressions.

Differentiating an expression with respect to one unknown produces the
linear operator J with

    eval(expr, u + δ) ≈ eval(expr, u) + J δ

evaluated at the current state. The assembler walks the tree once in
forward mode, carrying (value, jacobian) for every node. A jacobian is a
dense (m, s) matrix where m is the node's sample count (1 or npts) and s
is the size of the unknown; a node that does not depend on the unknown
carries None instead of a zero matrix.

Rules:
- sum and product rules for + - * /
- chain rule for pow, sqrt, sin, cos, exp, log, abs
- lap and grad are linear, so their jacobian is the same discrete
  operator applied to the operand's jacobian

Non-smooth points: sqrt and abs have no derivative where their argument is
exactly zero, and pow with an exponent below 1 has an unbounded one there.
The surrogate sqrt(h*h) for |h| hits this at h = 0. There the zero
subgradient is used (sign(0) = 0, pow factor 0) and a RuntimeWarning is
issued rather than propagating NaN.
"""

import warnings
from typing import List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from polytrope_solver.core.errors import NotDifferentiable
from polytrope_solver.symbolic.expression import Expr
from polytrope_solver.symbolic.field import FieldState, StateLike, SymbolicField


Jac = Optional[NDArray]


def _scale(v: NDArray, J: Jac) -> Jac:
    """diag(v) J with row broadcasting."""
    if J is None:
        return None
    return v[:, np.newaxis] * J


def _sum(J1: Jac, J2: Jac) -> Jac:
    if J1 is None:
        return J2
    if J2 is None:
        return J1
    return J1 + J2


def _neg(J: Jac) -> Jac:
    return None if J is None else -J


class JacobianAssembler:
    """
    Differentiates expressions built on a SymbolicField.

    The assembler only reads values; it never modifies the field's state.

    Attributes:
        field: SymbolicField providing the grid, registry and values.
    """

    def __init__(self, field: SymbolicField):
        self.field = field

    def differentiate(
        self,
        expr: Expr,
        name: str,
        state: Optional[StateLike] = None
    ) -> NDArray:
        """
        Jacobian block ∂expr/∂name at the given state.

        Args:
            expr: Expression to differentiate.
            name: Registered variable to differentiate with respect to.
            state: Values to linearise around (field's current state if None).

        Returns:
            Dense matrix of shape (npts, size(name)).

        Raises:
            NotDifferentiable: If name is not a registered variable.
            UnboundVariable: If a referenced variable has no value.
        """
        if not self.field.is_registered(name):
            raise NotDifferentiable(
                f"Cannot differentiate with respect to unregistered variable {name!r}"
            )
        values = self.field.resolve_state(state)
        size = self.field.size_of(name, values)
        zero_hits: List[str] = []

        _, J = self._forward(expr, name, size, values, zero_hits)

        if zero_hits:
            warnings.warn(
                f"d/d{name}: derivative of {', '.join(sorted(set(zero_hits)))} taken as 0 "
                "at a zero argument",
                RuntimeWarning,
                stacklevel=2
            )

        npts = self.field.grid.npts
        if J is None:
            return np.zeros((npts, size))
        return np.array(np.broadcast_to(J, (npts, size)), dtype=float)

    def _forward(
        self,
        expr: Expr,
        name: str,
        size: int,
        state: FieldState,
        zero_hits: List[str]
    ) -> Tuple[NDArray, Jac]:
        op = expr.op
        field = self.field
        grid = field.grid

        if op in ("const", "coord"):
            return field.leaf_value(expr, state), None
        if op == "var":
            value = field.leaf_value(expr, state)
            if expr.args[0] == name:
                return value, np.eye(size)
            return value, None

        children = [
            self._forward(arg, name, size, state, zero_hits)
            for arg in expr.args if isinstance(arg, Expr)
        ]
        operands = [v for v, _ in children]
        value = field.apply(expr, operands)

        if op == "neg":
            return value, _neg(children[0][1])

        if op in ("add", "sub", "mul", "div"):
            (a, Ja), (b, Jb) = children
            if op == "add":
                return value, _sum(Ja, Jb)
            if op == "sub":
                return value, _sum(Ja, _neg(Jb))
            if op == "mul":
                return value, _sum(_scale(b, Ja), _scale(a, Jb))
            return value, _sum(_scale(1.0 / b, Ja), _scale(-a / b**2, Jb))

        (a, Ja), = children
        if Ja is None:
            return value, None

        if op == "pow":
            p = expr.args[1]
            if p == 0:
                return value, None
            if p < 1:
                # a**(p-1) is unbounded at a = 0
                zero = a == 0
                if np.any(zero):
                    zero_hits.append("pow")
                factor = np.zeros_like(a, dtype=float)
                np.power(a, p - 1, out=factor, where=~zero)
                return value, _scale(p * factor, Ja)
            return value, _scale(p * np.power(a, p - 1), Ja)
        if op == "sqrt":
            zero = value == 0
            if np.any(zero):
                zero_hits.append("sqrt")
            factor = np.divide(0.5, value, out=np.zeros_like(value), where=~zero)
            return value, _scale(factor, Ja)
        if op == "abs":
            if np.any(a == 0):
                zero_hits.append("abs")
            return value, _scale(np.sign(a), Ja)
        if op == "sin":
            return value, _scale(np.cos(a), Ja)
        if op == "cos":
            return value, _scale(-np.sin(a), Ja)
        if op == "exp":
            return value, _scale(value, Ja)
        if op == "log":
            return value, _scale(1.0 / a, Ja)
        if op == "lap":
            return value, grid.L @ self._rows(Ja)
        if op == "grad":
            return value, grid.D @ self._rows(Ja)

        raise ValueError(f"Cannot differentiate expression op {op!r}")

    def _rows(self, J: NDArray) -> NDArray:
        """Expand a single-row jacobian to one row per grid point."""
        npts = self.field.grid.npts
        if J.shape[0] == npts:
            return J
        return np.repeat(J, npts, axis=0)

    def residual(self, expr: Expr, state: Optional[StateLike] = None) -> NDArray:
        """Newton right-hand side -eval(expr)."""
        return -self.field.eval(expr, state)

    def add(
        self,
        system,
        expr: Expr,
        eq_var: str,
        var: str,
        state: Optional[StateLike] = None
    ) -> NDArray:
        """
        Insert ∂expr/∂var as the (eq_var, var) block of a NonlinearSystem.

        Returns:
            The block that was inserted.
        """
        block = self.differentiate(expr, var, state)
        system.add_equation(eq_var, var, block)
        return block
