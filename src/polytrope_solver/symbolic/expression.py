"""
Symbolic expression trees for nonlinear radial equations.

An expression is an immutable node Expr(op, args). The set of op tags is
closed; evaluation (symbolic.field) and differentiation (symbolic.jacobian)
dispatch on it and reject anything else.

    op      args                    meaning
    const   (value,)                literal float
    var     (name,)                 registered unknown
    coord   (name,)                 grid coordinate: "r" or "theta"
    neg     (a,)                    -a
    add     (a, b)                  a + b
    sub     (a, b)                  a - b
    mul     (a, b)                  a * b (elementwise)
    div     (a, b)                  a / b (elementwise)
    pow     (a, p)                  a ** p, p a float constant
    sqrt    (a,)                    elementwise square root
    sin, cos, exp, log, abs (a,)    elementwise functions
    lap     (a,)                    radial Laplacian of a
    grad    (a,)                    radial derivative d/dr of a

Example:
    S = SymbolicField(grid)
    Phi = S.regvar("Phi")
    eq = lap(Phi) - pow(sqrt(h * h), 1.5)
"""

from dataclasses import dataclass
from typing import Any, FrozenSet, Tuple, Union

import numpy as np


UNARY_FUNCTIONS = ("sqrt", "sin", "cos", "exp", "log", "abs")
DIFFERENTIAL_OPS = ("lap", "grad")
BINARY_OPS = ("add", "sub", "mul", "div")
COORDINATES = ("r", "theta")

OPS = frozenset(
    ("const", "var", "coord", "neg", "pow")
    + BINARY_OPS + UNARY_FUNCTIONS + DIFFERENTIAL_OPS
)


@dataclass(frozen=True)
class Expr:
    """
    Immutable expression node.

    Operators never modify their operands; each returns a new node.
    """
    op: str
    args: Tuple[Any, ...]

    # numpy scalars on the left defer to the reflected operators below
    __array_ufunc__ = None

    def __post_init__(self):
        if self.op not in OPS:
            raise ValueError(f"Unknown expression op {self.op!r}")

    def __add__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("add", (self, as_expr(other)))

    def __radd__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("add", (as_expr(other), self))

    def __sub__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("sub", (self, as_expr(other)))

    def __rsub__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("sub", (as_expr(other), self))

    def __mul__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("mul", (self, as_expr(other)))

    def __rmul__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("mul", (as_expr(other), self))

    def __truediv__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("div", (self, as_expr(other)))

    def __rtruediv__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("div", (as_expr(other), self))

    def __pow__(self, exponent: Union[float, int]) -> "Expr":
        return pow(self, exponent)

    def __neg__(self) -> "Expr":
        return Expr("neg", (self,))

    def __pos__(self) -> "Expr":
        return self

    def __abs__(self) -> "Expr":
        return Expr("abs", (self,))

    def variables(self) -> FrozenSet[str]:
        """Names of all unknowns referenced by this expression."""
        if self.op == "var":
            return frozenset(self.args)
        names = frozenset()
        for arg in self.args:
            if isinstance(arg, Expr):
                names |= arg.variables()
        return names

    def eval(self, field, state=None):
        """
        Evaluate on a SymbolicField's grid.

        Shorthand for field.eval(expr, state); returns an (npts,) array.
        """
        return field.eval(self, state)

    def __repr__(self) -> str:
        if self.op in ("const", "var", "coord"):
            return f"{self.op}({self.args[0]!r})"
        inner = ", ".join(repr(a) for a in self.args)
        return f"{self.op}({inner})"


ExprOrScalar = Union[Expr, float, int]


def as_expr(x: ExprOrScalar) -> Expr:
    """Lift ints and floats to constant nodes; pass expressions through."""
    if isinstance(x, Expr):
        return x
    if isinstance(x, (int, float, np.integer, np.floating)) and not isinstance(x, bool):
        return const(float(x))
    raise TypeError(f"Cannot convert type {type(x)} to Expr")


# ======================= Node constructors =======================

def const(value: float) -> Expr:
    """Literal node."""
    return Expr("const", (float(value),))


def var(name: str) -> Expr:
    """Reference to a named unknown. Values are looked up at evaluation time."""
    if not isinstance(name, str) or not name:
        raise ValueError(f"Variable name must be a non-empty string, got {name!r}")
    return Expr("var", (name,))


def coord(name: str) -> Expr:
    """Grid coordinate node ("r" or "theta")."""
    if name not in COORDINATES:
        raise ValueError(f"Unknown coordinate {name!r}, expected one of {COORDINATES}")
    return Expr("coord", (name,))


def pow(base: ExprOrScalar, exponent: Union[float, int]) -> Expr:
    """base ** exponent with a constant exponent."""
    if isinstance(exponent, Expr):
        if exponent.op != "const":
            raise TypeError("pow() exponent must be a constant")
        exponent = exponent.args[0]
    return Expr("pow", (as_expr(base), float(exponent)))


def sqrt(a: ExprOrScalar) -> Expr:
    return Expr("sqrt", (as_expr(a),))


def sin(a: ExprOrScalar) -> Expr:
    return Expr("sin", (as_expr(a),))


def cos(a: ExprOrScalar) -> Expr:
    return Expr("cos", (as_expr(a),))


def exp(a: ExprOrScalar) -> Expr:
    return Expr("exp", (as_expr(a),))


def log(a: ExprOrScalar) -> Expr:
    return Expr("log", (as_expr(a),))


def abs_(a: ExprOrScalar) -> Expr:
    """Elementwise absolute value (also reachable through builtin abs())."""
    return Expr("abs", (as_expr(a),))


def lap(a: ExprOrScalar) -> Expr:
    """Radial Laplacian d²a/dr² + (2/r) da/dr."""
    return Expr("lap", (as_expr(a),))


def grad(a: ExprOrScalar) -> Expr:
    """Radial derivative da/dr."""
    return Expr("grad", (as_expr(a),))
