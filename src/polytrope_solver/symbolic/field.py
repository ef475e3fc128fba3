"""
Symbolic field: variable registry, value context and expression evaluation.

Values are never stored inside expressions. A FieldState maps variable
names to arrays and is passed explicitly to evaluation; SymbolicField keeps
a current state for convenience, but any other state (for example a
converged solution) can be evaluated without touching it.

Shapes:
- a field sample has the grid shape (npts,)
- a scalar unknown is stored as shape (1,) and broadcasts against fields
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Union

import numpy as np
from numpy.typing import NDArray

from polytrope_solver.core.errors import DuplicateName, ShapeMismatch, UnboundVariable
from polytrope_solver.spatial.radial import SpectralGrid
from polytrope_solver.symbolic.expression import Expr, coord, var


@dataclass
class FieldState:
    """
    Explicit association between variable names and their current values.

    Attributes:
        values: Mapping of name -> 1-D array of shape (npts,) or (1,).
    """
    values: Dict[str, NDArray] = field(default_factory=dict)

    def __getitem__(self, name: str) -> NDArray:
        return self.values[name]

    def __contains__(self, name: str) -> bool:
        return name in self.values

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def get(self, name: str, default=None):
        return self.values.get(name, default)

    def copy(self) -> "FieldState":
        """Deep copy (arrays included)."""
        return FieldState({k: v.copy() for k, v in self.values.items()})


StateLike = Union[FieldState, Mapping[str, NDArray]]


class SymbolicField:
    """
    Registry of named unknowns on a SpectralGrid.

    Typical use:
        S = SymbolicField(grid)
        Phi = S.regvar("Phi")
        S.set_value("Phi", grid.r**2)
        S.eval(lap(Phi))

    Attributes:
        grid: The grid supplying coordinates and differential operators.
        state: Current FieldState used when no explicit state is given.
        r: Radial coordinate expression.
        theta: Colatitude expression.
    """

    def __init__(self, grid: SpectralGrid):
        self.grid = grid
        self._names: List[str] = []
        self.state = FieldState()
        self.r = coord("r")
        self.theta = coord("theta")

    @property
    def names(self) -> Sequence[str]:
        """Registered variable names, in registration order."""
        return tuple(self._names)

    def is_registered(self, name: str) -> bool:
        return name in self._names

    def regvar(self, name: str) -> Expr:
        """
        Register a new unknown.

        Args:
            name: Unique variable name.

        Returns:
            The variable expression node.

        Raises:
            DuplicateName: If name is already registered.
        """
        node = var(name)
        if name in self._names:
            raise DuplicateName(f"Variable {name!r} is already registered")
        self._names.append(name)
        return node

    def coerce_value(self, name: str, value) -> NDArray:
        """
        Validate and normalise a value for a variable.

        Accepts arrays of the grid sample shape or any single value
        (shape (), (1,), (1, 1)).

        Raises:
            ShapeMismatch: For any other shape.
        """
        arr = np.asarray(value, dtype=float)
        if arr.size == 1:
            return arr.reshape(1).copy()
        if arr.shape == self.grid.shape:
            return arr.copy()
        # Column vector (npts, 1) is the same samples
        if arr.shape == (self.grid.npts, 1):
            return arr.reshape(self.grid.npts).copy()
        raise ShapeMismatch(
            f"Value for {name!r} has shape {arr.shape}, expected {self.grid.shape} or a scalar"
        )

    def set_value(self, name: str, value) -> None:
        """
        Store the current value of a variable. Nothing is recomputed.

        Raises:
            UnboundVariable: If name was never registered.
            ShapeMismatch: If value has the wrong shape.
        """
        if name not in self._names:
            raise UnboundVariable(f"Variable {name!r} is not registered")
        self.state.values[name] = self.coerce_value(name, value)

    def set_values(self, values: Mapping[str, NDArray]) -> None:
        for name, value in values.items():
            self.set_value(name, value)

    def resolve_state(self, state: Optional[StateLike] = None) -> FieldState:
        """Return the state to evaluate against (current state if None)."""
        if state is None:
            return self.state
        if isinstance(state, FieldState):
            return state
        return FieldState({k: self.coerce_value(k, v) for k, v in state.items()})

    def get_value(self, name: str, state: Optional[StateLike] = None) -> NDArray:
        """
        Look up the value of a registered variable.

        Raises:
            UnboundVariable: If the variable is unregistered or has no value.
        """
        if name not in self._names:
            raise UnboundVariable(f"Variable {name!r} is not registered")
        values = self.resolve_state(state)
        if name not in values:
            raise UnboundVariable(f"Variable {name!r} has no value")
        return values[name]

    def size_of(self, name: str, state: Optional[StateLike] = None) -> int:
        """Number of samples of a variable's value (npts or 1)."""
        return self.get_value(name, state).size

    def coordinate(self, name: str) -> NDArray:
        if name == "r":
            return np.asarray(self.grid.r)
        if name == "theta":
            return np.array([self.grid.theta])
        raise ValueError(f"Unknown coordinate {name!r}")

    def expand(self, values: NDArray) -> NDArray:
        """Broadcast a (1,) value to the grid shape."""
        return np.broadcast_to(values, self.grid.shape)

    def leaf_value(self, expr: Expr, state: FieldState) -> NDArray:
        """Value of a const, var or coord node."""
        if expr.op == "const":
            return np.array([expr.args[0]])
        if expr.op == "var":
            return self.get_value(expr.args[0], state)
        if expr.op == "coord":
            return self.coordinate(expr.args[0])
        raise ValueError(f"{expr.op!r} is not a leaf node")

    def apply(self, expr: Expr, operands: Sequence[NDArray]) -> NDArray:
        """
        Value of an interior node given the values of its operands.

        Shared by eval() and by the Jacobian assembler's forward pass.
        """
        op = expr.op
        if op == "neg":
            return -operands[0]
        if op == "add":
            return operands[0] + operands[1]
        if op == "sub":
            return operands[0] - operands[1]
        if op == "mul":
            return operands[0] * operands[1]
        if op == "div":
            return operands[0] / operands[1]
        if op == "pow":
            return np.power(operands[0], expr.args[1])
        if op == "sqrt":
            return np.sqrt(operands[0])
        if op == "sin":
            return np.sin(operands[0])
        if op == "cos":
            return np.cos(operands[0])
        if op == "exp":
            return np.exp(operands[0])
        if op == "log":
            return np.log(operands[0])
        if op == "abs":
            return np.abs(operands[0])
        if op == "lap":
            return self.grid.L @ self.expand(operands[0])
        if op == "grad":
            return self.grid.D @ self.expand(operands[0])
        raise ValueError(f"Cannot apply expression op {op!r}")

    def _eval(self, expr: Expr, state: FieldState) -> NDArray:
        if expr.op in ("const", "var", "coord"):
            return self.leaf_value(expr, state)
        operands = [self._eval(arg, state) for arg in expr.args if isinstance(arg, Expr)]
        return self.apply(expr, operands)

    def eval(self, expr: Expr, state: Optional[StateLike] = None) -> NDArray:
        """
        Evaluate an expression on the grid.

        Args:
            expr: Expression to evaluate.
            state: Values to use (current state if None).

        Returns:
            Array of the grid shape (npts,).

        Raises:
            UnboundVariable: If a referenced variable has no value.
        """
        value = self._eval(expr, self.resolve_state(state))
        return np.array(self.expand(value), dtype=float)
