"""
Block-structured linear system for one Newton step.

Every registered unknown owns one block row (its equation) and one block
column (its correction). Per iteration the caller:

    op.reset()
    op.add_equation("Phi", "Phi", J)          # bulk Jacobian blocks
    op.add_boundary_row("bottom", "Phi", "Phi", D[0])
    op.set_rhs("Phi", -residual)
    op.set_boundary_rhs("bottom", "Phi", -bc_residual)
    op.solve()
    dPhi = op.get_var("Phi")

Boundary rows replace the bulk equation at the first (bottom, inner
boundary) or last (top, outer boundary) row of an equation, across every
block column. Several boundary contributions to the same row accumulate.

Sizes are inferred: an equation with bulk blocks has one row per
collocation point (set_nr), an equation made only of boundary rows is a
scalar equation of size 1. Each unknown has the size of its equation.
"""

import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray
from scipy.linalg import LinAlgError, LinAlgWarning, lu_factor, lu_solve

from polytrope_solver.core.errors import (
    DuplicateName,
    ShapeMismatch,
    SingularSystem,
    UnboundVariable,
)


SUPPORTED_MODES = ("full",)


class BoundaryPosition(Enum):
    BOTTOM = "bottom"  # first row, inner boundary
    TOP = "top"        # last row, outer boundary


@dataclass
class EquationSet:
    """
    Equations of a single Newton iteration.

    A fresh EquationSet is created by NonlinearSystem.reset(); nothing is
    carried over between iterations.

    Attributes:
        blocks: (eq_var, var) -> dense Jacobian block.
        boundary: (eq_var, position) -> list of (var, weight) contributions.
        rhs: eq_var -> right-hand side vector.
        boundary_rhs: (eq_var, position) -> right-hand side of that row.
    """
    blocks: Dict[Tuple[str, str], NDArray] = field(default_factory=dict)
    boundary: Dict[Tuple[str, BoundaryPosition], List[Tuple[str, NDArray]]] = field(
        default_factory=dict
    )
    rhs: Dict[str, NDArray] = field(default_factory=dict)
    boundary_rhs: Dict[Tuple[str, BoundaryPosition], float] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.blocks or self.boundary or self.rhs or self.boundary_rhs)


class NonlinearSystem:
    """
    Dense, fully coupled block solver for Newton corrections.

    Attributes:
        ndomains: Number of radial domains.
        nvars: Maximum number of unknowns.
        mode: Solve mode. Only "full" (dense LU of the whole system).
        equations: The EquationSet of the current iteration.
    """

    def __init__(self, ndomains: int = 1, nvars: int = 1, mode: str = "full"):
        """
        Args:
            ndomains: Number of radial domains (>= 1).
            nvars: Number of unknowns that will be registered (>= 1).
            mode: Solve mode; only "full" is supported.
        """
        if ndomains < 1:
            raise ValueError(f"ndomains must be at least 1, got {ndomains}")
        if nvars < 1:
            raise ValueError(f"nvars must be at least 1, got {nvars}")
        if mode not in SUPPORTED_MODES:
            raise ValueError(f"Unsupported solver mode {mode!r}, expected one of {SUPPORTED_MODES}")

        self.ndomains = ndomains
        self.nvars = nvars
        self.mode = mode
        self._names: List[str] = []
        self._nr: Optional[Tuple[int, ...]] = None
        self.equations = EquationSet()
        self._solution: Optional[Dict[str, NDArray]] = None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def names(self) -> Sequence[str]:
        return tuple(self._names)

    def regvar(self, name: str) -> None:
        """
        Declare an unknown. Its size is inferred from its equation.

        Raises:
            DuplicateName: If name is already declared.
            ValueError: If more than nvars unknowns are declared.
        """
        if name in self._names:
            raise DuplicateName(f"Unknown {name!r} is already declared")
        if len(self._names) >= self.nvars:
            raise ValueError(f"System was created for {self.nvars} unknowns")
        self._names.append(name)

    def set_nr(self, counts: Union[int, Sequence[int]]) -> None:
        """
        Fix the number of collocation points of every domain.

        Args:
            counts: Points per domain (an int is accepted for one domain).
        """
        counts = (counts,) if np.isscalar(counts) else tuple(counts)
        if len(counts) != self.ndomains:
            raise ValueError(f"Expected {self.ndomains} sample counts, got {len(counts)}")
        if any(int(c) != c or c < 1 for c in counts):
            raise ValueError(f"Sample counts must be positive integers, got {counts}")
        self._nr = tuple(int(c) for c in counts)

    set_sample_counts = set_nr

    @property
    def total_points(self) -> Optional[int]:
        return None if self._nr is None else sum(self._nr)

    # ------------------------------------------------------------------
    # Per-iteration equations
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Discard every equation, boundary row and RHS of the previous iteration."""
        self.equations = EquationSet()
        self._solution = None

    def _check_name(self, name: str) -> None:
        if name not in self._names:
            raise UnboundVariable(f"Unknown {name!r} is not declared in the system")

    @staticmethod
    def _position(position: Union[str, BoundaryPosition]) -> BoundaryPosition:
        if isinstance(position, BoundaryPosition):
            return position
        return BoundaryPosition(position)

    def add_equation(self, eq_var: str, var: str, block: NDArray) -> None:
        """
        Add ∂(equation of eq_var)/∂var to block (eq_var, var).

        Repeated calls for the same pair accumulate. Pairs never added
        are zero.
        """
        self._check_name(eq_var)
        self._check_name(var)
        block = np.atleast_2d(np.asarray(block, dtype=float))
        key = (eq_var, var)
        if key in self.equations.blocks:
            previous = self.equations.blocks[key]
            if previous.shape != block.shape:
                raise ShapeMismatch(
                    f"Block ({eq_var}, {var}) has shape {previous.shape}, got {block.shape}"
                )
            self.equations.blocks[key] = previous + block
        else:
            self.equations.blocks[key] = block.copy()

    def add_boundary_row(
        self,
        position: Union[str, BoundaryPosition],
        eq_var: str,
        var: str,
        weight
    ) -> None:
        """
        Add a boundary-condition term to the first or last row of eq_var.

        Args:
            position: "bottom" (first row) or "top" (last row).
            eq_var: Equation whose row is replaced.
            var: Unknown the term acts on.
            weight: Either a single coefficient multiplying the boundary
                sample of var, or a full row of length size(var), e.g. a
                row of the differentiation matrix.
        """
        self._check_name(eq_var)
        self._check_name(var)
        key = (eq_var, self._position(position))
        weight = np.atleast_1d(np.asarray(weight, dtype=float)).ravel().copy()
        self.equations.boundary.setdefault(key, []).append((var, weight))

    def set_rhs(self, eq_var: str, vector) -> None:
        """Right-hand side (minus the residual) of eq_var's equation."""
        self._check_name(eq_var)
        self.equations.rhs[eq_var] = np.atleast_1d(np.asarray(vector, dtype=float)).ravel().copy()

    def set_boundary_rhs(
        self,
        position: Union[str, BoundaryPosition],
        eq_var: str,
        value: float
    ) -> None:
        """Right-hand side of a boundary row, overriding set_rhs at that row."""
        self._check_name(eq_var)
        value = np.asarray(value, dtype=float)
        if value.size != 1:
            raise ShapeMismatch(f"Boundary RHS must be a single value, got shape {value.shape}")
        self.equations.boundary_rhs[(eq_var, self._position(position))] = float(value.ravel()[0])

    # ------------------------------------------------------------------
    # Assembly and solve
    # ------------------------------------------------------------------

    def sizes(self) -> Dict[str, int]:
        """Inferred size of every unknown for the current equations."""
        bulk = {eq for eq, _ in self.equations.blocks}
        if bulk and self._nr is None:
            raise RuntimeError("set_nr() must be called before assembling bulk equations")
        return {
            name: (self.total_points if name in bulk else 1)
            for name in self._names
        }

    @staticmethod
    def _row_index(position: BoundaryPosition, size: int) -> int:
        return 0 if position is BoundaryPosition.BOTTOM else size - 1

    def assemble(self) -> Tuple[NDArray, NDArray]:
        """
        Build the global matrix and right-hand side.

        Returns:
            Tuple (A, b) with one block row/column per unknown, in
            registration order.

        Raises:
            ShapeMismatch: If a block, boundary weight or RHS disagrees
                with the inferred sizes.
        """
        sizes = self.sizes()
        offsets: Dict[str, int] = {}
        total = 0
        for name in self._names:
            offsets[name] = total
            total += sizes[name]

        def span(name: str) -> slice:
            return slice(offsets[name], offsets[name] + sizes[name])

        eqs = self.equations
        A = np.zeros((total, total))
        b = np.zeros(total)

        for (eq_var, var), block in eqs.blocks.items():
            expected = (sizes[eq_var], sizes[var])
            if block.shape != expected:
                raise ShapeMismatch(
                    f"Block ({eq_var}, {var}) has shape {block.shape}, expected {expected}"
                )
            A[span(eq_var), span(var)] += block

        for eq_var, vector in eqs.rhs.items():
            if vector.shape != (sizes[eq_var],):
                raise ShapeMismatch(
                    f"RHS of {eq_var!r} has shape {vector.shape}, expected ({sizes[eq_var]},)"
                )
            b[span(eq_var)] = vector

        # Boundary rows replace the bulk rows: clear them all first so that
        # contributions to the same row (e.g. both ends of a scalar
        # equation) accumulate instead of overwriting each other.
        rows = {
            key: offsets[key[0]] + self._row_index(key[1], sizes[key[0]])
            for key in eqs.boundary
        }
        for row in rows.values():
            A[row, :] = 0.0

        for key, terms in eqs.boundary.items():
            row = rows[key]
            for var, weight in terms:
                if weight.size == 1:
                    col = offsets[var] + self._row_index(key[1], sizes[var])
                    A[row, col] += weight[0]
                elif weight.shape == (sizes[var],):
                    A[row, span(var)] += weight
                else:
                    raise ShapeMismatch(
                        f"Boundary weight for ({key[0]}, {var}) has {weight.size} entries, "
                        f"expected 1 or {sizes[var]}"
                    )

        for (eq_var, position), value in eqs.boundary_rhs.items():
            b[offsets[eq_var] + self._row_index(position, sizes[eq_var])] = value

        return A, b

    def solve(self) -> None:
        """
        Assemble and solve the block system for the corrections.

        Raises:
            RuntimeError: If no unknown is declared.
            SingularSystem: If the matrix is singular or not finite.
        """
        if not self._names:
            raise RuntimeError("No unknowns declared; call regvar() first")
        A, b = self.assemble()
        if not (np.all(np.isfinite(A)) and np.all(np.isfinite(b))):
            raise SingularSystem("Assembled system contains non-finite entries")

        try:
            with warnings.catch_warnings():
                warnings.simplefilter("error", LinAlgWarning)
                lu, piv = lu_factor(A)
        except (LinAlgError, LinAlgWarning) as e:
            raise SingularSystem(f"Assembled system is singular: {e}") from e

        pivots = np.abs(np.diag(lu))
        if pivots.min() <= np.finfo(float).eps * len(pivots) * pivots.max():
            raise SingularSystem(
                f"Assembled system is numerically singular "
                f"(smallest pivot {pivots.min():.2e}, largest {pivots.max():.2e})"
            )

        x = lu_solve((lu, piv), b)
        sizes = self.sizes()
        solution: Dict[str, NDArray] = {}
        offset = 0
        for name in self._names:
            solution[name] = x[offset:offset + sizes[name]].copy()
            offset += sizes[name]
        self._solution = solution

    def get_var(self, name: str) -> NDArray:
        """
        Correction of an unknown from the last solve().

        Raises:
            RuntimeError: If solve() has not succeeded since the last reset().
        """
        self._check_name(name)
        if self._solution is None:
            raise RuntimeError("No solution available; call solve() first")
        return self._solution[name].copy()

    get_correction = get_var
