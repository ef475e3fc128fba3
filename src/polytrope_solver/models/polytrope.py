"""
Rotating polytrope in the radial (equatorial) approximation.

Solves for the potential Phi(r) on [0, 1] together with two scalar
unknowns, the central value Phi0 and the scaling Lambda:

    lap(Phi) = |h|^n,   h = 1 - Lambda (Phi - Phi0) + ½ ω² r² sin²θ

with boundary conditions

    dPhi/dr(0) = 0                   (regularity at the centre)
    dPhi/dr(1) + Phi(1) = 0          (matching to the exterior potential)
    Phi(0) - Phi0 = 0                (definition of Phi0)
    Lambda (Phi(1) - Phi0) = 1       (h = 0 at the surface)

|h| is written as sqrt(h*h) so the right-hand side stays defined where h
becomes negative. The two scalar equations are boundary-only equations of
the block system.
"""

from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np
from numpy.typing import NDArray

from polytrope_solver.core.parameters import NewtonParameters, PolytropeParameters
from polytrope_solver.solver.newton import ConvergenceInfo, NewtonDriver
from polytrope_solver.solver.system import NonlinearSystem
from polytrope_solver.spatial.radial import SpectralGrid
from polytrope_solver.symbolic.expression import lap, pow, sin, sqrt
from polytrope_solver.symbolic.field import FieldState, SymbolicField
from polytrope_solver.symbolic.jacobian import JacobianAssembler


VARIABLES = ("Phi", "Lambda", "Phi0")


@dataclass
class PolytropeResult:
    """
    Converged rotating polytrope.

    Attributes:
        r: Collocation radii.
        Phi: Potential on the grid.
        Lambda: Scaling constant.
        Phi0: Central potential.
        info: Newton convergence information.
        residual: |lap(Phi) - |h|^n| at the interior points.
        dphi_inner: dPhi/dr at the inner boundary (should vanish).
        robin_outer: dPhi/dr + Phi at the outer boundary (should vanish).
        parameters: Parameters the model was solved with.
    """
    r: NDArray
    Phi: NDArray
    Lambda: float
    Phi0: float
    info: ConvergenceInfo
    residual: NDArray
    dphi_inner: float
    robin_outer: float
    parameters: Optional[PolytropeParameters] = None

    @property
    def surface_relation(self) -> float:
        """Lambda (Phi(1) - Phi0), equal to 1 at convergence."""
        return self.Lambda * (self.Phi[-1] - self.Phi0)

    @property
    def max_residual(self) -> float:
        return float(np.max(self.residual)) if self.residual.size else 0.0


class RotatingPolytropeSolver:
    """
    Builds and solves the rotating polytrope problem.

    Attributes:
        params: Problem parameters.
        grid: Radial collocation grid.
        field: Symbolic field with Phi, Lambda and Phi0 registered.
        equation: The bulk equation lap(Phi) - |h|^n.
        system: Three-unknown block system.
        jacobian: Jacobian assembler on the field.
    """

    def __init__(self, params: Optional[PolytropeParameters] = None, verbose: bool = False):
        self.params = params if params is not None else PolytropeParameters()
        self.verbose = verbose
        p = self.params

        self.grid = SpectralGrid(p.nr, p.r_inner, p.r_outer, ndomains=1, n_theta=p.n_theta)

        S = SymbolicField(self.grid)
        Phi = S.regvar("Phi")
        Lambda = S.regvar("Lambda")
        Phi0 = S.regvar("Phi0")

        rotation = 0.5 * (p.omega * p.omega * S.r * S.r * sin(S.theta) * sin(S.theta))
        h = 1 - Lambda * (Phi - Phi0) + rotation
        self.h = h
        self.equation = lap(Phi) - pow(sqrt(h * h), p.polytropic_index)
        self.field = S
        self.jacobian = JacobianAssembler(S)

        # Phi has one row per point; Lambda and Phi0 only get boundary rows
        # and are therefore sized 1 by the system.
        self.system = NonlinearSystem(ndomains=1, nvars=len(VARIABLES), mode="full")
        for name in VARIABLES:
            self.system.regvar(name)
        self.system.set_nr(self.grid.npts)

        if self.verbose:
            print("=== RotatingPolytropeSolver Initialized ===")
            print(f"  n: {p.polytropic_index}")
            print(f"  omega: {p.omega}")
            print(f"  nr: {p.nr} on [{p.r_inner}, {p.r_outer}]")

    def initial_guess(self) -> Dict[str, NDArray]:
        """Phi = r², Lambda = 1, Phi0 = 0."""
        return {
            "Phi": self.grid.r**2,
            "Lambda": np.array([1.0]),
            "Phi0": np.array([0.0]),
        }

    def build_equations(
        self,
        op: NonlinearSystem,
        S: SymbolicField,
        values: Dict[str, NDArray]
    ) -> None:
        """Linearised equations around the current values (one Newton step)."""
        D = self.grid.D
        Phi = values["Phi"]
        Lambda = values["Lambda"][0]
        Phi0 = values["Phi0"][0]
        dPhi = D @ Phi

        for name in VARIABLES:
            self.jacobian.add(op, self.equation, "Phi", name)

        op.add_boundary_row("bottom", "Phi", "Phi", D[0])
        op.add_boundary_row("top", "Phi", "Phi", D[-1])
        op.add_boundary_row("top", "Phi", "Phi", 1.0)

        op.set_rhs("Phi", self.jacobian.residual(self.equation))
        op.set_boundary_rhs("bottom", "Phi", -dPhi[0])
        op.set_boundary_rhs("top", "Phi", -(dPhi[-1] + Phi[-1]))

        # dPhi(0) - dPhi0 = -(Phi(0) - Phi0)
        op.add_boundary_row("bottom", "Phi0", "Phi", 1.0)
        op.add_boundary_row("bottom", "Phi0", "Phi0", -1.0)
        op.set_rhs("Phi0", -(Phi[0] - Phi0))

        # Lambda (dPhi(1) - dPhi0) + dLambda (Phi(1) - Phi0) = -(Lambda (Phi(1) - Phi0) - 1)
        op.add_boundary_row("top", "Lambda", "Phi", Lambda)
        op.add_boundary_row("top", "Lambda", "Phi0", -Lambda)
        op.add_boundary_row("top", "Lambda", "Lambda", Phi[-1] - Phi0)
        op.set_rhs("Lambda", -(Lambda * (Phi[-1] - Phi0) - 1))

    def solve(
        self,
        initial_guess: Optional[Dict[str, NDArray]] = None,
        newton: Optional[NewtonParameters] = None
    ) -> PolytropeResult:
        """
        Run the Newton iteration from an initial guess.

        Args:
            initial_guess: Values for Phi, Lambda and Phi0 (defaults to
                initial_guess()).
            newton: Convergence policy (defaults to params.newton).

        Returns:
            PolytropeResult.

        Raises:
            ConvergenceFailure: If the iteration cap is reached.
            SingularSystem: If a Newton step is singular.
        """
        values = self.initial_guess()
        if initial_guess is not None:
            values.update(initial_guess)

        driver = NewtonDriver(
            self.system,
            self.field,
            primary="Phi",
            params=newton if newton is not None else self.params.newton,
            verbose=self.verbose,
        )
        info = driver.run(values, self.build_equations)
        return self._result(values, info)

    def _result(self, values: Dict[str, NDArray], info: ConvergenceInfo) -> PolytropeResult:
        state = FieldState({name: values[name].copy() for name in VARIABLES})
        residual = np.abs(self.field.eval(self.equation, state))[1:-1]
        Phi = state["Phi"]
        dPhi = self.grid.D @ Phi

        result = PolytropeResult(
            r=np.array(self.grid.r),
            Phi=Phi,
            Lambda=float(state["Lambda"][0]),
            Phi0=float(state["Phi0"][0]),
            info=info,
            residual=residual,
            dphi_inner=float(dPhi[0]),
            robin_outer=float(dPhi[-1] + Phi[-1]),
            parameters=self.params,
        )
        if self.verbose:
            print(f"\nLambda = {result.Lambda:f}")
            print(f"Phi(0) = {Phi[0]:f}")
            print(f"Phi(1) = {Phi[-1]:f}")
            print("Boundary conditions:")
            print(f"dPhi/dr(0) = {result.dphi_inner:e}")
            print(f"dPhi/dr(1) + Phi(1) = {result.robin_outer:e}")
        return result


def solve_polytrope(verbose: bool = False, **overrides) -> PolytropeResult:
    """
    Solve the rotating polytrope with PolytropeParameters overrides.

    Example:
        result = solve_polytrope(omega=0.3)
    """
    params = PolytropeParameters(**overrides)
    return RotatingPolytropeSolver(params, verbose=verbose).solve()
