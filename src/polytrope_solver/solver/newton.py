"""
Damped Newton driver.

Each iteration:
    1. push current values into the SymbolicField
    2. reset the NonlinearSystem and let the caller rebuild its equations
    3. solve for the corrections
    4. error = max |correction of the primary unknown|
    5. relax = full_relax if error <= relax_threshold else damped_relax
    6. value += relax * correction for every unknown

The loop stops when error <= tol (converged) or raises ConvergenceFailure
when max_iter iterations did not get there. SingularSystem from the solve
step is not caught; it is a different failure from slow convergence.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np
from numpy.typing import NDArray

from polytrope_solver.core.errors import ConvergenceFailure
from polytrope_solver.core.parameters import NewtonParameters
from polytrope_solver.solver.system import NonlinearSystem
from polytrope_solver.symbolic.field import SymbolicField


BuildFn = Callable[[NonlinearSystem, SymbolicField, Dict[str, NDArray]], None]


@dataclass
class ConvergenceInfo:
    """Information about Newton convergence."""
    converged: bool
    iterations: int
    final_error: float
    error_history: List[float] = field(default_factory=list)
    relax_history: List[float] = field(default_factory=list)


def relaxation_factor(
    error: float,
    threshold: float = 0.01,
    damped: float = 0.2,
    full: float = 1.0
) -> float:
    """
    Relaxation applied to a Newton correction.

    Full step once the correction is small, damped step otherwise.
    """
    return full if error <= threshold else damped


class NewtonDriver:
    """
    Outer fixed-point loop around a NonlinearSystem.

    Attributes:
        system: Block solver, with every unknown already declared.
        field: Symbolic field the equations are built on.
        primary: Unknown whose correction norm is the error metric.
        params: Convergence policy.
        verbose: Print one progress block per iteration.
    """

    def __init__(
        self,
        system: NonlinearSystem,
        field: SymbolicField,
        primary: str,
        params: Optional[NewtonParameters] = None,
        verbose: bool = False
    ):
        if primary not in system.names:
            raise ValueError(f"Primary unknown {primary!r} is not declared in the system")
        self.system = system
        self.field = field
        self.primary = primary
        self.params = params if params is not None else NewtonParameters()
        self.verbose = verbose

    def run(self, values: Dict[str, NDArray], build_equations: BuildFn) -> ConvergenceInfo:
        """
        Iterate until convergence.

        Args:
            values: Initial guess for every declared unknown. Updated in
                place with the converged values.
            build_equations: Called as build_equations(system, field, values)
                after every reset(); adds blocks, boundary rows and RHS.

        Returns:
            ConvergenceInfo for the converged run.

        Raises:
            ConvergenceFailure: If max_iter is reached, or the correction
                becomes non-finite, before the tolerance is met.
            SingularSystem: If a Newton step has no unique solution.
        """
        params = self.params
        missing = [name for name in self.system.names if name not in values]
        if missing:
            raise ValueError(f"No initial value for {', '.join(missing)}")
        for name in self.system.names:
            values[name] = np.atleast_1d(np.array(values[name], dtype=float))

        error = np.inf
        errors: List[float] = []
        relaxes: List[float] = []
        it = 0

        while error > params.tol and it < params.max_iter:
            self.field.set_values({name: values[name] for name in self.system.names})
            if self.verbose:
                self._print_state(it, values)

            self.system.reset()
            build_equations(self.system, self.field, values)
            self.system.solve()

            corrections = {name: self.system.get_var(name) for name in self.system.names}
            error = float(np.max(np.abs(corrections[self.primary])))
            if self.verbose:
                print(f"Error: {error:e}")

            if not np.isfinite(error):
                errors.append(error)
                raise ConvergenceFailure(
                    f"Non-finite correction at iteration {it}",
                    error=error,
                    iterations=it + 1,
                    values={k: v.copy() for k, v in values.items()},
                    history=errors,
                )

            relax = relaxation_factor(
                error, params.relax_threshold, params.damped_relax, params.full_relax
            )
            for name, delta in corrections.items():
                values[name] = values[name] + relax * delta

            errors.append(error)
            relaxes.append(relax)
            it += 1

        if error > params.tol:
            raise ConvergenceFailure(
                f"No convergence after {it} iterations (error {error:.3e} > tol {params.tol:.1e})",
                error=error,
                iterations=it,
                values={k: v.copy() for k, v in values.items()},
                history=errors,
            )

        return ConvergenceInfo(
            converged=True,
            iterations=it,
            final_error=error,
            error_history=errors,
            relax_history=relaxes,
        )

    def _print_state(self, it: int, values: Dict[str, NDArray]) -> None:
        print(f"iter #{it}:")
        for name in self.system.names:
            v = values[name]
            if v.size > 1:
                print(f"  {name:>8}: {v[0]:e} - {v[-1]:e}")
            else:
                print(f"  {name:>8}: {v[0]:e}")
