"""
Parameter dataclasses for configuring the Newton driver and the
rotating polytrope model.

Defaults come from core.constants (and therefore from solver_defaults.json).
"""

from dataclasses import dataclass, field

from polytrope_solver.core.constants import (
    DEFAULT_DAMPED_RELAX,
    DEFAULT_FULL_RELAX,
    DEFAULT_MAX_ITER,
    DEFAULT_RELAX_THRESHOLD,
    DEFAULT_TOL,
    SOLVER_DEFAULTS,
)


@dataclass
class NewtonParameters:
    """
    Convergence policy for the damped Newton iteration.
    
    Attributes:
        tol: Iteration stops once the inf-norm of the primary correction
            is <= tol.
        max_iter: Iteration cap; reaching it raises ConvergenceFailure.
        relax_threshold: Corrections with norm <= this are applied in full.
        damped_relax: Relaxation factor used above the threshold.
        full_relax: Relaxation factor used at or below the threshold.
    """
    
    tol: float = DEFAULT_TOL
    max_iter: int = DEFAULT_MAX_ITER
    relax_threshold: float = DEFAULT_RELAX_THRESHOLD
    damped_relax: float = DEFAULT_DAMPED_RELAX
    full_relax: float = DEFAULT_FULL_RELAX
    
    def __post_init__(self):
        self._validate()
    
    def _validate(self):
        """Validate parameter values."""
        if self.tol <= 0:
            raise ValueError(f"tol must be positive, got {self.tol}")
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be at least 1, got {self.max_iter}")
        if self.relax_threshold < 0:
            raise ValueError(
                f"relax_threshold must be non-negative, got {self.relax_threshold}"
            )
        if not 0 < self.damped_relax <= 1:
            raise ValueError(f"damped_relax must be in (0, 1], got {self.damped_relax}")
        if not 0 < self.full_relax <= 1:
            raise ValueError(f"full_relax must be in (0, 1], got {self.full_relax}")


@dataclass
class PolytropeParameters:
    """
    Parameters of the rotating polytrope problem.
    
    The structure equation solved for the potential Phi is
        lap(Phi) = |h|^n,  h = 1 - Lambda (Phi - Phi0) + omega² r² sin²θ / 2
    on r in [r_inner, r_outer].
    
    Attributes:
        polytropic_index: Polytropic index n.
        omega: Dimensionless rotation rate.
        nr: Number of radial collocation points.
        n_theta: Number of angular points (only 1 is supported).
        r_inner: Inner radius of the domain.
        r_outer: Outer radius of the domain.
        newton: Convergence policy for the Newton driver.
    """
    
    polytropic_index: float = float(SOLVER_DEFAULTS["polytropic_index"])
    omega: float = float(SOLVER_DEFAULTS["omega"])
    nr: int = int(SOLVER_DEFAULTS["nr"])
    n_theta: int = int(SOLVER_DEFAULTS["n_theta"])
    r_inner: float = float(SOLVER_DEFAULTS["r_inner"])
    r_outer: float = float(SOLVER_DEFAULTS["r_outer"])
    newton: NewtonParameters = field(default_factory=NewtonParameters)
    
    def __post_init__(self):
        self._validate()
    
    def _validate(self):
        """Validate parameter values. Grid geometry is checked by SpectralGrid."""
        if self.polytropic_index < 0:
            raise ValueError(
                f"polytropic_index must be non-negative, got {self.polytropic_index}"
            )
        if self.omega < 0:
            raise ValueError(f"omega must be non-negative, got {self.omega}")
