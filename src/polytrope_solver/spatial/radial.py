"""
Radial spectral grid and operators for spherically symmetric structure.

The radial coordinate r in [r_min, r_max] is sampled at Chebyshev-Gauss-Lobatto
points, which cluster near both ends of the interval:
    x_j = -cos(π j / (N-1)),  r_j = r_min + (r_max - r_min)(x_j + 1)/2

Polynomial interpolation through the samples gives the collocation operators:
- D:  first derivative, exact for polynomials of degree <= N-1
- D2: second derivative, D @ D
- L:  radial part of the spherical Laplacian, d²/dr² + (2/r) d/dr

At r = 0 the term (2/r) d/dr is replaced by its regular limit, so that for
smooth even functions the Laplacian row becomes 3 d²/dr².

Integration uses Clenshaw-Curtis weights on the same points.
"""

import numpy as np
from numpy.typing import NDArray
from typing import Optional, Tuple

from polytrope_solver.core.errors import InvalidDomain


def chebyshev_lobatto_points(npts: int) -> Tuple[NDArray, NDArray]:
    """
    Chebyshev-Gauss-Lobatto points on [-1, 1] in increasing order.

    Args:
        npts: Number of points (>= 2).

    Returns:
        Tuple of (x, theta) with x = -cos(theta).
    """
    m = npts - 1
    j = np.arange(npts)
    theta = np.pi * j / m
    # sin form keeps the points exactly antisymmetric about 0
    x = np.sin(np.pi * (2 * j - m) / (2 * m))
    return x, theta


def barycentric_differentiation_matrix(dx: NDArray, weights: NDArray) -> NDArray:
    """
    Differentiation matrix from barycentric weights.

        D_ij = (w_j / w_i) / (x_i - x_j),  i != j
        D_ii = -sum_{j != i} D_ij

    The diagonal uses the negative-sum trick so that constants are
    differentiated to zero up to rounding.

    Args:
        dx: Matrix of point differences x_i - x_j (diagonal ignored).
        weights: Barycentric weights w_j.

    Returns:
        Dense (N, N) differentiation matrix on the reference points.
    """
    n = len(weights)
    offdiag = ~np.eye(n, dtype=bool)
    ratio = weights[np.newaxis, :] / weights[:, np.newaxis]

    D = np.zeros((n, n))
    D[offdiag] = ratio[offdiag] / dx[offdiag]
    D[np.diag_indices(n)] = -D.sum(axis=1)
    return D


def chebyshev_barycentric_weights(npts: int) -> NDArray:
    """Barycentric weights for Chebyshev-Gauss-Lobatto points."""
    w = (-1.0) ** np.arange(npts)
    w[0] *= 0.5
    w[-1] *= 0.5
    return w


def clenshaw_curtis_weights(npts: int) -> NDArray:
    """
    Clenshaw-Curtis quadrature weights on [-1, 1].

    Exact for polynomials of degree <= N-1. The weights are symmetric,
    so they apply unchanged to increasing or decreasing point order.

    Args:
        npts: Number of Chebyshev-Gauss-Lobatto points.

    Returns:
        Weights w with sum(w) == 2.
    """
    n = npts - 1
    theta = np.pi * np.arange(npts) / n
    w = np.zeros(npts)
    interior = np.arange(1, n)
    v = np.ones(n - 1)

    if n % 2 == 0:
        w[0] = w[n] = 1.0 / (n**2 - 1)
        for k in range(1, n // 2):
            v -= 2.0 * np.cos(2 * k * theta[interior]) / (4 * k**2 - 1)
        v -= np.cos(n * theta[interior]) / (n**2 - 1)
    else:
        w[0] = w[n] = 1.0 / n**2
        for k in range(1, (n - 1) // 2 + 1):
            v -= 2.0 * np.cos(2 * k * theta[interior]) / (4 * k**2 - 1)

    w[interior] = 2.0 * v / n
    return w


class SpectralGrid:
    """
    Chebyshev collocation grid on a single radial domain.

    The operators are derived once by the constructor (or by rebuild()) and
    are read-only afterwards. Changing the interval is a two-step operation:
    set_bounds() records the new interval, rebuild() re-derives r and every
    operator. Until rebuild() is called the grid keeps its old geometry.

    Attributes:
        npts: Number of collocation points.
        ndomains: Number of radial domains (only 1 is supported).
        n_theta: Number of angular points (only 1 is supported).
        r_min, r_max: Current interval.
        x: Reference points in [-1, 1].
        r: Collocation radii, increasing from r_min to r_max.
        theta: Colatitude of the single angular point (the equator).
        D: First derivative matrix d/dr.
        D2: Second derivative matrix d²/dr².
        L: Radial Laplacian matrix.
        weights: Quadrature weights on [r_min, r_max].
    """

    def __init__(
        self,
        npts: int,
        r_min: float = 0.0,
        r_max: float = 1.0,
        ndomains: int = 1,
        n_theta: int = 1
    ):
        """
        Initialize the grid and derive its operators.

        Args:
            npts: Number of points (>= 2).
            r_min: Inner radius (>= 0).
            r_max: Outer radius (> r_min).
            ndomains: Number of radial domains. Only 1 is supported.
            n_theta: Number of angular points. Only 1 is supported.

        Raises:
            InvalidDomain: If the bounds are degenerate or the geometry
                is unsupported.
        """
        if int(npts) != npts or npts < 2:
            raise InvalidDomain(f"npts must be an integer >= 2, got {npts}")
        if ndomains != 1:
            raise InvalidDomain(f"only single-domain grids are supported, got ndomains={ndomains}")
        if n_theta != 1:
            raise InvalidDomain(f"only radial grids (n_theta=1) are supported, got n_theta={n_theta}")
        self._check_bounds(r_min, r_max)

        self.npts = int(npts)
        self.ndomains = ndomains
        self.n_theta = n_theta
        self.r_min = float(r_min)
        self.r_max = float(r_max)
        self.theta = 0.5 * np.pi
        self._pending_bounds: Optional[Tuple[float, float]] = None

        self._build()

    @staticmethod
    def _check_bounds(r_min: float, r_max: float) -> None:
        if not (np.isfinite(r_min) and np.isfinite(r_max)):
            raise InvalidDomain(f"bounds must be finite, got ({r_min}, {r_max})")
        if r_min >= r_max:
            raise InvalidDomain(f"r_min must be < r_max, got ({r_min}, {r_max})")
        if r_min < 0:
            raise InvalidDomain(f"radial domain needs r_min >= 0, got {r_min}")

    def _build(self) -> None:
        """Derive collocation radii, operators and weights for the current bounds."""
        n = self.npts
        half_width = 0.5 * (self.r_max - self.r_min)

        x, theta = chebyshev_lobatto_points(n)
        r = self.r_min + half_width * (x + 1.0)
        r[0] = self.r_min
        r[-1] = self.r_max

        # x_i - x_j = 2 sin((θi+θj)/2) sin((θi-θj)/2), avoids cancellation near ±1
        ti, tj = np.meshgrid(theta, theta, indexing='ij')
        dx = 2.0 * np.sin(0.5 * (ti + tj)) * np.sin(0.5 * (ti - tj))

        self._bary_weights = chebyshev_barycentric_weights(n)
        D = barycentric_differentiation_matrix(dx, self._bary_weights) / half_width
        D2 = D @ D

        L = D2.copy()
        nonzero = r > 0
        L[nonzero] += (2.0 / r[nonzero])[:, np.newaxis] * D[nonzero]
        # Regular limit at the origin: (2/r) f' -> 2 f''
        L[~nonzero] = 3.0 * D2[~nonzero]

        weights = clenshaw_curtis_weights(n) * half_width

        for arr in (x, r, D, D2, L, weights):
            arr.setflags(write=False)
        self.x = x
        self.r = r
        self.D = D
        self.D2 = D2
        self.L = L
        self.weights = weights

    @property
    def shape(self) -> Tuple[int]:
        """Sample shape of a field on this grid."""
        return (self.npts,)

    @property
    def has_pending_bounds(self) -> bool:
        """True if set_bounds() was called and rebuild() has not yet applied it."""
        return self._pending_bounds is not None

    def set_bounds(self, r_min: float, r_max: float) -> None:
        """
        Record a new interval. Takes effect only after rebuild().

        Raises:
            InvalidDomain: If the new bounds are degenerate.
        """
        self._check_bounds(r_min, r_max)
        self._pending_bounds = (float(r_min), float(r_max))

    def rebuild(self) -> None:
        """Apply pending bounds (if any) and re-derive every operator."""
        if self._pending_bounds is not None:
            self.r_min, self.r_max = self._pending_bounds
            self._pending_bounds = None
        self._build()

    def _check_samples(self, f: NDArray) -> NDArray:
        f = np.asarray(f, dtype=float)
        if f.shape != self.shape:
            raise ValueError(f"Function shape {f.shape} doesn't match grid shape {self.shape}")
        return f

    def derivative(self, f: NDArray, order: int = 1) -> NDArray:
        """
        Differentiate sampled values.

        Args:
            f: Function values on the grid.
            order: Derivative order (1 or 2).

        Returns:
            d^order f / dr^order on the grid.
        """
        f = self._check_samples(f)
        if order == 1:
            return self.D @ f
        if order == 2:
            return self.D2 @ f
        return np.linalg.matrix_power(self.D, order) @ f

    def gradient(self, f: NDArray) -> NDArray:
        """Radial gradient df/dr."""
        return self.derivative(f, order=1)

    def laplacian(self, f: NDArray) -> NDArray:
        """Radial Laplacian d²f/dr² + (2/r) df/dr."""
        return self.L @ self._check_samples(f)

    def integrate(self, f: NDArray) -> float:
        """
        Integrate f(r) over [r_min, r_max] with Clenshaw-Curtis quadrature.

        Args:
            f: Function values on the grid.

        Returns:
            ∫ f(r) dr
        """
        return float(self.weights @ self._check_samples(f))

    def integrate_volume(self, f: NDArray) -> float:
        """
        Integrate a spherically symmetric function over the shell volume.

            ∫ f d³x = 4π ∫ f(r) r² dr
        """
        return 4 * np.pi * self.integrate(self._check_samples(f) * self.r**2)

    def interpolate(self, f: NDArray, r_new: NDArray) -> NDArray:
        """
        Evaluate the polynomial interpolant of f at new radii.

        Uses the second (true) barycentric formula, which is stable for
        Chebyshev points. Radii that coincide with collocation points return
        the sample exactly.

        Args:
            f: Function values on the grid.
            r_new: Radii at which to evaluate (within [r_min, r_max]).

        Returns:
            Interpolated values, same shape as r_new.
        """
        f = self._check_samples(f)
        r_new = np.atleast_1d(np.asarray(r_new, dtype=float))
        w = self._bary_weights

        diff = r_new[:, np.newaxis] - self.r[np.newaxis, :]
        exact = diff == 0
        with np.errstate(divide='ignore', invalid='ignore'):
            terms = w / diff
            result = (terms @ f) / terms.sum(axis=1)

        hit_rows, hit_cols = np.nonzero(exact)
        result[hit_rows] = f[hit_cols]
        return result

    def __repr__(self) -> str:
        return f"SpectralGrid(npts={self.npts}, r_min={self.r_min}, r_max={self.r_max})"
