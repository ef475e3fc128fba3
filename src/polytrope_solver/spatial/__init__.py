"""
Spatial discretization module for the polytrope solver.

Provides the Chebyshev collocation grid for the radial direction and the
differentiation, Laplacian and quadrature operators built on it.

Key components:
- SpectralGrid: Collocation points and operators on [r_min, r_max]
"""

from polytrope_solver.spatial.radial import (
    SpectralGrid,
    chebyshev_lobatto_points,
    barycentric_differentiation_matrix,
    clenshaw_curtis_weights,
)

__all__ = [
    'SpectralGrid',
    'chebyshev_lobatto_points',
    'barycentric_differentiation_matrix',
    'clenshaw_curtis_weights',
]
