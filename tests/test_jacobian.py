"""
Tests for JacobianAssembler - exact Jacobian blocks.

Nonlinear terms are checked against central finite differences; linear
operators are checked against the grid matrices directly.
"""

import warnings

import numpy as np
import pytest
from numpy.testing import assert_allclose

from polytrope_solver.core.errors import NotDifferentiable
from polytrope_solver.solver.system import NonlinearSystem
from polytrope_solver.symbolic.expression import Expr, cos, exp, grad, lap, log, pow, sin, sqrt
from polytrope_solver.symbolic.field import FieldState
from polytrope_solver.symbolic.jacobian import JacobianAssembler


PHI = Expr("var", ("Phi",))
LAMBDA = Expr("var", ("Lambda",))


def finite_difference(field, expr, name, state, eps=1e-7):
    """Column-by-column central differences of eval(expr) w.r.t. name."""
    base = {k: np.array(v) for k, v in state.items()}
    columns = []
    for j in range(base[name].size):
        plus = {k: v.copy() for k, v in base.items()}
        minus = {k: v.copy() for k, v in base.items()}
        plus[name][j] += eps
        minus[name][j] -= eps
        columns.append((field.eval(expr, plus) - field.eval(expr, minus)) / (2 * eps))
    return np.column_stack(columns)


@pytest.fixture
def assembler(field):
    return JacobianAssembler(field)


@pytest.fixture
def smooth_state(grid):
    """State with h = 1 - Lambda * Phi bounded away from zero."""
    return {"Phi": 0.3 * grid.r**2 + 0.1, "Lambda": np.array([1.2])}


@pytest.mark.unit
class TestLinearTerms:
    """Linear expressions give state-independent blocks."""

    @pytest.mark.parametrize("a", [-2.0, 0.5, 3.0])
    def test_scaled_variable(self, field, assembler, grid, rng, a):
        for _ in range(2):
            field.set_value("Phi", rng.normal(size=grid.npts))
            field.set_value("Lambda", rng.normal())
            J = assembler.differentiate(a * PHI, "Phi")
            assert_allclose(J, a * np.eye(grid.npts), rtol=0, atol=0)

    def test_lap_gives_laplacian_matrix(self, field, assembler, grid):
        field.set_value("Phi", grid.r)
        field.set_value("Lambda", 1.0)
        assert_allclose(assembler.differentiate(lap(PHI), "Phi"), grid.L)
        assert_allclose(assembler.differentiate(grad(PHI), "Phi"), grid.D)

    def test_unrelated_variable_gives_zero_block(self, field, assembler, grid):
        field.set_value("Phi", grid.r)
        field.set_value("Lambda", 1.0)
        J = assembler.differentiate(lap(PHI), "Lambda")
        assert J.shape == (grid.npts, 1)
        assert np.all(J == 0.0)

    def test_scalar_unknown_column(self, field, assembler, grid):
        field.set_value("Phi", grid.r)
        field.set_value("Lambda", 2.0)
        J = assembler.differentiate(LAMBDA * PHI, "Lambda")
        assert J.shape == (grid.npts, 1)
        assert_allclose(J[:, 0], grid.r)


@pytest.mark.unit
class TestNonlinearTerms:
    """Chain and product rules against finite differences."""

    def test_polytrope_source_term(self, field, assembler, smooth_state):
        h = 1 - LAMBDA * (PHI - 0.05) + 0.5 * (0.09 * field.r * field.r * sin(field.theta))
        expr = pow(sqrt(h * h), 1.5)
        for name in ("Phi", "Lambda"):
            J = assembler.differentiate(expr, name, smooth_state)
            fd = finite_difference(field, expr, name, smooth_state)
            assert_allclose(J, fd, rtol=1e-6, atol=1e-8)

    @pytest.mark.parametrize("build", [
        lambda u, s: sin(u) * cos(s * u),
        lambda u, s: exp(u) / (1 + s * u * u),
        lambda u, s: log(1 + u) - s * u,
        lambda u, s: abs(u - 2) * s,
        lambda u, s: -(u ** 3) + pow(s, 2) * u,
    ])
    def test_elementary_rules(self, field, assembler, smooth_state, build):
        expr = build(PHI, LAMBDA)
        for name in ("Phi", "Lambda"):
            J = assembler.differentiate(expr, name, smooth_state)
            fd = finite_difference(field, expr, name, smooth_state)
            assert_allclose(J, fd, rtol=1e-6, atol=1e-8)

    def test_nonlinear_block_depends_on_state(self, assembler, grid):
        expr = PHI * PHI
        J1 = assembler.differentiate(expr, "Phi", {"Phi": grid.r})
        J2 = assembler.differentiate(expr, "Phi", {"Phi": 2 * grid.r})
        assert_allclose(J1, np.diag(2 * grid.r))
        assert_allclose(J2, 2 * J1)


@pytest.mark.unit
class TestNonSmoothPoints:
    """sqrt and abs at a zero argument use the zero subgradient."""

    def test_sqrt_at_zero_warns(self, field, assembler, grid):
        # r[0] = 0, so sqrt(Phi * Phi) is not differentiable at the first point
        field.set_value("Phi", grid.r)
        with pytest.warns(RuntimeWarning, match="sqrt"):
            J = assembler.differentiate(sqrt(PHI * PHI), "Phi")
        assert np.all(np.isfinite(J))
        assert J[0, 0] == 0.0
        assert_allclose(np.diag(J)[1:], 1.0)

    def test_abs_at_zero_warns(self, field, assembler, grid):
        field.set_value("Phi", grid.r)
        with pytest.warns(RuntimeWarning, match="abs"):
            J = assembler.differentiate(abs(PHI), "Phi")
        assert J[0, 0] == 0.0

    def test_fractional_power_at_interior_zero(self, field, assembler, grid):
        """|h|^0.5 written as pow(sqrt(h*h), 0.5) with h = 0 at one interior point."""
        h = grid.r - grid.r[3]
        field.set_value("Phi", h)
        with pytest.warns(RuntimeWarning, match="pow"):
            with np.errstate(all="raise"):
                J = assembler.differentiate(pow(sqrt(PHI * PHI), 0.5), "Phi")

        assert np.all(np.isfinite(J))
        assert J[3, 3] == 0.0
        others = np.arange(grid.npts) != 3
        expected = 0.5 * np.abs(h[others]) ** -0.5 * np.sign(h[others])
        assert_allclose(np.diag(J)[others], expected)

    def test_no_warning_away_from_zero(self, field, assembler, grid):
        field.set_value("Phi", grid.r + 1.0)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            assembler.differentiate(sqrt(PHI * PHI), "Phi")


@pytest.mark.unit
class TestAssembler:
    """Registration checks, purity and system insertion."""

    def test_unregistered_variable(self, field, assembler, grid):
        field.set_value("Phi", grid.r)
        with pytest.raises(NotDifferentiable):
            assembler.differentiate(PHI, "Psi")

    def test_not_differentiable_is_lookup_error(self, assembler):
        with pytest.raises(LookupError):
            assembler.differentiate(PHI, "Psi")

    def test_differentiate_leaves_state_untouched(self, field, assembler, grid):
        field.set_value("Phi", grid.r)
        field.set_value("Lambda", 1.5)
        before = field.state.copy()
        assembler.differentiate(lap(PHI) - LAMBDA * PHI * PHI, "Phi")
        assembler.differentiate(lap(PHI) - LAMBDA * PHI * PHI, "Lambda", FieldState({
            "Phi": 2 * grid.r, "Lambda": np.array([3.0])
        }))
        assert_allclose(field.state["Phi"], before["Phi"])
        assert_allclose(field.state["Lambda"], before["Lambda"])

    def test_residual_is_minus_eval(self, field, assembler, grid):
        field.set_value("Phi", grid.r**2)
        expr = lap(PHI) - 1.0
        assert_allclose(assembler.residual(expr), -field.eval(expr))

    def test_add_inserts_block(self, field, assembler, grid):
        field.set_value("Phi", grid.r)
        field.set_value("Lambda", 1.0)
        system = NonlinearSystem(nvars=2)
        system.regvar("Phi")
        system.regvar("Lambda")

        block = assembler.add(system, lap(PHI) - LAMBDA * PHI, "Phi", "Phi")
        assert_allclose(system.equations.blocks[("Phi", "Phi")], block)
        assert_allclose(block, grid.L - np.eye(grid.npts))
