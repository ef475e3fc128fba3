"""
Tests for the symbolic layer: expression construction and evaluation.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from polytrope_solver.core.errors import DuplicateName, ShapeMismatch, UnboundVariable
from polytrope_solver.symbolic.expression import (
    Expr,
    as_expr,
    const,
    coord,
    grad,
    lap,
    pow,
    sin,
    sqrt,
)
from polytrope_solver.symbolic.field import FieldState, SymbolicField


@pytest.mark.unit
class TestExpressions:
    """Expression trees are immutable and built by operators."""

    def test_operators_build_new_nodes(self, field):
        Phi = field.regvar("x")
        a = Phi + 1
        b = a * 2
        assert a.op == "add"
        assert b.op == "mul"
        assert b.args[0] is a
        assert a.args == (Phi, const(1.0))

    def test_reflected_operators(self):
        x = Expr("var", ("x",))
        assert (1 - x).op == "sub"
        assert (1 - x).args[0] == const(1.0)
        assert (2 / x).op == "div"
        assert (-x).op == "neg"

    def test_numpy_scalar_on_left(self):
        x = Expr("var", ("x",))
        e = np.float64(2.0) * x
        assert isinstance(e, Expr)
        assert e.op == "mul"

    def test_nodes_are_frozen(self):
        e = const(1.0)
        with pytest.raises(AttributeError):
            e.op = "var"

    def test_unknown_op_rejected(self):
        with pytest.raises(ValueError):
            Expr("tan", (const(1.0),))

    def test_pow_exponent_must_be_constant(self):
        x = Expr("var", ("x",))
        assert (x ** 2).args[1] == 2.0
        assert pow(x, const(3)).args[1] == 3.0
        with pytest.raises(TypeError):
            pow(x, x)

    def test_as_expr_rejects_other_types(self):
        with pytest.raises(TypeError):
            as_expr("Phi")

    def test_unknown_coordinate(self):
        with pytest.raises(ValueError):
            coord("phi")

    def test_variables(self):
        x = Expr("var", ("x",))
        y = Expr("var", ("y",))
        e = lap(x) - pow(sqrt(x * y), 1.5) + coord("r")
        assert e.variables() == frozenset({"x", "y"})


@pytest.mark.unit
class TestSymbolicField:
    """Registration, values and evaluation."""

    def test_duplicate_name(self, field):
        with pytest.raises(DuplicateName):
            field.regvar("Phi")

    def test_regvar_returns_var_node(self, grid):
        S = SymbolicField(grid)
        node = S.regvar("u")
        assert node == Expr("var", ("u",))
        assert S.names == ("u",)

    @pytest.mark.parametrize("name", ["Phi", "Lambda"])
    def test_eval_before_set_value(self, field, name):
        with pytest.raises(UnboundVariable):
            field.eval(Expr("var", (name,)))

    def test_set_value_unregistered(self, field):
        with pytest.raises(UnboundVariable):
            field.set_value("Psi", np.zeros(16))

    @pytest.mark.parametrize("shape", [(15,), (16, 2), (2,)])
    def test_set_value_shape_mismatch(self, field, shape):
        with pytest.raises(ShapeMismatch):
            field.set_value("Phi", np.zeros(shape))

    @pytest.mark.parametrize("value", [2.0, np.array([2.0]), np.ones((1, 1)) * 2.0])
    def test_scalar_values(self, field, value):
        field.set_value("Lambda", value)
        assert field.get_value("Lambda").shape == (1,)

    def test_column_vector_accepted(self, field, grid):
        field.set_value("Phi", grid.r.reshape(-1, 1))
        assert field.get_value("Phi").shape == grid.shape

    def test_set_value_is_lazy_and_copies(self, field, grid):
        values = np.array(grid.r)
        field.set_value("Phi", values)
        values[:] = 0.0
        assert_allclose(field.get_value("Phi"), grid.r)

    def test_eval_broadcasts_scalars(self, field, grid):
        Phi = Expr("var", ("Phi",))
        Lambda = Expr("var", ("Lambda",))
        field.set_value("Phi", grid.r)
        field.set_value("Lambda", 3.0)

        assert_allclose(field.eval(Lambda * Phi), 3.0 * grid.r)
        # A pure scalar expression still has the grid shape
        assert field.eval(Lambda + 1).shape == grid.shape
        assert_allclose(field.eval(const(2.0)), 2.0)

    def test_eval_elementary_functions(self, field, grid):
        Phi = Expr("var", ("Phi",))
        field.set_value("Phi", grid.r)
        r = grid.r
        assert_allclose(field.eval(sqrt(Phi * Phi)), r)
        assert_allclose(field.eval(pow(Phi, 1.5)), r**1.5)
        assert_allclose(field.eval(abs(-Phi)), r)
        assert_allclose(field.eval(Phi / (Phi + 1)), r / (r + 1))

    def test_eval_differential_operators(self, field, grid):
        Phi = Expr("var", ("Phi",))
        field.set_value("Phi", grid.r**2)
        assert_allclose(field.eval(lap(Phi)), 6.0, atol=1e-8)
        assert_allclose(field.eval(grad(Phi)), 2 * grid.r, atol=1e-10)
        # lap of a scalar is zero
        field.set_value("Lambda", 5.0)
        assert_allclose(field.eval(lap(Expr("var", ("Lambda",)))), 0.0, atol=1e-9)

    def test_coordinates(self, field, grid):
        assert_allclose(field.eval(field.r), grid.r)
        # Radial grids sit on the equator
        assert_allclose(field.eval(sin(field.theta)), 1.0)

    def test_explicit_state_leaves_current_state(self, field, grid):
        Phi = Expr("var", ("Phi",))
        field.set_value("Phi", grid.r)
        other = FieldState({"Phi": 2 * grid.r})

        assert_allclose(field.eval(Phi, other), 2 * grid.r)
        assert_allclose(field.eval(Phi, {"Phi": 3 * grid.r}), 3 * grid.r)
        assert_allclose(field.eval(Phi), grid.r)

    def test_expr_eval_delegates_to_field(self, field, grid):
        Phi = Expr("var", ("Phi",))
        field.set_value("Phi", grid.r)
        expr = lap(Phi * Phi)
        assert_allclose(expr.eval(field), field.eval(expr))
        assert_allclose(Phi.eval(field, {"Phi": 2 * grid.r}), 2 * grid.r)
        with pytest.raises(UnboundVariable):
            Expr("var", ("Lambda",)).eval(field)

    def test_explicit_state_missing_variable(self, field):
        with pytest.raises(UnboundVariable):
            field.eval(Expr("var", ("Phi",)), FieldState())

    def test_state_copy_is_deep(self, grid):
        state = FieldState({"Phi": np.array(grid.r)})
        copied = state.copy()
        copied["Phi"][:] = 0.0
        assert_allclose(state["Phi"], grid.r)
        assert "Phi" in state and len(state) == 1
