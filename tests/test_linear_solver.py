"""
Tests für pollen_optimizer/analysis/linear_solver.py
"""

import numpy as np
import pytest

from pollen_optimizer.analysis.linear_solver import solve_linear_system
from pollen_optimizer.core.exceptions import NumericalSingularityError, PreconditionError


class TestSolveLinearSystem:
    """Tests für Gauß-Elimination mit Teilpivotisierung"""

    def test_solves_known_system(self):
        """2x + y - z = 8, -3x - y + 2z = -11, -2x + y + 2z = -3 -> (2, 3, -1)"""
        a = [[2.0, 1.0, -1.0], [-3.0, -1.0, 2.0], [-2.0, 1.0, 2.0]]
        b = [8.0, -11.0, -3.0]

        x = solve_linear_system(a, b)

        assert x == pytest.approx([2.0, 3.0, -1.0])

    def test_requires_pivoting(self):
        """Erste Diagonale ist 0, nur mit Zeilentausch lösbar"""
        a = [[0.0, 1.0], [1.0, 0.0]]
        b = [3.0, 7.0]

        assert solve_linear_system(a, b) == pytest.approx([7.0, 3.0])

    def test_matches_numpy(self):
        rng = np.random.default_rng(42)
        a = rng.normal(size=(5, 5)) + 5 * np.eye(5)
        b = rng.normal(size=5)

        assert solve_linear_system(a, b) == pytest.approx(np.linalg.solve(a, b))

    def test_inputs_not_modified(self):
        a = np.array([[0.0, 1.0], [1.0, 0.0]])
        b = np.array([3.0, 7.0])

        solve_linear_system(a, b)

        assert np.array_equal(a, [[0.0, 1.0], [1.0, 0.0]])
        assert np.array_equal(b, [3.0, 7.0])

    def test_singular_matrix_raises(self):
        a = [[1.0, 2.0], [2.0, 4.0]]

        with pytest.raises(NumericalSingularityError):
            solve_linear_system(a, [1.0, 2.0])

    def test_zero_column_raises(self):
        a = [[0.0, 1.0], [0.0, 2.0]]

        with pytest.raises(NumericalSingularityError):
            solve_linear_system(a, [1.0, 2.0])

    def test_non_square_raises(self):
        with pytest.raises(PreconditionError):
            solve_linear_system([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]], [1.0, 2.0])

    def test_rhs_length_mismatch_raises(self):
        with pytest.raises(PreconditionError):
            solve_linear_system([[1.0, 0.0], [0.0, 1.0]], [1.0, 2.0, 3.0])

    def test_precondition_error_is_value_error(self):
        with pytest.raises(ValueError):
            solve_linear_system([[1.0, 2.0]], [1.0])
