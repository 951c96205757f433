"""Dense linear system solver (Gaussian elimination with partial pivoting)."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from pollen_optimizer.core.exceptions import NumericalSingularityError, PreconditionError


def solve_linear_system(
    a: np.ndarray | Sequence[Sequence[float]],
    b: np.ndarray | Sequence[float],
) -> np.ndarray:
    """
    Solve A·x = b.

    Before eliminating column i the row with the largest absolute value in
    that column (at or below i) is swapped into the pivot position. The
    inputs are copied, never modified.

    Raises:
        PreconditionError: A is not square or b has the wrong length
        NumericalSingularityError: a pivot is exactly zero
    """
    matrix = np.array(a, dtype=float)
    rhs = np.array(b, dtype=float)

    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise PreconditionError(f"Matrix must be square, got shape {matrix.shape}")
    n = matrix.shape[0]
    if rhs.shape != (n,):
        raise PreconditionError(f"Right-hand side must have length {n}, got shape {rhs.shape}")
    if n == 0:
        raise PreconditionError("Empty system")

    # Forward elimination
    for i in range(n):
        pivot_row = i + int(np.argmax(np.abs(matrix[i:, i])))
        if matrix[pivot_row, i] == 0:
            raise NumericalSingularityError(f"Singular matrix: no pivot in column {i}")

        if pivot_row != i:
            matrix[[i, pivot_row]] = matrix[[pivot_row, i]]
            rhs[[i, pivot_row]] = rhs[[pivot_row, i]]

        for j in range(i + 1, n):
            factor = matrix[j, i] / matrix[i, i]
            if factor == 0:
                continue
            matrix[j, i:] -= factor * matrix[i, i:]
            rhs[j] -= factor * rhs[i]

    # Back substitution
    x = np.zeros(n)
    for i in range(n - 1, -1, -1):
        x[i] = (rhs[i] - matrix[i, i + 1 :] @ x[i + 1 :]) / matrix[i, i]

    return x
