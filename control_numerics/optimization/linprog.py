"""Linear programming with the Simplex method.

Maximisation problems

    max cᵀx  s.t.  A x <= b,  x >= 0

are solved directly on a Simplex tableau. Minimisation problems

    min cᵀx  s.t.  A x >= b,  x >= 0

are turned into their dual, ``max bᵀy s.t. Aᵀy <= c, y >= 0``, and the primal
solution is read from the objective row underneath the slack variables.

There is no phase one: the slack basis must be feasible, i.e. ``b >= 0`` for
maximisation and ``c >= 0`` for minimisation.
"""

from __future__ import annotations

import math
from enum import Enum, IntEnum
from typing import NamedTuple, Optional

import numpy as np

from control_numerics.config import DEFAULT_ITERATION_LIMIT, PIVOT_TOLERANCE
from control_numerics.linalg.buffers import ShapeError, check_buffer, check_dimension
from control_numerics.linalg.matrix_ops import tran
from control_numerics.utils.logger import get_logger

logger = get_logger(__name__)


class Objective(IntEnum):
    """Direction of the optimisation."""

    MAXIMIZE = 0
    MINIMIZE = 1


class LinprogStatus(Enum):
    """Why the pivot loop stopped."""

    OPTIMAL = "optimal"
    ITERATION_LIMIT = "iteration_limit"
    UNBOUNDED = "unbounded"


class LinprogResult(NamedTuple):
    """Outcome of ``linprog``.

    Attributes:
        x: Solution vector (shape [column_a]).
        objective: Objective value cᵀx read from the tableau.
        status: Termination reason.
        iterations: Number of pivot operations performed.
        tableau: Final Simplex tableau, (rows + 1) x (columns + rows + 2).
    """

    x: np.ndarray
    objective: float
    status: LinprogStatus
    iterations: int
    tableau: np.ndarray

    @property
    def success(self) -> bool:
        return self.status is LinprogStatus.OPTIMAL


def linprog(
    c: np.ndarray,
    A: np.ndarray,
    b: np.ndarray,
    row_a: int,
    column_a: int,
    max_or_min: Objective | int = Objective.MAXIMIZE,
    iteration_limit: int = DEFAULT_ITERATION_LIMIT,
    eps: float = PIVOT_TOLERANCE,
) -> LinprogResult:
    """Solve a small linear program with the Simplex method.

    Args:
        c: Objective coefficients (shape [column_a]).
        A: Constraint matrix, flat row-major (shape [row_a * column_a]).
            Not modified.
        b: Constraint bounds (shape [row_a]).
        row_a: Number of constraints, at least ``column_a``.
        column_a: Number of decision variables.
        max_or_min: ``Objective.MAXIMIZE`` (0) or ``Objective.MINIMIZE`` (1).
        iteration_limit: Maximum number of pivot operations. When it is
            reached the current, possibly suboptimal, solution is returned.
        eps: Tolerance for reduced costs and pivot entries.

    Returns:
        LinprogResult with the solution of length ``column_a``.

    Raises:
        ShapeError: If the buffers do not match the dimensions or
            ``row_a < column_a``.
        ValueError: If ``max_or_min`` or ``iteration_limit`` is invalid.

    Example:
        >>> c = np.array([3.0, 5.0], dtype=np.float32)
        >>> A = np.array([1.0, 0.0, 0.0, 2.0, 3.0, 2.0], dtype=np.float32)
        >>> b = np.array([4.0, 12.0, 18.0], dtype=np.float32)
        >>> linprog(c, A, b, 3, 2).x
        array([2., 6.], dtype=float32)
    """
    row_a = check_dimension(row_a, "row_a")
    column_a = check_dimension(column_a, "column_a")
    if row_a < column_a:
        raise ShapeError(
            f"linprog needs at least as many constraints as variables, "
            f"got row_a={row_a} < column_a={column_a}."
        )
    check_buffer(c, column_a, 1, "c")
    check_buffer(A, row_a, column_a, "A")
    check_buffer(b, row_a, 1, "b")

    try:
        direction = Objective(max_or_min)
    except ValueError as exc:
        raise ValueError(
            f"max_or_min must be 0 (maximise) or 1 (minimise), got {max_or_min!r}."
        ) from exc

    if isinstance(iteration_limit, bool) or not isinstance(iteration_limit, (int, np.integer)):
        raise ValueError(f"iteration_limit must be an integer, got {iteration_limit!r}.")
    if iteration_limit < 0:
        raise ValueError(f"iteration_limit must be non-negative, got {iteration_limit}.")

    if direction is Objective.MAXIMIZE:
        return _simplex(c, A, b, row_a, column_a, direction, int(iteration_limit), eps)

    # Dual: swap b and c and transpose a copy of A
    A_dual = np.array(A, copy=True)
    tran(A_dual, row_a, column_a)
    return _simplex(b, A_dual, c, column_a, row_a, direction, int(iteration_limit), eps)


def _build_tableau(
    c: np.ndarray, A: np.ndarray, b: np.ndarray, rows: int, columns: int
) -> np.ndarray:
    dtype = np.result_type(c, A, b, np.float32)
    tableau = np.zeros((rows + 1, columns + rows + 2), dtype=dtype)

    tableau[:rows, :columns] = A.reshape(rows, columns)
    tableau[:rows, columns : columns + rows] = np.eye(rows, dtype=dtype)
    tableau[:rows, -1] = b

    # Negated objective with its own slack variable
    tableau[rows, :columns] = -c
    tableau[rows, -2] = 1.0
    return tableau


def _select_pivot_row(column: np.ndarray, rhs: np.ndarray, eps: float) -> Optional[int]:
    """Minimum ratio test; the first row wins among ratios equal within ``eps``."""
    best_row = None
    best_ratio = math.inf
    for i, (entry, value) in enumerate(zip(column, rhs)):
        if entry <= eps:
            continue
        ratio = float(value) / float(entry)
        if ratio < 0.0:
            continue
        if best_row is None or ratio < best_ratio - eps * max(1.0, abs(best_ratio)):
            best_row = i
            best_ratio = ratio
    return best_row


def _pivot(tableau: np.ndarray, pivot_row: int, pivot_column: int, eps: float) -> None:
    pivot = float(tableau[pivot_row, pivot_column])
    if abs(pivot) < eps:
        pivot = math.copysign(eps, pivot)
    tableau[pivot_row] /= pivot

    factors = tableau[:, pivot_column].copy()
    factors[pivot_row] = 0.0
    tableau -= np.outer(factors, tableau[pivot_row])


def _simplex(
    c: np.ndarray,
    A: np.ndarray,
    b: np.ndarray,
    rows: int,
    columns: int,
    direction: Objective,
    iteration_limit: int,
    eps: float,
) -> LinprogResult:
    tableau = _build_tableau(c, A, b, rows, columns)
    if np.any(tableau[:rows, -1] < -eps):
        logger.warning(
            "linprog: negative right-hand side, the slack basis is infeasible "
            "and the result may violate the constraints"
        )

    # basis[i] is the variable that is basic in constraint row i
    basis = np.arange(columns, columns + rows)
    iterations = 0

    while True:
        objective_row = tableau[rows, :-1]
        pivot_column = int(np.argmin(objective_row))
        if objective_row[pivot_column] >= -eps:
            status = LinprogStatus.OPTIMAL
            break
        if iterations >= iteration_limit:
            status = LinprogStatus.ITERATION_LIMIT
            break

        pivot_row = _select_pivot_row(tableau[:rows, pivot_column], tableau[:rows, -1], eps)
        if pivot_row is None:
            status = LinprogStatus.UNBOUNDED
            break

        logger.debug("linprog: iteration %d pivots on row %d, column %d",
                     iterations, pivot_row, pivot_column)
        _pivot(tableau, pivot_row, pivot_column, eps)
        basis[pivot_row] = pivot_column
        iterations += 1

    if direction is Objective.MAXIMIZE:
        x = np.zeros(columns, dtype=tableau.dtype)
        for i, variable in enumerate(basis):
            if variable < columns:
                x[variable] = tableau[i, -1]
    else:
        x = tableau[rows, columns : columns + rows].copy()

    objective = float(tableau[rows, -1])
    logger.debug("linprog: %s after %d iterations, objective %.6g",
                 status.value, iterations, objective)
    return LinprogResult(x, objective, status, iterations, tableau)
