"""Matrix factorisations and the triangular solves built on them.

All routines work on flat row-major buffers with explicit dimensions. Output
buffers are written in place. Numerical failure (a singular matrix, a
Cholesky downdate that loses positive definiteness) is reported through a
boolean return value; shape problems raise ``ShapeError``.
"""

import math

import numpy as np

from control_numerics.config import DOWNDATE_TOLERANCE, SINGULAR_TOLERANCE
from control_numerics.linalg.buffers import ShapeError, check_buffer
from control_numerics.utils.logger import get_logger

logger = get_logger(__name__)


def _check_permutation(P: np.ndarray, row: int) -> None:
    if not isinstance(P, np.ndarray):
        raise TypeError(f"P must be a numpy.ndarray, got {type(P).__name__}.")
    if P.ndim != 1 or P.size != row:
        raise ShapeError(f"P must be a vector of {row} indices, got shape {P.shape}.")
    if not np.issubdtype(P.dtype, np.integer):
        raise ShapeError(f"P must hold integer indices, got {P.dtype}.")


def _permutation_sign(P: np.ndarray) -> float:
    """Return +1.0 for an even permutation and -1.0 for an odd one."""
    seen = np.zeros(P.size, dtype=bool)
    transpositions = 0
    for start in range(P.size):
        if seen[start]:
            continue
        length = 0
        index = start
        while not seen[index]:
            seen[index] = True
            index = int(P[index])
            length += 1
        transpositions += length - 1
    return -1.0 if transpositions % 2 else 1.0


def lup(
    A: np.ndarray,
    LU: np.ndarray,
    P: np.ndarray,
    row: int,
    eps: float = SINGULAR_TOLERANCE,
) -> bool:
    """LU factorisation with partial pivoting, ``A[P] = L @ U``.

    ``LU`` receives U on and above the diagonal and the multipliers of the
    unit lower-triangular L below it. ``P[i]`` is the row of ``A`` that ended
    up in row ``i``.

    Args:
        A: Square matrix (shape [row * row]); left unchanged.
        LU: Output buffer for the combined factors (shape [row * row]).
        P: Output permutation vector of integers (shape [row]).
        row: Order of the matrix.
        eps: Pivot magnitude below which the matrix is considered singular.

    Returns:
        True on success, False if the matrix is singular. On failure ``LU``
        and ``P`` hold a partial factorisation and must not be used.
    """
    check_buffer(A, row, row, "A")
    check_buffer(LU, row, row, "LU", writable=True)
    _check_permutation(P, row)

    LU[:] = A
    lu = LU.reshape(row, row)
    P[:] = np.arange(row)

    for k in range(row):
        pivot_row = k + int(np.argmax(np.abs(lu[k:, k])))
        if abs(lu[pivot_row, k]) < eps:
            logger.debug("lup: pivot %.3g in column %d below %.3g, matrix is singular",
                         float(lu[pivot_row, k]), k, eps)
            return False
        if pivot_row != k:
            lu[[k, pivot_row]] = lu[[pivot_row, k]]
            P[[k, pivot_row]] = P[[pivot_row, k]]
        lu[k + 1 :, k] /= lu[k, k]
        lu[k + 1 :, k + 1 :] -= np.outer(lu[k + 1 :, k], lu[k, k + 1 :])

    return True


def det(A: np.ndarray, row: int, eps: float = SINGULAR_TOLERANCE) -> float:
    """Determinant of a square matrix, 0.0 if it is singular."""
    LU = np.empty_like(A, dtype=np.result_type(A, np.float32))
    P = np.empty(row, dtype=np.intp)
    if not lup(A, LU, P, row, eps=eps):
        return 0.0

    diagonal = LU.reshape(row, row).diagonal()
    return _permutation_sign(P) * float(np.prod(diagonal, dtype=np.float64))


def linsolve_lower_triangular(A: np.ndarray, x: np.ndarray, b: np.ndarray, row: int) -> None:
    """Solve ``A x = b`` by forward substitution.

    Only the lower triangle of ``A`` is read. Suitable for Cholesky factors.

    Args:
        A: Lower-triangular matrix with a non-zero diagonal (shape [row * row]).
        x: Output vector, zeroed before solving (shape [row]).
        b: Right-hand side (shape [row]).
        row: Order of the system.
    """
    check_buffer(A, row, row, "A")
    check_buffer(x, row, 1, "x", writable=True)
    check_buffer(b, row, 1, "b")

    a = A.reshape(row, row)
    x[:] = 0.0
    for i in range(row):
        x[i] = (b[i] - a[i, :i] @ x[:i]) / a[i, i]


def linsolve_upper_triangular(A: np.ndarray, x: np.ndarray, b: np.ndarray, row: int) -> None:
    """Solve ``A x = b`` by back substitution, reading only the upper triangle of ``A``."""
    check_buffer(A, row, row, "A")
    check_buffer(x, row, 1, "x", writable=True)
    check_buffer(b, row, 1, "b")

    a = A.reshape(row, row)
    x[:] = 0.0
    for i in range(row - 1, -1, -1):
        x[i] = (b[i] - a[i, i + 1 :] @ x[i + 1 :]) / a[i, i]


def _forward_unit_lower(lu: np.ndarray, b: np.ndarray) -> np.ndarray:
    # L has an implicit unit diagonal in combined LU storage
    y = np.zeros_like(b)
    for i in range(b.size):
        y[i] = b[i] - lu[i, :i] @ y[:i]
    return y


def inv(A: np.ndarray, row: int, eps: float = SINGULAR_TOLERANCE) -> bool:
    """Invert the square matrix in ``A`` in place.

    Each column of the inverse is found by solving ``L U x = e_j[P]`` with
    forward and back substitution.

    Returns:
        True on success. False if ``A`` is singular, in which case ``A`` is
        left untouched.
    """
    check_buffer(A, row, row, "A", writable=True)

    LU = np.empty_like(A)
    P = np.empty(row, dtype=np.intp)
    if not lup(A, LU, P, row, eps=eps):
        return False

    lu = LU.reshape(row, row)
    inverse = np.empty((row, row), dtype=A.dtype)
    column = np.empty(row, dtype=A.dtype)
    for j in range(row):
        unit = np.zeros(row, dtype=A.dtype)
        unit[j] = 1.0
        y = _forward_unit_lower(lu, unit[P])
        linsolve_upper_triangular(LU, column, y, row)
        inverse[:, j] = column

    A[:] = inverse.reshape(-1)
    return True


def qr(
    A: np.ndarray,
    Q: np.ndarray,
    R: np.ndarray,
    row_a: int,
    column_a: int,
    only_compute_R: bool = False,
    transpose_input: bool = False,
) -> None:
    """Householder QR factorisation ``A = Q R``.

    The signs are normalised so that R has a non-negative diagonal.

    Args:
        A: Input matrix (shape [row_a * column_a]); left unchanged. With
            ``transpose_input`` it is read as a ``column_a x row_a`` matrix and
            its transpose is factorised.
        Q: Output orthogonal matrix (shape [row_a * row_a]). Zeroed when
            ``only_compute_R`` is set.
        R: Output upper-triangular matrix (shape [row_a * column_a]).
        row_a: Rows of the factorised matrix, ``row_a >= column_a``.
        column_a: Columns of the factorised matrix.
        only_compute_R: Skip accumulating Q.
        transpose_input: Factorise the transpose of the buffer in ``A``.
    """
    if row_a < column_a:
        raise ShapeError(
            f"qr needs at least as many rows as columns, got {row_a}x{column_a}."
        )
    if transpose_input:
        check_buffer(A, column_a, row_a, "A")
        source = A.reshape(column_a, row_a).T
    else:
        check_buffer(A, row_a, column_a, "A")
        source = A.reshape(row_a, column_a)
    check_buffer(Q, row_a, row_a, "Q", writable=True)
    check_buffer(R, row_a, column_a, "R", writable=True)

    r = R.reshape(row_a, column_a)
    q = Q.reshape(row_a, row_a)
    r[:] = source
    if only_compute_R:
        q[:] = 0.0
    else:
        q[:] = np.eye(row_a, dtype=Q.dtype)

    for k in range(min(row_a - 1, column_a)):
        x = r[k:, k]
        norm = float(np.linalg.norm(x))
        if norm == 0.0:
            continue
        v = x.astype(R.dtype, copy=True)
        v[0] += math.copysign(norm, float(x[0]))
        beta = 2.0 / float(v @ v)
        r[k:, k:] -= beta * np.outer(v, v @ r[k:, k:])
        r[k + 1 :, k] = 0.0
        if not only_compute_R:
            q[:, k:] -= beta * np.outer(q[:, k:] @ v, v)

    for k in range(column_a):
        if r[k, k] < 0.0:
            r[k, k:] = -r[k, k:]
            if not only_compute_R:
                q[:, k] = -q[:, k]


def chol(A: np.ndarray, L: np.ndarray, row: int, eps: float = SINGULAR_TOLERANCE) -> bool:
    """Lower Cholesky factor ``L`` with ``A = L Lᵀ``.

    Only the lower triangle of ``A`` is read.

    Returns:
        True on success, False if ``A`` is not (numerically) positive
        definite: a squared diagonal entry of the factor fell to ``eps``
        times the matching diagonal entry of ``A`` or below. ``L`` is
        zeroed on failure.
    """
    check_buffer(A, row, row, "A")
    check_buffer(L, row, row, "L", writable=True)

    a = A.reshape(row, row)
    try:
        factor = np.linalg.cholesky(a)
    except np.linalg.LinAlgError:
        logger.debug("chol: matrix is not positive definite")
        L[:] = 0.0
        return False

    pivots = np.square(factor.diagonal())
    singular = np.flatnonzero(pivots <= eps * np.abs(a.diagonal()))
    if singular.size:
        logger.debug("chol: pivot %.3g in row %d, not positive definite",
                     float(pivots[singular[0]]), int(singular[0]))
        L[:] = 0.0
        return False

    L[:] = factor.reshape(-1)
    return True


def cholupdate(
    S: np.ndarray,
    b: np.ndarray,
    row: int,
    rank_one_update: bool,
    eps: float = DOWNDATE_TOLERANCE,
) -> bool:
    """Rank-one update or downdate of a lower-triangular Cholesky factor.

    Replaces ``S`` with the factor of ``S Sᵀ + b bᵀ`` when ``rank_one_update``
    is true and of ``S Sᵀ - b bᵀ`` otherwise.

    Args:
        S: Lower-triangular factor with a positive diagonal (shape [row * row]).
        b: Update vector (shape [row]); left unchanged.
        row: Order of the factor.
        rank_one_update: True to add ``b bᵀ``, False to subtract it.
        eps: A downdate fails when the new squared diagonal entry drops to
            ``eps`` times the old one or below.

    Returns:
        True on success. False if ``S`` has a non-positive diagonal or the
        downdate would lose positive definiteness; ``S`` is then unchanged.
    """
    check_buffer(S, row, row, "S", writable=True)
    check_buffer(b, row, 1, "b")

    work = S.reshape(row, row).copy()
    x = b.astype(work.dtype, copy=True)
    sign = 1.0 if rank_one_update else -1.0

    for k in range(row):
        diagonal = float(work[k, k])
        if diagonal <= 0.0:
            logger.debug("cholupdate: diagonal entry %d is %.3g, not a Cholesky factor",
                         k, diagonal)
            return False
        r_squared = diagonal * diagonal + sign * float(x[k]) * float(x[k])
        if r_squared <= eps * diagonal * diagonal:
            logger.debug("cholupdate: downdate drives diagonal entry %d to %.3g", k, r_squared)
            return False
        r = math.sqrt(r_squared)
        c = r / diagonal
        s = float(x[k]) / diagonal
        work[k, k] = r
        work[k + 1 :, k] = (work[k + 1 :, k] + sign * s * x[k + 1 :]) / c
        x[k + 1 :] = c * x[k + 1 :] - s * work[k + 1 :, k]

    S[:] = work.reshape(-1)
    return True
