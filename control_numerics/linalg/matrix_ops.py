"""Elementary operations on flat row-major matrices."""

import numpy as np

from control_numerics.linalg.buffers import check_buffer


def tran(A: np.ndarray, row: int, column: int) -> None:
    """Transpose the ``row x column`` matrix in ``A`` in place.

    Afterwards the same buffer holds the ``column x row`` transpose.

    Args:
        A: Flat buffer (shape [row * column]).
        row: Rows of the matrix before transposition.
        column: Columns of the matrix before transposition.

    Raises:
        ShapeError: If ``A`` does not hold ``row * column`` values.
    """
    check_buffer(A, row, column, "A", writable=True)
    # The right-hand side materialises a copy before the buffer is overwritten
    A[:] = A.reshape(row, column).T.reshape(-1)


def mul(
    A: np.ndarray,
    B: np.ndarray,
    C: np.ndarray,
    row_a: int,
    column_a: int,
    column_b: int,
) -> None:
    """Write the product ``C = A @ B`` into ``C``.

    Args:
        A: Left factor (shape [row_a * column_a]).
        B: Right factor (shape [column_a * column_b]).
        C: Output buffer (shape [row_a * column_b]).
        row_a: Rows of A.
        column_a: Columns of A, equal to the rows of B.
        column_b: Columns of B.

    Raises:
        ShapeError: If a buffer does not match its dimensions.
        ValueError: If ``C`` shares memory with ``A`` or ``B``.
    """
    check_buffer(A, row_a, column_a, "A")
    check_buffer(B, column_a, column_b, "B")
    check_buffer(C, row_a, column_b, "C", writable=True)
    if np.shares_memory(C, A) or np.shares_memory(C, B):
        raise ValueError("The product buffer C must not alias A or B.")

    np.matmul(
        A.reshape(row_a, column_a),
        B.reshape(column_a, column_b),
        out=C.reshape(row_a, column_b),
    )
