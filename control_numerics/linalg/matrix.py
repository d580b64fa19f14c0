"""Owned matrix type pairing a flat buffer with its dimensions."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from control_numerics.config import DTYPE
from control_numerics.linalg.buffers import ShapeError, check_buffer, check_dimension
from control_numerics.linalg.matrix_ops import mul, tran


@dataclass
class Matrix:
    """A flat row-major buffer together with its dimensions.

    The buffer is never reallocated: ``transpose`` rewrites it in place and
    swaps ``rows`` and ``columns``. Element access through ``m[i, j]`` is
    bounds-checked; use ``view()`` for unchecked vectorised access.

    Args:
        data: Flat buffer of ``rows * columns`` floats.
        rows: Number of rows.
        columns: Number of columns.
    """

    data: np.ndarray
    rows: int
    columns: int

    def __post_init__(self) -> None:
        self.rows = check_dimension(self.rows, "rows", minimum=0)
        self.columns = check_dimension(self.columns, "columns", minimum=0)
        check_buffer(self.data, self.rows, self.columns, "data", writable=True)

    @classmethod
    def from_rows(cls, values: Sequence[Sequence[float]] | np.ndarray, dtype=DTYPE) -> Matrix:
        """Build a matrix from nested rows or a 2-D array."""
        array = np.array(values, dtype=dtype)
        if array.ndim != 2:
            raise ShapeError(f"Expected a 2-D array of rows, got shape {array.shape}.")
        return cls(array.reshape(-1), array.shape[0], array.shape[1])

    @classmethod
    def zeros(cls, rows: int, columns: int, dtype=DTYPE) -> Matrix:
        return cls(np.zeros(rows * columns, dtype=dtype), rows, columns)

    @classmethod
    def identity(cls, size: int, dtype=DTYPE) -> Matrix:
        return cls(np.eye(size, dtype=dtype).reshape(-1), size, size)

    @property
    def shape(self) -> tuple[int, int]:
        return self.rows, self.columns

    def _offset(self, key: tuple[int, int]) -> int:
        row, column = key
        if not (0 <= row < self.rows and 0 <= column < self.columns):
            raise IndexError(
                f"Index ({row}, {column}) is out of bounds for a "
                f"{self.rows}x{self.columns} matrix."
            )
        return row * self.columns + column

    def __getitem__(self, key: tuple[int, int]) -> float:
        return float(self.data[self._offset(key)])

    def __setitem__(self, key: tuple[int, int], value: float) -> None:
        self.data[self._offset(key)] = value

    def view(self) -> np.ndarray:
        """2-D view sharing memory with ``data``."""
        return self.data.reshape(self.rows, self.columns)

    def transpose(self) -> Matrix:
        """Transpose in place and return ``self``."""
        tran(self.data, self.rows, self.columns)
        self.rows, self.columns = self.columns, self.rows
        return self

    def __matmul__(self, other: Matrix) -> Matrix:
        if self.columns != other.rows:
            raise ShapeError(
                f"Cannot multiply a {self.rows}x{self.columns} matrix by a "
                f"{other.rows}x{other.columns} matrix."
            )
        result = Matrix.zeros(self.rows, other.columns, dtype=np.result_type(self.data, other.data))
        mul(self.data, other.data, result.data, self.rows, self.columns, other.columns)
        return result

    def copy(self) -> Matrix:
        return Matrix(self.data.copy(), self.rows, self.columns)
