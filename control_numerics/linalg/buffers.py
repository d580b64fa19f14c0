"""Flat row-major buffers and their shape checks."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from control_numerics.config import DTYPE


class ShapeError(ValueError):
    """Raised when a buffer does not match the dimensions it is used with."""


def as_buffer(values: Sequence[float] | np.ndarray, dtype=DTYPE) -> np.ndarray:
    """Return a fresh flat, contiguous buffer holding ``values`` in row-major order.

    Nested sequences and 2-D arrays are flattened row by row.

    Example:
        >>> as_buffer([[1.0, 2.0], [3.0, 4.0]])
        array([1., 2., 3., 4.], dtype=float32)
    """
    return np.array(values, dtype=dtype).reshape(-1)


def check_buffer(
    buffer: np.ndarray,
    rows: int,
    columns: int,
    name: str,
    writable: bool = False,
) -> np.ndarray:
    """Validate that ``buffer`` can hold a ``rows x columns`` matrix.

    Args:
        buffer: Candidate flat buffer.
        rows: Number of matrix rows.
        columns: Number of matrix columns.
        name: Name used in error messages.
        writable: Require a writable, C-contiguous buffer for in-place results.

    Returns:
        ``buffer`` unchanged.

    Raises:
        TypeError: If ``buffer`` is not a numpy array.
        ShapeError: If the buffer is not 1-D, not floating point, or its size
            differs from ``rows * columns``.
        ValueError: If ``writable`` is requested and the buffer is read-only
            or not contiguous.
    """
    if not isinstance(buffer, np.ndarray):
        raise TypeError(f"{name} must be a numpy.ndarray, got {type(buffer).__name__}.")
    if rows < 0 or columns < 0:
        raise ShapeError(f"Dimensions of {name} must be non-negative, got {rows}x{columns}.")
    if buffer.ndim != 1:
        raise ShapeError(
            f"{name} must be a flat buffer (1-D), got an array with shape {buffer.shape}."
        )
    if not np.issubdtype(buffer.dtype, np.floating):
        raise ShapeError(f"{name} must hold floating point values, got {buffer.dtype}.")
    if buffer.size != rows * columns:
        raise ShapeError(
            f"Shape mismatch: {name} has {buffer.size} elements but a {rows}x{columns} "
            f"matrix needs {rows * columns}."
        )
    if writable and not (buffer.flags.writeable and buffer.flags.c_contiguous):
        raise ValueError(f"{name} is written in place and must be writable and contiguous.")
    return buffer


def check_dimension(value: int, name: str, minimum: int = 1) -> int:
    """Return ``value`` as an int after checking it is an integer >= ``minimum``."""
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}.")
    if value < minimum:
        raise ShapeError(f"{name} must be at least {minimum}, got {value}.")
    return int(value)
