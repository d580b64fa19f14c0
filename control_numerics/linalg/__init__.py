"""Dense linear-algebra primitives over flat row-major buffers."""

from .buffers import ShapeError, as_buffer, check_buffer
from .decompositions import (
    chol,
    cholupdate,
    det,
    inv,
    linsolve_lower_triangular,
    linsolve_upper_triangular,
    lup,
    qr,
)
from .matrix import Matrix
from .matrix_ops import mul, tran

__all__ = [
    "Matrix",
    "ShapeError",
    "as_buffer",
    "check_buffer",
    "chol",
    "cholupdate",
    "det",
    "inv",
    "linsolve_lower_triangular",
    "linsolve_upper_triangular",
    "lup",
    "mul",
    "qr",
    "tran",
]
