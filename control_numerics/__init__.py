"""Linear algebra, linear programming and SR-UKF parameter estimation for control loops."""

from .linalg import Matrix, ShapeError, as_buffer
from .optimization import LinprogResult, LinprogStatus, Objective, linprog
from .sysid import (
    EstimationStatus,
    SRUKFConfig,
    SRUKFParameterEstimator,
    sr_ukf_parameter_estimation,
)

__all__ = [
    "EstimationStatus",
    "LinprogResult",
    "LinprogStatus",
    "Matrix",
    "Objective",
    "SRUKFConfig",
    "SRUKFParameterEstimator",
    "ShapeError",
    "as_buffer",
    "linprog",
    "sr_ukf_parameter_estimation",
]
