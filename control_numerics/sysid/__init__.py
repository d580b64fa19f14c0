"""System identification: SR-UKF parameter estimation."""

from .estimator import SRUKFConfig, SRUKFParameterEstimator
from .sr_ukf_parameter_estimation import (
    EstimationStatus,
    TransitionFunction,
    sr_ukf_parameter_estimation,
)

__all__ = [
    "EstimationStatus",
    "SRUKFConfig",
    "SRUKFParameterEstimator",
    "TransitionFunction",
    "sr_ukf_parameter_estimation",
]
