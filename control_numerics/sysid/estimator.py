"""Stateful wrapper carrying the SR-UKF buffers across steps."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from control_numerics.config import (
    DEFAULT_ALPHA,
    DEFAULT_BETA,
    DEFAULT_LAMBDA_RLS,
    DTYPE,
    SINGULAR_TOLERANCE,
)
from control_numerics.linalg.buffers import as_buffer, check_buffer
from control_numerics.sysid.sr_ukf_parameter_estimation import (
    EstimationStatus,
    TransitionFunction,
    sr_ukf_parameter_estimation,
)


@dataclass(frozen=True)
class SRUKFConfig:
    """Tuning of the SR-UKF parameter estimator.

    Attributes:
        alpha: Sigma point spread, 0 < alpha <= 1.
        beta: Distribution prior (2.0 for Gaussian).
        lambda_rls: Forgetting factor, 0 < lambda_rls <= 1.
        eps: Singularity tolerance for the innovation covariance inverse.
    """

    alpha: float = DEFAULT_ALPHA
    beta: float = DEFAULT_BETA
    lambda_rls: float = DEFAULT_LAMBDA_RLS
    eps: float = SINGULAR_TOLERANCE

    def __post_init__(self) -> None:
        if not 0.0 < self.alpha <= 1.0:
            raise ValueError(f"alpha must lie in (0, 1], got {self.alpha}.")
        if self.beta < 0.0:
            raise ValueError(f"beta must be non-negative, got {self.beta}.")
        if not 0.0 < self.lambda_rls <= 1.0:
            raise ValueError(f"lambda_rls must lie in (0, 1], got {self.lambda_rls}.")
        if self.eps <= 0.0:
            raise ValueError(f"eps must be positive, got {self.eps}.")


class SRUKFParameterEstimator:
    """Owns ``what`` and ``Sw`` and feeds them to successive filter steps.

    The buffers are allocated once; every ``step`` updates them in place, so
    views handed out by ``what``/``Sw`` stay valid.

    Args:
        what: Initial parameter estimate (length L).
        Sw: Initial lower-triangular covariance square root (L x L, nested
            rows or flat row-major).
        Re: Measurement noise covariance (L x L).
        G: Transition function ``G(dw, x, w)``.
        config: Filter tuning.
    """

    def __init__(
        self,
        what,
        Sw,
        Re,
        G: TransitionFunction,
        config: SRUKFConfig | None = None,
        dtype=DTYPE,
    ):
        self.what = as_buffer(what, dtype=dtype)
        self.L = self.what.size
        self.Sw = as_buffer(Sw, dtype=dtype)
        self.Re = as_buffer(Re, dtype=dtype)
        check_buffer(self.Sw, self.L, self.L, "Sw")
        check_buffer(self.Re, self.L, self.L, "Re")
        if not callable(G):
            raise TypeError(f"G must be callable, got {type(G).__name__}.")
        self.G = G
        self.config = config or SRUKFConfig()
        self.steps = 0

    def step(self, d, x) -> EstimationStatus:
        """Fuse measurement ``d`` taken at state ``x``."""
        status = sr_ukf_parameter_estimation(
            as_buffer(d, dtype=self.what.dtype),
            self.what,
            self.Re,
            as_buffer(x, dtype=self.what.dtype),
            self.G,
            self.config.lambda_rls,
            self.Sw,
            self.config.alpha,
            self.config.beta,
            self.L,
            eps=self.config.eps,
        )
        if status is EstimationStatus.OK:
            self.steps += 1
        return status

    def covariance(self) -> np.ndarray:
        """Parameter covariance ``Sw Swᵀ`` as an L x L array."""
        S = self.Sw.reshape(self.L, self.L)
        return S @ S.T
