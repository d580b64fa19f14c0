"""Square-root Unscented Kalman Filter for online parameter estimation.

One call performs a single predict/update cycle. The caller owns the
parameter estimate ``what`` and the lower-triangular square root ``Sw`` of its
covariance (``P_w = Sw Swᵀ``) and carries both from one call to the next.

Reference: R. van der Merwe and E. Wan, "The square-root unscented Kalman
filter for state and parameter-estimation", ICASSP 2001.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from enum import Enum

import numpy as np

from control_numerics.config import DOWNDATE_TOLERANCE, SINGULAR_TOLERANCE
from control_numerics.linalg.buffers import check_buffer, check_dimension
from control_numerics.linalg.decompositions import chol, cholupdate, inv, qr
from control_numerics.linalg.matrix_ops import mul, tran
from control_numerics.utils.logger import get_logger

logger = get_logger(__name__)

# G(dw, x, w) writes the model output for state x and parameters w into dw
TransitionFunction = Callable[[np.ndarray, np.ndarray, np.ndarray], None]


class EstimationStatus(Enum):
    """Outcome of one estimator step. Only ``OK`` updates ``what`` and ``Sw``."""

    OK = "ok"
    NOISE_NOT_POSITIVE_DEFINITE = "noise_not_positive_definite"
    INNOVATION_DOWNDATE_FAILED = "innovation_downdate_failed"
    SINGULAR_INNOVATION = "singular_innovation"
    COVARIANCE_DOWNDATE_FAILED = "covariance_downdate_failed"


def sr_ukf_parameter_estimation(
    d: np.ndarray,
    what: np.ndarray,
    Re: np.ndarray,
    x: np.ndarray,
    G: TransitionFunction,
    lambda_rls: float,
    Sw: np.ndarray,
    alpha: float,
    beta: float,
    L: int,
    eps: float = SINGULAR_TOLERANCE,
) -> EstimationStatus:
    """Run one SR-UKF predict/update step, updating ``what`` and ``Sw`` in place.

    Args:
        d: Measured output (shape [L]).
        what: Parameter estimate, updated in place (shape [L]).
        Re: Measurement noise covariance (shape [L * L]).
        x: State vector handed to ``G`` (shape [L]).
        G: Transition function ``G(dw, x, w)`` writing the predicted output
            for parameters ``w`` into ``dw``. Must be free of side effects.
        lambda_rls: Forgetting factor in (0, 1]; values close to 1, such as
            0.995, keep more of the prior covariance.
        Sw: Lower-triangular square root of the parameter covariance, updated
            in place (shape [L * L]).
        alpha: Spread of the sigma points around ``what``, 0 < alpha <= 1.
        beta: Prior knowledge of the distribution (2 is optimal for Gaussians).
        L: Number of parameters.
        eps: Singularity tolerance for the innovation covariance inverse.

    Returns:
        ``EstimationStatus.OK`` after a full update. Any other status leaves
        ``what`` and ``Sw`` exactly as they were. A measurement noise
        ``Re`` roughly 1/FLT_EPSILON times smaller than the parameter
        variance makes every covariance downdate fail in single precision,
        so the estimate never moves; use a larger ``Re`` or float64 buffers.

    Raises:
        ShapeError: If a buffer does not match ``L``.
        ValueError: If ``lambda_rls`` or ``alpha`` is out of range.
        TypeError: If ``G`` is not callable.
    """
    L = check_dimension(L, "L")
    check_buffer(d, L, 1, "d")
    check_buffer(what, L, 1, "what", writable=True)
    check_buffer(Re, L, L, "Re")
    check_buffer(x, L, 1, "x")
    check_buffer(Sw, L, L, "Sw", writable=True)
    if not callable(G):
        raise TypeError(f"G must be callable, got {type(G).__name__}.")
    if not 0.0 < lambda_rls <= 1.0:
        raise ValueError(f"lambda_rls must lie in (0, 1], got {lambda_rls}.")
    if not 0.0 < alpha <= 1.0:
        raise ValueError(f"alpha must lie in (0, 1], got {alpha}.")

    dtype = np.result_type(what, Sw, np.float32)

    # kappa = 3 - L for parameter estimation
    kappa = 3.0 - L

    # Predict
    Wc, Wm = create_weights(alpha, beta, kappa, L, dtype)
    Sw_scaled = scale_Sw_with_lambda_rls_factor(Sw, lambda_rls, L)
    W = create_sigma_point_matrix(what, Sw_scaled, alpha, kappa, L)
    D = compute_transition_function(W, x, G, L)
    dhat = D @ Wm

    # Update
    status, Sd = create_innovation_covariance_factor(Wc, D, dhat, Re, L)
    if status is EstimationStatus.OK:
        Pwd = create_cross_covariance_matrix(Wc, W, D, what, dhat, L)
        status, what_new, Sw_new = update_estimate_and_covariance(
            Sw_scaled, what, dhat, d, Sd, Pwd, L, eps
        )

    if status is EstimationStatus.COVARIANCE_DOWNDATE_FAILED:
        logger.warning(
            "sr_ukf_parameter_estimation: step rejected (%s), state unchanged; "
            "Re may be too small relative to Sw Swᵀ for %s precision",
            status.value, np.dtype(dtype).name,
        )
        return status
    if status is not EstimationStatus.OK:
        logger.warning("sr_ukf_parameter_estimation: step rejected (%s), state unchanged",
                       status.value)
        return status

    what[:] = what_new
    Sw[:] = Sw_new
    return status


def create_weights(
    alpha: float, beta: float, kappa: float, L: int, dtype=np.float32
) -> tuple[np.ndarray, np.ndarray]:
    """Unscented transform weights ``(Wc, Wm)``, each of length ``2L + 1``."""
    N = 2 * L + 1
    lam = alpha * alpha * (L + kappa) - L

    Wm = np.full(N, 0.5 / (L + lam), dtype=dtype)
    Wc = Wm.copy()
    Wm[0] = lam / (L + lam)
    Wc[0] = Wm[0] + 1.0 - alpha * alpha + beta
    return Wc, Wm


def scale_Sw_with_lambda_rls_factor(Sw: np.ndarray, lambda_rls: float, L: int) -> np.ndarray:
    """Return ``Sw / sqrt(lambda_rls)`` as a new ``L x L`` array (RLS forgetting)."""
    return Sw.reshape(L, L) * (1.0 / math.sqrt(lambda_rls))


def create_sigma_point_matrix(
    what: np.ndarray, Sw: np.ndarray, alpha: float, kappa: float, L: int
) -> np.ndarray:
    """Sigma points ``[what, what + gamma Sw, what - gamma Sw]`` as an ``L x (2L + 1)`` array."""
    lam = alpha * alpha * (L + kappa) - L
    gamma = math.sqrt(L + lam)

    spread = gamma * Sw.reshape(L, L)
    center = what.reshape(L, 1)
    return np.concatenate([center, center + spread, center - spread], axis=1)


def compute_transition_function(
    W: np.ndarray, x: np.ndarray, G: TransitionFunction, L: int
) -> np.ndarray:
    """Propagate every sigma point (column of ``W``) through ``G``."""
    N = W.shape[1]
    D = np.empty_like(W)
    dw = np.zeros(L, dtype=W.dtype)
    for j in range(N):
        w = W[:, j].copy()
        dw[:] = 0.0
        G(dw, x, w)
        D[:, j] = dw
    return D


def create_innovation_covariance_factor(
    Wc: np.ndarray, D: np.ndarray, dhat: np.ndarray, Re: np.ndarray, L: int
) -> tuple[EstimationStatus, np.ndarray]:
    """Lower-triangular ``Sd`` with ``Sd Sdᵀ`` the innovation covariance.

    ``[sqrt(Wc[1]) (D[:, 1:] - dhat), chol(Re)]`` is factorised by QR of its
    transpose, and the zeroth sigma point is folded in afterwards with a
    rank-one update, or a downdate when ``Wc[0]`` is negative.

    Returns:
        Status and ``Sd`` as a flat ``L x L`` buffer.
    """
    N = 2 * L + 1
    M = 3 * L
    dtype = D.dtype

    Re_sqrt = np.empty(L * L, dtype=dtype)
    if not chol(np.asarray(Re, dtype=dtype), Re_sqrt, L):
        return EstimationStatus.NOISE_NOT_POSITIVE_DEFINITE, Re_sqrt

    AT = np.empty((L, M), dtype=dtype)
    AT[:, : N - 1] = math.sqrt(abs(float(Wc[1]))) * (D[:, 1:] - dhat[:, None])
    AT[:, N - 1 :] = Re_sqrt.reshape(L, L)

    # Only R of qr(ATᵀ) is needed; its leading L x L block is upper triangular
    Q = np.empty(M * M, dtype=dtype)
    R = np.empty(M * L, dtype=dtype)
    qr(AT.reshape(-1), Q, R, M, L, only_compute_R=True, transpose_input=True)
    Sd = R.reshape(M, L)[:L].copy().reshape(-1)
    tran(Sd, L, L)

    b = math.sqrt(abs(float(Wc[0]))) * (D[:, 0] - dhat)
    rank_one_update = bool(Wc[0] >= 0.0)
    if not cholupdate(Sd, b, L, rank_one_update, eps=DOWNDATE_TOLERANCE):
        return EstimationStatus.INNOVATION_DOWNDATE_FAILED, Sd
    return EstimationStatus.OK, Sd


def create_cross_covariance_matrix(
    Wc: np.ndarray,
    W: np.ndarray,
    D: np.ndarray,
    what: np.ndarray,
    dhat: np.ndarray,
    L: int,
) -> np.ndarray:
    """Cross covariance ``Pwd = (W - what) diag(Wc) (D - dhat)ᵀ`` as a flat buffer."""
    N = 2 * L + 1
    dtype = D.dtype

    W_dev = np.ascontiguousarray(W - what.reshape(L, 1), dtype=dtype).reshape(-1)
    D_dev = np.ascontiguousarray(D - dhat.reshape(L, 1), dtype=dtype).reshape(-1)
    tran(D_dev, L, N)

    diagonal = np.diag(Wc).astype(dtype).reshape(-1)
    weighted = np.empty(N * L, dtype=dtype)
    mul(diagonal, D_dev, weighted, N, N, L)

    Pwd = np.empty(L * L, dtype=dtype)
    mul(W_dev, weighted, Pwd, L, N, L)
    return Pwd


def update_estimate_and_covariance(
    Sw: np.ndarray,
    what: np.ndarray,
    dhat: np.ndarray,
    d: np.ndarray,
    Sd: np.ndarray,
    Pwd: np.ndarray,
    L: int,
    eps: float = SINGULAR_TOLERANCE,
) -> tuple[EstimationStatus, np.ndarray, np.ndarray]:
    """Kalman gain, parameter update and covariance downdates.

    ``K = Pwd (Sd Sdᵀ)⁻¹``, ``what + K (d - dhat)``, and ``Sw`` downdated by
    each column of ``U = K Sd``. Works on copies; returns the status together
    with the new estimate and the new flat ``Sw``.
    """
    dtype = Sd.dtype

    SdT = Sd.copy()
    tran(SdT, L, L)
    Pdd = np.empty(L * L, dtype=dtype)
    mul(Sd, SdT, Pdd, L, L, L)
    if not inv(Pdd, L, eps=eps):
        return EstimationStatus.SINGULAR_INNOVATION, what, Sw

    K = np.empty(L * L, dtype=dtype)
    mul(np.asarray(Pwd, dtype=dtype), Pdd, K, L, L, L)

    innovation = np.asarray(d, dtype=dtype) - dhat.astype(dtype)
    correction = np.empty(L, dtype=dtype)
    mul(K, innovation, correction, L, L, 1)
    what_new = what + correction

    U = np.empty(L * L, dtype=dtype)
    mul(K, Sd, U, L, L, L)
    U = U.reshape(L, L)

    Sw_new = np.ascontiguousarray(Sw, dtype=dtype).reshape(-1).copy()
    for j in range(L):
        if not cholupdate(Sw_new, np.ascontiguousarray(U[:, j]), L, False,
                          eps=DOWNDATE_TOLERANCE):
            return EstimationStatus.COVARIANCE_DOWNDATE_FAILED, what, Sw

    return EstimationStatus.OK, what_new, Sw_new
