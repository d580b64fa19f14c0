import numpy as np
import pytest
import scipy.linalg
from hypothesis import given, settings
from hypothesis import strategies as st

from control_numerics.linalg import (
    ShapeError,
    as_buffer,
    chol,
    cholupdate,
    det,
    inv,
    linsolve_lower_triangular,
    linsolve_upper_triangular,
    lup,
    qr,
)


@st.composite
def well_conditioned_matrices(draw, max_dim=5):
    """Diagonally dominant square matrices (float64 buffers)."""
    n = draw(st.integers(1, max_dim))
    values = draw(
        st.lists(
            st.floats(-1, 1, allow_nan=False, allow_infinity=False),
            min_size=n * n,
            max_size=n * n,
        )
    )
    signs = draw(st.lists(st.sampled_from([-1.0, 1.0]), min_size=n, max_size=n))
    A = np.array(values).reshape(n, n) + np.diag(signs) * (n + 1.0)
    return A.reshape(-1).copy(), n


@st.composite
def cholesky_factors(draw, max_dim=5):
    """Lower-triangular factor with a positive diagonal plus an update vector."""
    n = draw(st.integers(1, max_dim))
    entries = draw(
        st.lists(
            st.floats(-1, 1, allow_nan=False, allow_infinity=False),
            min_size=n * n,
            max_size=n * n,
        )
    )
    diagonal = draw(st.lists(st.floats(0.5, 2.0), min_size=n, max_size=n))
    b = draw(
        st.lists(
            st.floats(-1, 1, allow_nan=False, allow_infinity=False),
            min_size=n,
            max_size=n,
        )
    )
    S = np.tril(np.array(entries).reshape(n, n), k=-1) + np.diag(diagonal)
    return S.reshape(-1).copy(), np.array(b), n


def _random_spd(n, seed=0):
    rng = np.random.default_rng(seed)
    M = rng.standard_normal((n, n))
    return M @ M.T + n * np.eye(n)


# ==============================================================================
# LU / DETERMINANT / INVERSE
# ==============================================================================


def test_lup_reconstructs_permuted_matrix():
    A = np.array([[0.0, 2.0, 1.0], [1.0, 1.0, 0.0], [3.0, 0.0, 1.0]])
    LU = np.empty(9)
    P = np.empty(3, dtype=np.intp)

    assert lup(A.reshape(-1), LU, P, 3)

    lu = LU.reshape(3, 3)
    L = np.tril(lu, k=-1) + np.eye(3)
    U = np.triu(lu)
    assert L @ U == pytest.approx(A[P], rel=1e-12, abs=1e-12)
    assert sorted(P.tolist()) == [0, 1, 2]


def test_lup_leaves_input_untouched():
    A = as_buffer([[4.0, 3.0], [6.0, 3.0]])
    original = A.copy()

    lup(A, np.empty(4, dtype=np.float32), np.empty(2, dtype=np.intp), 2)

    np.testing.assert_array_equal(A, original)


def test_lup_reports_singular_matrix():
    A = as_buffer([[1.0, 2.0], [2.0, 4.0]])

    assert not lup(A, np.empty(4, dtype=np.float32), np.empty(2, dtype=np.intp), 2)


def test_lup_rejects_float_permutation():
    A = as_buffer([[1.0, 0.0], [0.0, 1.0]])
    with pytest.raises(ShapeError):
        lup(A, np.empty(4, dtype=np.float32), np.empty(2, dtype=np.float32), 2)


@pytest.mark.parametrize(
    "rows",
    [
        [[2.0]],
        [[4.0, 3.0], [6.0, 3.0]],
        [[0.0, 1.0], [1.0, 0.0]],
        [[0.0, 2.0, 1.0], [1.0, 1.0, 0.0], [3.0, 0.0, 1.0]],
        [[2.0, -1.0, 0.0, 1.0], [1.0, 3.0, 2.0, 0.0], [0.0, 1.0, 4.0, 1.0], [1.0, 0.0, 1.0, 5.0]],
    ],
)
def test_det_matches_scipy(rows):
    A = np.array(rows)
    n = A.shape[0]

    assert det(A.reshape(-1), n) == pytest.approx(scipy.linalg.det(A), rel=1e-10)


def test_det_of_singular_matrix_is_zero():
    assert det(as_buffer([[1.0, 2.0], [2.0, 4.0]]), 2) == 0.0


def test_inv_matches_numpy():
    A = np.array([[4.0, 7.0], [2.0, 6.0]])
    buffer = A.reshape(-1).copy()

    assert inv(buffer, 2)

    assert buffer.reshape(2, 2) == pytest.approx(np.linalg.inv(A), rel=1e-12)


def test_inv_single_precision():
    A = as_buffer([[4.0, 7.0, 1.0], [2.0, 6.0, 0.5], [1.0, 0.0, 3.0]])
    original = A.reshape(3, 3).astype(np.float64)

    assert inv(A, 3)

    assert A.dtype == np.float32
    assert original @ A.reshape(3, 3) == pytest.approx(np.eye(3), abs=1e-4)


def test_inv_leaves_singular_matrix_untouched():
    A = as_buffer([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0], [7.0, 8.0, 9.0]])
    original = A.copy()

    assert not inv(A, 3)
    np.testing.assert_array_equal(A, original)


def test_inv_respects_configurable_tolerance():
    A = np.array([1e-3, 0.0, 0.0, 1e-3])

    assert inv(A.copy(), 2, eps=1e-12)
    assert not inv(A.copy(), 2, eps=1e-2)


@given(well_conditioned_matrices())
@settings(max_examples=100)
def test_inv_property_round_trip(inputs):
    """Property: A @ inv(A) is the identity for well-conditioned A."""
    A, n = inputs
    A_inv = A.copy()

    assert inv(A_inv, n)

    assert A.reshape(n, n) @ A_inv.reshape(n, n) == pytest.approx(np.eye(n), abs=1e-9)


@given(well_conditioned_matrices())
@settings(max_examples=100)
def test_det_property_inverse_identity(inputs):
    """Property: det(A) * det(inv(A)) == 1."""
    A, n = inputs
    A_inv = A.copy()
    assert inv(A_inv, n)

    assert det(A, n) * det(A_inv, n) == pytest.approx(1.0, rel=1e-9)


# ==============================================================================
# TRIANGULAR SOLVES
# ==============================================================================


def test_linsolve_lower_triangular():
    A = np.array([[2.0, 0.0, 0.0], [1.0, 3.0, 0.0], [-1.0, 2.0, 4.0]])
    b = np.array([2.0, 7.0, 9.0])
    x = np.full(3, np.nan)

    linsolve_lower_triangular(A.reshape(-1), x, b, 3)

    assert x == pytest.approx(scipy.linalg.solve_triangular(A, b, lower=True))


def test_linsolve_upper_triangular_ignores_lower_part():
    U = np.array([[2.0, 1.0, -1.0], [0.0, 3.0, 2.0], [0.0, 0.0, 4.0]])
    garbage = U + np.tril(np.full((3, 3), 5.0), k=-1)
    b = np.array([1.0, 2.0, 8.0])
    x = np.empty(3)

    linsolve_upper_triangular(garbage.reshape(-1), x, b, 3)

    assert x == pytest.approx(scipy.linalg.solve_triangular(U, b, lower=False))


def test_linsolve_lower_triangular_with_cholesky_factor():
    A = _random_spd(4, seed=3)
    L = np.empty(16)
    assert chol(A.reshape(-1), L, 4)
    b = np.arange(1.0, 5.0)
    y = np.empty(4)
    x = np.empty(4)

    # A x = b  <=>  L y = b, Lᵀ x = y
    linsolve_lower_triangular(L, y, b, 4)
    linsolve_upper_triangular(L.reshape(4, 4).T.copy().reshape(-1), x, y, 4)

    assert A @ x == pytest.approx(b, rel=1e-10)


# ==============================================================================
# QR
# ==============================================================================


def test_qr_tall_matrix():
    rng = np.random.default_rng(1)
    A = rng.standard_normal((5, 3))
    Q = np.empty(25)
    R = np.empty(15)

    qr(A.reshape(-1), Q, R, 5, 3)

    q = Q.reshape(5, 5)
    r = R.reshape(5, 3)
    assert q.T @ q == pytest.approx(np.eye(5), abs=1e-12)
    assert np.allclose(np.tril(r, k=-1), 0.0)
    assert np.all(np.diag(r) >= 0.0)
    assert q @ r == pytest.approx(A, abs=1e-12)


def test_qr_r_matches_scipy_up_to_row_signs():
    A = np.array([[12.0, -51.0, 4.0], [6.0, 167.0, -68.0], [-4.0, 24.0, -41.0]])
    Q = np.empty(9)
    R = np.empty(9)

    qr(A.reshape(-1), Q, R, 3, 3)

    expected = scipy.linalg.qr(A, mode="r")[0]
    assert np.abs(R.reshape(3, 3)) == pytest.approx(np.abs(expected), rel=1e-10, abs=1e-10)


def test_qr_only_compute_R_with_transposed_input():
    rng = np.random.default_rng(2)
    A = rng.standard_normal((3, 6))  # the factorised matrix is Aᵀ (6 x 3)
    Q = np.full(36, np.nan)
    R = np.empty(18)

    qr(A.reshape(-1), Q, R, 6, 3, only_compute_R=True, transpose_input=True)

    r = R.reshape(6, 3)
    assert np.all(Q == 0.0)
    assert np.allclose(r[3:], 0.0)
    # Rᵀ R == A Aᵀ
    assert r.T @ r == pytest.approx(A @ A.T, rel=1e-10, abs=1e-10)


def test_qr_rejects_wide_matrix():
    with pytest.raises(ShapeError):
        qr(np.zeros(6), np.zeros(4), np.zeros(6), 2, 3)


# ==============================================================================
# CHOLESKY
# ==============================================================================


def test_chol_matches_numpy():
    A = _random_spd(4)
    L = np.empty(16)

    assert chol(A.reshape(-1), L, 4)

    assert L.reshape(4, 4) == pytest.approx(np.linalg.cholesky(A), rel=1e-12)


def test_chol_reports_indefinite_matrix():
    A = np.array([[1.0, 2.0], [2.0, 1.0]])

    assert not chol(A.reshape(-1), np.empty(4), 2)


def test_chol_zero_matrix_is_rejected_and_factor_zeroed():
    L = np.full(4, np.nan, dtype=np.float32)

    assert not chol(np.zeros(4, dtype=np.float32), L, 2)
    assert np.all(L == 0.0)


def test_chol_relative_tolerance_rejects_nearly_singular_matrix():
    # Factorisable in double precision, but the second pivot is 1e-9
    A = np.array([[1.0, 1.0], [1.0, 1.0 + 1e-9]])
    L = np.empty(4)

    assert not chol(A.reshape(-1), L, 2)
    assert chol(A.reshape(-1), L, 2, eps=1e-12)


def test_chol_reads_only_lower_triangle():
    A = _random_spd(3, seed=7)
    garbage = np.tril(A) + np.triu(np.full((3, 3), 100.0), k=1)
    L = np.empty(9)

    assert chol(garbage.reshape(-1), L, 3)

    assert L.reshape(3, 3) == pytest.approx(np.linalg.cholesky(A), rel=1e-12)


def test_cholupdate_matches_refactorisation():
    A = _random_spd(3, seed=5)
    S = np.linalg.cholesky(A).reshape(-1).copy()
    b = np.array([0.5, -1.0, 2.0])

    assert cholupdate(S, b, 3, True)

    s = S.reshape(3, 3)
    assert s == pytest.approx(np.linalg.cholesky(A + np.outer(b, b)), rel=1e-10)
    assert np.allclose(np.triu(s, k=1), 0.0)


def test_cholupdate_downdate_matches_refactorisation():
    A = _random_spd(3, seed=6)
    b = np.array([0.3, 0.2, -0.4])
    S = np.linalg.cholesky(A + np.outer(b, b)).reshape(-1).copy()

    assert cholupdate(S, b, 3, False)

    assert S.reshape(3, 3) == pytest.approx(np.linalg.cholesky(A), rel=1e-10)


def test_cholupdate_leaves_vector_untouched():
    S = as_buffer([[2.0, 0.0], [1.0, 1.0]])
    b = as_buffer([1.0, 1.0])

    cholupdate(S, b, 2, True)

    assert b == pytest.approx([1.0, 1.0])


def test_cholupdate_failed_downdate_keeps_factor():
    S = as_buffer([[1.0, 0.0], [0.5, 1.0]])
    original = S.copy()
    b = as_buffer([2.0, 0.0])

    assert not cholupdate(S, b, 2, False)
    np.testing.assert_array_equal(S, original)


def test_cholupdate_single_precision_inverse_law():
    S = as_buffer([[1.5, 0.0, 0.0], [0.2, 1.0, 0.0], [-0.3, 0.4, 0.8]])
    original = S.copy()
    b = as_buffer([0.4, -0.2, 0.1])

    assert cholupdate(S, b, 3, True)
    assert cholupdate(S, b, 3, False)

    assert S == pytest.approx(original, abs=1e-5)


@given(cholesky_factors())
@settings(max_examples=100)
def test_cholupdate_property_update_then_downdate_restores_factor(inputs):
    """Property: adding then removing the same rank-one term is the identity."""
    S, b, n = inputs
    original = S.copy()

    assert cholupdate(S, b, n, True)
    assert cholupdate(S, b, n, False)

    assert S == pytest.approx(original, abs=1e-8)


@given(cholesky_factors())
@settings(max_examples=100)
def test_cholupdate_property_reconstructs_covariance(inputs):
    S, b, n = inputs
    s0 = S.reshape(n, n).copy()

    assert cholupdate(S, b, n, True)

    s = S.reshape(n, n)
    assert s @ s.T == pytest.approx(s0 @ s0.T + np.outer(b, b), abs=1e-9)
