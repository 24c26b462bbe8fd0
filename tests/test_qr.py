"""Tests for the QR iteration kernels."""

import numpy as np
import pytest

from goldenpca.config import ZERO_THRESHOLD
from goldenpca.qr import (
    find_shift_row,
    gram_schmidt_qr,
    lower_triangle_converged,
    wilkinson_shift,
)


@pytest.fixture
def spd_matrix():
    np.random.seed(42)
    a = np.random.randn(5, 5)
    return a @ a.T + 5 * np.eye(5)


# ---------------------------------------------------------------------------
# Gram-Schmidt
# ---------------------------------------------------------------------------

class TestGramSchmidt:

    def test_reconstructs_input(self, spd_matrix):
        q, r = gram_schmidt_qr(spd_matrix)
        assert np.allclose(q @ r, spd_matrix, atol=1e-12)

    def test_q_orthonormal(self, spd_matrix):
        q, _ = gram_schmidt_qr(spd_matrix)
        assert np.allclose(q.T @ q, np.eye(5), atol=1e-10)

    def test_r_upper_triangular(self, spd_matrix):
        _, r = gram_schmidt_qr(spd_matrix)
        assert np.all(np.tril(r, k=-1) == 0)
        assert np.all(np.diag(r) > 0)

    def test_input_not_modified(self, spd_matrix):
        before = spd_matrix.copy()
        gram_schmidt_qr(spd_matrix)
        assert np.array_equal(spd_matrix, before)

    def test_identity(self):
        q, r = gram_schmidt_qr(np.eye(3))
        assert np.array_equal(q, np.eye(3))
        assert np.array_equal(r, np.eye(3))

    def test_hand_computed_2x2(self):
        q, r = gram_schmidt_qr(np.array([[2.0, 1.0], [1.0, 3.0]]))
        s = np.sqrt(5.0)
        assert np.allclose(q, np.array([[2, -1], [1, 2]]) / s)
        assert np.allclose(r, np.array([[s, s], [0, s]]))


# ---------------------------------------------------------------------------
# Shift selection
# ---------------------------------------------------------------------------

class TestShiftRow:

    def test_fully_coupled(self, spd_matrix):
        assert find_shift_row(spd_matrix, ZERO_THRESHOLD) == 3

    def test_fully_decoupled(self):
        rq = np.triu(np.arange(1.0, 17.0).reshape(4, 4))
        assert find_shift_row(rq, ZERO_THRESHOLD) == -1

    def test_bottom_row_decoupled(self):
        """Row 3 is decoupled, row 2 still couples to row 1 → block at row 1."""
        rq = np.diag([4.0, 3.0, 2.0, 1.0])
        rq[2, 1] = rq[1, 2] = 0.5
        assert find_shift_row(rq, ZERO_THRESHOLD) == 1

    def test_far_coupling_counts(self):
        """Any entry left of the diagonal keeps the row coupled."""
        rq = np.diag([4.0, 3.0, 2.0])
        rq[2, 0] = rq[0, 2] = 1e-3
        assert find_shift_row(rq, ZERO_THRESHOLD) == 1

    def test_tiny_entries_count_as_zero(self):
        rq = np.diag([3.0, 2.0, 1.0])
        rq[2, 1] = 5e-9
        assert find_shift_row(rq, ZERO_THRESHOLD) == -1

    def test_single_element(self):
        assert find_shift_row(np.array([[2.0]]), ZERO_THRESHOLD) == -1


class TestWilkinsonShift:

    def test_positive_d(self):
        """d > 0: shift is the eigenvalue of the block closest to c."""
        mu = wilkinson_shift(np.array([[3.0, 1.0], [1.0, 2.0]]), 0)
        assert mu == pytest.approx((5 - np.sqrt(5)) / 2, abs=1e-14)

    def test_negative_d(self):
        mu = wilkinson_shift(np.array([[2.0, 1.0], [1.0, 3.0]]), 0)
        assert mu == pytest.approx((5 + np.sqrt(5)) / 2, abs=1e-14)

    def test_zero_d_uses_positive_sign(self):
        mu = wilkinson_shift(np.array([[0.0, 1.0], [1.0, 0.0]]), 0)
        assert mu == -1.0

    def test_uses_lower_entry(self):
        """b is read from rq[s + 1, s]."""
        rq = np.array([[3.0, 100.0], [1.0, 2.0]])
        assert wilkinson_shift(rq, 0) == pytest.approx((5 - np.sqrt(5)) / 2)

    def test_block_inside_larger_matrix(self):
        rq = np.diag([9.0, 3.0, 2.0, 7.0])
        rq[2, 1] = rq[1, 2] = 1.0
        assert wilkinson_shift(rq, 1) == pytest.approx((5 - np.sqrt(5)) / 2)

    def test_no_block(self):
        assert wilkinson_shift(np.eye(3), -1) == 0.0


# ---------------------------------------------------------------------------
# Convergence scan
# ---------------------------------------------------------------------------

class TestConvergence:

    def test_threshold_is_single_precision(self):
        assert ZERO_THRESHOLD == float(np.float32(1e-8))
        assert ZERO_THRESHOLD != 1e-8

    def test_upper_triangular_converged(self):
        assert lower_triangle_converged(np.triu(np.ones((4, 4))), ZERO_THRESHOLD)

    def test_large_lower_entry(self):
        rq = np.eye(3)
        rq[2, 0] = 1e-7
        assert not lower_triangle_converged(rq, ZERO_THRESHOLD)

    def test_small_lower_entries(self):
        rq = np.eye(3)
        rq[np.tril_indices(3, k=-1)] = -5e-9
        assert lower_triangle_converged(rq, ZERO_THRESHOLD)

    def test_upper_entries_ignored(self):
        rq = np.eye(3)
        rq[0, 2] = 10.0
        assert lower_triangle_converged(rq, ZERO_THRESHOLD)
