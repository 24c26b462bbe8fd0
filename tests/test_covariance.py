"""Tests for unnormalized covariance formation."""

import numpy as np
import pytest

from goldenpca.covariance import compute_covariance
from goldenpca.validation import covariance_error


@pytest.fixture
def random_samples():
    """12 samples, 4 features."""
    np.random.seed(42)
    return np.random.randn(12, 4)


class TestComputeCovariance:

    def test_matches_brute_force(self, random_samples):
        cov = compute_covariance(random_samples)
        assert covariance_error(random_samples, cov) < 1e-12

    def test_symmetric(self, random_samples):
        cov = compute_covariance(random_samples)
        assert np.array_equal(cov, cov.T)

    def test_shape(self, random_samples):
        assert compute_covariance(random_samples).shape == (4, 4)

    def test_not_normalized(self):
        """All-ones samples: every entry is n, not n / (n - 1) or 1."""
        cov = compute_covariance(np.ones((7, 3)))
        assert np.all(cov == 7.0)

    def test_not_centered(self):
        """A constant nonzero feature still contributes: no mean removal."""
        samples = np.column_stack([np.full(5, 2.0), np.arange(5.0)])
        cov = compute_covariance(samples)
        assert cov[0, 0] == 20.0
        assert cov[0, 1] == 2.0 * (0 + 1 + 2 + 3 + 4)

    def test_float32_storage(self, random_samples):
        samples = random_samples.astype(np.float32)
        cov = compute_covariance(samples)
        assert cov.dtype == np.float32
        assert covariance_error(samples, cov) < 1e-4
        assert np.array_equal(cov, cov.T)

    def test_dtype_override(self, random_samples):
        cov = compute_covariance(random_samples, dtype=np.float32)
        assert cov.dtype == np.float32

    def test_single_sample(self):
        cov = compute_covariance(np.array([[1.0, 2.0, 3.0]]))
        assert np.array_equal(cov, np.outer([1, 2, 3], [1, 2, 3]))

    def test_chunked_accumulation(self, random_samples):
        """Block size changes memory use, not the result."""
        whole = compute_covariance(random_samples, chunk_rows=len(random_samples))
        for chunk_rows in (1, 5, 1000):
            cov = compute_covariance(random_samples, chunk_rows=chunk_rows)
            assert np.allclose(cov, whole, rtol=0, atol=1e-12)
            assert np.array_equal(cov, cov.T)

    def test_many_samples_in_blocks(self):
        """More samples than one block holds."""
        np.random.seed(42)
        samples = np.random.randn(2500, 3)
        cov = compute_covariance(samples)
        assert np.allclose(cov, samples.T @ samples, rtol=1e-12, atol=1e-9)

    def test_rejects_negative_chunk(self, random_samples):
        with pytest.raises(ValueError):
            compute_covariance(random_samples, chunk_rows=-1)

    def test_rejects_non_2d(self):
        with pytest.raises(ValueError):
            compute_covariance(np.ones(5))
