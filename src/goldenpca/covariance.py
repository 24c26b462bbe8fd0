"""
Covariance formation.

cov[row, col] = sum_k samples[k, row] * samples[k, col]

No centering and no division by n - 1: downstream comparisons against
accelerated implementations expect these exact values. Each product is
formed in the storage element type and accumulated in double precision.
"""

from typing import Optional

import numpy as np

from goldenpca.config import CONFIG


def compute_covariance(
    samples: np.ndarray,
    dtype=None,
    chunk_rows: Optional[int] = None,
) -> np.ndarray:
    """
    Unnormalized covariance of one sample matrix.

    Parameters
    ----------
    samples : np.ndarray
        (n_samples, n_features) matrix.
    dtype : numpy dtype, optional
        Storage element type. Defaults to the dtype of `samples`.
    chunk_rows : int, optional
        Samples per product block. Memory use is chunk_rows * p * p
        elements. Defaults to CONFIG['covariance']['chunk_rows'].

    Returns
    -------
    np.ndarray
        (n_features, n_features) symmetric matrix in `dtype`.
    """
    samples = np.asarray(samples)
    if samples.ndim != 2:
        raise ValueError(f"samples must be 2-D, got shape {samples.shape}")
    dtype = np.dtype(dtype or samples.dtype)
    samples = samples.astype(dtype, copy=False)

    accumulator = np.dtype(CONFIG['covariance']['accumulator_dtype'])
    chunk_rows = chunk_rows or CONFIG['covariance']['chunk_rows']
    if chunk_rows < 1:
        raise ValueError(f"chunk_rows must be positive, got {chunk_rows}")

    p = samples.shape[1]
    cov = np.zeros((p, p), dtype=accumulator)
    # (chunk, p, p) products in the storage type, summed over samples in float64
    for start in range(0, samples.shape[0], chunk_rows):
        block = samples[start:start + chunk_rows]
        products = block[:, :, None] * block[:, None, :]
        cov += products.sum(axis=0, dtype=accumulator)
    return cov.astype(dtype)
