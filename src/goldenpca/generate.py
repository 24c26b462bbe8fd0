"""
Generate synthetic sample batches.

Each dataset is n Gaussian samples of p features with per-feature scales
1, 2, ..., p so the covariance eigenvalues are well separated. With
`standardize`, each dataset is z-scored per feature (constant features
become zero), the way upstream data preparation hands samples over.
"""

from pathlib import Path

import numpy as np

from goldenpca.config import resolve_dtype
from goldenpca.io import write_samples


# Defaults
DEFAULT_SAMPLES = 32
DEFAULT_FEATURES = 8
DEFAULT_COUNT = 4
DEFAULT_SEED = 42


def _zscore_normalize(matrix: np.ndarray) -> np.ndarray:
    """Per-feature z-score normalization (axis=0). Constant features → 0."""
    mean = np.mean(matrix, axis=0)
    std = np.std(matrix, axis=0)
    std[std < 1e-15] = 1.0
    return (matrix - mean) / std


def generate_samples(
    samples: int = DEFAULT_SAMPLES,
    features: int = DEFAULT_FEATURES,
    matrix_count: int = DEFAULT_COUNT,
    seed: int = DEFAULT_SEED,
    dtype=np.float64,
    standardize: bool = False,
) -> np.ndarray:
    """
    Random sample batch.

    Returns
    -------
    np.ndarray
        (matrix_count, samples, features) array in `dtype`.
    """
    dtype = resolve_dtype(dtype)
    rng = np.random.default_rng(seed)
    scales = np.arange(1, features + 1, dtype=np.float64)

    batch = rng.standard_normal((matrix_count, samples, features)) * scales
    if standardize:
        batch = np.stack([_zscore_normalize(m) for m in batch])
    return batch.astype(dtype)


def generate_dataset(
    output_path: Path,
    samples: int = DEFAULT_SAMPLES,
    features: int = DEFAULT_FEATURES,
    matrix_count: int = DEFAULT_COUNT,
    seed: int = DEFAULT_SEED,
    dtype=np.float64,
    standardize: bool = False,
) -> Path:
    """
    Generate a batch and write it as parquet (or csv by suffix).

    Returns
    -------
    Path to the written file.
    """
    batch = generate_samples(samples, features, matrix_count, seed, dtype, standardize)
    print(f"Generated {matrix_count} datasets of {samples} x {features} (seed={seed})")
    path = write_samples(batch, output_path)
    print(f"Wrote {path}")
    return path
