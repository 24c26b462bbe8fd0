"""
Golden PCA Configuration
========================
Solver constants and runtime defaults.
Single source of truth. Solver, orchestrator and CLI all import this.

Usage:
    from goldenpca.config import CONFIG
    threshold = CONFIG['solver']['zero_threshold']
"""

import os
from typing import Optional

import numpy as np


# Zero threshold is a single-precision constant even when the QR iteration
# runs in double precision. Compared against float64 magnitudes as-is.
ZERO_THRESHOLD = float(np.float32(1e-8))

CONFIG = {

    # =================================================================
    # Shifted QR iteration
    # =================================================================
    'solver': {
        'zero_threshold': ZERO_THRESHOLD,
        'shift_scale': 0.99,           # fraction of the Wilkinson shift applied
        'iteration_factor': 16,        # cap = features * features * factor
    },

    # =================================================================
    # Covariance formation
    # =================================================================
    'covariance': {
        'accumulator_dtype': 'float64',
        'chunk_rows': 1024,            # samples per (chunk, p, p) product block
    },

    # =================================================================
    # Supported storage element types
    # =================================================================
    'dtypes': ('float32', 'float64'),
}

# Parallel workers: set GOLDENPCA_WORKERS=N to override, default = 1
GOLDENPCA_WORKERS = int(os.environ.get("GOLDENPCA_WORKERS", "0")) or 1


def resolve_dtype(dtype) -> np.dtype:
    """Normalize a storage dtype and reject anything but float32/float64."""
    resolved = np.dtype(dtype)
    if resolved.name not in CONFIG['dtypes']:
        raise ValueError(
            f"Unsupported element type {resolved.name!r}; "
            f"expected one of {CONFIG['dtypes']}"
        )
    return resolved


def iteration_cap(features: int, factor: Optional[int] = None) -> int:
    """Maximum number of QR sweeps for a features x features matrix."""
    if factor is None:
        factor = CONFIG['solver']['iteration_factor']
    return features * features * factor
