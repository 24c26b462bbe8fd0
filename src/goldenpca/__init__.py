"""
Golden PCA package.

Reference covariance and eigen-decomposition of a batch of sample matrices.
Input: matrix_count datasets, each n samples x p features.
Output: unnormalized covariance, eigenvalues, eigenvectors and QR sweep
count per dataset, in flat per-dataset buffers.

This is the golden model that accelerated implementations are checked against.
"""

__version__ = "0.1.0"

from goldenpca.buffers import MatrixStack
from goldenpca.covariance import compute_covariance
from goldenpca.observers import LoggingObserver, PCAObserver, RecordingObserver
from goldenpca.pca import GoldenPCA
from goldenpca.solver import (
    ConvergenceWarning,
    EigenDecomposition,
    ShiftedQRSolver,
    SolverState,
)

__all__ = [
    '__version__',
    'MatrixStack',
    'compute_covariance',
    'PCAObserver',
    'LoggingObserver',
    'RecordingObserver',
    'GoldenPCA',
    'ConvergenceWarning',
    'EigenDecomposition',
    'ShiftedQRSolver',
    'SolverState',
]
