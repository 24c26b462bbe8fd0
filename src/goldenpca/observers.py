"""
Diagnostics hooks for batch runs.

The numeric core never prints. GoldenPCA calls an observer at fixed points:
after each dataset's covariance, after the covariance phase, after each
dataset's decomposition and after the eigen phase. Observers only read
what they are given.
"""

import logging
from typing import List, Optional

import numpy as np

logger = logging.getLogger(__name__)


def format_matrix(matrix: np.ndarray, precision: int = 6) -> str:
    """Render a matrix as '[a b; c d]'."""
    matrix = np.atleast_2d(np.asarray(matrix))
    rows = [
        " ".join(f"{value:.{precision}g}" for value in row)
        for row in matrix
    ]
    return "[" + "; ".join(rows) + "]"


class PCAObserver:
    """Base observer. Every hook is a no-op."""

    def on_covariance(self, index: int, covariance: np.ndarray) -> None:
        pass

    def on_covariance_complete(self, covariance) -> None:
        pass

    def on_decomposition(self, index: int, result) -> None:
        pass

    def on_decomposition_complete(self, results: List) -> None:
        pass


class LoggingObserver(PCAObserver):
    """Writes intermediate matrices and iteration counts to a logger."""

    def __init__(self, log: Optional[logging.Logger] = None, level: int = logging.DEBUG):
        self.log = log or logger
        self.level = level

    def on_covariance(self, index, covariance):
        self.log.log(self.level, "Covariance matrix #%d", index)
        self.log.log(self.level, "Cov=%s", format_matrix(covariance))

    def on_covariance_complete(self, covariance):
        self.log.log(self.level, "Computed %d covariance matrices", len(covariance))

    def on_decomposition(self, index, result):
        self.log.log(
            self.level,
            "Matrix #%d: QR iteration stopped after %d iterations (cap %d, %s)",
            index, result.iterations, result.max_iterations, result.state,
        )
        self.log.log(self.level, "Eigenvalues for matrix #%d: %s",
                     index, format_matrix(result.eigenvalues))
        self.log.log(self.level, "Eigenvectors for matrix #%d: %s",
                     index, format_matrix(result.eigenvectors))

    def on_decomposition_complete(self, results):
        limited = sum(1 for r in results if r.reached_limit)
        self.log.log(
            self.level,
            "Decomposed %d matrices (%d reached the iteration cap)",
            len(results), limited,
        )


class RecordingObserver(PCAObserver):
    """Keeps every callback as an (event, index, payload) tuple."""

    def __init__(self):
        self.events = []

    def on_covariance(self, index, covariance):
        self.events.append(('covariance', index, np.array(covariance)))

    def on_covariance_complete(self, covariance):
        self.events.append(('covariance_complete', None, None))

    def on_decomposition(self, index, result):
        self.events.append(('decomposition', index, result))

    def on_decomposition_complete(self, results):
        self.events.append(('decomposition_complete', None, list(results)))

    def indices(self, event: str) -> List[int]:
        return [index for name, index, _ in self.events if name == event]
