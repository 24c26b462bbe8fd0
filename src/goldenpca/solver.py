"""
Shifted QR eigen-solver for symmetric matrices.

One call to `ShiftedQRSolver.solve` runs a self-contained state machine:

    INITIALIZED → ITERATING → {CONVERGED, ITERATION_LIMIT_REACHED}

Each sweep applies a scaled Wilkinson shift, factors the shifted matrix with
Gram-Schmidt, accumulates Q into the eigenvector basis, recombines R·Q and
undoes the shift. The loop stops when the whole strict lower triangle is
below the zero threshold or when the iteration cap is reached.

Hitting the cap is not an error. The result carries the saturated count and
callers compare it to the cap to decide whether to trust it.
"""

from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from goldenpca.config import CONFIG, iteration_cap, resolve_dtype
from goldenpca.qr import (
    find_shift_row,
    gram_schmidt_qr,
    lower_triangle_converged,
    wilkinson_shift,
)


class ConvergenceWarning(RuntimeWarning):
    """QR iteration reached the iteration cap before converging."""
    pass


class SolverState(Enum):
    """Lifecycle of one dataset's QR iteration."""
    INITIALIZED = "INITIALIZED"
    ITERATING = "ITERATING"
    CONVERGED = "CONVERGED"
    ITERATION_LIMIT_REACHED = "ITERATION_LIMIT_REACHED"

    def __str__(self) -> str:
        return self.value


@dataclass
class EigenDecomposition:
    """Eigenvalues, eigenvector basis and sweep count for one dataset.

    Column k of `eigenvectors` pairs with `eigenvalues[k]`. Eigenvalues are
    in the order they appear on the final diagonal, not sorted.
    """
    eigenvalues: np.ndarray
    eigenvectors: np.ndarray
    iterations: int
    max_iterations: int

    @property
    def reached_limit(self) -> bool:
        return self.iterations >= self.max_iterations

    @property
    def state(self) -> SolverState:
        if self.reached_limit:
            return SolverState.ITERATION_LIMIT_REACHED
        return SolverState.CONVERGED


@dataclass
class ShiftedQRSolver:
    """
    QR iteration with scaled Wilkinson shifts.

    Parameters
    ----------
    zero_threshold : float
        Magnitude under which an off-diagonal entry counts as zero.
    shift_scale : float
        Fraction of the Wilkinson shift applied after the first sweep.
    iteration_factor : int
        Iteration cap is features**2 * iteration_factor.
    dtype : numpy dtype
        Element type eigenvalues and eigenvectors are stored in.
        Shift and factorization arithmetic is always float64.
    """
    zero_threshold: float = CONFIG['solver']['zero_threshold']
    shift_scale: float = CONFIG['solver']['shift_scale']
    iteration_factor: int = CONFIG['solver']['iteration_factor']
    dtype: np.dtype = field(default_factory=lambda: np.dtype(np.float64))

    def __post_init__(self):
        self.dtype = resolve_dtype(self.dtype)
        if self.iteration_factor < 1:
            raise ValueError(f"iteration_factor must be >= 1, got {self.iteration_factor}")

    def max_iterations(self, features: int) -> int:
        return iteration_cap(features, self.iteration_factor)

    def solve(self, covariance: np.ndarray) -> EigenDecomposition:
        """
        Diagonalize one symmetric matrix.

        Parameters
        ----------
        covariance : np.ndarray
            (p, p) symmetric matrix. Not modified.

        Returns
        -------
        EigenDecomposition
        """
        covariance = np.asarray(covariance)
        if covariance.ndim != 2 or covariance.shape[0] != covariance.shape[1]:
            raise ValueError(f"covariance must be square, got shape {covariance.shape}")

        p = covariance.shape[0]
        cap = self.max_iterations(p)
        diagonal = np.diag_indices(p)

        # INITIALIZED
        rq = np.array(covariance, dtype=np.float64)
        eigenvectors = np.eye(p, dtype=self.dtype)
        iterations = 0
        converged = False

        # ITERATING
        while not converged:
            shift_row = find_shift_row(rq, self.zero_threshold)
            shift_value = wilkinson_shift(rq, shift_row)

            # First sweep is unshifted
            if iterations == 0:
                shift_value = 0.0
            else:
                shift_value *= self.shift_scale

            rq[diagonal] -= shift_value
            q, r = gram_schmidt_qr(rq)

            eigenvectors = (eigenvectors.astype(np.float64) @ q).astype(self.dtype)

            rq = r @ q
            rq[diagonal] += shift_value

            converged = lower_triangle_converged(rq, self.zero_threshold)

            iterations += 1
            if not converged and iterations >= cap:
                break

        return EigenDecomposition(
            eigenvalues=np.diag(rq).astype(self.dtype),
            eigenvectors=eigenvectors,
            iterations=iterations,
            max_iterations=cap,
        )
