"""
Checks on golden results and comparison of candidate results against them.

Two uses:
1. Property checks on a decomposition: orthonormal basis, V^T C V diagonal,
   eigenvalue sum equals the trace.
2. Comparison of another implementation's eigenpairs to the golden ones.
   Eigenvectors carry a sign ambiguity and implementations may order
   eigenpairs differently, so candidates are matched and sign-aligned first.
"""

from typing import Any, Dict, Optional

import numpy as np


# ---------------------------------------------------------------------------
# Property checks
# ---------------------------------------------------------------------------

def orthonormality_error(eigenvectors: np.ndarray) -> float:
    """max |V^T V - I|."""
    v = np.asarray(eigenvectors, dtype=np.float64)
    return float(np.max(np.abs(v.T @ v - np.eye(v.shape[1]))))


def diagonalization_error(
    covariance: np.ndarray,
    eigenvalues: np.ndarray,
    eigenvectors: np.ndarray,
) -> float:
    """max |V^T C V - diag(eigenvalues)|."""
    c = np.asarray(covariance, dtype=np.float64)
    v = np.asarray(eigenvectors, dtype=np.float64)
    lam = np.asarray(eigenvalues, dtype=np.float64)
    return float(np.max(np.abs(v.T @ c @ v - np.diag(lam))))


def trace_error(covariance: np.ndarray, eigenvalues: np.ndarray) -> float:
    """|sum(eigenvalues) - trace(C)|."""
    c = np.asarray(covariance, dtype=np.float64)
    return float(abs(np.sum(np.asarray(eigenvalues, dtype=np.float64)) - np.trace(c)))


def covariance_error(samples: np.ndarray, covariance: np.ndarray) -> float:
    """max deviation from a brute-force triple-loop covariance."""
    samples = np.asarray(samples, dtype=np.float64)
    n, p = samples.shape
    expected = np.zeros((p, p))
    for row in range(p):
        for col in range(p):
            total = 0.0
            for k in range(n):
                total += samples[k, row] * samples[k, col]
            expected[row, col] = total
    return float(np.max(np.abs(expected - np.asarray(covariance, dtype=np.float64))))


def check_decomposition(
    covariance: np.ndarray,
    result,
    tolerance: float = 1e-6,
) -> Dict[str, Any]:
    """
    Run the property checks on one EigenDecomposition.

    Errors are relative to max(1, |C|max). Orthonormality and
    diagonalization only count toward `passed` when the result converged.

    Returns
    -------
    dict with:
        orthonormality_error : float
        diagonalization_error : float — relative
        trace_error : float — relative
        converged : bool
        passed : bool
    """
    c = np.asarray(covariance, dtype=np.float64)
    scale = max(1.0, float(np.max(np.abs(c))))

    ortho = orthonormality_error(result.eigenvectors)
    diag = diagonalization_error(c, result.eigenvalues, result.eigenvectors) / scale
    trace = trace_error(c, result.eigenvalues) / scale
    converged = not result.reached_limit

    passed = trace < tolerance
    if converged:
        passed = passed and ortho < tolerance and diag < tolerance

    return {
        'orthonormality_error': ortho,
        'diagonalization_error': diag,
        'trace_error': trace,
        'converged': converged,
        'passed': bool(passed),
    }


# ---------------------------------------------------------------------------
# Candidate comparison
# ---------------------------------------------------------------------------

def align_eigenvector_signs(
    candidate: np.ndarray,
    reference: np.ndarray,
) -> np.ndarray:
    """
    Flip candidate eigenvector columns to point the same way as the reference.

    For each column, a negative dot product with the reference column means
    the candidate is flipped.

    Parameters
    ----------
    candidate : np.ndarray
        (p, p) eigenvectors as columns, or a single (p,) vector.
    reference : np.ndarray
        Same shape as `candidate`.

    Returns
    -------
    np.ndarray
        Copy of `candidate` with consistent signs.
    """
    candidate = np.asarray(candidate)
    reference = np.asarray(reference)
    if candidate.shape != reference.shape:
        raise ValueError(
            f"shape mismatch: candidate {candidate.shape} vs reference {reference.shape}"
        )

    corrected = candidate.astype(np.float64, copy=True)

    if corrected.ndim == 1:
        if np.dot(corrected, reference) < 0:
            corrected *= -1
        return corrected

    for j in range(corrected.shape[1]):
        if np.dot(reference[:, j], corrected[:, j]) < 0:
            corrected[:, j] *= -1

    return corrected


def match_eigenpairs(
    reference_values: np.ndarray,
    candidate_values: np.ndarray,
) -> np.ndarray:
    """
    Permutation putting candidate eigenpairs in the reference order.

    Both sets are ranked by eigenvalue; the k-th smallest candidate is
    paired with the k-th smallest reference.
    """
    reference_order = np.argsort(reference_values, kind='stable')
    candidate_order = np.argsort(candidate_values, kind='stable')
    permutation = np.empty_like(candidate_order)
    permutation[reference_order] = candidate_order
    return permutation


def compare_to_reference(
    reference,
    candidate_values: np.ndarray,
    candidate_vectors: np.ndarray,
    tolerance: float = 1e-4,
    match_order: bool = True,
    covariance: Optional[np.ndarray] = None,
) -> Dict[str, Any]:
    """
    Compare one candidate decomposition against a golden EigenDecomposition.

    Parameters
    ----------
    reference : EigenDecomposition
        Golden result.
    candidate_values : np.ndarray
        (p,) eigenvalues from the implementation under test.
    candidate_vectors : np.ndarray
        (p, p) eigenvectors as columns.
    tolerance : float
        Relative tolerance for eigenvalues, absolute for eigenvectors.
    match_order : bool
        Pair eigenpairs by eigenvalue rank instead of by position.
    covariance : np.ndarray, optional
        When given, the candidate's diagonalization error is also reported.

    Returns
    -------
    dict with:
        eigenvalue_error : float — max relative error
        eigenvector_error : float — max abs error after sign alignment
        diagonalization_error : float — only when `covariance` is given
        passed : bool
    """
    ref_values = np.asarray(reference.eigenvalues, dtype=np.float64)
    ref_vectors = np.asarray(reference.eigenvectors, dtype=np.float64)
    values = np.asarray(candidate_values, dtype=np.float64)
    vectors = np.asarray(candidate_vectors, dtype=np.float64)

    if values.shape != ref_values.shape or vectors.shape != ref_vectors.shape:
        raise ValueError(
            f"candidate shapes {values.shape}, {vectors.shape} do not match "
            f"reference {ref_values.shape}, {ref_vectors.shape}"
        )

    if match_order:
        permutation = match_eigenpairs(ref_values, values)
        values = values[permutation]
        vectors = vectors[:, permutation]

    vectors = align_eigenvector_signs(vectors, ref_vectors)

    scale = np.maximum(np.abs(ref_values), 1.0)
    eigenvalue_error = float(np.max(np.abs(values - ref_values) / scale))
    eigenvector_error = float(np.max(np.abs(vectors - ref_vectors)))

    report = {
        'eigenvalue_error': eigenvalue_error,
        'eigenvector_error': eigenvector_error,
    }
    passed = eigenvalue_error < tolerance and eigenvector_error < tolerance

    if covariance is not None:
        c = np.asarray(covariance, dtype=np.float64)
        c_scale = max(1.0, float(np.max(np.abs(c))))
        diag = diagonalization_error(c, values, vectors) / c_scale
        report['diagonalization_error'] = diag
        passed = passed and diag < tolerance

    report['passed'] = bool(passed)
    return report
