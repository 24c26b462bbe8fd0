"""
Flatten batch results to parquet-ready rows.

A decomposition holds arrays (eigenvalues) and matrices (eigenvectors,
covariance). Summary rows keep one scalar per column; the full matrices go
to long-format tables (dataset, row, col, value) instead.
"""

from typing import Any, Dict, List

import numpy as np


def flatten_result(
    index: int,
    result,
    max_eigenvalues: int = 5,
) -> Dict[str, Any]:
    """
    Flatten one EigenDecomposition to scalar key-value pairs.

    Eigenvalues are reported in descending order so rows from different
    datasets line up column by column.

    Parameters
    ----------
    index : int
        Dataset index.
    result : EigenDecomposition
        Output of ShiftedQRSolver.solve().
    max_eigenvalues : int
        Number of leading eigenvalues to include.

    Returns
    -------
    dict of {str: int | float | str} suitable for a parquet row.
    """
    eigenvalues = np.asarray(result.eigenvalues, dtype=np.float64)
    ordered = np.sort(eigenvalues)[::-1]

    row = {
        'dataset': int(index),
        'iterations': int(result.iterations),
        'max_iterations': int(result.max_iterations),
        'state': str(result.state),
        'eigenvalue_sum': float(np.sum(eigenvalues)),
    }

    for i in range(min(max_eigenvalues, len(ordered))):
        row[f'eigenvalue_{i}'] = float(ordered[i])

    return row


def flatten_batch(results: List, max_eigenvalues: int = 5) -> List[Dict[str, Any]]:
    """Flatten a list of EigenDecomposition results, indexed by position."""
    return [flatten_result(i, r, max_eigenvalues) for i, r in enumerate(results)]


def matrix_rows(stack: np.ndarray) -> Dict[str, np.ndarray]:
    """
    Long-format columns for a (count, rows, cols) or (count, k) array.

    Returns
    -------
    dict of column name -> 1-D array, with 'dataset', 'row', 'col' (or 'k')
    and 'value'.
    """
    stack = np.asarray(stack)
    if stack.ndim == 2:
        count, k = stack.shape
        return {
            'dataset': np.repeat(np.arange(count), k),
            'k': np.tile(np.arange(k), count),
            'value': stack.reshape(-1),
        }
    if stack.ndim == 3:
        count, rows, cols = stack.shape
        return {
            'dataset': np.repeat(np.arange(count), rows * cols),
            'row': np.tile(np.repeat(np.arange(rows), cols), count),
            'col': np.tile(np.arange(cols), count * rows),
            'value': stack.reshape(-1),
        }
    raise ValueError(f"expected a 2-D or 3-D stack, got shape {stack.shape}")
