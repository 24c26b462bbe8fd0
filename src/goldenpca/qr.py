"""
Kernels of the shifted QR iteration.

All routines operate on float64 working matrices. They are kept free of
state so the solver loop reads as the sequence of steps it performs:

    find_shift_row → wilkinson_shift → gram_schmidt_qr → lower_triangle_converged
"""

from typing import Tuple

import numpy as np


# ---------------------------------------------------------------------------
# Shift selection
# ---------------------------------------------------------------------------

def find_shift_row(rq: np.ndarray, zero_threshold: float) -> int:
    """
    Locate the top row of the trailing 2x2 block that is still coupled.

    Rows are scanned from the bottom. Each row whose entries left of the
    diagonal are all below `zero_threshold` has decoupled and moves the
    target one row up. The scan stops at the first row that is still
    coupled.

    Returns
    -------
    int
        Row index `s` such that the block rq[s:s+2, s:s+2] is used for the
        shift, or -1 when every row has decoupled.
    """
    n = rq.shape[0]
    shift_row = n - 2
    for row in range(n - 1, 0, -1):
        if not np.all(np.abs(rq[row, :row]) < zero_threshold):
            break
        shift_row -= 1
    return shift_row


def wilkinson_shift(rq: np.ndarray, shift_row: int) -> float:
    """
    Wilkinson shift of the 2x2 block starting at `shift_row`.

        [a b]
        [b c]     mu = c - sign(d) * b^2 / (|d| + sqrt(d^2 + b^2)),  d = (a - c) / 2

    sign(0) is taken as +1. Returns 0.0 when `shift_row` is negative.
    """
    if shift_row < 0:
        return 0.0

    a = float(rq[shift_row, shift_row])
    b = float(rq[shift_row + 1, shift_row])
    c = float(rq[shift_row + 1, shift_row + 1])

    d = (a - c) / 2
    b_squared = b * b
    b_squared_signed = -b_squared if d < 0 else b_squared
    return c - b_squared_signed / (abs(d) + np.sqrt(d * d + b_squared))


# ---------------------------------------------------------------------------
# Factorization
# ---------------------------------------------------------------------------

def gram_schmidt_qr(matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    QR factorization by Gram-Schmidt, one column at a time.

    For column i: r_ii is the norm of the working column, q_i the column
    divided by r_ii. Each later column j then gets r_ij = q_i . col_j and
    has q_i * r_ij removed from it in the working copy.

    Parameters
    ----------
    matrix : np.ndarray
        (n, n) matrix. Not modified.

    Returns
    -------
    q : np.ndarray
        (n, n) matrix with orthonormal columns.
    r : np.ndarray
        (n, n) upper triangular matrix with q @ r == matrix.
    """
    work = np.array(matrix, dtype=np.float64)
    n = work.shape[0]
    q = np.zeros((n, n), dtype=np.float64)
    r = np.zeros((n, n), dtype=np.float64)

    for i in range(n):
        column = work[:, i]
        rii = np.sqrt(np.dot(column, column))
        r[i, i] = rii
        q[:, i] = column / rii

        if i + 1 < n:
            dp = q[:, i] @ work[:, i + 1:]
            r[i, i + 1:] = dp
            work[:, i + 1:] -= np.outer(q[:, i], dp)

    return q, r


# ---------------------------------------------------------------------------
# Convergence
# ---------------------------------------------------------------------------

def lower_triangle_converged(rq: np.ndarray, zero_threshold: float) -> bool:
    """True when every strictly-lower entry is below `zero_threshold` in magnitude."""
    lower = rq[np.tril_indices(rq.shape[0], k=-1)]
    return bool(np.all(np.abs(lower) < zero_threshold))
