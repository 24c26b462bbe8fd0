"""
Per-dataset storage for batch computations.

Every batch quantity (samples, covariance, eigenvalues, eigenvectors) is one
contiguous flat buffer with a fixed stride per dataset. Consumers that expect
the flat layout read `.flat`; the computation works through `stack[index]`,
which is a writable view onto that dataset's slice only.

    offset(m, row, col) == m * rows * cols + row * cols + col
"""

from typing import Tuple

import numpy as np


class MatrixStack:
    """
    Owned flat buffer holding `count` equally-shaped arrays.

    Parameters
    ----------
    count : int
        Number of datasets in the batch.
    shape : tuple of int
        Shape of one dataset's entry, e.g. (p, p) or (p,).
    dtype : numpy dtype
        Element type of the stored values.
    """

    def __init__(self, count: int, shape: Tuple[int, ...], dtype=np.float64):
        if count < 1:
            raise ValueError(f"count must be positive, got {count}")
        if any(s < 1 for s in shape):
            raise ValueError(f"shape must be positive, got {shape}")
        self.count = int(count)
        self.shape = tuple(int(s) for s in shape)
        self.dtype = np.dtype(dtype)
        self.stride = int(np.prod(self.shape))
        self._buffer = np.zeros(self.count * self.stride, dtype=self.dtype)

    @classmethod
    def from_array(cls, array: np.ndarray, dtype=None) -> 'MatrixStack':
        """Copy a (count, *shape) array into a new stack."""
        array = np.asarray(array)
        stack = cls(array.shape[0], array.shape[1:], dtype or array.dtype)
        stack.array[...] = array
        return stack

    @property
    def flat(self) -> np.ndarray:
        """The underlying 1-D buffer, dataset-major."""
        return self._buffer

    @property
    def array(self) -> np.ndarray:
        """(count, *shape) view of the whole buffer."""
        return self._buffer.reshape((self.count,) + self.shape)

    def offset(self, index: int, *position: int) -> int:
        """Flat offset of `position` inside dataset `index`."""
        self._check_index(index)
        if len(position) != len(self.shape):
            raise IndexError(
                f"expected {len(self.shape)} coordinates, got {len(position)}"
            )
        inner = 0
        for pos, size in zip(position, self.shape):
            if not 0 <= pos < size:
                raise IndexError(f"position {position} outside shape {self.shape}")
            inner = inner * size + pos
        return index * self.stride + inner

    def __getitem__(self, index: int) -> np.ndarray:
        self._check_index(index)
        start = index * self.stride
        return self._buffer[start:start + self.stride].reshape(self.shape)

    def __setitem__(self, index: int, value) -> None:
        self[index][...] = value

    def __len__(self) -> int:
        return self.count

    def __iter__(self):
        for index in range(self.count):
            yield self[index]

    def __repr__(self) -> str:
        return f"MatrixStack(count={self.count}, shape={self.shape}, dtype={self.dtype.name})"

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.count:
            raise IndexError(f"dataset index {index} out of range [0, {self.count})")
