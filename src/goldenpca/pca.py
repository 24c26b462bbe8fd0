"""
Batch orchestration: covariance phase, then eigen phase.

GoldenPCA owns every buffer of a batch run. Buffers are allocated once in
the constructor, sized by (samples, features, matrix_count), and filled in
place. Datasets never interact: each one reads its own slice of the sample
buffer and writes its own slices of the output buffers.

No math lives here. Only wiring, storage and reporting.

Usage:
    pca = GoldenPCA(n, p, count, debug=False, benchmark_mode=False, input_data=data)
    pca.run()
    pca.eigenvalue_buffer      # flat, offset m * p + k
    pca.unconverged()          # indices that hit the iteration cap
"""

import logging
import warnings
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Callable, List, Optional, Sequence

import numpy as np

from goldenpca.buffers import MatrixStack
from goldenpca.config import GOLDENPCA_WORKERS, resolve_dtype
from goldenpca.covariance import compute_covariance
from goldenpca.observers import LoggingObserver, PCAObserver
from goldenpca.solver import ConvergenceWarning, EigenDecomposition, ShiftedQRSolver

logger = logging.getLogger(__name__)


class GoldenPCA:
    """
    Covariance and eigen-decomposition of a batch of sample matrices.

    Parameters
    ----------
    samples : int
        Rows per dataset (n).
    features : int
        Columns per dataset (p).
    matrix_count : int
        Number of independent datasets.
    debug : bool
        Install a LoggingObserver when no observer is given.
    benchmark_mode : bool
        Relaxed mode: reaching the iteration cap produces no warning.
    input_data : array-like
        (matrix_count * samples, features) rows, dataset after dataset,
        or a (matrix_count, samples, features) array.
    dtype : numpy dtype
        Storage element type (float32 or float64).
    workers : int, optional
        Process pool size. Defaults to GOLDENPCA_WORKERS.
    solver : ShiftedQRSolver, optional
        Solver to use. Its dtype must match `dtype`.
    observer : PCAObserver, optional
        Diagnostics hooks.
    """

    def __init__(
        self,
        samples: int,
        features: int,
        matrix_count: int,
        debug: bool = False,
        benchmark_mode: bool = False,
        input_data=None,
        dtype=np.float64,
        workers: Optional[int] = None,
        solver: Optional[ShiftedQRSolver] = None,
        observer: Optional[PCAObserver] = None,
    ):
        if samples < 1 or features < 1 or matrix_count < 1:
            raise ValueError(
                f"samples, features and matrix_count must be positive, "
                f"got ({samples}, {features}, {matrix_count})"
            )
        if input_data is None:
            raise ValueError("input_data is required")

        self.samples = int(samples)
        self.features = int(features)
        self.matrix_count = int(matrix_count)
        self.debug = debug
        self.benchmark_mode = benchmark_mode
        self.dtype = resolve_dtype(dtype)
        self.workers = int(workers or GOLDENPCA_WORKERS)

        if solver is None:
            solver = ShiftedQRSolver(dtype=self.dtype)
        elif solver.dtype != self.dtype:
            raise ValueError(
                f"solver stores {solver.dtype.name} but the batch uses {self.dtype.name}"
            )
        self.solver = solver

        if observer is None:
            observer = LoggingObserver() if debug else PCAObserver()
        self.observer = observer

        n, p, count = self.samples, self.features, self.matrix_count
        self.sample_matrix = MatrixStack(count, (n, p), self.dtype)
        self.sample_matrix.array[...] = self._shape_input(input_data)

        self.covariance_matrix = MatrixStack(count, (p, p), self.dtype)
        self.eigenvalues = MatrixStack(count, (p,), self.dtype)
        self.eigenvectors = MatrixStack(count, (p, p), self.dtype)
        self.iterations = np.zeros(count, dtype=np.int64)

    # -----------------------------------------------------------------------
    # Flat views
    # -----------------------------------------------------------------------

    @property
    def covariance_buffer(self) -> np.ndarray:
        return self.covariance_matrix.flat

    @property
    def eigenvalue_buffer(self) -> np.ndarray:
        return self.eigenvalues.flat

    @property
    def eigenvector_buffer(self) -> np.ndarray:
        return self.eigenvectors.flat

    @property
    def iteration_buffer(self) -> np.ndarray:
        return self.iterations

    @property
    def iteration_cap(self) -> int:
        return self.solver.max_iterations(self.features)

    # -----------------------------------------------------------------------
    # Covariance phase
    # -----------------------------------------------------------------------

    def compute_covariance(self, index: int) -> np.ndarray:
        """Covariance of dataset `index`, written into its buffer slice."""
        cov = compute_covariance(self.sample_matrix[index], self.dtype)
        self._store_covariance(index, cov)
        return self.covariance_matrix[index]

    def compute_covariance_matrix(self) -> None:
        """Covariance of every dataset, in index order."""
        if self.workers > 1 and self.matrix_count > 1:
            outputs = self._map_parallel(
                compute_covariance,
                [(self.sample_matrix[i], self.dtype) for i in range(self.matrix_count)],
            )
            for index, cov in enumerate(outputs):
                self._store_covariance(index, cov)
        else:
            for index in range(self.matrix_count):
                self.compute_covariance(index)
        self.observer.on_covariance_complete(self.covariance_matrix)

    # -----------------------------------------------------------------------
    # Eigen phase
    # -----------------------------------------------------------------------

    def decompose(self, index: int) -> EigenDecomposition:
        """Eigen-decomposition of dataset `index`'s covariance."""
        result = self.solver.solve(self.covariance_matrix[index])
        self._store_decomposition(index, result)
        return result

    def compute_eigen_values_and_vectors(self) -> List[EigenDecomposition]:
        """Eigen-decomposition of every dataset, in index order.

        A dataset that reaches the iteration cap is reported and the batch
        moves on to the next one.
        """
        if self.workers > 1 and self.matrix_count > 1:
            outputs = self._map_parallel(
                self.solver.solve,
                [(self.covariance_matrix[i],) for i in range(self.matrix_count)],
            )
            results = []
            for index, result in enumerate(outputs):
                self._store_decomposition(index, result)
                results.append(result)
        else:
            results = [self.decompose(index) for index in range(self.matrix_count)]
        self.observer.on_decomposition_complete(results)
        return results

    def run(self) -> 'GoldenPCA':
        """Both phases over the whole batch."""
        logger.info(
            "Running %d matrices (%d x %d, %s, workers=%d)",
            self.matrix_count, self.samples, self.features,
            self.dtype.name, self.workers,
        )
        self.compute_covariance_matrix()
        self.compute_eigen_values_and_vectors()
        return self

    # -----------------------------------------------------------------------
    # Results
    # -----------------------------------------------------------------------

    def result(self, index: int) -> EigenDecomposition:
        return EigenDecomposition(
            eigenvalues=self.eigenvalues[index].copy(),
            eigenvectors=self.eigenvectors[index].copy(),
            iterations=int(self.iterations[index]),
            max_iterations=self.iteration_cap,
        )

    def results(self) -> List[EigenDecomposition]:
        return [self.result(index) for index in range(self.matrix_count)]

    def unconverged(self) -> List[int]:
        """Dataset indices whose iteration count reached the cap."""
        cap = self.iteration_cap
        return [int(i) for i in np.flatnonzero(self.iterations >= cap)]

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    def _shape_input(self, input_data) -> np.ndarray:
        data = np.asarray(input_data)
        n, p, count = self.samples, self.features, self.matrix_count
        if data.ndim == 2 and data.shape == (count * n, p):
            return data.reshape(count, n, p)
        if data.ndim == 3 and data.shape == (count, n, p):
            return data
        raise ValueError(
            f"input_data must have shape ({count * n}, {p}) or ({count}, {n}, {p}), "
            f"got {data.shape}"
        )

    def _store_covariance(self, index: int, cov: np.ndarray) -> None:
        self.covariance_matrix[index] = cov
        self.observer.on_covariance(index, self.covariance_matrix[index])

    def _store_decomposition(self, index: int, result: EigenDecomposition) -> None:
        self.eigenvalues[index] = result.eigenvalues
        self.eigenvectors[index] = result.eigenvectors
        self.iterations[index] = result.iterations
        self.observer.on_decomposition(index, result)

        if result.reached_limit and not self.benchmark_mode:
            message = (
                f"Matrix #{index}: number of iterations too high "
                f"({result.iterations} reached cap {result.max_iterations})"
            )
            logger.warning(message)
            warnings.warn(message, ConvergenceWarning, stacklevel=3)

    def _map_parallel(self, func: Callable, arguments: Sequence[tuple]) -> list:
        """Run func(*args) per dataset in a process pool, results in index order."""
        outputs = [None] * len(arguments)
        futures = {}
        with ProcessPoolExecutor(max_workers=self.workers) as pool:
            for index, args in enumerate(arguments):
                fut = pool.submit(func, *args)
                futures[fut] = index

            done = 0
            total = len(futures)
            for fut in as_completed(futures):
                outputs[futures[fut]] = fut.result()
                done += 1
                logger.debug("%d/%d datasets complete", done, total)
        return outputs
