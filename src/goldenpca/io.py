"""
Parquet/CSV input and output for batch runs.

Samples
    One row per sample. Optional integer `dataset` column selects the
    dataset; every other column is a feature, in column order.

Results (one directory per run)
    covariance.parquet     dataset, row, col, value
    eigenvalues.parquet    dataset, k, value
    eigenvectors.parquet   dataset, row, col, value
    iterations.parquet     dataset, iterations, max_iterations
    summary.parquet        one flattened row per dataset
    run.json               batch sizes and flags
    checksums.json         file and buffer hashes
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import polars as pl

from goldenpca.checksums import generate_checksums
from goldenpca.flatten import flatten_batch, matrix_rows

logger = logging.getLogger(__name__)

DATASET_COLUMN = 'dataset'


# ---------------------------------------------------------------------------
# Samples
# ---------------------------------------------------------------------------

def _read_table(path: Path) -> pl.DataFrame:
    if path.suffix == '.csv':
        return pl.read_csv(path)
    return pl.read_parquet(path)


def _write_table(df: pl.DataFrame, path: Path) -> None:
    if path.suffix == '.csv':
        df.write_csv(path)
    else:
        df.write_parquet(path)


def read_samples(path, matrix_count: Optional[int] = None) -> np.ndarray:
    """
    Load a sample batch.

    Parameters
    ----------
    path : path
        .parquet or .csv file.
    matrix_count : int, optional
        Split a table without a `dataset` column into this many equal
        consecutive blocks. Ignored when the column is present.

    Returns
    -------
    np.ndarray
        (matrix_count, n_samples, n_features) array.
    """
    path = Path(path)
    df = _read_table(path)
    features = [c for c in df.columns if c != DATASET_COLUMN]
    if not features:
        raise ValueError(f"{path}: no feature columns")

    if DATASET_COLUMN in df.columns:
        blocks = []
        for d in sorted(df[DATASET_COLUMN].unique().to_list()):
            block = df.filter(pl.col(DATASET_COLUMN) == d).select(features).to_numpy()
            blocks.append(block)
        sizes = {b.shape[0] for b in blocks}
        if len(sizes) != 1:
            raise ValueError(f"{path}: datasets have different sample counts {sorted(sizes)}")
        return np.stack(blocks)

    data = df.select(features).to_numpy()
    count = matrix_count or 1
    if data.shape[0] % count:
        raise ValueError(
            f"{path}: {data.shape[0]} rows do not split into {count} datasets"
        )
    return data.reshape(count, data.shape[0] // count, len(features))


def write_samples(samples: np.ndarray, path) -> Path:
    """Write a (matrix_count, n, p) batch with a `dataset` column."""
    samples = np.asarray(samples)
    if samples.ndim != 3:
        raise ValueError(f"samples must be (count, n, p), got shape {samples.shape}")
    count, n, p = samples.shape

    columns = {DATASET_COLUMN: np.repeat(np.arange(count), n)}
    flat = samples.reshape(count * n, p)
    for j in range(p):
        columns[f'f{j}'] = flat[:, j]

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    _write_table(pl.DataFrame(columns), path)
    return path


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

def write_results(pca, output_dir) -> Dict[str, Any]:
    """
    Write every output buffer of a finished GoldenPCA run.

    Returns
    -------
    dict — the checksum manifest.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    tables = {
        'covariance.parquet': matrix_rows(pca.covariance_matrix.array),
        'eigenvalues.parquet': matrix_rows(pca.eigenvalues.array),
        'eigenvectors.parquet': matrix_rows(pca.eigenvectors.array),
    }
    for name, columns in tables.items():
        pl.DataFrame(columns).write_parquet(output_dir / name)

    pl.DataFrame({
        DATASET_COLUMN: np.arange(pca.matrix_count),
        'iterations': pca.iterations,
        'max_iterations': np.full(pca.matrix_count, pca.iteration_cap, dtype=np.int64),
    }).write_parquet(output_dir / 'iterations.parquet')

    pl.DataFrame(flatten_batch(pca.results())).write_parquet(output_dir / 'summary.parquet')

    metadata = {
        'samples': pca.samples,
        'features': pca.features,
        'matrix_count': pca.matrix_count,
        'dtype': pca.dtype.name,
        'benchmark_mode': pca.benchmark_mode,
        'iteration_cap': pca.iteration_cap,
        'unconverged': pca.unconverged(),
    }
    with open(output_dir / 'run.json', 'w') as f:
        json.dump(metadata, f, indent=2)

    manifest = generate_checksums(output_dir, buffers={
        'covariance': pca.covariance_buffer,
        'eigenvalues': pca.eigenvalue_buffer,
        'eigenvectors': pca.eigenvector_buffer,
        'iterations': pca.iterations,
    })
    logger.info("Wrote %d files to %s", manifest['n_files'], output_dir)
    return manifest


def _stack_from_long(df: pl.DataFrame) -> np.ndarray:
    if 'k' in df.columns:
        df = df.sort([DATASET_COLUMN, 'k'])
        count = int(df[DATASET_COLUMN].max()) + 1
        size = int(df['k'].max()) + 1
        return df['value'].to_numpy().reshape(count, size)
    df = df.sort([DATASET_COLUMN, 'row', 'col'])
    count = int(df[DATASET_COLUMN].max()) + 1
    rows = int(df['row'].max()) + 1
    cols = int(df['col'].max()) + 1
    return df['value'].to_numpy().reshape(count, rows, cols)


def read_results(output_dir) -> Dict[str, Any]:
    """
    Load a run directory written by write_results.

    Only eigenvalues.parquet and eigenvectors.parquet are required, so
    results from other implementations can be laid out the same way and
    loaded for comparison.

    Returns
    -------
    dict with:
        eigenvalues : np.ndarray — (count, p)
        eigenvectors : np.ndarray — (count, p, p)
        covariance : np.ndarray or None — (count, p, p)
        iterations : np.ndarray or None — (count,)
        metadata : dict — contents of run.json, empty if absent
    """
    output_dir = Path(output_dir)
    result = {
        'eigenvalues': _stack_from_long(pl.read_parquet(output_dir / 'eigenvalues.parquet')),
        'eigenvectors': _stack_from_long(pl.read_parquet(output_dir / 'eigenvectors.parquet')),
        'covariance': None,
        'iterations': None,
        'metadata': {},
    }

    cov_path = output_dir / 'covariance.parquet'
    if cov_path.exists():
        result['covariance'] = _stack_from_long(pl.read_parquet(cov_path))

    iter_path = output_dir / 'iterations.parquet'
    if iter_path.exists():
        df = pl.read_parquet(iter_path).sort(DATASET_COLUMN)
        result['iterations'] = df['iterations'].to_numpy()

    meta_path = output_dir / 'run.json'
    if meta_path.exists():
        with open(meta_path) as f:
            result['metadata'] = json.load(f)

    return result
