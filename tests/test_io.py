"""Tests for sample/result files and result flattening."""

import json

import numpy as np
import polars as pl
import pytest

from goldenpca.flatten import flatten_batch, flatten_result, matrix_rows
from goldenpca.generate import generate_samples
from goldenpca.io import read_results, read_samples, write_results, write_samples
from goldenpca.pca import GoldenPCA


@pytest.fixture
def batch():
    return generate_samples(samples=10, features=3, matrix_count=2, seed=1)


@pytest.fixture
def finished(batch):
    return GoldenPCA(10, 3, 2, False, False, batch).run()


# ---------------------------------------------------------------------------
# Samples
# ---------------------------------------------------------------------------

class TestSamples:

    def test_parquet_roundtrip(self, batch, tmp_path):
        path = write_samples(batch, tmp_path / 'batch.parquet')
        assert np.array_equal(read_samples(path), batch)

    def test_dataset_column_written(self, batch, tmp_path):
        path = write_samples(batch, tmp_path / 'batch.parquet')
        df = pl.read_parquet(path)
        assert df.columns == ['dataset', 'f0', 'f1', 'f2']
        assert df.height == 20

    def test_csv_without_dataset_column(self, tmp_path):
        path = tmp_path / 'rows.csv'
        pl.DataFrame({'a': [1.0, 2.0, 3.0, 4.0], 'b': [5.0, 6.0, 7.0, 8.0]}).write_csv(path)
        loaded = read_samples(path, matrix_count=2)
        assert loaded.shape == (2, 2, 2)
        assert np.array_equal(loaded[1], [[3.0, 7.0], [4.0, 8.0]])

    def test_single_dataset_by_default(self, tmp_path):
        path = tmp_path / 'rows.csv'
        pl.DataFrame({'a': [1.0, 2.0, 3.0]}).write_csv(path)
        assert read_samples(path).shape == (1, 3, 1)

    def test_rows_must_split_evenly(self, tmp_path):
        path = tmp_path / 'rows.csv'
        pl.DataFrame({'a': [1.0, 2.0, 3.0]}).write_csv(path)
        with pytest.raises(ValueError):
            read_samples(path, matrix_count=2)

    def test_unequal_datasets_rejected(self, tmp_path):
        path = tmp_path / 'bad.parquet'
        pl.DataFrame({'dataset': [0, 0, 1], 'f0': [1.0, 2.0, 3.0]}).write_parquet(path)
        with pytest.raises(ValueError):
            read_samples(path)

    def test_write_requires_3d(self, tmp_path):
        with pytest.raises(ValueError):
            write_samples(np.ones((4, 2)), tmp_path / 'x.parquet')


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class TestResults:

    def test_files_written(self, finished, tmp_path):
        write_results(finished, tmp_path)
        for name in ('covariance.parquet', 'eigenvalues.parquet', 'eigenvectors.parquet',
                     'iterations.parquet', 'summary.parquet', 'run.json', 'checksums.json'):
            assert (tmp_path / name).exists(), name

    def test_roundtrip(self, finished, tmp_path):
        write_results(finished, tmp_path)
        loaded = read_results(tmp_path)
        assert np.array_equal(loaded['eigenvalues'], finished.eigenvalues.array)
        assert np.array_equal(loaded['eigenvectors'], finished.eigenvectors.array)
        assert np.array_equal(loaded['covariance'], finished.covariance_matrix.array)
        assert np.array_equal(loaded['iterations'], finished.iterations)

    def test_run_metadata(self, finished, tmp_path):
        write_results(finished, tmp_path)
        with open(tmp_path / 'run.json') as f:
            meta = json.load(f)
        assert meta['samples'] == 10
        assert meta['features'] == 3
        assert meta['matrix_count'] == 2
        assert meta['dtype'] == 'float64'
        assert meta['iteration_cap'] == 3 * 3 * 16
        assert meta['unconverged'] == []

    def test_manifest_covers_buffers(self, finished, tmp_path):
        manifest = write_results(finished, tmp_path)
        assert set(manifest['buffers']) == {'covariance', 'eigenvalues', 'eigenvectors', 'iterations'}
        assert manifest['n_files'] == 6

    def test_minimal_candidate_layout(self, finished, tmp_path):
        """Only the eigen tables are needed to load a candidate run."""
        pl.DataFrame(matrix_rows(finished.eigenvalues.array)).write_parquet(tmp_path / 'eigenvalues.parquet')
        pl.DataFrame(matrix_rows(finished.eigenvectors.array)).write_parquet(tmp_path / 'eigenvectors.parquet')
        loaded = read_results(tmp_path)
        assert loaded['covariance'] is None
        assert loaded['iterations'] is None
        assert loaded['metadata'] == {}
        assert loaded['eigenvalues'].shape == (2, 3)


# ---------------------------------------------------------------------------
# Flattening
# ---------------------------------------------------------------------------

class TestFlatten:

    def test_result_row(self, finished):
        result = finished.result(0)
        row = flatten_result(0, result)
        assert row['dataset'] == 0
        assert row['iterations'] == result.iterations
        assert row['state'] == 'CONVERGED'
        assert row['eigenvalue_0'] >= row['eigenvalue_1'] >= row['eigenvalue_2']
        assert 'eigenvalue_3' not in row
        assert row['eigenvalue_sum'] == pytest.approx(np.trace(finished.covariance_matrix[0]))

    def test_max_eigenvalues(self, finished):
        row = flatten_result(1, finished.result(1), max_eigenvalues=1)
        assert 'eigenvalue_0' in row
        assert 'eigenvalue_1' not in row

    def test_batch_rows(self, finished):
        rows = flatten_batch(finished.results())
        assert [r['dataset'] for r in rows] == [0, 1]

    def test_matrix_rows_3d(self):
        stack = np.arange(8.0).reshape(2, 2, 2)
        cols = matrix_rows(stack)
        assert cols['dataset'].tolist() == [0, 0, 0, 0, 1, 1, 1, 1]
        assert cols['row'].tolist() == [0, 0, 1, 1, 0, 0, 1, 1]
        assert cols['col'].tolist() == [0, 1, 0, 1, 0, 1, 0, 1]
        assert cols['value'].tolist() == list(range(8))

    def test_matrix_rows_2d(self):
        cols = matrix_rows(np.array([[1.0, 2.0], [3.0, 4.0]]))
        assert cols['k'].tolist() == [0, 1, 0, 1]
        assert cols['dataset'].tolist() == [0, 0, 1, 1]

    def test_matrix_rows_rejects_1d(self):
        with pytest.raises(ValueError):
            matrix_rows(np.ones(3))
