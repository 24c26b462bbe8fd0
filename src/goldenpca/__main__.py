"""
goldenpca — one command, four modes.

    goldenpca run data/batch.parquet                     Run covariance + QR eigen-solver ("run" is optional)
    goldenpca data/batch.parquet --dtype float32         Run in single precision storage
    goldenpca data/batch.csv --count 8 --benchmark       Split 8 datasets, no cap warnings
    goldenpca generate --samples 32 --features 8 --count 4 --output data/batch.parquet
    goldenpca verify runs/a runs/b                       Bit-level reproducibility check
    goldenpca compare runs/golden runs/accelerated       Tolerance check of another implementation
"""

import argparse
import logging
import sys
from pathlib import Path

import numpy as np

from goldenpca.config import CONFIG


def main(argv=None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    # Dispatch: `goldenpca generate ...` vs `verify` vs `compare` vs `goldenpca [run] <path>`
    if argv and argv[0] == 'run':
        return _run_main(argv[1:])
    if argv and argv[0] == 'generate':
        return _generate_main(argv[1:])
    if argv and argv[0] == 'verify':
        return _verify_main(argv[1:])
    if argv and argv[0] == 'compare':
        return _compare_main(argv[1:])
    return _run_main(argv)


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


def _run_main(argv) -> int:
    parser = argparse.ArgumentParser(
        prog='goldenpca',
        description='Covariance and shifted-QR eigen-decomposition of a sample batch.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  goldenpca data/batch.parquet                   Writes data/batch_golden/
  goldenpca data/batch.parquet --output runs/a   Writes runs/a/
  goldenpca data/batch.csv --count 8             Table without a dataset column, 8 blocks
""",
    )
    parser.add_argument('path', help='Sample file (.parquet or .csv)')
    parser.add_argument('--count', type=int, default=None,
                        help='Datasets in a table without a dataset column (default: 1)')
    parser.add_argument('--dtype', choices=list(CONFIG['dtypes']), default='float64',
                        help='Storage element type (default: float64)')
    parser.add_argument('--debug', action='store_true',
                        help='Log intermediate matrices and iteration counts')
    parser.add_argument('--benchmark', action='store_true',
                        help='Relaxed mode: no warning when a dataset reaches the iteration cap')
    parser.add_argument('--workers', type=int, default=None,
                        help='Parallel worker processes (default: GOLDENPCA_WORKERS env or 1)')
    parser.add_argument('--output', type=str, default=None,
                        help='Output directory (default: <input stem>_golden next to the input)')

    args = parser.parse_args(argv)
    _configure_logging(args.debug)

    path = Path(args.path).expanduser().resolve()
    if not path.exists():
        print(f"Error: {path} does not exist")
        return 1

    from goldenpca.io import read_samples, write_results
    from goldenpca.pca import GoldenPCA

    batch = read_samples(path, matrix_count=args.count)
    count, n, p = batch.shape
    print(f"Loaded {count} datasets of {n} x {p} from {path}")

    pca = GoldenPCA(
        n, p, count,
        debug=args.debug,
        benchmark_mode=args.benchmark,
        input_data=batch,
        dtype=np.dtype(args.dtype),
        workers=args.workers,
    )
    pca.run()

    output_dir = Path(args.output).expanduser() if args.output else path.parent / f'{path.stem}_golden'
    manifest = write_results(pca, output_dir)

    unconverged = pca.unconverged()
    print(f"Iterations per dataset: {pca.iterations.tolist()} (cap {pca.iteration_cap})")
    print(f"Reached cap: {len(unconverged)}/{count} {unconverged if unconverged else ''}".rstrip())
    print(f"Wrote {manifest['n_files']} files to {output_dir}")
    print(f"Run checksum: {manifest['run_checksum'][:16]}...")
    return 0


def _generate_main(argv) -> int:
    from goldenpca.generate import (
        DEFAULT_COUNT, DEFAULT_FEATURES, DEFAULT_SAMPLES, DEFAULT_SEED,
        generate_dataset,
    )

    parser = argparse.ArgumentParser(
        prog='goldenpca generate',
        description='Generate a synthetic sample batch.',
    )
    parser.add_argument('--samples', type=int, default=DEFAULT_SAMPLES,
                        help=f'Samples per dataset (default: {DEFAULT_SAMPLES})')
    parser.add_argument('--features', type=int, default=DEFAULT_FEATURES,
                        help=f'Features per sample (default: {DEFAULT_FEATURES})')
    parser.add_argument('--count', type=int, default=DEFAULT_COUNT,
                        help=f'Number of datasets (default: {DEFAULT_COUNT})')
    parser.add_argument('--seed', type=int, default=DEFAULT_SEED,
                        help=f'Random seed (default: {DEFAULT_SEED})')
    parser.add_argument('--dtype', choices=list(CONFIG['dtypes']), default='float64')
    parser.add_argument('--standardize', action='store_true',
                        help='z-score each feature within each dataset')
    parser.add_argument('--output', type=str, default='batch.parquet',
                        help='Output file (default: batch.parquet)')

    args = parser.parse_args(argv)
    generate_dataset(
        Path(args.output).expanduser(),
        samples=args.samples,
        features=args.features,
        matrix_count=args.count,
        seed=args.seed,
        dtype=np.dtype(args.dtype),
        standardize=args.standardize,
    )
    return 0


def _verify_main(argv) -> int:
    parser = argparse.ArgumentParser(
        prog='goldenpca verify',
        description='Compare the checksums of two runs.',
    )
    parser.add_argument('run_a', help='First run directory (or checksums.json)')
    parser.add_argument('run_b', help='Second run directory (or checksums.json)')
    args = parser.parse_args(argv)

    from goldenpca.checksums import CHECKSUM_FILE, compare_checksums, print_comparison

    for run in (args.run_a, args.run_b):
        manifest = Path(run).expanduser()
        if manifest.is_dir():
            manifest = manifest / CHECKSUM_FILE
        if not manifest.exists():
            print(f"Error: {manifest} does not exist")
            return 1

    diff = compare_checksums(args.run_a, args.run_b)
    print_comparison(diff)
    return 0 if diff['identical'] else 1


def _compare_main(argv) -> int:
    parser = argparse.ArgumentParser(
        prog='goldenpca compare',
        description='Check another implementation\'s eigen outputs against a golden run.',
    )
    parser.add_argument('golden', help='Golden run directory')
    parser.add_argument('candidate', help='Candidate run directory (same file layout)')
    parser.add_argument('--tolerance', type=float, default=1e-4,
                        help='Relative eigenvalue / absolute eigenvector tolerance (default: 1e-4)')
    parser.add_argument('--positional', action='store_true',
                        help='Pair eigenpairs by position instead of by eigenvalue')
    args = parser.parse_args(argv)

    from goldenpca.config import iteration_cap
    from goldenpca.io import read_results
    from goldenpca.solver import EigenDecomposition
    from goldenpca.validation import compare_to_reference

    for run in (args.golden, args.candidate):
        for name in ('eigenvalues.parquet', 'eigenvectors.parquet'):
            required = Path(run).expanduser() / name
            if not required.exists():
                print(f"Error: {required} does not exist")
                return 1

    golden = read_results(args.golden)
    candidate = read_results(args.candidate)

    if golden['eigenvalues'].shape != candidate['eigenvalues'].shape:
        print(f"Error: golden {golden['eigenvalues'].shape} and candidate "
              f"{candidate['eigenvalues'].shape} batches differ in shape")
        return 1

    count, p = golden['eigenvalues'].shape
    cap = golden['metadata'].get('iteration_cap', iteration_cap(p))
    iterations = golden['iterations'] if golden['iterations'] is not None else np.zeros(count, dtype=int)

    failures = 0
    for index in range(count):
        reference = EigenDecomposition(
            eigenvalues=golden['eigenvalues'][index],
            eigenvectors=golden['eigenvectors'][index],
            iterations=int(iterations[index]),
            max_iterations=cap,
        )
        covariance = golden['covariance'][index] if golden['covariance'] is not None else None
        report = compare_to_reference(
            reference,
            candidate['eigenvalues'][index],
            candidate['eigenvectors'][index],
            tolerance=args.tolerance,
            match_order=not args.positional,
            covariance=covariance,
        )
        status = "PASS" if report['passed'] else "FAIL"
        note = " (golden reached iteration cap)" if reference.reached_limit else ""
        print(f"   #{index}: {status}  eigenvalue_err={report['eigenvalue_error']:.3e}  "
              f"eigenvector_err={report['eigenvector_error']:.3e}{note}")
        if not report['passed']:
            failures += 1

    print(f"\n{count - failures}/{count} datasets within tolerance {args.tolerance:g}")
    return 0 if failures == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
