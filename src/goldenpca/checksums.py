"""Checksums of golden outputs for bit-level reproducibility checks."""

import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

import numpy as np

CHECKSUM_FILE = "checksums.json"
OUTPUT_EXTENSIONS = {".parquet", ".json", ".csv"}


def hash_file(filepath, algorithm: str = "sha256") -> str:
    """Hash a single file in chunks."""
    h = hashlib.new(algorithm)
    with open(filepath, "rb") as f:
        while True:
            chunk = f.read(8192)
            if not chunk:
                break
            h.update(chunk)
    return h.hexdigest()


def hash_array(array: np.ndarray, algorithm: str = "sha256") -> str:
    """Hash dtype, shape and raw bytes of an array.

    Two buffers hash equal only when they are bit-identical and have the
    same element type and shape.
    """
    array = np.ascontiguousarray(array)
    h = hashlib.new(algorithm)
    h.update(array.dtype.str.encode())
    h.update(repr(array.shape).encode())
    h.update(array.tobytes())
    return h.hexdigest()


def generate_checksums(
    output_dir,
    buffers: Optional[Dict[str, np.ndarray]] = None,
) -> dict:
    """
    Write checksums.json for a run directory.

    Call this as the last step of writing a run's outputs.

    Parameters
    ----------
    output_dir : path
        Directory holding the run outputs.
    buffers : dict, optional
        {name: array} in-memory buffers to hash alongside the files.

    Returns
    -------
    dict — the manifest that was written.
    """
    output_path = Path(output_dir)

    files = sorted(
        f for f in output_path.rglob("*")
        if f.is_file()
        and f.suffix in OUTPUT_EXTENSIONS
        and f.name != CHECKSUM_FILE
    )

    file_checksums = {}
    for f in files:
        rel_path = str(f.relative_to(output_path))
        file_checksums[rel_path] = {
            "sha256": hash_file(f),
            "size_bytes": f.stat().st_size,
        }

    buffer_checksums = {
        name: hash_array(array) for name, array in sorted((buffers or {}).items())
    }

    # Combined hash over buffers first, then files, each in sorted key order
    combined = hashlib.sha256()
    for key in sorted(buffer_checksums):
        combined.update(buffer_checksums[key].encode())
    for key in sorted(file_checksums):
        combined.update(file_checksums[key]["sha256"].encode())

    manifest = {
        "run_checksum": combined.hexdigest(),
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "output_dir": str(output_path),
        "n_files": len(file_checksums),
        "total_bytes": sum(v["size_bytes"] for v in file_checksums.values()),
        "buffers": buffer_checksums,
        "files": file_checksums,
    }

    with open(output_path / CHECKSUM_FILE, "w") as f:
        json.dump(manifest, f, indent=2)

    return manifest


def _load_manifest(path) -> dict:
    path = Path(path)
    if path.is_dir():
        path = path / CHECKSUM_FILE
    with open(path) as f:
        return json.load(f)


def compare_checksums(path_a, path_b) -> dict:
    """
    Compare two checksum manifests (files or run directories).

    Usage:
        diff = compare_checksums("runs/golden_001", "runs/golden_002")
    """
    a = _load_manifest(path_a)
    b = _load_manifest(path_b)

    buffers_a = a.get("buffers", {})
    buffers_b = b.get("buffers", {})
    changed_buffers = sorted(
        name for name in set(buffers_a) | set(buffers_b)
        if buffers_a.get(name) != buffers_b.get(name)
    )

    files_a = set(a["files"].keys())
    files_b = set(b["files"].keys())
    added = files_b - files_a
    removed = files_a - files_b

    changed = []
    unchanged = []
    for fname in sorted(files_a & files_b):
        if a["files"][fname]["sha256"] != b["files"][fname]["sha256"]:
            changed.append({
                "file": fname,
                "size_a": a["files"][fname]["size_bytes"],
                "size_b": b["files"][fname]["size_bytes"],
            })
        else:
            unchanged.append(fname)

    identical = not (added or removed or changed or changed_buffers)

    return {
        "identical": identical,
        "run_checksum_a": a["run_checksum"],
        "run_checksum_b": b["run_checksum"],
        "n_files_a": a["n_files"],
        "n_files_b": b["n_files"],
        "changed_buffers": changed_buffers,
        "added": sorted(added),
        "removed": sorted(removed),
        "changed": changed,
        "unchanged_count": len(unchanged),
    }


def print_comparison(diff: dict) -> None:
    """Pretty-print a checksum comparison."""
    if diff["identical"]:
        print("IDENTICAL -- all buffers and files match")
        print(f"   Run checksum: {diff['run_checksum_a'][:16]}...")
        print(f"   Files: {diff['n_files_a']}")
        return

    print("DIFFERENCES FOUND")
    print(f"   Run A: {diff['run_checksum_a'][:16]}... ({diff['n_files_a']} files)")
    print(f"   Run B: {diff['run_checksum_b'][:16]}... ({diff['n_files_b']} files)")

    if diff["changed_buffers"]:
        print(f"\n   Buffers differ ({len(diff['changed_buffers'])}):")
        for name in diff["changed_buffers"]:
            print(f"     ~ {name}")

    if diff["added"]:
        print(f"\n   Added ({len(diff['added'])}):")
        for f in diff["added"]:
            print(f"     + {f}")

    if diff["removed"]:
        print(f"\n   Removed ({len(diff['removed'])}):")
        for f in diff["removed"]:
            print(f"     - {f}")

    if diff["changed"]:
        print(f"\n   Changed ({len(diff['changed'])}):")
        for c in diff["changed"]:
            size_delta = c["size_b"] - c["size_a"]
            sign = "+" if size_delta >= 0 else ""
            print(f"     ~ {c['file']} ({sign}{size_delta} bytes)")

    print(f"\n   Unchanged: {diff['unchanged_count']} files")
