"""SHA-256 digests for run provenance.

Provides:
    - sha256_file(): digest of a file on disk (written images)
    - sha256_bytes(): digest of bytes already in memory (parsed input tables)
    - sha256_array(): digest of a sampled point array

Two runs over the same epicycles with the same sampling constants must give
the same trace digest; the CLI logs both digests and the manifest stores them.
Array digests cover dtype, shape and values, so an (N, 2) int64 trace and a
flattened or int32 copy of it hash differently.
"""

import hashlib
from pathlib import Path
from typing import Union

import numpy as np


def sha256_file(path: Union[str, Path], chunk_size: int = 1 << 20) -> str:
    """Hex SHA-256 of a file's bytes, read in ``chunk_size`` blocks.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    digest = hashlib.sha256()
    with open(path, 'rb') as f:
        for block in iter(lambda: f.read(chunk_size), b''):
            digest.update(block)
    return digest.hexdigest()


def sha256_array(a: np.ndarray) -> str:
    """Hex SHA-256 over ``dtype``, ``shape`` and the C-ordered array bytes."""
    a = np.ascontiguousarray(a)
    digest = hashlib.sha256(f"{a.dtype.str}|{a.shape}|".encode('ascii'))
    digest.update(a.tobytes())
    return digest.hexdigest()


def sha256_bytes(data: bytes) -> str:
    """Hex SHA-256 of an in-memory buffer (e.g. an input file read once)."""
    return hashlib.sha256(data).hexdigest()
