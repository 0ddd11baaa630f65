"""
Streaming content fingerprints.

A fingerprint is the pair (exact size, digest). The digest is computed by
streaming the file through hashlib in fixed-size chunks, so memory use does
not depend on file size.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Union

from symdedup.config.exceptions import HashError
from symdedup.models import Fingerprint

DEFAULT_ALGORITHM = "sha256"
DEFAULT_CHUNK_SIZE = 65536


def _digest_stream(
    file_path: Union[str, Path],
    algorithm: str,
    chunk_size: int,
) -> tuple[str, int]:
    digest = hashlib.new(algorithm)
    total = 0

    try:
        with open(file_path, "rb") as f:
            while chunk := f.read(chunk_size):
                digest.update(chunk)
                total += len(chunk)
    except OSError as e:
        raise HashError(file_path, e.strerror or str(e)) from e

    return digest.hexdigest(), total


def hash_file(
    file_path: Union[str, Path],
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    """
    Compute the hex digest of a file (chunked for memory efficiency).

    Args:
        file_path: File to hash
        algorithm: hashlib algorithm name
        chunk_size: Read chunk size in bytes

    Returns:
        Hex digest string

    Raises:
        HashError: File cannot be opened or fully read
    """
    return _digest_stream(file_path, algorithm, chunk_size)[0]


def fingerprint_file(
    file_path: Union[str, Path],
    size: int,
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Fingerprint:
    """
    Fingerprint a file whose size is already known from stat().

    Raises:
        HashError: File unreadable, or its length changed while it was read
    """
    digest, read_bytes = _digest_stream(file_path, algorithm, chunk_size)
    if read_bytes != size:
        raise HashError(
            file_path,
            f"file changed during scan (stat size {size}, read {read_bytes} bytes)",
        )
    return Fingerprint(size=size, digest=digest)
