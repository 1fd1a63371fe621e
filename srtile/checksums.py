"""Checksum helpers for model artifacts."""

import hashlib
import logging
from pathlib import Path


log = logging.getLogger(__name__)


def compute_sha256(file_path: str | Path, chunk_size: int = 1024 * 1024) -> str:
    """Compute the SHA256 digest for a file."""
    path = Path(file_path)
    assert path.is_file(), f"model path is not a file: {path}"

    hasher = hashlib.sha256()
    with path.open("rb") as stream:
        for chunk in iter(lambda: stream.read(chunk_size), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def assert_sha256(file_path: str | Path, expected_sha256: str) -> None:
    """Raise ValueError when a model file does not match the expected SHA256."""
    assert expected_sha256, "expected_sha256 cannot be empty"
    actual_sha256 = compute_sha256(file_path)
    if actual_sha256.lower() != expected_sha256.strip().lower():
        raise ValueError(
            f"checksum mismatch for {file_path}: "
            f"expected {expected_sha256}, got {actual_sha256}"
        )
    log.debug(f"sha256 verified for\n    {file_path}")
