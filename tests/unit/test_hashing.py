"""Unit tests for hashing functionality."""

import hashlib
from pathlib import Path

from dshare.core import hashing


def test_calculate_sha256_bytes_basic() -> None:
    """Hashing bytes should match hashlib output."""
    data = b"hello world"
    assert hashing.calculate_sha256_bytes(data) == hashlib.sha256(data).hexdigest()


def test_calculate_sha256_bytes_empty() -> None:
    """Empty bytes should still produce a valid hash."""
    assert hashing.calculate_sha256_bytes(b"") == hashlib.sha256(b"").hexdigest()


def test_calculate_sha256_file(tmp_path: Path) -> None:
    """Hashing a file should match manual hashlib computation."""
    file_path = tmp_path / "sample.bin"
    content = b"dshare test data" * 10_000
    file_path.write_bytes(content)

    assert hashing.calculate_sha256(file_path) == hashlib.sha256(content).hexdigest()


def test_file_and_bytes_hash_agree(tmp_path: Path) -> None:
    file_path = tmp_path / "same.bin"
    file_path.write_bytes(b"abc")
    assert hashing.calculate_sha256(file_path) == hashing.calculate_sha256_bytes(b"abc")
