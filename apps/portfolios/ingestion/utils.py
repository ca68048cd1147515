"""
Helper utilities for holdings ingestion.

Provides file hashing for the audit trail and identifier sanitizing for
generated file names and placeholder emails.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9]")


def compute_file_hash(file_path: str | Path, chunk_size: int = 65536) -> str:
    """
    Compute the SHA256 hash of a file.

    Args:
        file_path: Path to the file to hash.
        chunk_size: Read size in bytes.

    Returns:
        str: Hex digest of the hash (64 characters).

    Example:
        >>> hash_value = compute_file_hash("extract.xlsx")
        >>> # Returns: "a1b2c3d4e5f6..."
    """
    hash_obj = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            hash_obj.update(chunk)
    return hash_obj.hexdigest()


def sanitize_identifier(value: str) -> str:
    """
    Replace every non-alphanumeric character by a dash.

    Example:
        >>> sanitize_identifier("K00149JV/KLX")
        'K00149JV-KLX'
    """
    return _UNSAFE_CHARS.sub("-", value)
