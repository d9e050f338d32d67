"""SHA-256 hashing for buffer item identity and file provenance.

Provides:
    - sha256_string(): Hash a text payload
    - hash_dict(): Hash a JSON-serializable mapping (sorted keys)
    - sha256_file(): Hash file contents (device profiles, job files)

Buffer items are keyed by ``hash_dict`` over their canonical content, so
the executor process and the buffer agree on an id without sharing any
object references.

Deterministic hashing:
    - Dicts serialized with ``sort_keys=True`` and compact separators
    - Files read in chunks (1 MB default) for memory efficiency
    - Results are hex strings (64 chars)

Usage:
    from src.utils import hashing
    item_id = hashing.hash_dict({"command": {...}, "duration": 10})
"""

import hashlib
import json
from pathlib import Path
from typing import Any, Dict, Union


def sha256_string(s: str) -> str:
    """Compute SHA-256 hash of string.

    Parameters
    ----------
    s : str
        String to hash

    Returns
    -------
    str
        SHA-256 hex digest (64 characters)
    """
    sha256 = hashlib.sha256()
    sha256.update(s.encode('utf-8'))
    return sha256.hexdigest()


def canonical_json(d: Dict[str, Any]) -> str:
    """Serialize a mapping to a stable JSON string.

    Keys are sorted and whitespace is stripped so that two equal mappings
    always produce byte-identical output.
    """
    return json.dumps(d, sort_keys=True, separators=(',', ':'), default=str)


def hash_dict(d: Dict[str, Any]) -> str:
    """Compute SHA-256 hash of dictionary (sorted keys).

    Parameters
    ----------
    d : dict
        Dictionary to hash (JSON-serializable; other values fall back to
        ``str()``)

    Returns
    -------
    str
        SHA-256 hex digest

    Notes
    -----
    Sorts keys for determinism.
    Used for buffer item ids and config hashing.
    """
    return sha256_string(canonical_json(d))


def sha256_file(path: Union[str, Path], chunk_size: int = 1 << 20) -> str:
    """Compute SHA-256 hash of file contents.

    Parameters
    ----------
    path : Union[str, Path]
        File path
    chunk_size : int
        Read chunk size in bytes, default 1 MB

    Returns
    -------
    str
        SHA-256 hex digest (64 characters)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    sha256 = hashlib.sha256()

    with open(path, 'rb') as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            sha256.update(chunk)

    return sha256.hexdigest()


def verify_file_hash(path: Union[str, Path], expected_hash: str) -> bool:
    """Verify file matches expected hash.

    Parameters
    ----------
    path : Union[str, Path]
        File path
    expected_hash : str
        Expected SHA-256 hex digest

    Returns
    -------
    bool
        True if hash matches, False otherwise
    """
    return sha256_file(path) == expected_hash
