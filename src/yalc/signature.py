"""Content signatures for published file sets.

A signature is a SHA-256 digest over every file's relative path and content
hash, taken in sorted path order so traversal order never changes it.
"""

import hashlib
from pathlib import Path

from .config import SHORT_SIGNATURE_LENGTH
from .files import ResolvedFileSet
from .utils import collect_tree_files


def compute_signature(file_set: ResolvedFileSet) -> bytes:
    """Return the raw 32-byte signature of a resolved file set."""
    digest = hashlib.sha256()
    for rel in sorted(file_set.files):
        content_hash = hashlib.sha256((file_set.root / rel).read_bytes()).hexdigest()
        digest.update(f"{rel}\0{content_hash}\n".encode())
    return digest.digest()


def signature_hex(signature: bytes) -> str:
    return signature.hex()


def short_signature(signature: bytes, length: int = SHORT_SIGNATURE_LENGTH) -> str:
    """Short textual tag embedded in published versions."""
    return signature.hex()[:length]


def signed_version(version: str, signature: bytes) -> str:
    """``1.0.0`` -> ``1.0.0-<tag>``."""
    return f"{version}-{short_signature(signature)}"


def directory_signature(root: Path, exclude: tuple[str, ...] = ()) -> bytes:
    """Signature over every file already stored under ``root``."""
    return compute_signature(ResolvedFileSet(root=root, files=tuple(collect_tree_files(root, exclude))))
