"""Streaming content hashes for files, directory trees and raw bytes."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

CHUNK_SIZE = 65_536  # 64 KB


def file_hash(path: Path | str, chunk_size: int = CHUNK_SIZE) -> str:
    """Compute SHA-256 of a file using chunked reads.

    Raises:
        OSError: If the file cannot be opened or read.
    """
    h = hashlib.sha256()
    with open(path, "rb") as f:
        while chunk := f.read(chunk_size):
            h.update(chunk)
    return h.hexdigest()


def bytes_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def tree_hash(root: Path | str) -> str:
    """Hash a directory tree: relative layout, file contents and symlink targets.

    Entries are visited in sorted order so the digest does not depend on
    directory listing order.
    """
    h = hashlib.sha256()
    root = os.fspath(root)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        rel_dir = os.path.relpath(dirpath, root)
        h.update(b"D\0" + rel_dir.encode("utf-8", "surrogateescape") + b"\0")
        for name in sorted(filenames + [d for d in dirnames if os.path.islink(os.path.join(dirpath, d))]):
            full = os.path.join(dirpath, name)
            rel = os.path.join(rel_dir, name).encode("utf-8", "surrogateescape")
            if os.path.islink(full):
                h.update(b"L\0" + rel + b"\0" + os.readlink(full).encode("utf-8", "surrogateescape") + b"\0")
            else:
                h.update(b"F\0" + rel + b"\0" + file_hash(full).encode("ascii") + b"\0")
    return h.hexdigest()


def content_hash(path: Path | str) -> str:
    """Hash a file, a symlink (by target) or a directory tree."""
    if os.path.islink(path):
        return bytes_hash(b"L\0" + os.readlink(path).encode("utf-8", "surrogateescape"))
    if os.path.isdir(path):
        return tree_hash(path)
    return file_hash(path)


def files_identical(first: Path | str, second: Path | str, chunk_size: int = CHUNK_SIZE) -> bool:
    """Byte-for-byte comparison of two regular files."""
    if os.path.getsize(first) != os.path.getsize(second):
        return False
    with open(first, "rb") as a, open(second, "rb") as b:
        while True:
            chunk_a = a.read(chunk_size)
            chunk_b = b.read(chunk_size)
            if chunk_a != chunk_b:
                return False
            if not chunk_a:
                return True
