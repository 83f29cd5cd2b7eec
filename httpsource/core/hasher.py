"""Content hashing for revision identity.

The revision of a fetched payload is the lowercase SHA-256 hex digest of the
raw bytes as received, before any extraction.
"""

from __future__ import annotations

import hashlib
from collections.abc import Callable, Iterable
from typing import BinaryIO


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def tee_and_hash(
    chunks: Iterable[bytes],
    sink: BinaryIO,
    *,
    before_chunk: Callable[[], None] | None = None,
) -> tuple[str, int]:
    """Write every chunk to *sink* and a SHA-256 accumulator in one pass.

    ``before_chunk`` runs ahead of each write and may raise to abort the copy
    (used for cancellation).  Returns ``(hex_digest, bytes_written)``; the
    digest covers exactly the bytes handed to *sink*.
    """
    digest = hashlib.sha256()
    written = 0
    for chunk in chunks:
        if before_chunk is not None:
            before_chunk()
        if not chunk:
            continue
        sink.write(chunk)
        digest.update(chunk)
        written += len(chunk)
    return digest.hexdigest(), written
