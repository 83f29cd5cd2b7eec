"""Tests for the revision hasher — digest identity and single-pass tee."""

from __future__ import annotations

import hashlib
import io

import pytest

from httpsource.core.hasher import sha256_hex, tee_and_hash


class TestSha256Hex:
    def test_known_vector(self):
        assert (
            sha256_hex(b"abc")
            == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )

    def test_lowercase_hex(self):
        digest = sha256_hex(b"payload")
        assert len(digest) == 64
        assert digest == digest.lower()


class TestTeeAndHash:
    def test_digest_covers_written_bytes(self):
        sink = io.BytesIO()
        digest, written = tee_and_hash([b"hello ", b"", b"world"], sink)
        assert sink.getvalue() == b"hello world"
        assert written == 11
        assert digest == hashlib.sha256(b"hello world").hexdigest()

    def test_empty_stream(self):
        sink = io.BytesIO()
        digest, written = tee_and_hash([], sink)
        assert written == 0
        assert digest == hashlib.sha256(b"").hexdigest()

    def test_before_chunk_aborts_copy(self):
        """An exception from the hook stops the copy before the next write."""
        calls = []

        def hook() -> None:
            calls.append(1)
            if len(calls) == 2:
                raise RuntimeError("stop")

        sink = io.BytesIO()
        with pytest.raises(RuntimeError, match="stop"):
            tee_and_hash([b"first", b"second"], sink, before_chunk=hook)
        assert sink.getvalue() == b"first"
