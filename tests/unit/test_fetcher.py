"""Tests for the Fetcher — single GET, streaming hash, tar extraction, auth."""

from __future__ import annotations

import base64
import hashlib
import threading
import time
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from httpsource.core.context import ReconcileContext
from httpsource.core.errors import (
    ExtractionError,
    FetchCancelledError,
    TransportError,
)
from httpsource.core.fetcher import Fetcher, filename_for
from httpsource.models.credentials import FetchCredentials

URL = "http://source.test/releases/content.tar.gz"


@pytest.fixture
def work_dir(tmp_dir: Path) -> Path:
    path = tmp_dir / "ws"
    path.mkdir()
    return path


class TestFilenameFor:
    def test_url_basename(self):
        assert filename_for(URL) == "content.tar.gz"

    def test_query_ignored(self):
        assert filename_for("http://h/a/file.txt?sig=abc") == "file.txt"

    def test_no_path(self):
        assert filename_for("http://h/") == "payload"


class TestFetch:
    def test_plain_payload_written_and_hashed(
        self, make_client: Callable[..., httpx.Client], work_dir: Path
    ):
        body = b"apiVersion: v1\nkind: ConfigMap\n"
        fetcher = Fetcher(make_client(body))
        digest = fetcher.fetch("http://source.test/manifest.yaml", work_dir)
        assert digest == hashlib.sha256(body).hexdigest()
        assert (work_dir / "manifest.yaml").read_bytes() == body
        assert [p.name for p in work_dir.iterdir()] == ["manifest.yaml"]

    def test_tarball_extracted_and_removed(
        self,
        make_client: Callable[..., httpx.Client],
        make_tarball: Callable[..., bytes],
        work_dir: Path,
    ):
        body = make_tarball({"deploy/app.yaml": b"kind: Deployment\n"})
        digest = Fetcher(make_client(body)).fetch(URL, work_dir)
        assert digest == hashlib.sha256(body).hexdigest()
        assert (work_dir / "deploy" / "app.yaml").read_bytes() == b"kind: Deployment\n"
        assert not (work_dir / "content.tar.gz").exists()

    def test_member_named_like_download_kept(
        self,
        make_client: Callable[..., httpx.Client],
        make_tarball: Callable[..., bytes],
        work_dir: Path,
    ):
        body = make_tarball({"content.tar.gz": b"inner", "app.yaml": b"x"})
        Fetcher(make_client(body)).fetch(URL, work_dir)
        assert (work_dir / "content.tar.gz").read_bytes() == b"inner"
        assert sorted(p.name for p in work_dir.iterdir()) == ["app.yaml", "content.tar.gz"]

    def test_tarball_detected_without_suffix(
        self,
        make_client: Callable[..., httpx.Client],
        make_tarball: Callable[..., bytes],
        work_dir: Path,
    ):
        body = make_tarball({"app.yaml": b"x"})
        Fetcher(make_client(body)).fetch("http://source.test/download", work_dir)
        assert (work_dir / "app.yaml").read_bytes() == b"x"

    def test_single_get(self, make_client: Callable[..., httpx.Client], work_dir: Path):
        requests: list[httpx.Request] = []
        Fetcher(make_client(b"x", requests=requests)).fetch(URL.replace(".tar.gz", ".txt"), work_dir)
        assert len(requests) == 1
        assert requests[0].method == "GET"

    def test_non_2xx_is_transport_error(
        self, make_client: Callable[..., httpx.Client], work_dir: Path
    ):
        fetcher = Fetcher(make_client(b"boom", status_code=500))
        with pytest.raises(TransportError, match="status code 500") as exc_info:
            fetcher.fetch(URL, work_dir)
        assert exc_info.value.status_code == 500
        assert list(work_dir.iterdir()) == []

    def test_connection_failure(self, make_client: Callable[..., httpx.Client], work_dir: Path):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError, match="failed to fetch data") as exc_info:
            Fetcher(make_client(handler=refuse)).fetch(URL, work_dir)
        assert not isinstance(exc_info.value, FetchCancelledError)

    def test_invalid_url(self, make_client: Callable[..., httpx.Client], work_dir: Path):
        with pytest.raises(TransportError, match="failed to generate request"):
            Fetcher(make_client()).fetch("http://source.test/\x00", work_dir)

    def test_corrupt_archive_is_extraction_error(
        self, make_client: Callable[..., httpx.Client], work_dir: Path
    ):
        fetcher = Fetcher(make_client(b"not a tarball"))
        with pytest.raises(ExtractionError, match="failed to untar"):
            fetcher.fetch(URL, work_dir)


class TestFetchCredentials:
    def test_basic_auth_header(self, make_client: Callable[..., httpx.Client], work_dir: Path):
        requests: list[httpx.Request] = []
        Fetcher(make_client(b"x", requests=requests)).fetch(
            "http://source.test/f.txt", work_dir, FetchCredentials.basic("alice", "pw")
        )
        expected = base64.b64encode(b"alice:pw").decode()
        assert requests[0].headers["Authorization"] == f"Basic {expected}"

    def test_bearer_header(self, make_client: Callable[..., httpx.Client], work_dir: Path):
        requests: list[httpx.Request] = []
        Fetcher(make_client(b"x", requests=requests)).fetch(
            "http://source.test/f.txt", work_dir, FetchCredentials.bearer("tok")
        )
        assert requests[0].headers["Authorization"] == "Bearer tok"

    def test_anonymous_sends_no_authorization(
        self, make_client: Callable[..., httpx.Client], work_dir: Path
    ):
        requests: list[httpx.Request] = []
        Fetcher(make_client(b"x", requests=requests)).fetch("http://source.test/f.txt", work_dir)
        assert "Authorization" not in requests[0].headers


class TestFetchCancellation:
    def test_cancelled_before_request(
        self, make_client: Callable[..., httpx.Client], work_dir: Path
    ):
        requests: list[httpx.Request] = []
        ctx = ReconcileContext()
        ctx.cancel()
        with pytest.raises(FetchCancelledError, match="cancelled"):
            Fetcher(make_client(b"x", requests=requests)).fetch(URL, work_dir, ctx=ctx)
        assert requests == []

    def test_cancelled_during_request(
        self, make_client: Callable[..., httpx.Client], work_dir: Path
    ):
        ctx = ReconcileContext()

        def respond_then_cancel(request: httpx.Request) -> httpx.Response:
            ctx.cancel()
            return httpx.Response(200, content=b"payload")

        fetcher = Fetcher(make_client(handler=respond_then_cancel))
        with pytest.raises(FetchCancelledError):
            fetcher.fetch("http://source.test/f.txt", work_dir, ctx=ctx)

    def test_cancelled_while_streaming(
        self, make_client: Callable[..., httpx.Client], work_dir: Path
    ):
        ctx = ReconcileContext()

        def chunks():
            yield b"first"
            ctx.cancel()
            yield b"second"

        def respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=chunks())

        fetcher = Fetcher(make_client(handler=respond))
        with pytest.raises(FetchCancelledError, match="cancelled"):
            fetcher.fetch("http://source.test/f.txt", work_dir, ctx=ctx)
        assert list(work_dir.iterdir()) == []

    def test_stalled_request_abandoned_on_cancel(
        self, make_client: Callable[..., httpx.Client], work_dir: Path
    ):
        ctx = ReconcileContext()
        release = threading.Event()

        def stall(request: httpx.Request) -> httpx.Response:
            release.wait(2.0)
            return httpx.Response(200, content=b"late")

        timer = threading.Timer(0.1, ctx.cancel)
        started = time.monotonic()
        timer.start()
        try:
            with pytest.raises(FetchCancelledError, match="cancelled"):
                Fetcher(make_client(handler=stall)).fetch(URL, work_dir, ctx=ctx)
            elapsed = time.monotonic() - started
        finally:
            timer.cancel()
            release.set()
        assert elapsed < 1.0
        assert list(work_dir.iterdir()) == []

    def test_stalled_request_abandoned_at_deadline(
        self, make_client: Callable[..., httpx.Client], work_dir: Path
    ):
        release = threading.Event()

        def stall(request: httpx.Request) -> httpx.Response:
            release.wait(2.0)
            return httpx.Response(200, content=b"late")

        started = time.monotonic()
        try:
            with pytest.raises(FetchCancelledError, match="deadline"):
                Fetcher(make_client(handler=stall)).fetch(
                    URL, work_dir, ctx=ReconcileContext(timeout=0.1)
                )
            elapsed = time.monotonic() - started
        finally:
            release.set()
        assert elapsed < 1.0

    def test_cancellation_is_a_transport_error(self):
        assert issubclass(FetchCancelledError, TransportError)
