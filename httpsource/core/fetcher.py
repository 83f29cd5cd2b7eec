"""Content fetcher — downloads a remote payload into a workspace.

One GET per fetch.  The response body is streamed once: every chunk goes to
the workspace file and to a SHA-256 accumulator, so the returned revision is
the digest of exactly the bytes written to disk.  The body lands in a
reserved hidden file; tar payloads are extracted next to it and the download
removed, any other payload is renamed to the URL's base name, leaving the
workspace holding only the payload's contents.

The request itself runs on a worker thread so that cancelling the
reconciliation context abandons a stalled request at once.
"""

from __future__ import annotations

import logging
import os
import tarfile
import tempfile
import threading
from concurrent.futures import Future
from pathlib import Path, PurePosixPath
from typing import Any
from urllib.parse import urlsplit

import httpx

from httpsource.core.archive import ArchiveError, extract_tarball, looks_like_archive
from httpsource.core.context import ReconcileContext, background
from httpsource.core.errors import ExtractionError, FetchCancelledError, TransportError
from httpsource.core.hasher import tee_and_hash
from httpsource.models.credentials import CredentialKind, FetchCredentials

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "payload"
DOWNLOAD_PREFIX = ".download-"


def filename_for(url: str) -> str:
    """Base name of the URL path, used as the workspace filename."""
    return PurePosixPath(urlsplit(url).path).name or DEFAULT_FILENAME


class Fetcher:
    """Wraps an ``httpx.Client``.

    Parameters
    ----------
    client:
        The HTTP client used for every request.  Timeouts, TLS, proxies and
        transports are the client's concern.
    """

    def __init__(self, client: httpx.Client) -> None:
        self._client = client

    def fetch(
        self,
        url: str,
        work_dir: Path,
        credentials: FetchCredentials | None = None,
        *,
        ctx: ReconcileContext | None = None,
    ) -> str:
        """Fetch *url* into *work_dir* and return the payload's SHA-256 hex digest.

        Raises
        ------
        TransportError
            The request could not be built or sent, or the status code is
            outside ``[200, 300)``.  ``FetchCancelledError`` when *ctx* is
            cancelled or its deadline passes.
        ExtractionError
            The payload could not be written, or is an invalid tar archive.
        """
        ctx = ctx or background()
        credentials = credentials or FetchCredentials.none()
        work_dir = Path(work_dir)

        ctx.raise_if_done()
        request = self._build_request(url, credentials, ctx)
        auth: httpx.Auth | None = None
        if credentials.kind is CredentialKind.BASIC_AUTH:
            auth = httpx.BasicAuth(
                credentials.username, credentials.password.get_secret_value()
            )

        try:
            response = self._send(request, auth, ctx)
        except httpx.TimeoutException as exc:
            if ctx.expired:
                raise FetchCancelledError("context deadline exceeded") from exc
            raise TransportError(f"failed to fetch data: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"failed to fetch data: {exc}") from exc

        try:
            if not response.is_success:
                raise TransportError(
                    f"failed to fetch url content with status code {response.status_code}",
                    status_code=response.status_code,
                )
            download, digest, size = self._download(response, work_dir, ctx)
        except httpx.HTTPError as exc:
            raise TransportError(f"failed to read response body: {exc}") from exc
        except OSError as exc:
            raise ExtractionError(f"failed to write payload to {work_dir}: {exc}") from exc
        finally:
            response.close()

        logger.debug("Fetched %d bytes from %s (sha256 %s)", size, url, digest)
        self._place(download, work_dir, filename_for(url))
        return digest

    def _send(
        self, request: httpx.Request, auth: httpx.Auth | None, ctx: ReconcileContext
    ) -> httpx.Response:
        """Send *request* on a worker thread and wait for headers or for *ctx* to end.

        An abandoned request keeps running until the client gives up; its
        response, if one arrives, is closed unread.
        """
        outcome: Future[httpx.Response] = Future()
        finished = threading.Event()
        outcome.add_done_callback(lambda _: finished.set())

        def send() -> None:
            try:
                response = self._client.send(request, auth=auth, stream=True)
            except Exception as exc:
                outcome.set_exception(exc)
            else:
                outcome.set_result(response)

        remove_hook = ctx.on_cancel(finished.set)
        try:
            threading.Thread(target=send, name="httpsource-fetch", daemon=True).start()
            finished.wait(ctx.remaining())
        finally:
            remove_hook()

        if ctx.cancelled or ctx.expired:
            outcome.add_done_callback(_close_abandoned)
            logger.debug("Abandoning request to %s", request.url)
            ctx.raise_if_done()
        return outcome.result()

    @staticmethod
    def _download(
        response: httpx.Response, work_dir: Path, ctx: ReconcileContext
    ) -> tuple[Path, str, int]:
        """Stream the body into a fresh hidden file in *work_dir*."""
        fd, name = tempfile.mkstemp(prefix=DOWNLOAD_PREFIX, dir=work_dir)
        download = Path(name)
        try:
            with os.fdopen(fd, "wb") as fh:
                digest, size = tee_and_hash(
                    response.iter_bytes(), fh, before_chunk=ctx.raise_if_done
                )
        except BaseException:
            download.unlink(missing_ok=True)
            raise
        return download, digest, size

    def _build_request(
        self, url: str, credentials: FetchCredentials, ctx: ReconcileContext
    ) -> httpx.Request:
        headers: dict[str, str] = {}
        if credentials.kind is CredentialKind.BEARER_TOKEN:
            headers["Authorization"] = f"Bearer {credentials.token.get_secret_value()}"

        kwargs: dict[str, Any] = {"headers": headers}
        remaining = ctx.remaining()
        if remaining is not None:
            kwargs["timeout"] = remaining

        try:
            return self._client.build_request("GET", url, **kwargs)
        except (httpx.InvalidURL, ValueError) as exc:
            raise TransportError(
                f"failed to generate request for url '{url}': {exc}"
            ) from exc

    @staticmethod
    def _place(download: Path, work_dir: Path, filename: str) -> None:
        """Untar *download* into *work_dir*, or keep it as *filename*."""
        if looks_like_archive(Path(filename)) or tarfile.is_tarfile(download):
            try:
                extract_tarball(download, work_dir)
            except ArchiveError as exc:
                raise ExtractionError(f"failed to untar file content: {exc}") from exc
            finally:
                download.unlink(missing_ok=True)
            return

        target = work_dir / filename
        try:
            download.replace(target)
        except OSError as exc:
            raise ExtractionError(f"failed to write payload to {target}: {exc}") from exc


def _close_abandoned(outcome: Future[httpx.Response]) -> None:
    if outcome.exception() is None:
        outcome.result().close()
