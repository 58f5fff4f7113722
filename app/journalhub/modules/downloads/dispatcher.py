"""
Per-request download orchestration.

LookupRecord -> ChooseSource -> RemoteFetch | LocalFallback -> Respond

Two endpoint families share this code: *proxy* endpoints fetch the remote bytes
and send them to the client themselves, *redirect* endpoints send the client to
the (attachment-flagged) remote URL. Both serve the local copy when the record
has no remote URL.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO

from flask import Response
from flask import redirect as redirect_response

from app.journalhub.errors import LocalFileNotFound, NoFileConfigured, RecordNotFound, RemoteFetchFailed, StreamWriteFailed
from app.journalhub.modules.downloads.fetcher import FetchResult, RemoteFetcher
from app.journalhub.modules.downloads.service import (
    DocumentKind,
    LocalResolver,
    content_disposition,
    sanitize_download_stem,
    to_attachment_url,
)

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "Not available"


@dataclass(frozen=True)
class RecordSource:
    """How the dispatcher finds one kind of record (journal, submission)."""

    label: str
    default_stem: str
    lookup: Callable[[int], Any]


@dataclass(frozen=True)
class DownloadSettings:
    storage_root: Path
    base_dir: Path
    legacy_roots: tuple[Path, ...] = ()
    fetch_timeout_seconds: float = 30.0
    fetch_retries: int = 0
    chunk_size: int = 64 * 1024

    @classmethod
    def from_config(cls, config: dict, *, base_dir: Path | None = None) -> DownloadSettings:
        base = (base_dir or Path(os.getcwd())).resolve()

        def _abs(raw: str) -> Path:
            p = Path(raw)
            return p if p.is_absolute() else (base / p).resolve()

        return cls(
            storage_root=_abs(config.get("DOCUMENT_STORAGE_PATH") or "uploads/journals"),
            base_dir=base,
            legacy_roots=tuple(_abs(r) for r in (config.get("LEGACY_STORAGE_ROOTS") or [])),
            fetch_timeout_seconds=float(config.get("REMOTE_FETCH_TIMEOUT_SECONDS") or 30.0),
            fetch_retries=int(config.get("REMOTE_FETCH_RETRIES") or 0),
        )


class DownloadDispatcher:
    def __init__(
        self,
        settings: DownloadSettings,
        *,
        fetcher: RemoteFetcher | None = None,
        resolver: LocalResolver | None = None,
    ) -> None:
        self.settings = settings
        self.fetcher = fetcher or RemoteFetcher(
            timeout_seconds=settings.fetch_timeout_seconds,
            retries=settings.fetch_retries,
        )
        self.resolver = resolver or LocalResolver(
            storage_root=settings.storage_root,
            base_dir=settings.base_dir,
            legacy_roots=settings.legacy_roots,
        )

    # -- states ---------------------------------------------------------

    def lookup(self, source: RecordSource, record_id: int) -> Any:
        record = source.lookup(record_id)
        if record is None:
            logger.warning("%s not found (id=%s)", source.label, record_id)
            raise RecordNotFound(f"{source.label} not found")
        return record

    def choose_source(self, source: RecordSource, record: Any, kind: DocumentKind) -> tuple[str | None, str | None]:
        url = kind.remote_url(record)
        local_path = kind.local_path(record)
        if not url and not local_path:
            raise NoFileConfigured(
                f"No {kind.label} file found for this {source.label.lower()}",
                details=self._tried(record, url, local_path),
            )
        return url, local_path

    def serve_local(
        self,
        source: RecordSource,
        record: Any,
        kind: DocumentKind,
        *,
        url: str | None,
        local_path: str | None,
        inline: bool = False,
    ) -> Response:
        try:
            path = self.resolver.resolve(local_path)
        except LocalFileNotFound:
            logger.warning(
                "%s %s #%s: no local copy (stored path=%r, remote=%s)",
                source.label,
                kind.label,
                record.id,
                local_path,
                "failed" if url else "absent",
            )
            raise LocalFileNotFound(f"{kind.label} file not found", details=self._tried(record, url, local_path))
        logger.info("%s %s #%s: serving local file %s", source.label, kind.label, record.id, path.name)
        return self._file_response(path, kind, self._stem(source, record), inline=inline)

    # -- endpoint families ---------------------------------------------------

    def proxy(self, source: RecordSource, record_id: int, kind: DocumentKind, *, allow_fallback: bool) -> Response:
        record = self.lookup(source, record_id)
        url, local_path = self.choose_source(source, record, kind)
        if not url:
            return self.serve_local(source, record, kind, url=None, local_path=local_path)

        download_url = to_attachment_url(url)
        try:
            result = self.fetcher.fetch(download_url)
        except RemoteFetchFailed as e:
            logger.warning("%s %s #%s: remote fetch failed (%s)", source.label, kind.label, record.id, e.reason)
            if not allow_fallback:
                raise RemoteFetchFailed(
                    f"Server error during {kind.label} download",
                    error="Failed to download file from remote storage",
                ) from e
            return self.serve_local(source, record, kind, url=url, local_path=local_path)

        logger.info("%s %s #%s: proxied %s bytes from remote", source.label, kind.label, record.id, result.content_length)
        return self._bytes_response(result, kind, self._stem(source, record))

    def redirect(
        self,
        source: RecordSource,
        record_id: int,
        kind: DocumentKind,
        *,
        attachment: bool = True,
    ) -> Response:
        """
        Send the client to the remote copy. With ``attachment=False`` the stored
        URL is used untouched and a local copy is served inline (viewing).
        """
        record = self.lookup(source, record_id)
        url, local_path = self.choose_source(source, record, kind)
        if not url:
            return self.serve_local(source, record, kind, url=None, local_path=local_path, inline=not attachment)

        target = to_attachment_url(url) if attachment else url
        logger.info("%s %s #%s: redirecting client to remote copy", source.label, kind.label, record.id)
        resp = redirect_response(target, code=302)
        if attachment:
            resp.headers["Content-Disposition"] = content_disposition(self._stem(source, record), kind)
        return resp

    # -- responses -----------------------------------------------------

    def _stem(self, source: RecordSource, record: Any) -> str:
        return sanitize_download_stem(getattr(record, "title", None), default=source.default_stem)

    @staticmethod
    def _tried(record: Any, url: str | None, local_path: str | None) -> dict[str, Any]:
        return {
            "recordId": record.id,
            "remoteUrl": url or NOT_AVAILABLE,
            "localPath": local_path or NOT_AVAILABLE,
        }

    @staticmethod
    def _bytes_response(result: FetchResult, kind: DocumentKind, stem: str) -> Response:
        resp = Response(result.content, status=200, mimetype=kind.content_type)
        resp.headers["Content-Disposition"] = content_disposition(stem, kind)
        resp.headers["Content-Length"] = str(result.content_length)
        return resp

    def _file_response(self, path: Path, kind: DocumentKind, stem: str, *, inline: bool = False) -> Response:
        size = path.stat().st_size
        fobj = path.open("rb")
        resp = Response(
            iter_file_chunks(fobj, size=size, chunk_size=self.settings.chunk_size, label=path.name),
            status=200,
            mimetype=kind.content_type,
            direct_passthrough=True,
        )
        resp.headers["Content-Disposition"] = content_disposition(stem, kind, inline=inline)
        resp.headers["Content-Length"] = str(size)
        resp.call_on_close(fobj.close)
        return resp


def iter_file_chunks(fobj: BinaryIO, *, size: int, chunk_size: int, label: str) -> Iterator[bytes]:
    """
    Yield a file in chunks. Failures after the first byte cannot change the
    response any more (headers are committed), so they are logged and the body
    is cut short.
    """
    sent = 0
    try:
        while True:
            chunk = fobj.read(chunk_size)
            if not chunk:
                break
            sent += len(chunk)
            yield chunk
    except GeneratorExit:
        if sent < size:
            logger.warning("Stream of %s closed by client after %s/%s bytes", label, sent, size)
        raise
    except OSError as e:
        failure = StreamWriteFailed(f"Stream of {label} aborted after {sent}/{size} bytes: {e}")
        logger.error(failure.message)
    finally:
        fobj.close()
