from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.journalhub.errors import InvalidRequest, LocalFileNotFound
from app.journalhub.modules.downloads.service import DOCUMENT_KINDS, LocalResolver
from app.journalhub.modules.journals.models import JOURNAL_STATUSES, Journal
from app.journalhub.search import SearchQuery, search_clause
from app.journalhub.storage import Storage, StorageError
from app.journalhub.uploads import attach_remote_copy

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50


def normalize_status(raw: str | None) -> str:
    status = (raw or "").strip().lower()
    if status not in JOURNAL_STATUSES:
        raise InvalidRequest(
            "Invalid status",
            details={"status": raw, "allowed": list(JOURNAL_STATUSES)},
        )
    return status


def apply_status(journal: Journal, status: str) -> str:
    """Set status; first publication stamps published_at. Returns the previous status."""
    previous = journal.status
    journal.status = status
    if status == "published" and journal.published_at is None:
        journal.published_at = datetime.utcnow()
    return previous


def list_published(s: Session) -> list[Journal]:
    stmt = (
        select(Journal)
        .where(Journal.status == "published")
        .order_by(Journal.published_at.desc(), Journal.id.desc())
    )
    return list(s.scalars(stmt))


def search_published(s: Session, query: SearchQuery, *, limit: int = SEARCH_LIMIT) -> list[Journal]:
    columns = {
        "title": Journal.title,
        "abstract": Journal.abstract,
        "keywords": Journal.keywords,
        "authors": Journal.authors,
    }
    stmt = (
        select(Journal)
        .where(Journal.status == "published", search_clause(query, columns))
        .order_by(Journal.published_at.desc(), Journal.id.desc())
        .limit(limit)
    )
    return list(s.scalars(stmt))


def file_info(journals: list[Journal], resolver: LocalResolver) -> list[dict]:
    """Which copies of each journal's files can actually be served right now."""
    out: list[dict] = []
    for j in journals:
        row: dict = {"id": j.id, "title": j.title, "status": j.status}
        for kind in DOCUMENT_KINDS.values():
            local_path = kind.local_path(j)
            row[kind.key] = {
                "remoteUrl": kind.remote_url(j),
                "localPath": local_path,
                "localExists": resolver.exists(local_path),
            }
        out.append(row)
    return out


def reupload_missing_remote(journal: Journal, *, resolver: LocalResolver, storage: Storage | None, prefix: str) -> dict:
    """
    Push local copies to object storage for every kind that has no remote URL.

    Returns {"uploaded": [...], "skipped": {kind: reason}}.
    """
    if storage is None:
        raise StorageError("Remote object storage is not configured (STORAGE_BACKEND=s3 required).")

    uploaded: list[str] = []
    skipped: dict[str, str] = {}
    for kind in DOCUMENT_KINDS.values():
        if kind.remote_url(journal):
            skipped[kind.key] = "remote copy already present"
            continue
        local_path = kind.local_path(journal)
        if not local_path:
            skipped[kind.key] = "no local path stored"
            continue
        try:
            path = resolver.resolve(local_path)
        except LocalFileNotFound:
            logger.warning("Journal #%s: local %s not found for %r", journal.id, kind.label, local_path)
            skipped[kind.key] = "local file not found"
            continue
        attach_remote_copy(journal, kind, path.read_bytes(), path.name, storage, prefix=prefix)
        uploaded.append(kind.key)
    return {"uploaded": uploaded, "skipped": skipped}
