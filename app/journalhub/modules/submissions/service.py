from __future__ import annotations

import re

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.journalhub.errors import InvalidRequest
from app.journalhub.modules.submissions.models import SUBMISSION_STATUSES, Submission
from app.journalhub.search import SearchQuery, search_clause

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MAX_PER_PAGE = 100


def validate_author(name: str, email: str) -> None:
    missing = [f for f, v in (("author_name", name), ("author_email", email)) if not v]
    if missing:
        raise InvalidRequest("Missing required fields", details={"fields": missing})
    if not _EMAIL_RE.match(email):
        raise InvalidRequest("Invalid author email", details={"field": "author_email"})


def normalize_status(raw: str | None) -> str:
    status = (raw or "").strip().lower()
    if status not in SUBMISSION_STATUSES:
        raise InvalidRequest(
            "Invalid status",
            details={"status": raw, "allowed": list(SUBMISSION_STATUSES)},
        )
    return status


def parse_page_args(page: str | None, per_page: str | None) -> tuple[int, int]:
    try:
        p = max(1, int(page or 1))
        pp = max(1, min(MAX_PER_PAGE, int(per_page or 20)))
    except ValueError:
        raise InvalidRequest("page and per_page must be integers")
    return p, pp


def list_submissions(
    s: Session,
    *,
    page: int,
    per_page: int,
    status: str | None = None,
    search: SearchQuery | None = None,
) -> dict:
    filters = []
    if status:
        filters.append(Submission.status == status)
    if search is not None:
        filters.append(search_clause(search, _search_columns()))
    stmt = select(Submission).where(*filters)
    count_stmt = select(func.count(Submission.id)).where(*filters)
    total = s.scalar(count_stmt) or 0
    rows = s.scalars(
        stmt.order_by(Submission.created_at.desc(), Submission.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    ).all()
    return {
        "items": [r.to_dict() for r in rows],
        "page": page,
        "perPage": per_page,
        "total": total,
        "pages": (total + per_page - 1) // per_page,
    }


def _search_columns() -> dict:
    return {
        "title": Submission.title,
        "abstract": Submission.abstract,
        "keywords": Submission.keywords,
        "authors": Submission.author_name,
    }
