from __future__ import annotations

from flask import Blueprint, current_app

from app.journalhub.db import db_session
from app.journalhub.errors import RecordNotFound
from app.journalhub.modules.downloads.dispatcher import DownloadDispatcher, RecordSource
from app.journalhub.modules.downloads.service import PDF, DocumentKind, kind_for
from app.journalhub.modules.journals.models import Journal
from app.journalhub.modules.submissions.models import Submission
from app.journalhub.rbac import require_permission

bp = Blueprint("downloads", __name__)

JOURNALS = RecordSource(label="Journal", default_stem="journal", lookup=lambda rid: db_session().get(Journal, rid))
SUBMISSIONS = RecordSource(
    label="Submission",
    default_stem="submission",
    lookup=lambda rid: db_session().get(Submission, rid),
)


def _dispatcher() -> DownloadDispatcher:
    return current_app.extensions["download_dispatcher"]


def _kind_or_404(kind: str) -> DocumentKind:
    k = kind_for(kind)
    if k is None:
        raise RecordNotFound(f"Unknown document type: {kind}")
    return k


@bp.get("/journals/<int:journal_id>/download/<kind>")
def journal_download(journal_id: int, kind: str):
    """Redirect to the remote copy with a download disposition."""
    return _dispatcher().redirect(JOURNALS, journal_id, _kind_or_404(kind))


@bp.get("/journals/<int:journal_id>/direct-download/<kind>")
def journal_direct_download(journal_id: int, kind: str):
    """Proxy the remote bytes; a failed remote fetch is a 500, not a local fallback."""
    return _dispatcher().proxy(JOURNALS, journal_id, _kind_or_404(kind), allow_fallback=False)


@bp.get("/submissions/<int:submission_id>/download/<kind>")
@require_permission("submissions.view")
def submission_download(submission_id: int, kind: str):
    return _dispatcher().proxy(SUBMISSIONS, submission_id, _kind_or_404(kind), allow_fallback=True)


@bp.get("/submissions/<int:submission_id>/content")
@require_permission("submissions.view")
def submission_content(submission_id: int):
    """Reviewer view of the manuscript PDF: stored URL as-is, or the local file inline."""
    return _dispatcher().redirect(SUBMISSIONS, submission_id, PDF, attachment=False)
