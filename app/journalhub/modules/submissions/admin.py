from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from app.journalhub.audit import record_event
from app.journalhub.db import db_session
from app.journalhub.errors import InvalidRequest, RecordNotFound
from app.journalhub.modules.downloads.service import DOCX
from app.journalhub.modules.submissions.models import Submission
from app.journalhub.modules.submissions.service import (
    list_submissions,
    normalize_status,
    parse_page_args,
    validate_author,
)
from app.journalhub.rbac import require_permission
from app.journalhub.search import parse_search_args
from app.journalhub.storage import local_storage_from_config
from app.journalhub.uploads import attach_local_copy, read_upload

bp = Blueprint("submissions", __name__)


def _get_submission_or_404(submission_id: int) -> Submission:
    sub = db_session().get(Submission, submission_id)
    if not sub:
        raise RecordNotFound("Submission not found")
    return sub


@bp.post("")
def create_submission():
    """Public manuscript submission (multipart with a .docx file)."""
    s = db_session()
    title = (request.form.get("title") or "").strip()
    author_name = (request.form.get("author_name") or "").strip()
    author_email = (request.form.get("author_email") or "").strip().lower()
    if not title:
        raise InvalidRequest("Title is required", details={"field": "title"})
    validate_author(author_name, author_email)

    upload = read_upload(request.files.get("docx"), field="docx", expected=DOCX)
    if upload is None:
        raise InvalidRequest("No file uploaded", details={"receivedFields": sorted(request.form.keys())})

    sub = Submission(
        title=title,
        author_name=author_name,
        author_email=author_email,
        abstract=(request.form.get("abstract") or "").strip() or None,
        keywords=(request.form.get("keywords") or "").strip() or None,
        status="pending",
    )
    attach_local_copy(sub, upload, local_storage_from_config(current_app.config))
    s.add(sub)
    s.flush()
    record_event(
        s,
        actor=getattr(g, "current_user", None),
        action="submission.create",
        entity_type="Submission",
        entity_id=str(sub.id),
        metadata={"filename": upload.filename, "sha256": upload.sha256, "author_email": author_email},
    )
    s.commit()
    current_app.logger.info("Submission #%s received (%s bytes)", sub.id, len(upload.data))
    return jsonify(sub.to_dict()), 201


@bp.get("")
@require_permission("submissions.view")
def list_all():
    page, per_page = parse_page_args(request.args.get("page"), request.args.get("per_page"))
    status = request.args.get("status")
    if status:
        status = normalize_status(status)
    return jsonify(list_submissions(db_session(), page=page, per_page=per_page, status=status))


@bp.get("/search")
@require_permission("submissions.view")
def search_submissions():
    query = parse_search_args(request.args)
    page, per_page = parse_page_args(request.args.get("page"), request.args.get("per_page"))
    return jsonify(list_submissions(db_session(), page=page, per_page=per_page, search=query))


@bp.get("/<int:submission_id>")
@require_permission("submissions.view")
def get_submission(submission_id: int):
    return jsonify(_get_submission_or_404(submission_id).to_dict())


@bp.patch("/<int:submission_id>/status")
@require_permission("submissions.edit")
def update_submission_status(submission_id: int):
    s = db_session()
    sub = _get_submission_or_404(submission_id)
    payload = request.get_json(silent=True) or {}
    status = normalize_status(payload.get("status"))
    previous = sub.status
    sub.status = status
    notes = (payload.get("notes") or "").strip()
    if notes:
        sub.review_notes = notes
    record_event(
        s,
        actor=g.current_user,
        action="submission.status",
        entity_type="Submission",
        entity_id=str(sub.id),
        metadata={"from": previous, "to": status},
    )
    s.commit()
    return jsonify(sub.to_dict())
