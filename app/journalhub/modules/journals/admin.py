"""
Journal records: public listing plus admin upload, status transitions and
re-upload of missing remote copies.

Files are always kept locally (the download fallback source); when object
storage is configured they are pushed there as well and the remote URL becomes
the preferred source.
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from app.journalhub.audit import record_event
from app.journalhub.db import db_session
from app.journalhub.errors import InvalidRequest, RecordNotFound
from app.journalhub.modules.downloads.service import DOCX, PDF
from app.journalhub.modules.journals.models import Journal
from app.journalhub.modules.journals.service import (
    apply_status,
    file_info,
    list_published,
    normalize_status,
    reupload_missing_remote,
    search_published,
)
from app.journalhub.rbac import require_permission
from app.journalhub.search import parse_search_args
from app.journalhub.storage import StorageError, local_storage_from_config, remote_storage_from_config
from app.journalhub.uploads import attach_local_copy, attach_remote_copy, read_upload

bp = Blueprint("journals", __name__)


def _get_journal_or_404(journal_id: int) -> Journal:
    j = db_session().get(Journal, journal_id)
    if not j:
        raise RecordNotFound("Journal not found")
    return j


def _resolver():
    return current_app.extensions["download_dispatcher"].resolver


@bp.get("")
def list_journals():
    journals = list_published(db_session())
    return jsonify([j.to_dict() for j in journals])


@bp.get("/search")
def search_journals():
    query = parse_search_args(request.args)
    journals = search_published(db_session(), query)
    return jsonify([j.to_dict() for j in journals])


@bp.get("/file-info")
@require_permission("journals.edit")
def journals_file_info():
    s = db_session()
    journals = s.query(Journal).order_by(Journal.id.asc()).all()
    return jsonify(file_info(journals, _resolver()))


@bp.get("/<int:journal_id>")
def get_journal(journal_id: int):
    return jsonify(_get_journal_or_404(journal_id).to_dict())


@bp.post("")
@require_permission("journals.create")
def create_journal():
    s = db_session()
    title = (request.form.get("title") or "").strip()
    if not title:
        raise InvalidRequest("Title is required", details={"field": "title"})

    pdf = read_upload(request.files.get("pdf"), field="pdf", expected=PDF)
    docx = read_upload(request.files.get("docx"), field="docx", expected=DOCX)
    if pdf is None and docx is None:
        raise InvalidRequest("At least one of pdf or docx must be uploaded")

    j = Journal(
        title=title,
        volume=(request.form.get("volume") or "").strip() or None,
        issue=(request.form.get("issue") or "").strip() or None,
        authors=(request.form.get("authors") or "").strip() or None,
        abstract=(request.form.get("abstract") or "").strip() or None,
        keywords=(request.form.get("keywords") or "").strip() or None,
        status="draft",
    )
    local = local_storage_from_config(current_app.config)
    remote = remote_storage_from_config(current_app.config)
    for upload in (pdf, docx):
        if upload is None:
            continue
        attach_local_copy(j, upload, local)
        if remote is not None:
            try:
                attach_remote_copy(
                    j,
                    upload.kind,
                    upload.data,
                    upload.filename,
                    remote,
                    prefix=current_app.config.get("S3_UPLOAD_PREFIX") or "",
                )
            except StorageError as e:
                # Local copy still serves downloads; reupload-remote can fix it later.
                current_app.logger.warning("Remote upload failed for %s (%s): %s", upload.filename, upload.kind.label, e)

    s.add(j)
    s.flush()
    record_event(
        s,
        actor=g.current_user,
        action="journal.create",
        entity_type="Journal",
        entity_id=str(j.id),
        metadata={
            "title": j.title,
            "files": {u.kind.key: {"filename": u.filename, "sha256": u.sha256} for u in (pdf, docx) if u},
        },
    )
    s.commit()
    current_app.logger.info("Journal #%s created by %s", j.id, g.current_user.email)
    return jsonify(j.to_dict()), 201


@bp.patch("/<int:journal_id>/status")
@require_permission("journals.edit")
def update_journal_status(journal_id: int):
    s = db_session()
    j = _get_journal_or_404(journal_id)
    payload = request.get_json(silent=True) or {}
    status = normalize_status(payload.get("status"))
    previous = apply_status(j, status)
    record_event(
        s,
        actor=g.current_user,
        action="journal.status",
        entity_type="Journal",
        entity_id=str(j.id),
        reason=(payload.get("reason") or None),
        metadata={"from": previous, "to": status},
    )
    s.commit()
    return jsonify(j.to_dict())


@bp.post("/<int:journal_id>/reupload-remote")
@require_permission("journals.edit")
def reupload_remote(journal_id: int):
    s = db_session()
    j = _get_journal_or_404(journal_id)
    result = reupload_missing_remote(
        j,
        resolver=_resolver(),
        storage=remote_storage_from_config(current_app.config),
        prefix=current_app.config.get("S3_UPLOAD_PREFIX") or "",
    )
    if result["uploaded"]:
        record_event(
            s,
            actor=g.current_user,
            action="journal.reupload_remote",
            entity_type="Journal",
            entity_id=str(j.id),
            metadata=result,
        )
        s.commit()
    return jsonify({"journal": j.to_dict(), **result})
