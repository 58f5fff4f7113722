from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Any

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from app.journalhub.errors import InvalidRequest
from app.journalhub.modules.downloads.service import DocumentKind, kind_for_filename
from app.journalhub.storage import LocalStorage, Storage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedDocument:
    kind: DocumentKind
    filename: str
    data: bytes

    @property
    def sha256(self) -> str:
        return hashlib.sha256(self.data).hexdigest()

    @property
    def storage_key(self) -> str:
        # Millisecond prefix keeps re-uploads of the same filename apart.
        return f"{int(time.time() * 1000)}-{self.filename}"


def read_upload(f: FileStorage | None, *, field: str, expected: DocumentKind) -> UploadedDocument | None:
    if f is None or not f.filename:
        return None
    kind = kind_for_filename(f.filename)
    if kind is not expected:
        raise InvalidRequest(
            f"Invalid file type. Only .{expected.extension} files are allowed",
            details={"field": field, "filename": f.filename},
        )
    filename = secure_filename(f.filename) or f"document.{expected.extension}"
    data = f.read()
    if not data:
        raise InvalidRequest("Uploaded file is empty", details={"field": field})
    return UploadedDocument(kind=kind, filename=filename, data=data)


def attach_local_copy(record: Any, upload: UploadedDocument, storage: LocalStorage) -> str:
    key = upload.storage_key
    storage.put_bytes(key, upload.data, content_type=upload.kind.content_type)
    setattr(record, upload.kind.local_path_attr, key)
    return key


def attach_remote_copy(record: Any, kind: DocumentKind, data: bytes, filename: str, storage: Storage, *, prefix: str) -> str:
    """
    Push bytes to object storage and point the record's primary URL at them.
    StorageError propagates; the record is left untouched in that case.
    """
    name = f"{int(time.time() * 1000)}-{filename}"
    key = f"{prefix.strip('/')}/{name}" if prefix.strip("/") else name
    storage.put_bytes(key, data, content_type=kind.content_type)
    url = storage.public_url(key)
    setattr(record, kind.url_attr, url)
    setattr(record, kind.legacy_url_attr, url)
    setattr(record, f"{kind.key}_file_id", key)
    logger.info("Pushed %s copy %s to object storage", kind.label, key)
    return url
