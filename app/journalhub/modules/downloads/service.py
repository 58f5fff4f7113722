"""
Pure helpers behind the download endpoints: document kinds, attachment URLs,
download filenames and local-copy resolution.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from app.journalhub.errors import LocalFileNotFound

UPLOAD_SEGMENT = "/upload/"
ATTACHMENT_FLAG = "fl_attachment"

MAX_STEM_LENGTH = 100

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9\s-]")
_WHITESPACE_RUN = re.compile(r"\s+")


@dataclass(frozen=True)
class DocumentKind:
    key: str
    label: str
    extension: str
    content_type: str

    @property
    def url_attr(self) -> str:
        return f"{self.key}_url"

    @property
    def legacy_url_attr(self) -> str:
        return f"{self.key}_web_view_link"

    @property
    def local_path_attr(self) -> str:
        return f"{self.key}_local_path"

    def remote_url(self, record: Any) -> str | None:
        """Primary URL, else the legacy alias, else None."""
        return getattr(record, self.url_attr, None) or getattr(record, self.legacy_url_attr, None) or None

    def local_path(self, record: Any) -> str | None:
        return getattr(record, self.local_path_attr, None) or None


PDF = DocumentKind(key="pdf", label="PDF", extension="pdf", content_type="application/pdf")
DOCX = DocumentKind(
    key="docx",
    label="DOCX",
    extension="docx",
    content_type="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
)

DOCUMENT_KINDS: dict[str, DocumentKind] = {k.key: k for k in (PDF, DOCX)}


def kind_for(key: str) -> DocumentKind | None:
    return DOCUMENT_KINDS.get((key or "").strip().lower())


def kind_for_filename(filename: str) -> DocumentKind | None:
    ext = os.path.splitext(filename or "")[1].lstrip(".")
    return kind_for(ext)


def to_attachment_url(url: str) -> str:
    """
    Ask object storage to serve the file as a download.

    "https://res.example.com/raw/upload/v1/a.pdf" -> "https://res.example.com/raw/upload/fl_attachment/v1/a.pdf"
    URLs without an upload segment, or already flagged, come back unchanged.
    """
    if UPLOAD_SEGMENT in url and ATTACHMENT_FLAG not in url:
        return url.replace(UPLOAD_SEGMENT, f"{UPLOAD_SEGMENT}{ATTACHMENT_FLAG}/", 1)
    return url


def sanitize_download_stem(title: str | None, *, default: str = "journal") -> str:
    """
    Filename stem for Content-Disposition, always matching ^[A-Za-z0-9_-]{1,100}$.

    >>> sanitize_download_stem("A Study: Bees & Wasps!")
    'A_Study_Bees_Wasps'
    """
    cleaned = _UNSAFE_CHARS.sub("", title or "")
    stem = _WHITESPACE_RUN.sub("_", cleaned)[:MAX_STEM_LENGTH]
    return stem or default


def content_disposition(stem: str, kind: DocumentKind, *, inline: bool = False) -> str:
    mode = "inline" if inline else "attachment"
    return f'{mode}; filename="{stem}.{kind.extension}"'


@dataclass(frozen=True)
class LocalResolver:
    """
    Finds the on-disk copy of a stored path.

    Rows written by older deployments store paths relative to a different
    working directory, so after the configured storage root the resolver probes
    the project base directory and each legacy root.
    """

    storage_root: Path
    base_dir: Path
    legacy_roots: tuple[Path, ...] = ()

    def candidates(self, stored_path: str) -> list[Path]:
        normalized = stored_path.replace("\\", "/")
        filename = os.path.basename(normalized)
        out: list[Path] = []
        if filename:
            out.append(self.storage_root / filename)
        if not os.path.isabs(normalized):
            out.append(self.base_dir / normalized)
        if filename:
            out.extend(root / filename for root in self.legacy_roots)
        return out

    def resolve(self, stored_path: str | None) -> Path:
        if not stored_path:
            raise LocalFileNotFound("No local path stored")
        p = Path(stored_path)
        if p.is_absolute() and p.is_file():
            return p
        for candidate in self.candidates(stored_path):
            if candidate.is_file():
                return candidate.resolve()
        raise LocalFileNotFound(f"Local file not found: {os.path.basename(stored_path)}")

    def exists(self, stored_path: str | None) -> bool:
        try:
            self.resolve(stored_path)
        except LocalFileNotFound:
            return False
        return True
