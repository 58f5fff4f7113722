import re
from types import SimpleNamespace

import pytest

from app.journalhub.errors import LocalFileNotFound
from app.journalhub.modules.downloads.service import (
    DOCX,
    PDF,
    LocalResolver,
    content_disposition,
    kind_for,
    kind_for_filename,
    sanitize_download_stem,
    to_attachment_url,
)

STEM_RE = re.compile(r"^[A-Za-z0-9_-]{1,100}$")


def test_sanitize_download_stem_example():
    assert sanitize_download_stem("A Study: Bees & Wasps!") == "A_Study_Bees_Wasps"


@pytest.mark.parametrize(
    "title",
    [
        "",
        None,
        "   ",
        "!!!???",
        "Ünïcödé Tïtlé — with dashes",
        "tabs\tand\nnewlines",
        "under_scores_are_dropped",
        "x" * 500,
        "a " * 200,
        "Mixed-Case 2024 Vol. 3 (Issue 2)",
    ],
)
def test_sanitize_download_stem_always_safe(title):
    stem = sanitize_download_stem(title)
    assert STEM_RE.match(stem), stem


def test_sanitize_download_stem_defaults():
    assert sanitize_download_stem(None) == "journal"
    assert sanitize_download_stem("&&&", default="submission") == "submission"


def test_sanitize_download_stem_collapses_and_truncates():
    assert sanitize_download_stem("Hello \t  World") == "Hello_World"
    assert len(sanitize_download_stem("word " * 60)) == 100


def test_sanitize_download_stem_keeps_edge_whitespace_as_underscore():
    assert sanitize_download_stem(" Hello ") == "_Hello_"
    assert sanitize_download_stem("   ") == "_"
    assert sanitize_download_stem("  Hello \t  World  ") == "_Hello_World_"


def test_to_attachment_url_inserts_flag_after_upload_segment():
    url = "https://res.cloudinary.com/demo/raw/upload/v1700000000/Upload/paper.pdf"
    assert to_attachment_url(url) == "https://res.cloudinary.com/demo/raw/upload/fl_attachment/v1700000000/Upload/paper.pdf"


@pytest.mark.parametrize(
    "url",
    [
        "https://res.cloudinary.com/demo/raw/upload/v1/paper.pdf",
        "https://res.cloudinary.com/demo/raw/upload/fl_attachment/v1/paper.pdf",
        "https://bucket.nyc3.digitaloceanspaces.com/journals/paper.pdf",
        "",
    ],
)
def test_to_attachment_url_is_idempotent(url):
    once = to_attachment_url(url)
    assert to_attachment_url(once) == once


def test_to_attachment_url_leaves_other_urls_alone():
    url = "https://bucket.nyc3.digitaloceanspaces.com/journals/paper.pdf"
    assert to_attachment_url(url) == url


def test_kind_lookup():
    assert kind_for("PDF") is PDF
    assert kind_for("docx") is DOCX
    assert kind_for("exe") is None
    assert kind_for_filename("Paper.Final.DOCX") is DOCX
    assert kind_for_filename("notes.txt") is None


def test_remote_url_prefers_primary_field_over_legacy_alias():
    rec = SimpleNamespace(pdf_url="https://a/primary.pdf", pdf_web_view_link="https://a/legacy.pdf", pdf_local_path=None)
    assert PDF.remote_url(rec) == "https://a/primary.pdf"
    rec.pdf_url = None
    assert PDF.remote_url(rec) == "https://a/legacy.pdf"
    rec.pdf_web_view_link = ""
    assert PDF.remote_url(rec) is None


def test_content_disposition_quotes_filename():
    assert content_disposition("My_Paper", DOCX) == 'attachment; filename="My_Paper.docx"'
    assert content_disposition("My_Paper", PDF, inline=True) == 'inline; filename="My_Paper.pdf"'


@pytest.fixture()
def resolver(tmp_path):
    storage = tmp_path / "storage"
    legacy = tmp_path / "legacy"
    storage.mkdir()
    legacy.mkdir()
    return LocalResolver(storage_root=storage, base_dir=tmp_path, legacy_roots=(legacy,))


def test_resolver_absolute_path(resolver, tmp_path):
    f = tmp_path / "elsewhere.pdf"
    f.write_bytes(b"%PDF")
    assert resolver.resolve(str(f)) == f


def test_resolver_storage_root_by_basename(resolver):
    f = resolver.storage_root / "123-paper.pdf"
    f.write_bytes(b"%PDF")
    assert resolver.resolve("uploads\\journals\\123-paper.pdf") == f.resolve()


def test_resolver_base_dir_relative_path(resolver, tmp_path):
    nested = tmp_path / "uploads" / "journals"
    nested.mkdir(parents=True)
    f = nested / "old.docx"
    f.write_bytes(b"PK")
    assert resolver.resolve("uploads/journals/old.docx") == f.resolve()


def test_resolver_legacy_root(resolver):
    f = resolver.legacy_roots[0] / "legacy.pdf"
    f.write_bytes(b"%PDF")
    assert resolver.resolve("some/where/legacy.pdf") == f.resolve()


def test_resolver_prefers_storage_root(resolver):
    (resolver.storage_root / "dup.pdf").write_bytes(b"primary")
    (resolver.legacy_roots[0] / "dup.pdf").write_bytes(b"legacy")
    assert resolver.resolve("dup.pdf").read_bytes() == b"primary"


def test_resolver_not_found(resolver):
    with pytest.raises(LocalFileNotFound):
        resolver.resolve("missing.pdf")
    with pytest.raises(LocalFileNotFound):
        resolver.resolve(None)
    assert resolver.exists("missing.pdf") is False
