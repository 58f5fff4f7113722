"""
Push a journal's local PDF/DOCX copies to object storage when it has no remote URL.

Usage:
  python scripts/reupload_journal.py <journal_id> [--dry-run]

Reads the same environment as the web app (DATABASE_URL, STORAGE_BACKEND=s3, S3_*).
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("journal_id", type=int)
    parser.add_argument("--dry-run", action="store_true", help="Report what would be uploaded without uploading.")
    args = parser.parse_args(argv)

    from app.journalhub import create_app
    from app.journalhub.audit import record_event
    from app.journalhub.db import session_scope
    from app.journalhub.modules.downloads.service import DOCUMENT_KINDS
    from app.journalhub.modules.journals.models import Journal
    from app.journalhub.modules.journals.service import reupload_missing_remote
    from app.journalhub.storage import StorageError, remote_storage_from_config

    app = create_app()
    resolver = app.extensions["download_dispatcher"].resolver

    with session_scope(app) as s:
        journal = s.get(Journal, args.journal_id)
        if journal is None:
            print(f"Journal not found: {args.journal_id}", file=sys.stderr)
            return 1

        if args.dry_run:
            for kind in DOCUMENT_KINDS.values():
                local_path = kind.local_path(journal)
                print(
                    f"{kind.label}: remote={'yes' if kind.remote_url(journal) else 'no'} "
                    f"local={local_path or '-'} exists={resolver.exists(local_path)}"
                )
            return 0

        try:
            result = reupload_missing_remote(
                journal,
                resolver=resolver,
                storage=remote_storage_from_config(app.config),
                prefix=app.config.get("S3_UPLOAD_PREFIX") or "",
            )
        except StorageError as e:
            print(f"Storage error: {e}", file=sys.stderr)
            return 2

        if result["uploaded"]:
            record_event(
                s,
                actor=None,
                action="journal.reupload_remote",
                entity_type="Journal",
                entity_id=str(journal.id),
                reason="scripts/reupload_journal.py",
                metadata=result,
            )
            print(f"Uploaded: {', '.join(result['uploaded'])}")
        else:
            print("No uploads performed (remote copies already present or local files missing).")
        for kind, reason in result["skipped"].items():
            print(f"  skipped {kind}: {reason}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
