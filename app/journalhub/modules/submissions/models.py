from __future__ import annotations

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.journalhub.models import Base, DocumentFilesMixin

SUBMISSION_STATUSES = ("pending", "under_review", "accepted", "rejected")


class Submission(DocumentFilesMixin, Base):
    __tablename__ = "submissions"
    __table_args__ = (Index("idx_submissions_status", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    author_name: Mapped[str] = mapped_column(String(128), nullable=False)
    author_email: Mapped[str] = mapped_column(String(320), nullable=False)
    abstract: Mapped[str | None] = mapped_column(Text, nullable=True)
    keywords: Mapped[str | None] = mapped_column(String(512), nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "authorName": self.author_name,
            "authorEmail": self.author_email,
            "abstract": self.abstract,
            "keywords": self.keywords,
            "status": self.status,
            "reviewNotes": self.review_notes,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            **self.file_fields(),
        }
