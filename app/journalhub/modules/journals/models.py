from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.journalhub.models import Base, DocumentFilesMixin

# draft -> published -> archived
JOURNAL_STATUSES = ("draft", "published", "archived")


class Journal(DocumentFilesMixin, Base):
    __tablename__ = "journals"
    __table_args__ = (Index("idx_journals_status", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    volume: Mapped[str | None] = mapped_column(String(32), nullable=True)
    issue: Mapped[str | None] = mapped_column(String(32), nullable=True)
    authors: Mapped[str | None] = mapped_column(String(512), nullable=True)
    abstract: Mapped[str | None] = mapped_column(Text, nullable=True)
    keywords: Mapped[str | None] = mapped_column(String(512), nullable=True)  # comma separated

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "volume": self.volume,
            "issue": self.issue,
            "authors": self.authors,
            "abstract": self.abstract,
            "keywords": self.keywords,
            "status": self.status,
            "publishedAt": self.published_at.isoformat() if self.published_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            **self.file_fields(),
        }
