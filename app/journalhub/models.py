from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class UserRole(Base):
    __tablename__ = "user_roles"
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)


class RolePermission(Base):
    __tablename__ = "role_permissions"
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    permission_id: Mapped[int] = mapped_column(ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    roles: Mapped[list["Role"]] = relationship(secondary="user_roles", back_populates="users", lazy="selectin")


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # e.g. "admin", "editor"
    name: Mapped[str] = mapped_column(String(128), nullable=False)

    users: Mapped[list[User]] = relationship(secondary="user_roles", back_populates="roles", lazy="selectin")
    permissions: Mapped[list["Permission"]] = relationship(
        secondary="role_permissions",
        back_populates="roles",
        lazy="selectin",
    )


class Permission(Base):
    __tablename__ = "permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)  # e.g. "journals.edit"
    name: Mapped[str] = mapped_column(String(128), nullable=False)

    roles: Mapped[list[Role]] = relationship(secondary="role_permissions", back_populates="permissions", lazy="selectin")


class AuditEvent(Base):
    """
    Append-only audit trail of admin mutations (status changes, uploads, re-uploads).
    Downloads are never audited.
    """

    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    client_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)

    actor_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_user_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    action: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "journal.status"
    entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)  # e.g. "Journal"
    entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)


class DocumentFilesMixin:
    """
    Columns shared by every record that can carry a PDF and a DOCX.

    ``*_url`` is the primary remote copy, ``*_web_view_link`` the legacy alias kept
    for rows created before ``*_url`` existed, ``*_file_id`` the object-storage key
    and ``*_local_path`` the on-disk copy. Any of them may be NULL.
    """

    pdf_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    pdf_web_view_link: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    pdf_file_id: Mapped[str | None] = mapped_column(String(512), nullable=True)
    pdf_local_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    docx_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    docx_web_view_link: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    docx_file_id: Mapped[str | None] = mapped_column(String(512), nullable=True)
    docx_local_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    def file_fields(self) -> dict[str, str | None]:
        return {
            "pdfUrl": self.pdf_url or self.pdf_web_view_link,
            "pdfLocalPath": self.pdf_local_path,
            "docxUrl": self.docx_url or self.docx_web_view_link,
            "docxLocalPath": self.docx_local_path,
        }


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.journalhub.modules.journals.models import Journal  # noqa: E402,F401
from app.journalhub.modules.submissions.models import Submission  # noqa: E402,F401
