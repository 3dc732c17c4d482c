"""
Attachment ORM model.
Tracks files uploaded to tasks. Deleting an attachment only flags it;
the stored file is removed by the cleanup job once retention expires.
"""
from __future__ import annotations

import os
import uuid
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, String, Uuid, false, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskhub.db.base import Base


class Attachment(Base):
    __tablename__ = "attachments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    filename: Mapped[str] = mapped_column(String(500), nullable=False)
    file_path: Mapped[str] = mapped_column(String(2000), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(200), nullable=False)
    task_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
    )
    uploaded_by: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    is_deleted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ─────────────────────────────────────────────────────────
    task: Mapped["Task"] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "Task",
        back_populates="attachments",
    )
    uploader: Mapped["User"] = relationship("User", lazy="selectin")  # type: ignore[name-defined]  # noqa: F821

    __table_args__ = (
        Index("ix_attachments_task_id", "task_id"),
        Index("ix_attachments_uploaded_by", "uploaded_by"),
        Index("ix_attachments_is_deleted", "is_deleted"),
    )

    @property
    def extension(self) -> str:
        return os.path.splitext(self.filename)[1].lstrip(".").lower()

    @property
    def category(self) -> str:
        if self.mime_type.startswith("image/"):
            return "image"
        if "sheet" in self.mime_type or "excel" in self.mime_type or self.mime_type == "text/csv":
            return "spreadsheet"
        if self.mime_type == "application/pdf" or "word" in self.mime_type or self.mime_type.startswith("text/"):
            return "document"
        if "zip" in self.mime_type:
            return "archive"
        return "other"

    def __repr__(self) -> str:
        return f"<Attachment id={self.id} filename={self.filename!r}>"
