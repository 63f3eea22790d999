from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.designreview.models import Base, User

if TYPE_CHECKING:
    from app.designreview.modules.files.models import ProjectFile


FEEDBACK_OPEN = "open"
FEEDBACK_RESOLVED = "resolved"
FEEDBACK_REJECTED = "rejected"
FEEDBACK_STATUSES = (FEEDBACK_OPEN, FEEDBACK_RESOLVED, FEEDBACK_REJECTED)

# Older clients send the pending/implemented vocabulary.
FEEDBACK_STATUS_ALIASES = {
    "pending": FEEDBACK_OPEN,
    "implemented": FEEDBACK_RESOLVED,
}


class Feedback(Base):
    __tablename__ = "feedback"
    __table_args__ = (
        Index("idx_feedback_file", "file_id", "created_at"),
        Index("idx_feedback_project", "project_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    file_id: Mapped[int] = mapped_column(ForeignKey("project_files.id", ondelete="CASCADE"), nullable=False)
    # Denormalized from the file for permission checks.
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=FEEDBACK_OPEN)

    # Pixel region on the asset; all zero when the comment is not pinned.
    x: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    y: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    width: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    height: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    file: Mapped["ProjectFile"] = relationship("ProjectFile", back_populates="feedback")
    created_by: Mapped[User | None] = relationship("User", lazy="selectin")
