from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.designreview.models import Base, User

if TYPE_CHECKING:
    from app.designreview.modules.feedback.models import Feedback
    from app.designreview.modules.projects.models import Project


class ProjectFile(Base):
    __tablename__ = "project_files"
    __table_args__ = (Index("idx_project_files_project", "project_id", "uploaded_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)  # display name
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(1024), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    content_type: Mapped[str] = mapped_column(String(128), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)

    uploaded_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    project: Mapped["Project"] = relationship("Project", back_populates="files")
    uploaded_by: Mapped[User | None] = relationship("User", lazy="selectin")

    feedback: Mapped[list["Feedback"]] = relationship(
        "Feedback",
        back_populates="file",
        cascade="all, delete-orphan",
        order_by="(Feedback.created_at.desc(), Feedback.id.desc())",
        lazy="select",
    )
