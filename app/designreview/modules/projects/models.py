from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.designreview.models import Base, User

if TYPE_CHECKING:
    from app.designreview.modules.files.models import ProjectFile
    from app.designreview.modules.messages.models import Message


PROJECT_STATUSES = ("awaiting_feedback", "feedback_received", "in_progress", "completed")


class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (
        Index("idx_projects_client", "client_user_id"),
        Index("idx_projects_updated_at", "updated_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="awaiting_feedback")

    client_user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    # Captured at creation, not kept in sync with the User row.
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[str] = mapped_column(String(320), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    client: Mapped[User] = relationship("User", lazy="selectin")

    files: Mapped[list["ProjectFile"]] = relationship(
        "ProjectFile",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="(ProjectFile.uploaded_at.desc(), ProjectFile.id.desc())",
        lazy="selectin",
    )
    activity: Mapped[list["ProjectActivity"]] = relationship(
        "ProjectActivity",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="(ProjectActivity.created_at.desc(), ProjectActivity.id.desc())",
        lazy="select",
    )
    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="project",
        cascade="all, delete-orphan",
        lazy="select",
    )


class ProjectActivity(Base):
    """
    One entry of a project's activity log.
    Rows are only ever inserted; concurrent appends cannot overwrite each other.
    """

    __tablename__ = "project_activity"
    __table_args__ = (Index("idx_project_activity_project", "project_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    action: Mapped[str] = mapped_column(String(512), nullable=False)
    actor_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    project: Mapped[Project] = relationship("Project", back_populates="activity")
