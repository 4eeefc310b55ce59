import enum
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import String, Uuid, ForeignKey
from sqlalchemy import Enum as PgEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from report_file_store.db.base import Base, CreatedAt


class ProjectStatus(str, enum.Enum):
    active = "active"
    paused = "paused"
    completed = "completed"
    archived = "archived"


class ProjectORM(Base):
    __tablename__ = "projects"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[ProjectStatus] = mapped_column(
        PgEnum(ProjectStatus, name="project_status_enum"),
        default=ProjectStatus.active,
        server_default=ProjectStatus.active.value,
        nullable=False,
    )
    created: Mapped[CreatedAt]

    tasks: Mapped[List["TaskORM"]] = relationship("TaskORM", back_populates="project", cascade="all, delete-orphan")


class TaskORM(Base):
    __tablename__ = "tasks"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    project_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    created: Mapped[CreatedAt]

    project: Mapped[Optional["ProjectORM"]] = relationship("ProjectORM", back_populates="tasks")
