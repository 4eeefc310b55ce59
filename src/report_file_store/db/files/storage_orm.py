from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, BigInteger, DateTime, Uuid, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from report_file_store.db.base import Base, utcnow
from report_file_store.models.file import StoredFileInDB


class StoredFileORM(Base):
    __tablename__ = "stored_files"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    original_name: Mapped[str] = mapped_column(String, nullable=False)
    stored_name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    mime_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Ключ дедупликации: уникальность гарантирует БД, а не проверка в коде
    hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    path: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True
    )

    project_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True
    )
    task_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True, index=True
    )
    uploaded_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    project: Mapped[Optional["ProjectORM"]] = relationship("ProjectORM")

    def to_pydantic(self) -> StoredFileInDB:
        return StoredFileInDB.model_validate(self)
