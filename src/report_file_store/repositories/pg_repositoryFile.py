import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select, delete, func, or_, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession

from report_file_store.exceptions import DatabaseError
from report_file_store.db.base import get_session
from report_file_store.db.files.storage_orm import StoredFileORM
from report_file_store.db.projects.project_orm import ProjectORM, ProjectStatus

logger = logging.getLogger(__name__)


class FileRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def check_connection(self):
        """Проверяет соединение с базой данных, выполняя простой запрос."""
        logger.debug("Checking database connection...")
        async with get_session(self._session_factory) as session:
            try:
                await session.execute(text("SELECT 1"))
                logger.debug("Database connection successful.")
            except SQLAlchemyError as e:
                logger.error(f"Database connection failed: {e}")
                raise DatabaseError("Failed to connect to the database.") from e

    async def get(self, file_id: UUID) -> Optional[StoredFileORM]:
        async with get_session(self._session_factory) as session:
            res = await session.execute(select(StoredFileORM).where(StoredFileORM.id == file_id))
            return res.scalar_one_or_none()

    async def get_by_hash(self, content_hash: str) -> Optional[StoredFileORM]:
        async with get_session(self._session_factory) as session:
            stmt = select(StoredFileORM).where(StoredFileORM.hash == content_hash)
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def insert(self, stored_file: StoredFileORM) -> StoredFileORM:
        """
        Вставляет новую запись. IntegrityError пробрасывается как есть:
        вызывающий код отличает гонку по hash от прочих ошибок БД.
        """
        async with get_session(self._session_factory) as session:
            try:
                session.add(stored_file)
                await session.commit()
                await session.refresh(stored_file)
                return stored_file
            except IntegrityError:
                await session.rollback()
                raise
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to save file record: {e}") from e

    async def delete(self, file_id: UUID) -> bool:
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(delete(StoredFileORM).where(StoredFileORM.id == file_id))
                await session.commit()
                return res.rowcount > 0
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to delete file record {file_id}: {e}") from e

    async def list_page(
        self,
        project_id: Optional[UUID] = None,
        mime_prefix: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[StoredFileORM], int]:
        """Страница записей (новые первыми) и общее число под фильтром."""
        conditions = []
        if project_id is not None:
            conditions.append(StoredFileORM.project_id == project_id)
        if mime_prefix:
            conditions.append(StoredFileORM.mime_type.startswith(mime_prefix, autoescape=True))

        async with get_session(self._session_factory) as session:
            q = (
                select(StoredFileORM)
                .where(*conditions)
                .order_by(StoredFileORM.uploaded_at.desc(), StoredFileORM.id)
                .offset(offset)
                .limit(limit)
            )
            rows = (await session.execute(q)).scalars().all()
            total = (
                await session.execute(select(func.count(StoredFileORM.id)).where(*conditions))
            ).scalar_one()
            return list(rows), total

    async def find_expired(self, cutoff: datetime) -> list[StoredFileORM]:
        """
        Файлы старше cutoff, у которых нет проекта или проект не завершён.
        Файлы завершённых проектов хранятся бессрочно.
        """
        async with get_session(self._session_factory) as session:
            q = (
                select(StoredFileORM)
                .outerjoin(ProjectORM, StoredFileORM.project_id == ProjectORM.id)
                .where(
                    StoredFileORM.uploaded_at < cutoff,
                    or_(
                        StoredFileORM.project_id.is_(None),
                        ProjectORM.id.is_(None),
                        ProjectORM.status != ProjectStatus.completed,
                    ),
                )
                .order_by(StoredFileORM.uploaded_at)
            )
            result = await session.execute(q)
            return list(result.scalars().all())

    async def totals(self) -> tuple[int, int]:
        async with get_session(self._session_factory) as session:
            stmt = select(func.count(StoredFileORM.id), func.coalesce(func.sum(StoredFileORM.size), 0))
            count, size = (await session.execute(stmt)).one()
            return int(count), int(size)

    async def totals_by_type(self) -> list[tuple[str, int, int]]:
        async with get_session(self._session_factory) as session:
            stmt = (
                select(
                    StoredFileORM.mime_type,
                    func.count(StoredFileORM.id),
                    func.coalesce(func.sum(StoredFileORM.size), 0),
                )
                .group_by(StoredFileORM.mime_type)
                .order_by(StoredFileORM.mime_type)
            )
            rows = (await session.execute(stmt)).all()
            return [(mime, int(count), int(size)) for mime, count, size in rows]

    async def totals_by_date(self, since: datetime) -> list[tuple[str, int, int]]:
        """Дневные корзины по uploaded_at, последний день первым."""
        day = func.date(StoredFileORM.uploaded_at)
        async with get_session(self._session_factory) as session:
            stmt = (
                select(day, func.count(StoredFileORM.id), func.coalesce(func.sum(StoredFileORM.size), 0))
                .where(StoredFileORM.uploaded_at >= since)
                .group_by(day)
                .order_by(day.desc())
            )
            rows = (await session.execute(stmt)).all()
            # PostgreSQL отдаёт date, SQLite - строку
            return [(str(d), int(count), int(size)) for d, count, size in rows]
