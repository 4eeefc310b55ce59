import hashlib
import logging
import math
from datetime import timedelta
from typing import AsyncIterator, Iterable, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from report_file_store.config import StorageConfig
from report_file_store.db.base import Base, utcnow
from report_file_store.db.files.storage_orm import StoredFileORM
from report_file_store.exceptions import (
    BlobMissingError,
    DatabaseError,
    FileStoreError,
    NotFoundError,
    StorageError,
)
from report_file_store.models.file import (
    BatchDeleteResult,
    CleanupResult,
    DateBucket,
    FilePage,
    FileUploadResult,
    FileValidationOptions,
    HealthStatus,
    StorageHealth,
    StorageStats,
    StoredFileInDB,
    TypeBucket,
)
from report_file_store.repositories import DiskRepository, FileRepository
from report_file_store.validation import FileValidator, file_extension

logger = logging.getLogger(__name__)

STATS_WINDOW_DAYS = 30


class FileStore:
    """
    Контентно-адресуемое хранилище файлов отчётов.

    Один блоб на диске и одна строка в stored_files на каждый уникальный
    SHA-256. Репозитории передаются снаружи; жизненным циклом движка БД
    владеет вызывающий код (см. create_file_store и aclose).
    """

    def __init__(
        self,
        file_repo: FileRepository,
        disk_repo: DiskRepository,
        settings: StorageConfig | None = None,
        engine: AsyncEngine | None = None,
    ):
        self._engine = engine
        self.files = file_repo
        self.disk = disk_repo
        self.settings = settings or StorageConfig(upload_dir=disk_repo.root)
        self.validator = FileValidator(self.settings)

    async def aclose(self) -> None:
        """Закрывает пул соединений, если движок создан фабрикой."""
        if self._engine is not None:
            await self._engine.dispose()

    async def create_schema(self) -> None:
        """Создаёт таблицы без Alembic: для init и тестов."""
        if self._engine is None:
            raise DatabaseError("FileStore was created without an engine")
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def check_connections(self) -> dict[str, str]:
        """
        Проверяет доступность БД и каталога загрузок.
        Возвращает словарь со статусами.
        """
        statuses = {}

        try:
            await self.files.check_connection()
            statuses["database"] = "ok"
        except DatabaseError as e:
            statuses["database"] = f"failed: {e}"

        try:
            await self.disk.check_connection()
            statuses["storage"] = "ok"
        except StorageError as e:
            statuses["storage"] = f"failed: {e}"

        return statuses

    def download_url(self, file_id: UUID) -> str:
        return self.settings.download_url_template.format(id=file_id)

    def _to_result(self, orm: StoredFileORM) -> FileUploadResult:
        return FileUploadResult(
            id=orm.id,
            original_name=orm.original_name,
            stored_name=orm.stored_name,
            mime_type=orm.mime_type,
            size=orm.size,
            hash=orm.hash,
            download_url=self.download_url(orm.id),
        )

    # ――― upload ――― #

    async def store(
        self,
        content: bytes,
        original_name: str,
        mime_type: str,
        project_id: Optional[UUID] = None,
        task_id: Optional[UUID] = None,
        uploaded_by: Optional[str] = None,
        validation: Optional[FileValidationOptions] = None,
    ) -> FileUploadResult:
        """
        Сохраняет файл с дедупликацией по хэшу содержимого.

        - Если такое содержимое уже есть, возвращается существующая запись
          без изменений (имя, тип и привязки первой загрузки).
        - Иначе блоб пишется в upload_dir/<hash><ext>, затем вставляется строка.
          Проигравший гонку за уникальный hash перечитывает запись победителя.
        """
        self.validator.validate(content, original_name, mime_type, validation)

        content_hash = hashlib.sha256(content).hexdigest()
        logger.info(f"Storing file '{original_name}' with hash {content_hash[:8]}...")

        existing = await self.files.get_by_hash(content_hash)
        if existing:
            logger.info(f"Duplicate content detected, returning existing file {existing.id}")
            return self._to_result(existing)

        stored_name = f"{content_hash}{file_extension(original_name)}"
        path = await self.disk.write(stored_name, content)

        stored_file = StoredFileORM(
            original_name=original_name,
            stored_name=stored_name,
            mime_type=mime_type,
            size=len(content),
            hash=content_hash,
            path=str(path),
            project_id=project_id,
            task_id=task_id,
            uploaded_by=uploaded_by,
        )
        try:
            saved = await self.files.insert(stored_file)
        except IntegrityError as e:
            # Параллельная загрузка того же содержимого успела вставить строку;
            # блоб побайтно совпадает, его не трогаем.
            winner = await self.files.get_by_hash(content_hash)
            if winner is None:
                # Нарушено другое ограничение (например, FK): строки нет, блоб - сирота
                await self._discard_blob(path)
                raise DatabaseError(f"Failed to save file record: {e}") from e
            logger.info(f"Concurrent upload of {content_hash[:8]} resolved to file {winner.id}")
            return self._to_result(winner)
        except DatabaseError:
            if await self.files.get_by_hash(content_hash) is None:
                await self._discard_blob(path)
            raise

        logger.info(f"File stored: {original_name} -> {stored_name}")
        return self._to_result(saved)

    async def _discard_blob(self, path) -> None:
        try:
            await self.disk.remove(path)
        except (FileNotFoundError, StorageError) as e:
            logger.warning(f"Could not discard orphan blob {path}: {e}")

    # ――― read ――― #

    async def get_file_info(self, file_id: UUID) -> StoredFileInDB:
        orm = await self.files.get(file_id)
        if orm is None:
            raise NotFoundError(f"File {file_id} not found")
        return orm.to_pydantic()

    async def get_file_stream(
        self, file_id: UUID, chunk_size: int = 64 * 1024
    ) -> tuple[StoredFileInDB, AsyncIterator[bytes]]:
        """Метаданные и асинхронный итератор по байтам блоба."""
        info = await self.get_file_info(file_id)
        try:
            fh = await self.disk.open_read(info.path)
        except FileNotFoundError as e:
            raise BlobMissingError(f"File {file_id} is missing from storage: {info.path}") from e
        return info, self.disk.iter_chunks(fh, chunk_size)

    async def read_file(self, file_id: UUID) -> bytes:
        info = await self.get_file_info(file_id)
        try:
            return await self.disk.read(info.path)
        except FileNotFoundError as e:
            raise BlobMissingError(f"File {file_id} is missing from storage: {info.path}") from e

    async def list_files(
        self,
        project_id: Optional[UUID] = None,
        mime_type: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> FilePage:
        page = max(page, 1)
        limit = max(limit, 1)
        rows, total = await self.files.list_page(
            project_id=project_id, mime_prefix=mime_type, limit=limit, offset=(page - 1) * limit
        )
        return FilePage(
            files=[r.to_pydantic() for r in rows],
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
        )

    # ――― delete ――― #

    async def delete(self, file_id: UUID) -> None:
        orm = await self.files.get(file_id)
        if orm is None:
            raise NotFoundError(f"File {file_id} not found")

        try:
            await self.disk.remove(orm.path)
        except FileNotFoundError:
            logger.warning(
                f"Storage inconsistency: blob {orm.path} for file {file_id} is already missing, "
                "removing database record"
            )
        except StorageError as e:
            logger.warning(f"Failed to remove blob {orm.path}: {e}")

        await self.files.delete(file_id)
        logger.info(f"File deleted: {orm.original_name} ({file_id})")

    async def delete_files(self, file_ids: Iterable[UUID]) -> BatchDeleteResult:
        result = BatchDeleteResult()
        for file_id in file_ids:
            try:
                await self.delete(file_id)
                result.deleted += 1
            except (FileStoreError, SQLAlchemyError) as e:
                logger.error(f"Failed to delete file {file_id}: {e}")
                result.failed.append(file_id)
        return result

    async def cleanup_expired(self, older_than_days: int = 30) -> CleanupResult:
        """Удаляет старые файлы; файлы завершённых проектов не трогаются."""
        cutoff = utcnow() - timedelta(days=older_than_days)
        expired = await self.files.find_expired(cutoff)

        result = CleanupResult()
        for orm in expired:
            try:
                await self.delete(orm.id)
                result.cleaned += 1
            except (FileStoreError, SQLAlchemyError) as e:
                logger.error(f"Failed to clean up expired file {orm.id}: {e}")
                result.errors += 1

        logger.info(f"Expired file cleanup finished: {result.cleaned} cleaned, {result.errors} failed")
        return result

    # ――― stats ――― #

    async def stats(self) -> StorageStats:
        total_files, total_size = await self.files.totals()
        by_type = await self.files.totals_by_type()
        by_date = await self.files.totals_by_date(utcnow() - timedelta(days=STATS_WINDOW_DAYS))
        return StorageStats(
            total_files=total_files,
            total_size=total_size,
            files_by_type=[TypeBucket(mime_type=m, count=c, size=s) for m, c, s in by_type],
            files_by_date=[DateBucket(date=d, count=c, size=s) for d, c, s in by_date],
        )

    async def health_check(self) -> HealthStatus:
        try:
            await self.disk.check_connection()
            total_files, total_size = await self.files.totals()
        except (FileStoreError, SQLAlchemyError, OSError) as e:
            logger.error(f"File store health check failed: {e}")
            return HealthStatus(status="error", storage=StorageHealth(available=False))
        return HealthStatus(
            status="healthy",
            storage=StorageHealth(available=True, total_files=total_files, total_size=total_size),
        )
