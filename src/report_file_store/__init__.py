# Файл: src/report_file_store/__init__.py

from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from .client import FileStore
from .config import get_settings, FileStoreConfig, DatabaseConfig, StorageConfig
from .repositories.pg_repositoryFile import FileRepository
from .repositories.disk_repository import DiskRepository

from .exceptions import *

def create_file_store(config: Optional[FileStoreConfig] = None) -> FileStore:
    """
    Фабричная функция для создания и конфигурации FileStore.

    :param config: Единый объект с настройками.
                   Если не предоставлен, используются переменные окружения.
    :return: Сконфигурированный FileStore; движок закрывается через aclose().
    """
    if config is None:
        config = get_settings().to_config()

    engine = create_async_engine(config.database.url, **config.database.engine_kwargs())
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)

    file_repo = FileRepository(session_factory)
    disk_repo = DiskRepository(config.storage.upload_dir)

    return FileStore(
        file_repo=file_repo,
        disk_repo=disk_repo,
        settings=config.storage,
        engine=engine,
    )

__all__ = [
    "FileStore", "create_file_store",
    "FileStoreConfig", "DatabaseConfig", "StorageConfig",
    "FileStoreError", "ValidationError", "FileTooLargeError", "UnsupportedFileTypeError",
    "UnsupportedExtensionError", "EmptyFileNameError", "SignatureMismatchError",
    "NotFoundError", "BlobMissingError", "DatabaseError", "StorageError",
]
