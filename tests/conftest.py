import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

# Импортируем Base для создания/удаления таблиц
from report_file_store.db.base import Base
from report_file_store import FileStore, StorageConfig
from report_file_store.repositories import DiskRepository, FileRepository


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """
    Отдельная SQLite-база на каждый тест; таблицы создаются и удаляются
    вокруг теста для полной изоляции.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'files.db'}")

    # SQLite по умолчанию не проверяет внешние ключи, PostgreSQL проверяет
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest.fixture
def storage_config(upload_dir):
    return StorageConfig(upload_dir=upload_dir, max_file_size=1024 * 1024)


@pytest.fixture
def file_store(session_factory, storage_config) -> FileStore:
    """FileStore поверх тестовой базы; движком владеет фикстура db_engine."""
    return FileStore(
        file_repo=FileRepository(session_factory),
        disk_repo=DiskRepository(storage_config.upload_dir),
        settings=storage_config,
    )


@pytest.fixture
def make_pdf():
    """Фабрика PDF-подобных буферов нужного размера; разный seed даёт разный хэш."""
    def _make(size: int = 100, seed: bytes = b"") -> bytes:
        return (b"%PDF-1.7\n" + seed).ljust(size, b"\x00")
    return _make
