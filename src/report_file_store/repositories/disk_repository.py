import logging
import os
from pathlib import Path
from typing import AsyncIterator, BinaryIO

from report_file_store.exceptions import StorageError
from report_file_store.utils.io_async import run_io_bound

logger = logging.getLogger(__name__)


class DiskRepository:
    """Каталог загрузок: один файл на уникальное содержимое, имя = hash + расширение."""

    def __init__(self, upload_dir: Path | str):
        self._root = Path(upload_dir)
        if not self._root.exists():
            self._root.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created upload directory: {self._root}")

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, stored_name: str) -> Path:
        return self._root / stored_name

    async def check_connection(self):
        """Проверяет, что каталог существует и доступен на запись."""
        logger.debug(f"Checking upload directory '{self._root}'...")
        ok = await run_io_bound(lambda: self._root.is_dir() and os.access(self._root, os.W_OK))
        if not ok:
            raise StorageError(f"Upload directory '{self._root}' is not available")

    async def write(self, stored_name: str, data: bytes) -> Path:
        path = self.path_for(stored_name)
        try:
            await run_io_bound(path.write_bytes, data)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e
        return path

    async def remove(self, path: Path | str) -> None:
        """FileNotFoundError пробрасывается: отсутствие блоба решает вызывающий."""
        try:
            await run_io_bound(Path(path).unlink)
        except FileNotFoundError:
            raise
        except OSError as e:
            raise StorageError(f"Failed to remove {path}: {e}") from e

    async def read(self, path: Path | str) -> bytes:
        try:
            return await run_io_bound(Path(path).read_bytes)
        except FileNotFoundError:
            raise
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    async def open_read(self, path: Path | str) -> BinaryIO:
        """Открывает блоб сразу, чтобы отсутствие файла всплыло до начала итерации."""
        try:
            return await run_io_bound(open, path, "rb")
        except FileNotFoundError:
            raise
        except OSError as e:
            raise StorageError(f"Failed to open {path}: {e}") from e

    async def iter_chunks(self, fh: BinaryIO, chunk_size: int = 64 * 1024) -> AsyncIterator[bytes]:
        """Читает открытый дескриптор кусками и закрывает его."""
        try:
            while True:
                chunk = await run_io_bound(fh.read, chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            await run_io_bound(fh.close)
