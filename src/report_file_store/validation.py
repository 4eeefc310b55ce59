import logging
from pathlib import PurePath
from typing import Optional

from report_file_store.config import StorageConfig
from report_file_store.exceptions import (
    EmptyFileNameError,
    FileTooLargeError,
    SignatureMismatchError,
    UnsupportedExtensionError,
    UnsupportedFileTypeError,
)
from report_file_store.models.file import FileValidationOptions

logger = logging.getLogger(__name__)

# Магические байты в начале файла; для остальных типов проверки нет
SIGNATURES: dict[str, list[bytes]] = {
    "application/pdf": [b"%PDF"],
    "image/jpeg": [b"\xff\xd8\xff"],
    "image/png": [b"\x89PNG\r\n\x1a\n"],
}


def file_extension(name: str) -> str:
    """Расширение в исходном регистре: 'Plan.PDF' -> '.PDF'."""
    return PurePath(name).suffix


class FileValidator:
    """
    Проверяет загрузку до любой записи на диск или в БД.
    Порядок фиксирован: размер, MIME-тип, расширение, имя, сигнатура.
    """

    def __init__(self, settings: StorageConfig):
        self._max_size = settings.max_file_size
        self._allowed_types = set(settings.allowed_types)
        self._allowed_extensions = {e.lower() for e in settings.allowed_extensions}
        self._strict_signatures = settings.strict_signatures

    def validate(
        self,
        content: bytes,
        original_name: str,
        mime_type: str,
        options: Optional[FileValidationOptions] = None,
    ) -> None:
        options = options or FileValidationOptions()
        max_size = options.max_size if options.max_size is not None else self._max_size
        allowed_types = set(options.allowed_types) if options.allowed_types is not None else self._allowed_types
        allowed_extensions = (
            {e.lower() for e in options.allowed_extensions}
            if options.allowed_extensions is not None
            else self._allowed_extensions
        )

        if len(content) > max_size:
            raise FileTooLargeError(
                f"File size {len(content)} exceeds the limit of {max_size} bytes "
                f"({max_size / 1024 / 1024:.0f} MiB)"
            )

        if mime_type not in allowed_types:
            raise UnsupportedFileTypeError(f"Unsupported file type: {mime_type}")

        extension = file_extension(original_name or "").lower()
        if extension not in allowed_extensions:
            raise UnsupportedExtensionError(f"Unsupported file extension: {extension or '<none>'}")

        if not original_name or not original_name.strip():
            raise EmptyFileNameError("File name must not be empty")

        self.check_signature(content, mime_type)

    def check_signature(self, content: bytes, mime_type: str) -> None:
        expected = SIGNATURES.get(mime_type)
        if expected is None:
            if self._strict_signatures:
                raise SignatureMismatchError(f"No content signature registered for {mime_type}")
            logger.debug(f"No signature registered for {mime_type}, skipping content check")
            return
        if not any(content.startswith(sig) for sig in expected):
            raise SignatureMismatchError(f"File content does not match declared type {mime_type}")
