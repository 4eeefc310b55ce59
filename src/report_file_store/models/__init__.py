from .file import (
    StoredFileInDB,
    FileUploadResult,
    FileValidationOptions,
    BatchDeleteResult,
    CleanupResult,
    TypeBucket,
    DateBucket,
    StorageStats,
    FilePage,
    StorageHealth,
    HealthStatus,
)

__all__ = [
    "StoredFileInDB", "FileUploadResult", "FileValidationOptions",
    "BatchDeleteResult", "CleanupResult", "TypeBucket", "DateBucket",
    "StorageStats", "FilePage", "StorageHealth", "HealthStatus",
]
