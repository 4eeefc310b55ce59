from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class StoredFileInDB(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    original_name: str
    stored_name: str
    mime_type: str
    size: int
    hash: str
    path: str
    uploaded_at: datetime
    project_id: Optional[UUID] = None
    task_id: Optional[UUID] = None
    uploaded_by: Optional[str] = None


class FileUploadResult(BaseModel):
    """Ответ на загрузку; model_dump(by_alias=True) даёт camelCase для HTTP-слоя."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    original_name: str
    stored_name: str
    mime_type: str
    size: int
    hash: str
    download_url: str


class FileValidationOptions(BaseModel):
    max_size: Optional[int] = Field(None, gt=0)
    allowed_types: Optional[List[str]] = None
    allowed_extensions: Optional[List[str]] = None


class BatchDeleteResult(BaseModel):
    deleted: int = 0
    failed: List[UUID] = Field(default_factory=list)


class CleanupResult(BaseModel):
    cleaned: int = 0
    errors: int = 0


class TypeBucket(BaseModel):
    mime_type: str
    count: int
    size: int


class DateBucket(BaseModel):
    date: str
    count: int
    size: int


class StorageStats(BaseModel):
    total_files: int
    total_size: int
    files_by_type: List[TypeBucket] = Field(default_factory=list)
    files_by_date: List[DateBucket] = Field(default_factory=list)


class FilePage(BaseModel):
    files: List[StoredFileInDB]
    page: int
    limit: int
    total: int
    total_pages: int


class StorageHealth(BaseModel):
    available: bool
    total_files: int = 0
    total_size: int = 0


class HealthStatus(BaseModel):
    status: Literal["healthy", "error"]
    storage: StorageHealth
