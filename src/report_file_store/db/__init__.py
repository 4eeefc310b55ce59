# report_file_store/db/__init__.py

from .base import Base

from .projects.project_orm import ProjectORM, ProjectStatus, TaskORM

# таблицы, которые от них зависят
from .files.storage_orm import StoredFileORM


__all__ = [
    "Base",
    "ProjectORM",
    "ProjectStatus",
    "TaskORM",
    "StoredFileORM",
]
