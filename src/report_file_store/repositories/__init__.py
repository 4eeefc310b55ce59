from .disk_repository import DiskRepository
from .pg_repositoryFile import FileRepository

__all__ = [
    "DiskRepository",
    "FileRepository",
]
