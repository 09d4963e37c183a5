"""Storage adapters."""

from .filesystem import (
    FilesystemDocumentRepository,
    FilesystemFailedTaskLog,
    FilesystemTaskQueue,
)

__all__ = [
    "FilesystemDocumentRepository",
    "FilesystemFailedTaskLog",
    "FilesystemTaskQueue",
]
