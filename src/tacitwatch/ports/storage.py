"""Storage ports - the persistence and scheduling collaborators."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.models import DocumentRecord, FailedTask, QueuedTask, TaskRequest


class DocumentRepository(ABC):
    """Interface to contract processing records."""

    @abstractmethod
    def find_stuck(self, cutoff: datetime) -> list["DocumentRecord"]:
        """Return records with a stage processing since before cutoff."""
        pass

    @abstractmethod
    def get(self, document_id: str) -> "DocumentRecord | None":
        pass

    @abstractmethod
    def save(self, record: "DocumentRecord") -> None:
        pass


class TaskQueue(ABC):
    """Interface to the background task scheduler."""

    @abstractmethod
    def dispatch(self, task: "TaskRequest") -> None:
        pass

    @abstractmethod
    def due(self, now: datetime) -> list["QueuedTask"]:
        """Return tasks whose run_at has passed, oldest first."""
        pass

    @abstractmethod
    def complete(self, task_id: str) -> None:
        """Remove a task once it has been handled."""
        pass


class FailedTaskLog(ABC):
    """Interface to the record of failed background tasks."""

    @abstractmethod
    def record(self, task: "FailedTask") -> None:
        pass

    @abstractmethod
    def list_failed(self) -> list["FailedTask"]:
        pass

    @abstractmethod
    def delete(self, task_id: str) -> None:
        pass
