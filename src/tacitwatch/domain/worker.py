"""Runs queued background tasks once their scheduled time has passed."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from ..ports.storage import DocumentRepository, FailedTaskLog, TaskQueue
from .models import FailedTask, ProcessingOutcome, QueuedTask, RawDocument, TaskType
from .services import ProcessingService

logger = logging.getLogger(__name__)


def attempts(options: dict) -> int:
    """How many times a task has already failed, as carried in its options."""
    return int(options.get("attempts", 0))


@dataclass
class WorkReport:
    completed: int = 0
    failed: int = 0


class TaskRunner:
    """Drains due tasks from the queue into the processing service.

    Every handled task leaves the queue. Failures go to the failed-task log,
    where the recovery sweep picks them up for a bounded number of retries.
    """

    def __init__(
        self,
        tasks: TaskQueue,
        failed_tasks: FailedTaskLog,
        service: ProcessingService,
        documents: DocumentRepository,
        use_ai: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.tasks = tasks
        self.failed_tasks = failed_tasks
        self.service = service
        self.documents = documents
        self.use_ai = use_ai
        self.clock = clock

    def run_due(self) -> WorkReport:
        report = WorkReport()
        for task in self.tasks.due(self.clock()):
            errors = self._run(task)
            if errors:
                self._record_failure(task, "; ".join(errors))
                report.failed += 1
            else:
                report.completed += 1
            self.tasks.complete(task.task_id)

        if report.completed or report.failed:
            logger.info(f"Task run: {report.completed} completed, {report.failed} failed")
        return report

    def _run(self, task: QueuedTask) -> list[str]:
        logger.info(f"Running {task.task_type} for {task.document_id}")
        try:
            task_type = TaskType(task.task_type)
        except ValueError:
            return [f"Unknown task type: {task.task_type}"]

        if task_type is TaskType.EXTRACT_TEXT:
            outcome = self._extract(task)
        elif task_type is TaskType.ANALYZE:
            outcome = self.service.analyze_stored(task.document_id, use_ai=self.use_ai)
        else:
            return [f"No handler for {task_type.value}"]
        return outcome.errors

    def _extract(self, task: QueuedTask) -> ProcessingOutcome:
        record = self.documents.get(task.document_id)
        if record is None or record.source_path is None:
            return ProcessingOutcome(
                document_id=task.document_id,
                errors=[f"Extraction failed: no source file for {task.document_id}"],
            )
        try:
            document = RawDocument.from_path(record.source_path, record.mime_type)
        except OSError as e:
            return ProcessingOutcome(
                document_id=task.document_id,
                errors=[f"Extraction failed: cannot read {record.source_path.name}: {e}"],
            )
        return self.service.process(
            task.document_id,
            document,
            strategy_hint=task.options.get("strategy_hint"),
            use_ai=self.use_ai,
        )

    def _record_failure(self, task: QueuedTask, error: str) -> None:
        logger.error(f"Task {task.task_type} for {task.document_id} failed: {error}")
        self.failed_tasks.record(
            FailedTask(
                task_id=task.task_id,
                task_type=task.task_type,
                document_id=task.document_id,
                failed_at=self.clock(),
                payload={**task.options, "attempts": attempts(task.options) + 1},
                error=error,
            )
        )
