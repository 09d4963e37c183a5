"""Recovery of stuck documents and failed background tasks."""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..ports.storage import DocumentRepository, FailedTaskLog, TaskQueue
from .circuit_breaker import CircuitBreaker
from .errors import StaleProcessing
from .extraction import DEFAULT_VARIANTS
from .models import (
    DocumentRecord,
    FailedTask,
    Stage,
    StageStatus,
    TaskRequest,
    TaskType,
)

logger = logging.getLogger(__name__)

KNOWN_TASK_TYPES = frozenset(t.value for t in TaskType)


@dataclass
class FailedTaskReport:
    retried: int = 0
    discarded: int = 0


def next_strategy(current: str | None, variants: Sequence[str]) -> str:
    """Pick a preprocessing variant different from the one that got stuck."""
    if current in variants:
        return variants[(list(variants).index(current) + 1) % len(variants)]
    # No hint means the default order ran, which starts with variants[0]
    return variants[1] if len(variants) > 1 else variants[0]


class RecoveryOrchestrator:
    """Periodic repair of processing state.

    Both sweeps are idempotent: a recovered document leaves the processing
    state, and a retried or discarded task leaves the failed-task log.
    """

    def __init__(
        self,
        documents: DocumentRepository,
        tasks: TaskQueue,
        failed_tasks: FailedTaskLog,
        breaker: CircuitBreaker,
        stale_after: timedelta = timedelta(hours=2),
        max_recovery_attempts: int = 3,
        extraction_retry_delay: timedelta = timedelta(minutes=2),
        analysis_retry_delay: timedelta = timedelta(minutes=1),
        unavailable_retry_delay: timedelta = timedelta(minutes=10),
        retry_task_types: Sequence[str] = tuple(KNOWN_TASK_TYPES),
        retry_window: timedelta = timedelta(hours=6),
        retention: timedelta = timedelta(days=3),
        task_retry_delay: timedelta = timedelta(minutes=5),
        variants: Sequence[str] = DEFAULT_VARIANTS,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.documents = documents
        self.tasks = tasks
        self.failed_tasks = failed_tasks
        self.breaker = breaker
        self.stale_after = stale_after
        self.max_recovery_attempts = max_recovery_attempts
        self.extraction_retry_delay = extraction_retry_delay
        self.analysis_retry_delay = analysis_retry_delay
        self.unavailable_retry_delay = unavailable_retry_delay
        self.retry_task_types = frozenset(retry_task_types)
        self.retry_window = retry_window
        self.retention = retention
        self.task_retry_delay = task_retry_delay
        self.variants = tuple(variants)
        self.clock = clock

    def run(self) -> dict[str, int]:
        recovered = self.sweep_stuck_documents()
        report = self.sweep_failed_tasks()
        return {
            "stuck_recovered": recovered,
            "tasks_retried": report.retried,
            "tasks_discarded": report.discarded,
        }

    def sweep_stuck_documents(self) -> int:
        """Fail and re-queue documents stuck in processing. Returns stages recovered."""
        now = self.clock()
        cutoff = now - self.stale_after
        recovered = 0

        for record in self.documents.find_stuck(cutoff):
            try:
                recovered += self._recover_document(record, now, cutoff)
            except Exception:
                logger.exception(f"Failed to recover stuck document {record.document_id}")

        if recovered:
            logger.info(f"Recovered {recovered} stuck processing stage(s)")
        return recovered

    def _recover_document(
        self, record: DocumentRecord, now: datetime, cutoff: datetime
    ) -> int:
        if record.updated_at >= cutoff:
            return 0
        stuck = [s for s in Stage if record.status(s) is StageStatus.PROCESSING]
        if not stuck:
            return 0

        for stage in stuck:
            issue = StaleProcessing(record.document_id, stage.value, now - record.updated_at)
            logger.warning(str(issue))
            record.set_status(stage, StageStatus.FAILED)

        if record.recovery_attempts >= self.max_recovery_attempts:
            logger.error(
                f"Giving up on {record.document_id} after "
                f"{record.recovery_attempts} recovery attempts"
            )
            self.documents.save(record)
            return 0

        record.recovery_attempts += 1
        recovered = 0
        if Stage.EXTRACTION in stuck:
            recovered += self._recover_extraction(record)
        if Stage.ANALYSIS in stuck:
            recovered += self._recover_analysis(record)

        self.documents.save(record)
        return recovered

    def _recover_extraction(self, record: DocumentRecord) -> int:
        record.strategy_hint = next_strategy(record.strategy_hint, self.variants)
        record.text = None
        record.set_status(Stage.EXTRACTION, StageStatus.PENDING)
        self.tasks.dispatch(
            TaskRequest(
                task_type=TaskType.EXTRACT_TEXT,
                document_id=record.document_id,
                delay=self.extraction_retry_delay,
                options={"strategy_hint": record.strategy_hint},
            )
        )
        logger.info(
            f"Extraction recovery queued for {record.document_id} "
            f"with strategy {record.strategy_hint}"
        )
        return 1

    def _recover_analysis(self, record: DocumentRecord) -> int:
        if not record.text:
            logger.warning(f"No text available for analysis recovery on {record.document_id}")
            return 0

        if self.breaker.is_available():
            delay = self.analysis_retry_delay
        else:
            delay = self.unavailable_retry_delay
            logger.info(f"AI unavailable, delaying analysis retry for {record.document_id}")

        record.set_status(Stage.ANALYSIS, StageStatus.PENDING)
        self.tasks.dispatch(
            TaskRequest(
                task_type=TaskType.ANALYZE,
                document_id=record.document_id,
                delay=delay,
            )
        )
        logger.info(f"Analysis recovery queued for {record.document_id}")
        return 1

    def sweep_failed_tasks(self) -> FailedTaskReport:
        """Retry recent critical tasks and discard expired ones."""
        now = self.clock()
        report = FailedTaskReport()

        for task in self.failed_tasks.list_failed():
            try:
                age = now - task.failed_at
                if self._should_retry(task, age):
                    self.failed_tasks.delete(task.task_id)
                    self.tasks.dispatch(
                        TaskRequest(
                            task_type=TaskType(task.task_type),
                            document_id=task.document_id,
                            delay=self.task_retry_delay,
                            options=dict(task.payload),
                        )
                    )
                    logger.info(f"Retrying failed task {task.task_id}: {task.task_type}")
                    report.retried += 1
                elif age > self.retention:
                    self.failed_tasks.delete(task.task_id)
                    report.discarded += 1
            except Exception:
                logger.exception(f"Failed to handle failed task {task.task_id}")

        logger.info(
            f"Failed task sweep: {report.retried} retried, {report.discarded} discarded"
        )
        return report

    def _should_retry(self, task: FailedTask, age: timedelta) -> bool:
        return (
            task.task_type in self.retry_task_types
            and task.task_type in KNOWN_TASK_TYPES
            and task.document_id is not None
            and age <= self.retry_window
            and int(task.payload.get("attempts", 0)) < self.max_recovery_attempts
        )
