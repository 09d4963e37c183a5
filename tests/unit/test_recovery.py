"""Unit tests for the recovery orchestrator."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from tacitwatch.domain.circuit_breaker import CircuitBreaker
from tacitwatch.domain.models import (
    DocumentRecord,
    FailedTask,
    StageStatus,
    TaskType,
)
from tacitwatch.domain.recovery import RecoveryOrchestrator, next_strategy

STALE = datetime(2024, 6, 1, 9, 0)


def stuck_record(
    extraction: StageStatus = StageStatus.PROCESSING,
    analysis: StageStatus = StageStatus.PENDING,
    **kwargs,
) -> DocumentRecord:
    return DocumentRecord(
        document_id=kwargs.pop("document_id", "doc-1"),
        extraction_status=extraction,
        analysis_status=analysis,
        updated_at=STALE,
        **kwargs,
    )


def failed_task(
    task_type: str = "analyze", age: timedelta = timedelta(hours=1), **kwargs
) -> FailedTask:
    return FailedTask(
        task_id=kwargs.pop("task_id", "task-1"),
        task_type=task_type,
        document_id=kwargs.pop("document_id", "doc-1"),
        failed_at=datetime(2024, 6, 1, 12, 0) - age,
        **kwargs,
    )


@pytest.fixture
def orchestrator(
    mock_documents: MagicMock,
    mock_tasks: MagicMock,
    mock_failed_tasks: MagicMock,
    breaker: CircuitBreaker,
    date_clock,
) -> RecoveryOrchestrator:
    return RecoveryOrchestrator(
        documents=mock_documents,
        tasks=mock_tasks,
        failed_tasks=mock_failed_tasks,
        breaker=breaker,
        clock=date_clock,
    )


class TestNextStrategy:
    """Tests for strategy rotation."""

    def test_rotates(self) -> None:
        assert next_strategy("original", ["original", "enhanced"]) == "enhanced"

    def test_wraps_around(self) -> None:
        assert next_strategy("enhanced", ["original", "enhanced"]) == "original"

    def test_no_hint_skips_default_first_variant(self) -> None:
        assert next_strategy(None, ["original", "enhanced", "denoised"]) == "enhanced"

    def test_single_variant(self) -> None:
        assert next_strategy(None, ["original"]) == "original"


class TestStuckDocuments:
    """Tests for sweep_stuck_documents."""

    def test_extraction_requeued_with_new_strategy(
        self,
        orchestrator: RecoveryOrchestrator,
        mock_documents: MagicMock,
        mock_tasks: MagicMock,
    ) -> None:
        record = stuck_record(text="old", strategy_hint="enhanced")
        mock_documents.find_stuck.return_value = [record]

        assert orchestrator.sweep_stuck_documents() == 1

        request = mock_tasks.dispatch.call_args.args[0]
        assert request.task_type is TaskType.EXTRACT_TEXT
        assert request.delay == timedelta(minutes=2)
        assert request.options == {"strategy_hint": "high_contrast"}
        assert record.extraction_status is StageStatus.PENDING
        assert record.text is None
        assert record.recovery_attempts == 1
        mock_documents.save.assert_called_once_with(record)

    def test_find_stuck_uses_cutoff(
        self, orchestrator: RecoveryOrchestrator, mock_documents: MagicMock
    ) -> None:
        orchestrator.sweep_stuck_documents()

        mock_documents.find_stuck.assert_called_once_with(datetime(2024, 6, 1, 10, 0))

    def test_analysis_requeued_when_ai_available(
        self,
        orchestrator: RecoveryOrchestrator,
        mock_documents: MagicMock,
        mock_tasks: MagicMock,
    ) -> None:
        record = stuck_record(StageStatus.COMPLETED, StageStatus.PROCESSING, text="contrat")
        mock_documents.find_stuck.return_value = [record]

        assert orchestrator.sweep_stuck_documents() == 1

        request = mock_tasks.dispatch.call_args.args[0]
        assert request.task_type is TaskType.ANALYZE
        assert request.delay == timedelta(minutes=1)
        assert record.analysis_status is StageStatus.PENDING

    def test_analysis_delayed_when_circuit_open(
        self,
        orchestrator: RecoveryOrchestrator,
        mock_documents: MagicMock,
        mock_tasks: MagicMock,
        breaker: CircuitBreaker,
    ) -> None:
        breaker.force_open()
        record = stuck_record(StageStatus.COMPLETED, StageStatus.PROCESSING, text="contrat")
        mock_documents.find_stuck.return_value = [record]

        orchestrator.sweep_stuck_documents()

        assert mock_tasks.dispatch.call_args.args[0].delay == timedelta(minutes=10)

    def test_analysis_without_text_stays_failed(
        self,
        orchestrator: RecoveryOrchestrator,
        mock_documents: MagicMock,
        mock_tasks: MagicMock,
    ) -> None:
        record = stuck_record(StageStatus.COMPLETED, StageStatus.PROCESSING)
        mock_documents.find_stuck.return_value = [record]

        assert orchestrator.sweep_stuck_documents() == 0

        mock_tasks.dispatch.assert_not_called()
        assert record.analysis_status is StageStatus.FAILED
        mock_documents.save.assert_called_once_with(record)

    def test_recovery_attempts_exhausted(
        self,
        orchestrator: RecoveryOrchestrator,
        mock_documents: MagicMock,
        mock_tasks: MagicMock,
    ) -> None:
        record = stuck_record(recovery_attempts=3)
        mock_documents.find_stuck.return_value = [record]

        assert orchestrator.sweep_stuck_documents() == 0

        mock_tasks.dispatch.assert_not_called()
        assert record.extraction_status is StageStatus.FAILED
        assert record.recovery_attempts == 3

    def test_recent_records_ignored(
        self,
        orchestrator: RecoveryOrchestrator,
        mock_documents: MagicMock,
        mock_tasks: MagicMock,
    ) -> None:
        record = stuck_record()
        record.updated_at = datetime(2024, 6, 1, 11, 0)
        mock_documents.find_stuck.return_value = [record]

        assert orchestrator.sweep_stuck_documents() == 0
        mock_tasks.dispatch.assert_not_called()

    def test_one_bad_record_does_not_stop_sweep(
        self,
        orchestrator: RecoveryOrchestrator,
        mock_documents: MagicMock,
        mock_tasks: MagicMock,
    ) -> None:
        first = stuck_record(document_id="doc-1")
        second = stuck_record(document_id="doc-2")
        mock_documents.find_stuck.return_value = [first, second]
        mock_documents.save.side_effect = [OSError("disk full"), None]

        assert orchestrator.sweep_stuck_documents() == 1
        assert mock_tasks.dispatch.call_count == 2

    def test_second_sweep_is_noop(
        self,
        orchestrator: RecoveryOrchestrator,
        mock_documents: MagicMock,
        mock_tasks: MagicMock,
    ) -> None:
        record = stuck_record()
        mock_documents.find_stuck.return_value = [record]
        orchestrator.sweep_stuck_documents()

        assert orchestrator.sweep_stuck_documents() == 0
        assert mock_tasks.dispatch.call_count == 1


class TestFailedTasks:
    """Tests for sweep_failed_tasks."""

    def test_recent_task_retried(
        self,
        orchestrator: RecoveryOrchestrator,
        mock_failed_tasks: MagicMock,
        mock_tasks: MagicMock,
    ) -> None:
        mock_failed_tasks.list_failed.return_value = [
            failed_task("extract_text", payload={"strategy_hint": "denoised"})
        ]

        report = orchestrator.sweep_failed_tasks()

        assert report.retried == 1
        mock_failed_tasks.delete.assert_called_once_with("task-1")
        request = mock_tasks.dispatch.call_args.args[0]
        assert request.task_type is TaskType.EXTRACT_TEXT
        assert request.delay == timedelta(minutes=5)
        assert request.options == {"strategy_hint": "denoised"}

    def test_old_task_discarded(
        self,
        orchestrator: RecoveryOrchestrator,
        mock_failed_tasks: MagicMock,
        mock_tasks: MagicMock,
    ) -> None:
        mock_failed_tasks.list_failed.return_value = [failed_task(age=timedelta(days=4))]

        report = orchestrator.sweep_failed_tasks()

        assert report.discarded == 1
        mock_failed_tasks.delete.assert_called_once_with("task-1")
        mock_tasks.dispatch.assert_not_called()

    def test_middle_aged_task_left_alone(
        self,
        orchestrator: RecoveryOrchestrator,
        mock_failed_tasks: MagicMock,
        mock_tasks: MagicMock,
    ) -> None:
        mock_failed_tasks.list_failed.return_value = [failed_task(age=timedelta(days=1))]

        report = orchestrator.sweep_failed_tasks()

        assert (report.retried, report.discarded) == (0, 0)
        mock_failed_tasks.delete.assert_not_called()

    @pytest.mark.parametrize(
        "task",
        [
            failed_task("send_newsletter"),
            failed_task("analyze", document_id=None),
        ],
    )
    def test_unknown_or_orphan_task_not_retried(
        self,
        orchestrator: RecoveryOrchestrator,
        mock_failed_tasks: MagicMock,
        mock_tasks: MagicMock,
        task: FailedTask,
    ) -> None:
        mock_failed_tasks.list_failed.return_value = [task]

        assert orchestrator.sweep_failed_tasks().retried == 0
        mock_tasks.dispatch.assert_not_called()

    def test_task_that_keeps_failing_not_retried(
        self,
        orchestrator: RecoveryOrchestrator,
        mock_failed_tasks: MagicMock,
        mock_tasks: MagicMock,
    ) -> None:
        mock_failed_tasks.list_failed.return_value = [failed_task(payload={"attempts": 3})]

        assert orchestrator.sweep_failed_tasks().retried == 0
        mock_tasks.dispatch.assert_not_called()

    def test_run_reports_counts(
        self,
        orchestrator: RecoveryOrchestrator,
        mock_documents: MagicMock,
        mock_failed_tasks: MagicMock,
    ) -> None:
        mock_documents.find_stuck.return_value = [stuck_record()]
        mock_failed_tasks.list_failed.return_value = [
            failed_task(task_id="a"),
            failed_task(task_id="b", age=timedelta(days=5)),
        ]

        assert orchestrator.run() == {
            "stuck_recovered": 1,
            "tasks_retried": 1,
            "tasks_discarded": 1,
        }
