"""Unit tests for the queued task runner."""

from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from tacitwatch.adapters.storage import (
    FilesystemDocumentRepository,
    FilesystemFailedTaskLog,
    FilesystemTaskQueue,
)
from tacitwatch.domain.models import (
    DocumentRecord,
    FailedTask,
    ProcessingOutcome,
    QueuedTask,
    StageStatus,
    TaskRequest,
    TaskType,
)
from tacitwatch.domain.services import ProcessingService
from tacitwatch.domain.worker import TaskRunner


def queued(task_type: str = "analyze", **options) -> QueuedTask:
    return QueuedTask(
        task_id="task-1",
        task_type=task_type,
        document_id="doc-1",
        run_at=datetime(2024, 6, 1, 11, 58),
        options=options,
    )


@pytest.fixture
def mock_service() -> MagicMock:
    mock = MagicMock(spec=ProcessingService)
    mock.process.return_value = ProcessingOutcome(document_id="doc-1")
    mock.analyze_stored.return_value = ProcessingOutcome(document_id="doc-1")
    return mock


@pytest.fixture
def runner(
    mock_tasks: MagicMock,
    mock_failed_tasks: MagicMock,
    mock_service: MagicMock,
    mock_documents: MagicMock,
    date_clock,
) -> TaskRunner:
    return TaskRunner(
        tasks=mock_tasks,
        failed_tasks=mock_failed_tasks,
        service=mock_service,
        documents=mock_documents,
        clock=date_clock,
    )


class TestTaskRunner:
    """Tests for TaskRunner.run_due."""

    def test_asks_queue_for_due_tasks(
        self, runner: TaskRunner, mock_tasks: MagicMock
    ) -> None:
        mock_tasks.due.return_value = []

        report = runner.run_due()

        mock_tasks.due.assert_called_once_with(datetime(2024, 6, 1, 12, 0))
        assert (report.completed, report.failed) == (0, 0)

    def test_extraction_honours_strategy_hint(
        self,
        runner: TaskRunner,
        mock_tasks: MagicMock,
        mock_service: MagicMock,
        mock_documents: MagicMock,
        mock_failed_tasks: MagicMock,
        pdf_document,
    ) -> None:
        mock_tasks.due.return_value = [queued("extract_text", strategy_hint="denoised")]
        mock_documents.get.return_value = DocumentRecord(
            document_id="doc-1", source_path=pdf_document.path
        )

        report = runner.run_due()

        assert report.completed == 1
        args, kwargs = mock_service.process.call_args
        assert args[0] == "doc-1"
        assert args[1].path == pdf_document.path
        assert kwargs["strategy_hint"] == "denoised"
        mock_tasks.complete.assert_called_once_with("task-1")
        mock_failed_tasks.record.assert_not_called()

    def test_analysis_uses_stored_text(
        self, runner: TaskRunner, mock_tasks: MagicMock, mock_service: MagicMock
    ) -> None:
        mock_tasks.due.return_value = [queued("analyze")]

        runner.run_due()

        mock_service.analyze_stored.assert_called_once_with("doc-1", use_ai=True)
        mock_service.process.assert_not_called()

    def test_failure_recorded_and_task_removed(
        self,
        runner: TaskRunner,
        mock_tasks: MagicMock,
        mock_service: MagicMock,
        mock_failed_tasks: MagicMock,
    ) -> None:
        mock_tasks.due.return_value = [queued("analyze", attempts=1)]
        mock_service.analyze_stored.return_value = ProcessingOutcome(
            document_id="doc-1", errors=["Analysis failed: no extracted text for doc-1"]
        )

        report = runner.run_due()

        assert report.failed == 1
        failed: FailedTask = mock_failed_tasks.record.call_args.args[0]
        assert failed.task_id == "task-1"
        assert failed.task_type == "analyze"
        assert failed.failed_at == datetime(2024, 6, 1, 12, 0)
        assert failed.payload == {"attempts": 2}
        assert "no extracted text" in failed.error
        mock_tasks.complete.assert_called_once_with("task-1")

    def test_missing_source_file_fails_without_processing(
        self,
        runner: TaskRunner,
        mock_tasks: MagicMock,
        mock_service: MagicMock,
        mock_documents: MagicMock,
        mock_failed_tasks: MagicMock,
        tmp_path: Path,
    ) -> None:
        mock_tasks.due.return_value = [queued("extract_text")]
        mock_documents.get.return_value = DocumentRecord(
            document_id="doc-1", source_path=tmp_path / "gone.pdf"
        )

        assert runner.run_due().failed == 1
        mock_service.process.assert_not_called()
        assert "gone.pdf" in mock_failed_tasks.record.call_args.args[0].error

    @pytest.mark.parametrize("task_type", ["send_newsletter", "create_alerts"])
    def test_unhandled_task_type_recorded(
        self,
        runner: TaskRunner,
        mock_tasks: MagicMock,
        mock_failed_tasks: MagicMock,
        task_type: str,
    ) -> None:
        mock_tasks.due.return_value = [queued(task_type)]

        assert runner.run_due().failed == 1
        assert mock_failed_tasks.record.call_args.args[0].task_type == task_type


class TestTaskRunnerOnDisk:
    """TaskRunner against the filesystem queue and failed-task log."""

    def test_only_due_tasks_run(self, tmp_path: Path, date_clock) -> None:
        documents = FilesystemDocumentRepository(tmp_path / "documents")
        documents.save(
            DocumentRecord(
                document_id="doc-1",
                extraction_status=StageStatus.COMPLETED,
                text="tacite reconduction",
            )
        )
        queue = FilesystemTaskQueue(tmp_path / "queue", clock=date_clock)
        queue.dispatch(TaskRequest(TaskType.ANALYZE, "doc-1"))
        queue.dispatch(TaskRequest(TaskType.ANALYZE, "missing"))
        queue.dispatch(TaskRequest(TaskType.ANALYZE, "doc-1", delay=timedelta(minutes=10)))
        failed = FilesystemFailedTaskLog(tmp_path / "failed")
        service = MagicMock(spec=ProcessingService)
        service.analyze_stored.side_effect = lambda document_id, use_ai: ProcessingOutcome(
            document_id=document_id,
            errors=[] if document_id == "doc-1" else ["Analysis failed: no extracted text"],
        )

        runner = TaskRunner(queue, failed, service, documents, clock=date_clock)
        report = runner.run_due()

        assert (report.completed, report.failed) == (1, 1)
        [later] = queue.pending()
        assert later.run_at == datetime(2024, 6, 1, 12, 10)
        [failure] = failed.list_failed()
        assert failure.document_id == "missing"
        assert failure.payload == {"attempts": 1}
