"""Storage adapters keeping one YAML file per record on the local filesystem."""

import logging
import re
import uuid
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from ...domain.models import (
    DocumentRecord,
    FailedTask,
    QueuedTask,
    StageStatus,
    TaskRequest,
)
from ...ports.storage import DocumentRepository, FailedTaskLog, TaskQueue

logger = logging.getLogger(__name__)


def sanitize_filename(name: str, max_length: int = 180) -> str:
    """Remove/replace characters invalid in filenames."""
    # Remove null bytes
    name = name.replace("\x00", "")
    # Replace path traversal attempts
    name = name.replace("..", "_")
    # Replace problematic characters
    name = re.sub(r'[<>:"/\\|?*]', "_", name)
    # Collapse multiple spaces/underscores
    name = re.sub(r"[_\s]+", " ", name)
    # Remove leading/trailing dots and spaces
    name = name.strip(". ")
    if len(name) > max_length:
        name = name[:max_length].rsplit(" ", 1)[0]
    return name or "Untitled"


def _read_yaml(path: Path) -> dict[str, Any] | None:
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to read {path}: {e}")
        return None
    return data if isinstance(data, dict) else None


def _as_datetime(value: Any) -> datetime:
    return value if isinstance(value, datetime) else datetime.fromisoformat(str(value))


def _write_yaml(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(yaml.safe_dump(data, default_flow_style=False, allow_unicode=True))
    tmp.replace(path)


def record_to_dict(record: DocumentRecord) -> dict[str, Any]:
    return {
        "document_id": record.document_id,
        "source_path": str(record.source_path) if record.source_path else None,
        "mime_type": record.mime_type,
        "extraction_status": record.extraction_status.value,
        "analysis_status": record.analysis_status.value,
        "updated_at": record.updated_at.isoformat(),
        "text": record.text,
        "strategy_hint": record.strategy_hint,
        "recovery_attempts": record.recovery_attempts,
    }


def record_from_dict(data: dict[str, Any]) -> DocumentRecord:
    source = data.get("source_path")
    return DocumentRecord(
        document_id=str(data["document_id"]),
        source_path=Path(source) if source else None,
        mime_type=data.get("mime_type", "application/pdf"),
        extraction_status=StageStatus(data.get("extraction_status", "pending")),
        analysis_status=StageStatus(data.get("analysis_status", "pending")),
        updated_at=_as_datetime(data["updated_at"]),
        text=data.get("text"),
        strategy_hint=data.get("strategy_hint"),
        recovery_attempts=int(data.get("recovery_attempts", 0)),
    )


class FilesystemDocumentRepository(DocumentRepository):
    """Document records as <base>/<document_id>.yaml."""

    def __init__(self, base_path: Path) -> None:
        self.base_path = base_path

    def _path(self, document_id: str) -> Path:
        return self.base_path / f"{sanitize_filename(document_id)}.yaml"

    def get(self, document_id: str) -> DocumentRecord | None:
        path = self._path(document_id)
        if not path.exists():
            return None
        data = _read_yaml(path)
        return record_from_dict(data) if data else None

    def save(self, record: DocumentRecord) -> None:
        _write_yaml(self._path(record.document_id), record_to_dict(record))
        logger.debug(f"Saved record: {record.document_id}")

    def find_stuck(self, cutoff: datetime) -> list[DocumentRecord]:
        if not self.base_path.exists():
            return []
        stuck = []
        for path in sorted(self.base_path.glob("*.yaml")):
            data = _read_yaml(path)
            if not data:
                continue
            record = record_from_dict(data)
            processing = StageStatus.PROCESSING in (
                record.extraction_status,
                record.analysis_status,
            )
            if processing and record.updated_at < cutoff:
                stuck.append(record)
        return stuck


class FilesystemTaskQueue(TaskQueue):
    """Queued tasks as <base>/<task_id>.yaml, drained by the task runner."""

    def __init__(
        self, base_path: Path, clock: Callable[[], datetime] = datetime.now
    ) -> None:
        self.base_path = base_path
        self.clock = clock

    def dispatch(self, task: TaskRequest) -> None:
        task_id = uuid.uuid4().hex
        run_at = self.clock() + task.delay
        _write_yaml(
            self.base_path / f"{task_id}.yaml",
            {
                "task_id": task_id,
                "task_type": task.task_type.value,
                "document_id": task.document_id,
                "run_at": run_at.isoformat(),
                "options": dict(task.options),
            },
        )
        logger.info(
            f"Queued {task.task_type.value} for {task.document_id} at {run_at:%H:%M:%S}"
        )

    def pending(self) -> list[QueuedTask]:
        if not self.base_path.exists():
            return []
        tasks = []
        for path in self.base_path.glob("*.yaml"):
            data = _read_yaml(path)
            if not data:
                continue
            tasks.append(
                QueuedTask(
                    task_id=str(data.get("task_id", path.stem)),
                    task_type=str(data.get("task_type", "unknown")),
                    document_id=str(data["document_id"]),
                    run_at=_as_datetime(data["run_at"]),
                    options=data.get("options") or {},
                )
            )
        return sorted(tasks, key=lambda t: t.run_at)

    def due(self, now: datetime) -> list[QueuedTask]:
        return [t for t in self.pending() if t.is_due(now)]

    def complete(self, task_id: str) -> None:
        (self.base_path / f"{sanitize_filename(task_id)}.yaml").unlink(missing_ok=True)


class FilesystemFailedTaskLog(FailedTaskLog):
    """Failed tasks as <base>/<task_id>.yaml."""

    def __init__(self, base_path: Path) -> None:
        self.base_path = base_path

    def _path(self, task_id: str) -> Path:
        return self.base_path / f"{sanitize_filename(task_id)}.yaml"

    def record(self, task: FailedTask) -> None:
        _write_yaml(
            self._path(task.task_id),
            {
                "task_id": task.task_id,
                "task_type": task.task_type,
                "document_id": task.document_id,
                "failed_at": task.failed_at.isoformat(),
                "payload": dict(task.payload),
                "error": task.error,
            },
        )

    def list_failed(self) -> list[FailedTask]:
        if not self.base_path.exists():
            return []
        failed = []
        for path in sorted(self.base_path.glob("*.yaml")):
            data = _read_yaml(path)
            if not data:
                continue
            failed.append(
                FailedTask(
                    task_id=str(data["task_id"]),
                    task_type=str(data.get("task_type", "unknown")),
                    document_id=data.get("document_id"),
                    failed_at=_as_datetime(data["failed_at"]),
                    payload=data.get("payload") or {},
                    error=data.get("error"),
                )
            )
        return failed

    def delete(self, task_id: str) -> None:
        self._path(task_id).unlink(missing_ok=True)
