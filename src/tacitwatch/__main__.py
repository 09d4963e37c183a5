"""CLI entry point for tacitwatch."""

import logging
import mimetypes
import sys
import time
from datetime import timedelta
from pathlib import Path
from typing import Any

import click
import yaml

from .adapters.image import PillowAdapter
from .adapters.llm import create_llm_adapter
from .adapters.ocr import TesseractAdapter
from .adapters.ocr.tesseract import check_availability as check_tesseract
from .adapters.pdf import PopplerAdapter
from .adapters.pdf.poppler import check_availability as check_poppler
from .adapters.storage import (
    FilesystemDocumentRepository,
    FilesystemFailedTaskLog,
    FilesystemTaskQueue,
)
from .adapters.store import FileStore, MemoryStore
from .config import LLMProvider, Settings, StoreBackend, load_settings
from .domain.ai_analysis import AIAnalysisService
from .domain.circuit_breaker import CircuitBreaker
from .domain.errors import TacitwatchError
from .domain.extraction import TextExtractionService
from .domain.models import RawDocument
from .domain.patterns import PatternAnalyzer, summarize
from .domain.recommendations import build_recommendations
from .domain.recovery import RecoveryOrchestrator
from .domain.services import ProcessingService
from .domain.worker import TaskRunner
from .ports.storage import DocumentRepository
from .ports.store import KeyValueStore

logger = logging.getLogger(__name__)

AI_SERVICE = "ai"


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def mime_type_for(path: Path) -> str:
    """Guess the MIME type from the file name."""
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type or "application/octet-stream"


def echo_yaml(data: Any) -> None:
    click.echo(yaml.safe_dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False))


def create_store(settings: Settings) -> KeyValueStore:
    if settings.store.backend == StoreBackend.MEMORY:
        return MemoryStore()
    return FileStore(settings.paths.store_file)


def create_breaker(
    settings: Settings, store: KeyValueStore, service: str = AI_SERVICE
) -> CircuitBreaker:
    return CircuitBreaker(
        service,
        store,
        failure_threshold=settings.breaker.failure_threshold,
        recovery_timeout=settings.breaker.recovery_timeout,
        success_threshold=settings.breaker.success_threshold,
        state_ttl=settings.breaker.state_ttl,
    )


def create_extractor(settings: Settings, store: KeyValueStore) -> TextExtractionService:
    ocr = settings.ocr
    return TextExtractionService(
        pdf=PopplerAdapter(timeout=ocr.subprocess_timeout),
        ocr=TesseractAdapter(languages=ocr.languages, timeout=ocr.subprocess_timeout),
        images=PillowAdapter(),
        cache=store if ocr.cache_results else None,
        dpi=ocr.dpi,
        native_min_length=ocr.native_min_length,
        native_min_ratio=ocr.native_min_ratio,
        early_exit_confidence=ocr.early_exit_confidence,
        variants=ocr.variants,
        engines=ocr.engine_configs,
        selection_policy=ocr.selection_policy,
        enable_preprocessing=ocr.enable_preprocessing,
        cache_ttl=ocr.cache_ttl,
    )


def create_analyzer(settings: Settings, store: KeyValueStore) -> AIAnalysisService:
    patterns = PatternAnalyzer(
        detection_ratio=settings.patterns.detection_ratio,
        explicit_min_matches=settings.patterns.explicit_min_matches,
        corroborated_explicit=settings.patterns.corroborated_explicit,
        max_contract_days=settings.patterns.max_contract_days,
        amount_tolerance=settings.patterns.amount_tolerance,
    )
    return AIAnalysisService(
        llm=create_llm_adapter(settings.llm),
        breaker=create_breaker(settings, store),
        patterns=patterns,
        max_chars=settings.llm.max_chars,
    )


def create_processing_service(
    settings: Settings, store: KeyValueStore, documents: DocumentRepository
) -> ProcessingService:
    return ProcessingService(
        extractor=create_extractor(settings, store),
        analyzer=create_analyzer(settings, store),
        documents=documents,
        min_ai_confidence=settings.ocr.min_ai_confidence,
        low_quality_threshold=settings.ocr.low_quality_threshold,
    )


def _minutes(value: float) -> timedelta:
    return timedelta(minutes=value)


def load_document(file: Path) -> RawDocument:
    return RawDocument.from_path(file, mime_type_for(file))


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("-c", "--config", type=click.Path(exists=True), help="Config file path")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config: str | None) -> None:
    """Tacitwatch - tacit renewal detection for contracts."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = load_settings(Path(config) if config else None)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--strategy", help="Preprocessing variant to try first")
@click.pass_context
def extract(ctx: click.Context, file: Path, strategy: str | None) -> None:
    """Extract text from a contract."""
    settings = ctx.obj["settings"]
    extractor = create_extractor(settings, create_store(settings))

    try:
        result = extractor.extract(load_document(file), strategy_hint=strategy)
    except TacitwatchError as e:
        click.echo(f"Extraction failed: {e}", err=True)
        sys.exit(1)

    echo_yaml(result.to_dict())


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--no-ai", is_flag=True, help="Use pattern matching only")
@click.pass_context
def analyze(ctx: click.Context, file: Path, no_ai: bool) -> None:
    """Extract and analyze a contract without recording state."""
    settings = ctx.obj["settings"]
    store = create_store(settings)

    try:
        extraction = create_extractor(settings, store).extract(load_document(file))
    except TacitwatchError as e:
        click.echo(f"Extraction failed: {e}", err=True)
        sys.exit(1)

    analysis = create_analyzer(settings, store).analyze(extraction.text, use_ai=not no_ai)
    recommendations = build_recommendations(
        analysis, extraction, settings.ocr.low_quality_threshold
    )

    echo_yaml({
        "summary": summarize(analysis),
        "analysis": analysis.to_dict(),
        "recommendations": [
            {"type": r.kind, "priority": r.priority, "message": r.message}
            for r in recommendations
        ],
    })


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--id", "document_id", required=True, help="Document identifier")
@click.option("--no-ai", is_flag=True, help="Use pattern matching only")
@click.pass_context
def process(ctx: click.Context, file: Path, document_id: str, no_ai: bool) -> None:
    """Run the full pipeline and record processing state."""
    settings = ctx.obj["settings"]
    documents = FilesystemDocumentRepository(settings.paths.documents)
    service = create_processing_service(settings, create_store(settings), documents)

    outcome = service.process(document_id, load_document(file), use_ai=not no_ai)

    if outcome.success and outcome.analysis:
        echo_yaml(summarize(outcome.analysis))
        for r in outcome.recommendations:
            click.echo(f"[{r.priority}] {r.message}")
    else:
        click.echo(f"Errors: {outcome.errors}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def recover(ctx: click.Context) -> None:
    """Recover stuck documents and retry failed tasks."""
    settings = ctx.obj["settings"]
    recovery = settings.recovery

    orchestrator = RecoveryOrchestrator(
        documents=FilesystemDocumentRepository(settings.paths.documents),
        tasks=FilesystemTaskQueue(settings.paths.queue),
        failed_tasks=FilesystemFailedTaskLog(settings.paths.failed),
        breaker=create_breaker(settings, create_store(settings)),
        stale_after=recovery.stale_after,
        max_recovery_attempts=recovery.max_recovery_attempts,
        extraction_retry_delay=_minutes(recovery.extraction_retry_minutes),
        analysis_retry_delay=_minutes(recovery.analysis_retry_minutes),
        unavailable_retry_delay=_minutes(recovery.unavailable_retry_minutes),
        retry_task_types=recovery.retry_task_types,
        retry_window=recovery.retry_window,
        retention=recovery.retention,
        task_retry_delay=_minutes(recovery.task_retry_minutes),
        variants=settings.ocr.variants,
    )

    counts = orchestrator.run()
    for name, count in counts.items():
        click.echo(f"{name}: {count}")


@cli.command()
@click.option("--no-ai", is_flag=True, help="Use pattern matching only")
@click.option("--watch", is_flag=True, help="Keep polling the queue until interrupted")
@click.option("--interval", default=30.0, show_default=True, help="Seconds between polls")
@click.pass_context
def work(ctx: click.Context, no_ai: bool, watch: bool, interval: float) -> None:
    """Run queued tasks whose scheduled time has passed."""
    settings = ctx.obj["settings"]
    documents = FilesystemDocumentRepository(settings.paths.documents)
    runner = TaskRunner(
        tasks=FilesystemTaskQueue(settings.paths.queue),
        failed_tasks=FilesystemFailedTaskLog(settings.paths.failed),
        service=create_processing_service(settings, create_store(settings), documents),
        documents=documents,
        use_ai=not no_ai,
    )

    report = runner.run_due()
    try:
        while watch:
            time.sleep(interval)
            report = runner.run_due()
    except KeyboardInterrupt:
        logger.info("Shutting down...")

    click.echo(f"completed: {report.completed}")
    click.echo(f"failed: {report.failed}")


@cli.group()
def breaker() -> None:
    """Inspect and control circuit breakers."""


@breaker.command("status")
@click.argument("service", default=AI_SERVICE)
@click.pass_context
def breaker_status(ctx: click.Context, service: str) -> None:
    """Show circuit breaker metrics."""
    settings = ctx.obj["settings"]
    echo_yaml(create_breaker(settings, create_store(settings), service).get_metrics().to_dict())


@breaker.command("open")
@click.argument("service", default=AI_SERVICE)
@click.pass_context
def breaker_open(ctx: click.Context, service: str) -> None:
    """Force a circuit open."""
    settings = ctx.obj["settings"]
    create_breaker(settings, create_store(settings), service).force_open()
    click.echo(f"Circuit for {service} is open")


@breaker.command("reset")
@click.argument("service", default=AI_SERVICE)
@click.pass_context
def breaker_reset(ctx: click.Context, service: str) -> None:
    """Reset a circuit to closed."""
    settings = ctx.obj["settings"]
    create_breaker(settings, create_store(settings), service).force_reset()
    click.echo(f"Circuit for {service} is closed")


@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Check that external tools are available."""
    settings = ctx.obj["settings"]
    tools = {**check_tesseract(), **check_poppler()}

    for tool, available in tools.items():
        click.echo(f"{'✓' if available else '✗'} {tool}")
    provider = settings.llm.provider
    if provider == LLMProvider.NONE:
        click.echo("- llm: disabled (pattern matching only)")
    else:
        click.echo(f"- llm: {provider.value} ({settings.llm.model})")

    if not all(tools.values()):
        sys.exit(1)


if __name__ == "__main__":
    cli()
