"""Shared test fixtures."""

from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from tacitwatch.adapters.store import MemoryStore
from tacitwatch.domain.circuit_breaker import CircuitBreaker
from tacitwatch.domain.models import RawDocument
from tacitwatch.domain.patterns import PatternAnalyzer
from tacitwatch.ports.image import ImagePort
from tacitwatch.ports.llm import LLMPort
from tacitwatch.ports.ocr import OCRPort
from tacitwatch.ports.pdf import PdfPort
from tacitwatch.ports.storage import DocumentRepository, FailedTaskLog, TaskQueue

RENEWAL_TEXT = (
    "Le présent contrat se renouvelle automatiquement par tacite reconduction "
    "pour des périodes successives d'un an, sauf dénonciation par l'une des "
    "parties moyennant un préavis de 30 jours."
)

PLAIN_TEXT = (
    "Le présent contrat de maintenance est conclu pour une durée ferme. "
    "Il prend fin sans autre formalité à son terme."
)


class FakeClock:
    """Controllable clock returning epoch seconds."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDateClock:
    """Controllable clock returning datetimes."""

    def __init__(self, start: datetime = datetime(2024, 6, 1, 12, 0)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def renewal_text() -> str:
    return RENEWAL_TEXT


@pytest.fixture
def plain_text() -> str:
    return PLAIN_TEXT


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def date_clock() -> FakeDateClock:
    return FakeDateClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryStore:
    return MemoryStore(clock=clock)


@pytest.fixture
def breaker(store: MemoryStore, clock: FakeClock) -> CircuitBreaker:
    return CircuitBreaker(
        "ai",
        store,
        failure_threshold=3,
        recovery_timeout=60,
        success_threshold=2,
        clock=clock,
    )


@pytest.fixture
def pattern_analyzer() -> PatternAnalyzer:
    return PatternAnalyzer()


@pytest.fixture
def pdf_document(tmp_path: Path) -> RawDocument:
    path = tmp_path / "contract.pdf"
    path.write_bytes(b"%PDF-1.4 test content")
    return RawDocument.from_path(path, "application/pdf")


@pytest.fixture
def image_document(tmp_path: Path) -> RawDocument:
    path = tmp_path / "scan.png"
    path.write_bytes(b"\x89PNG test content")
    return RawDocument.from_path(path, "image/png")


@pytest.fixture
def mock_pdf(tmp_path: Path) -> MagicMock:
    """Mock PDF port without a usable text layer."""
    mock = MagicMock(spec=PdfPort)
    mock.inspect.return_value = {"pages": 1, "encrypted": False}
    mock.extract_text.return_value = ""

    def rasterize(path: Path, output_dir: Path, dpi: int) -> Path:
        image = output_dir / "page.png"
        image.write_bytes(b"image")
        return image

    mock.rasterize.side_effect = rasterize
    return mock


@pytest.fixture
def mock_images() -> MagicMock:
    """Mock image port returning the input image for every variant."""
    mock = MagicMock(spec=ImagePort)
    mock.preprocess.side_effect = lambda image, variant, output_dir: image
    mock.dimensions.return_value = (2480, 3508)
    return mock


@pytest.fixture
def mock_ocr() -> MagicMock:
    mock = MagicMock(spec=OCRPort)
    mock.recognize.return_value = RENEWAL_TEXT
    return mock


@pytest.fixture
def mock_llm() -> MagicMock:
    return MagicMock(spec=LLMPort)


@pytest.fixture
def mock_documents() -> MagicMock:
    mock = MagicMock(spec=DocumentRepository)
    mock.get.return_value = None
    mock.find_stuck.return_value = []
    return mock


@pytest.fixture
def mock_tasks() -> MagicMock:
    return MagicMock(spec=TaskQueue)


@pytest.fixture
def mock_failed_tasks() -> MagicMock:
    mock = MagicMock(spec=FailedTaskLog)
    mock.list_failed.return_value = []
    return mock
