"""Ports - interfaces for external dependencies."""

from .image import ImagePort
from .llm import LLMPort
from .ocr import OCRPort
from .pdf import PdfPort
from .storage import DocumentRepository, FailedTaskLog, TaskQueue
from .store import KeyValueStore

__all__ = [
    "DocumentRepository",
    "FailedTaskLog",
    "ImagePort",
    "KeyValueStore",
    "LLMPort",
    "OCRPort",
    "PdfPort",
    "TaskQueue",
]
