"""Domain layer - core business logic."""

from .models import AnalysisResult, ExtractionResult, ProcessingOutcome

__all__ = ["AnalysisResult", "ExtractionResult", "ProcessingOutcome"]
