"""LLM port - interface for contract analysis."""

from abc import ABC, abstractmethod


class LLMPort(ABC):
    """Interface for LLM-based contract analysis."""

    @abstractmethod
    def analyze(self, text: str) -> str:
        """Send contract text to the model and return its raw response."""
        pass
