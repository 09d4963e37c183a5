"""LLM adapter using Ollama."""

import logging
from urllib.parse import urlparse

import httpx

from ...ports.llm import LLMPort
from .prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)


class OllamaAdapter(LLMPort):
    """LLM implementation using Ollama."""

    def __init__(
        self,
        model: str = "gemma3:4b",
        base_url: str = "http://localhost:11434",
        timeout: float = 120.0,
    ) -> None:
        parsed = urlparse(base_url)
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f"Invalid ollama_url scheme: {parsed.scheme}")
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def analyze(self, text: str) -> str:
        logger.info(f"Analyzing contract with Ollama ({self.model})")

        response = httpx.post(
            f"{self.base_url}/api/chat",
            json={
                "model": self.model,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": text},
                ],
                "stream": False,
                "format": "json",
                "options": {"temperature": 0.1},
            },
            timeout=self.timeout,
        )
        response.raise_for_status()

        return response.json()["message"]["content"]
