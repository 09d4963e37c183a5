"""LLM adapter using Claude API."""

import logging

import anthropic

from ...ports.llm import LLMPort
from .prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)


class ClaudeAPIAdapter(LLMPort):
    """LLM implementation using Claude API (pay-as-you-go)."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        timeout: float = 120.0,
        max_tokens: int = 2000,
    ) -> None:
        self.client = anthropic.Anthropic(timeout=timeout)
        self.model = model
        self.max_tokens = max_tokens

    def analyze(self, text: str) -> str:
        logger.info("Analyzing contract with Claude API")

        response = self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=0.1,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": text}],
        )

        return "".join(
            block.text for block in response.content if block.type == "text"
        )
