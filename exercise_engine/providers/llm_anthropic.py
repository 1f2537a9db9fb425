from __future__ import annotations

import logging
import os

from exercise_engine.providers.base import LLMProvider

log = logging.getLogger("exercise_engine.llm")


class AnthropicProvider(LLMProvider):
    def __init__(self, model: str = "claude-sonnet-4-20250514", max_tokens: int = 2048):
        import anthropic
        self.client = anthropic.AsyncAnthropic(
            api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
        )
        self.model = model
        self.max_tokens = max_tokens

    async def generate(self, prompt: str, temperature: float = 0.7, thinking: bool = True) -> str:
        log.debug("── PROMPT (%s) ──\n%s", self.model, prompt)
        message = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        text = "".join(block.text for block in message.content if block.type == "text")
        log.debug("── RESPONSE (%s) ──\n%s", self.model, text)
        return text

    def name(self) -> str:
        return f"anthropic/{self.model}"
