from __future__ import annotations

import logging
import os

from exercise_engine.providers.base import LLMProvider

log = logging.getLogger("exercise_engine.llm")


class OpenAIProvider(LLMProvider):
    def __init__(self, model: str = "gpt-4o-mini", json_mode: bool = True):
        import openai
        self.client = openai.AsyncOpenAI(
            api_key=os.environ.get("OPENAI_API_KEY", ""),
        )
        self.model = model
        self.json_mode = json_mode

    async def generate(self, prompt: str, temperature: float = 0.7, thinking: bool = True) -> str:
        log.debug("── PROMPT (%s) ──\n%s", self.model, prompt)
        kwargs = {}
        if self.json_mode:
            # Every engine prompt asks for a single JSON object.
            kwargs["response_format"] = {"type": "json_object"}
        resp = await self.client.chat.completions.create(
            model=self.model,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
            **kwargs,
        )
        text = resp.choices[0].message.content or ""
        log.debug("── RESPONSE (%s) ──\n%s", self.model, text)
        return text

    def name(self) -> str:
        return f"openai/{self.model}"
