"""Structured generation: prompt + pydantic schema in, validated object out."""
from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, TypeVar

from pydantic import BaseModel, ValidationError

from exercise_engine.errors import GenerationError

if TYPE_CHECKING:
    from exercise_engine.providers.base import LLMProvider

_log = logging.getLogger("exercise_engine.structured")

M = TypeVar("M", bound=BaseModel)

DEFAULT_REPAIRS = 2


class StructuredGenerationProvider(ABC):
    @abstractmethod
    async def generate(self, prompt: str, schema: type[M]) -> M:
        """Return an instance of *schema* or raise :class:`GenerationError`."""
        ...


def extract_json(text: str) -> dict | None:
    """Pull the JSON object out of an LLM reply.

    ``<think>`` blocks are dropped first since reasoning models draft JSON in
    them.  A fenced block wins; otherwise the balanced ``{…}`` blocks are tried
    last-first, because the final answer usually comes after any drafts.
    """
    text = re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL).strip()

    m = re.search(r"```(?:json)?\s*\n?({.*?})\s*\n?```", text, re.DOTALL)
    if m:
        try:
            return json.loads(m.group(1))
        except json.JSONDecodeError:
            pass

    for candidate in reversed(find_json_objects(text)):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def find_json_objects(text: str) -> list[str]:
    """Return the balanced top-level ``{…}`` substrings of *text*.

    An opening brace that never closes is skipped and the scan resumes right
    after it, so stray braces in prose do not hide a later object.
    """
    results: list[str] = []
    i = 0
    while i < len(text):
        if text[i] != "{":
            i += 1
            continue
        depth = 0
        in_str = False
        escape = False
        for j in range(i, len(text)):
            ch = text[j]
            if escape:
                escape = False
                continue
            if ch == "\\":
                escape = True
                continue
            if ch == '"':
                in_str = not in_str
                continue
            if in_str:
                continue
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    results.append(text[i : j + 1])
                    i = j + 1
                    break
        else:
            # Unbalanced, skip this opening brace
            i += 1
    return results


def schema_instructions(schema: type[BaseModel]) -> str:
    return (
        "Respond ONLY with a JSON object that validates against this JSON schema "
        "(no prose before or after it):\n"
        f"```json\n{json.dumps(schema.model_json_schema(), indent=2, ensure_ascii=False)}\n```"
    )


def _describe_validation_error(err: ValidationError) -> str:
    lines = []
    for issue in err.errors()[:10]:
        loc = ".".join(str(p) for p in issue["loc"]) or "(root)"
        lines.append(f"  - {loc}: {issue['msg']}")
    return "\n".join(lines)


class LLMStructuredProvider(StructuredGenerationProvider):
    """Structured generation on top of a plain-text :class:`LLMProvider`.

    Malformed or non-conformant replies are fed back to the model with the
    specific problem, up to ``max_repairs`` extra calls.  Transport failures
    are wrapped in :class:`GenerationError` and not repaired.
    """

    def __init__(
        self,
        llm: LLMProvider,
        max_repairs: int = DEFAULT_REPAIRS,
        temperature: float = 0.7,
        thinking: bool = False,
    ):
        self.llm = llm
        self.max_repairs = max_repairs
        self.temperature = temperature
        self.thinking = thinking

    async def generate(self, prompt: str, schema: type[M]) -> M:
        base_prompt = f"{prompt}\n\n{schema_instructions(schema)}"
        current = base_prompt
        last_error = "no attempt made"
        response = None
        for attempt in range(self.max_repairs + 1):
            try:
                response = await self.llm.generate(
                    current, temperature=self.temperature, thinking=self.thinking,
                )
            except Exception as e:
                raise GenerationError(f"{self.llm.name()} request failed: {e}") from e

            data = extract_json(response)
            if data is None:
                last_error = "no valid JSON object in response"
                current = (
                    base_prompt
                    + "\n\nYour response did not contain valid JSON. "
                    "Respond with ONLY a JSON object, no other text."
                )
                _log.info("  %s attempt %d/%d: no JSON, feeding back",
                          schema.__name__, attempt + 1, self.max_repairs + 1)
                _log.debug("  Raw response: %.300s", response)
                continue

            try:
                return schema.model_validate(data)
            except ValidationError as e:
                last_error = _describe_validation_error(e)
                current = (
                    base_prompt
                    + f"\n\nYour previous response had errors:\n{last_error}\n\n"
                    "Please fix them and respond with the corrected JSON only."
                )
                _log.info("  %s attempt %d/%d: schema mismatch, feeding back: %s",
                          schema.__name__, attempt + 1, self.max_repairs + 1,
                          last_error.split("\n")[0].strip())

        raise GenerationError(
            f"{schema.__name__}: no conformant output after {self.max_repairs + 1} attempts "
            f"({last_error})",
            raw=response,
        )
