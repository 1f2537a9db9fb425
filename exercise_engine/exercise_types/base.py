"""Prompt fragments and schema pieces shared by the built-in exercise types."""
from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any

from pydantic import BaseModel, Field

from exercise_engine.models import GenerationContext, MarkingContext

NO_ERROR = "no-error"

GENERATION_HEADER = """\
You are an expert {target_language} linguist creating {exercise} for a \
{source_language} speaker learning {target_language} at the {difficulty} level.
The overall goal is: {module_primary_task}.
This specific task focuses on: {submodule_primary_task}.
Submodule context: {submodule_context}
"""

MARKING_HEADER = """\
You are a marking assistant for a {target_language} language-learning exercise.
Task: {task}
"""

DIFFICULTY_GUIDANCE = {
    "beginner": "Keep sentences short and use basic, high-frequency vocabulary.",
    "intermediate": "Use moderate complexity in grammar and vocabulary.",
    "advanced": "Use more complex grammatical structures and advanced vocabulary.",
}


class BaseMarking(BaseModel):
    is_correct: bool = Field(description="Whether the user's answer is correct.")
    score: float = Field(ge=0, le=100, description="A score from 0 to 100.")
    feedback: str = Field(description="Feedback for the user explaining the result and the rule behind it.")
    correct_answer: str = Field(
        description='The correct answer, or "" when no specific correction applies.'
    )


class ErrorWord(BaseModel):
    text: str = Field(description="A word of the sentence.")
    is_error: bool = Field(description="Whether this word contains the error.")
    index: int = Field(ge=0, description="0-based position of the word in the sentence.")


def format_submodule_context(context: str | dict | None) -> str:
    if context is None:
        return "(none)"
    if isinstance(context, str):
        return context
    return json.dumps(context, ensure_ascii=False)


def generation_header(
    ctx: GenerationContext,
    exercise: str,
    default_module_task: str,
    default_submodule_task: str,
) -> str:
    return GENERATION_HEADER.format(
        target_language=ctx.target_language,
        source_language=ctx.source_language,
        difficulty=ctx.difficulty,
        exercise=exercise,
        module_primary_task=ctx.module_primary_task or default_module_task,
        submodule_primary_task=ctx.submodule_primary_task or default_submodule_task,
        submodule_context=format_submodule_context(ctx.submodule_context),
    )


def marking_header(ctx: MarkingContext, task: str) -> str:
    return MARKING_HEADER.format(
        target_language=ctx.target_language or "target language",
        task=task,
    )


def difficulty_guidance(difficulty: str) -> str:
    return DIFFICULTY_GUIDANCE.get(difficulty, DIFFICULTY_GUIDANCE["intermediate"])


class _KeepMissing(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def render_override(template: str, values: dict[str, Any]) -> str:
    """Fill ``{placeholders}`` in a submodule override; unknown ones are left as-is."""
    flat = {
        k: (format_submodule_context(v) if isinstance(v, dict) or v is None else v)
        for k, v in values.items()
    }
    return template.format_map(_KeepMissing(flat))


def generation_values(ctx: GenerationContext) -> dict[str, Any]:
    return asdict(ctx)


def marking_values(ctx: MarkingContext) -> dict[str, Any]:
    return {
        "question_data": json.dumps(ctx.question_data, ensure_ascii=False, indent=2),
        "user_answer": json.dumps(ctx.user_answer, ensure_ascii=False),
        "submodule_context": ctx.submodule_context,
        "target_language": ctx.target_language,
    }


def as_index(value: Any) -> int | None:
    """Coerce a UI-supplied index (int or digit string) to int."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def as_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        v = value.strip().lower()
        if v in ("true", "yes", "1"):
            return True
        if v in ("false", "no", "0"):
            return False
    return None
