from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SkillType(str, Enum):
    READING = "reading"
    WRITING = "writing"
    LISTENING = "listening"
    SPEAKING = "speaking"


class ErrorType(str, Enum):
    ARTICLE_ENDING = "ARTICLE_ENDING"
    ADJECTIVE_ENDING = "ADJECTIVE_ENDING"
    NOUN_CASE = "NOUN_CASE"
    VERB_CONJUGATION = "VERB_CONJUGATION"
    WORD_ORDER = "WORD_ORDER"


DIFFICULTIES = ("beginner", "intermediate", "advanced")


# ── Prompt contexts ───────────────────────────────────────────────────────


@dataclass
class GenerationContext:
    target_language: str
    source_language: str
    difficulty: str
    module_primary_task: str = ""
    submodule_primary_task: str = ""
    submodule_context: str | dict | None = None


@dataclass
class MarkingContext:
    question_data: dict
    user_answer: Any
    submodule_context: str | dict | None = None
    target_language: str = ""


# ── Exercise types ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ExerciseTypeDefinition:
    id: str
    family: str
    skill_type: SkillType
    title: str
    ui_component: str
    generation_schema: type[BaseModel]
    marking_schema: type[BaseModel]
    build_generation_prompt: Callable[[GenerationContext], str]
    build_marking_prompt: Callable[[MarkingContext], str]
    # Fields the vocabulary rewrite may touch; empty disables the rewrite.
    rewrite_fields: tuple[str, ...] = ()
    injects_errors: bool = False


# ── Modules ───────────────────────────────────────────────────────────────


@dataclass
class SubmoduleOverride:
    generation_prompt_override: str | None = None
    marking_prompt_override: str | None = None
    ui_component_override: str | None = None
    allowed_error_types: list[ErrorType] | None = None
    max_errors: int | None = None

    @classmethod
    def from_dict(cls, raw: dict) -> SubmoduleOverride:
        allowed = raw.get("allowed_error_types")
        return cls(
            generation_prompt_override=raw.get("generation_prompt_override"),
            marking_prompt_override=raw.get("marking_prompt_override"),
            ui_component_override=raw.get("ui_component_override"),
            allowed_error_types=[ErrorType(t) for t in allowed] if allowed is not None else None,
            max_errors=raw.get("max_errors"),
        )

    def merged_over(self, base: SubmoduleOverride | None) -> SubmoduleOverride:
        """Return a copy where fields unset here fall back to *base*."""
        if base is None:
            return self
        return SubmoduleOverride(
            generation_prompt_override=self.generation_prompt_override or base.generation_prompt_override,
            marking_prompt_override=self.marking_prompt_override or base.marking_prompt_override,
            ui_component_override=self.ui_component_override or base.ui_component_override,
            allowed_error_types=(
                self.allowed_error_types
                if self.allowed_error_types is not None
                else base.allowed_error_types
            ),
            max_errors=self.max_errors if self.max_errors is not None else base.max_errors,
        )


@dataclass
class SubmoduleDefinition:
    id: str
    supported_exercise_type_ids: list[str]
    title: str = ""
    primary_task: str = ""
    context: str | dict | None = None
    overrides: dict[str, SubmoduleOverride] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict) -> SubmoduleDefinition:
        return cls(
            id=raw["id"],
            supported_exercise_type_ids=list(raw.get("supported_exercise_type_ids", [])),
            title=raw.get("title", raw["id"]),
            primary_task=raw.get("primary_task", ""),
            context=raw.get("context"),
            overrides={
                type_id: SubmoduleOverride.from_dict(o)
                for type_id, o in raw.get("overrides", {}).items()
            },
        )


@dataclass
class ModuleDefinition:
    id: str
    submodules: list[SubmoduleDefinition]
    title: str = ""
    primary_task: str = ""
    supported_target_languages: list[str] = field(default_factory=list)
    supported_source_languages: list[str] = field(default_factory=list)
    module_overrides: dict[str, SubmoduleOverride] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict) -> ModuleDefinition:
        return cls(
            id=raw["id"],
            submodules=[SubmoduleDefinition.from_dict(s) for s in raw.get("submodules", [])],
            title=raw.get("title", raw["id"]),
            primary_task=raw.get("primary_task", ""),
            supported_target_languages=list(raw.get("supported_target_languages", [])),
            supported_source_languages=list(raw.get("supported_source_languages", [])),
            module_overrides={
                type_id: SubmoduleOverride.from_dict(o)
                for type_id, o in raw.get("module_overrides", {}).items()
            },
        )

    def submodule(self, submodule_id: str) -> SubmoduleDefinition | None:
        return next((s for s in self.submodules if s.id == submodule_id), None)

    def override_for(self, submodule: SubmoduleDefinition, exercise_type_id: str) -> SubmoduleOverride:
        """Resolve the override bag for one exercise type; submodule wins over module."""
        module_level = self.module_overrides.get(exercise_type_id)
        sub_level = submodule.overrides.get(exercise_type_id)
        if sub_level is None:
            return module_level or SubmoduleOverride()
        return sub_level.merged_over(module_level)


# ── Results ───────────────────────────────────────────────────────────────


@dataclass
class PickResult:
    submodule_id: str
    exercise_type_id: str


@dataclass
class VocabularyItem:
    word: str
    language: str = ""
    pos: str | None = None
    definition: str = ""
    section: str = ""
    source_file: str = ""


@dataclass
class GenerationTrace:
    stage1_prompt: str = ""
    stage1_result: dict | None = None
    stage1_attempts: int = 0
    stage2_prompt: str | None = None
    stage2_result: dict | None = None
    vocabulary_used: list[str] = field(default_factory=list)
    errors_injected: list[dict] = field(default_factory=list)


@dataclass
class GenerationResult:
    question_data: dict
    # Resolved UI component, after any submodule override.
    ui_component: str = ""
    trace: GenerationTrace | None = None


class MarkingResult(BaseModel):
    """Canonical marking shape every exercise type is projected down to."""

    model_config = ConfigDict(extra="ignore")

    is_correct: bool
    score: float = Field(ge=0, le=100)
    feedback: str
    correct_answer: str = ""

    @classmethod
    def fallback(cls, feedback: str) -> MarkingResult:
        return cls(is_correct=False, score=0, feedback=feedback, correct_answer="")


@dataclass
class SessionEvent:
    submodule_id: str
    exercise_type_id: str
    question_data: dict
    user_answer: Any
    marking_result: MarkingResult
    is_correct: bool
    timestamp: datetime

    @classmethod
    def from_marking(
        cls,
        submodule_id: str,
        exercise_type_id: str,
        question_data: dict,
        user_answer: Any,
        marking_result: MarkingResult,
    ) -> SessionEvent:
        return cls(
            submodule_id=submodule_id,
            exercise_type_id=exercise_type_id,
            question_data=question_data,
            user_answer=user_answer,
            marking_result=marking_result,
            is_correct=marking_result.is_correct,
            timestamp=datetime.now(timezone.utc),
        )

    @classmethod
    def from_dict(cls, raw: dict) -> SessionEvent:
        marking = raw.get("marking_result")
        if marking is not None:
            result = MarkingResult.model_validate(marking)
        else:
            result = MarkingResult(is_correct=bool(raw.get("is_correct")),
                                   score=100 if raw.get("is_correct") else 0, feedback="")
        ts = raw.get("timestamp")
        return cls(
            submodule_id=raw.get("submodule_id", ""),
            exercise_type_id=raw["exercise_type_id"],
            question_data=raw.get("question_data") or {},
            user_answer=raw.get("user_answer"),
            marking_result=result,
            is_correct=bool(raw.get("is_correct", result.is_correct)),
            timestamp=datetime.fromisoformat(ts) if ts else datetime.now(timezone.utc),
        )

    def to_dict(self) -> dict:
        return {
            "submodule_id": self.submodule_id,
            "exercise_type_id": self.exercise_type_id,
            "question_data": self.question_data,
            "user_answer": self.user_answer,
            "marking_result": self.marking_result.model_dump(),
            "is_correct": self.is_correct,
            "timestamp": self.timestamp.isoformat(),
        }
