"""Generate question data for one (module, submodule, exercise type).

Stage 1 asks the model for a schema-conformant question.  Stage 2 tries to
work one vocabulary word into it and silently keeps the Stage-1 question on
any failure.  Stage 3, for exercise types that inject errors, corrupts the
parsed sentence.  Every returned question gets a fresh ``id``.
"""
from __future__ import annotations

import json
import logging
import uuid
from typing import TYPE_CHECKING

from pydantic import BaseModel

from exercise_engine.error_injection import DEFAULT_ERROR_TYPES, ErrorInjector
from exercise_engine.errors import (
    GenerationError,
    GenerationFailed,
    ModuleNotFound,
    SchemaNotFound,
    SubmoduleNotFound,
    UnsupportedExerciseType,
)
from exercise_engine.exercise_types.base import generation_values, render_override
from exercise_engine.grammar import flatten_tokens
from exercise_engine.models import (
    ExerciseTypeDefinition,
    GenerationContext,
    GenerationResult,
    GenerationTrace,
    SubmoduleOverride,
    VocabularyItem,
)

if TYPE_CHECKING:
    from exercise_engine.providers.base import VocabularyProvider
    from exercise_engine.registry import ModuleRegistry, SchemaRegistry
    from exercise_engine.structured import StructuredGenerationProvider

_log = logging.getLogger("exercise_engine.qgen")

GENERATION_RETRIES = 2
DEFAULT_MAX_ERRORS = 1

REWRITE_PROMPT = """\
Below is a {target_language} language exercise for a {source_language} speaker at the \
{difficulty} level, as JSON:

```json
{question_json}
```

Rewrite it so that it naturally uses the {target_language} word "{word}"{word_info}.

Rules:
1. Change ONLY one of these fields: {fields}. Every other field must stay exactly as it is.
2. The exercise must stay correct and self-consistent: the answer, options, hints and \
explanation must still fit the changed text.
3. Keep the grammar point being tested unchanged.
4. If the word cannot be used naturally, return the exercise unchanged.
"""


def _top_level(field_path: str) -> str:
    return field_path.split("[", 1)[0].split(".", 1)[0]


def _describe_word(item: VocabularyItem) -> str:
    parts = []
    if item.pos:
        parts.append(item.pos)
    if item.definition:
        parts.append(f"meaning: {item.definition}")
    return f" ({'; '.join(parts)})" if parts else ""


class QuestionGenerator:
    def __init__(
        self,
        schemas: SchemaRegistry,
        modules: ModuleRegistry,
        provider: StructuredGenerationProvider,
        vocabulary: VocabularyProvider | None = None,
        injector: ErrorInjector | None = None,
        generation_retries: int = GENERATION_RETRIES,
        default_max_errors: int = DEFAULT_MAX_ERRORS,
    ):
        self.schemas = schemas
        self.modules = modules
        self.provider = provider
        self.vocabulary = vocabulary
        self.injector = injector or ErrorInjector(provider)
        self.generation_retries = generation_retries
        self.default_max_errors = default_max_errors

    async def generate(
        self,
        module_id: str,
        submodule_id: str,
        exercise_type_id: str,
        target_language: str,
        source_language: str,
        difficulty: str,
    ) -> GenerationResult:
        module = self.modules.get(module_id)
        if module is None:
            raise ModuleNotFound(module_id)
        submodule = module.submodule(submodule_id)
        if submodule is None:
            raise SubmoduleNotFound(module_id, submodule_id)
        if exercise_type_id not in submodule.supported_exercise_type_ids:
            raise UnsupportedExerciseType(submodule_id, exercise_type_id)
        definition = self.schemas.get(exercise_type_id)
        if definition is None:
            raise SchemaNotFound(exercise_type_id)

        override = module.override_for(submodule, exercise_type_id)
        ctx = GenerationContext(
            target_language=target_language,
            source_language=source_language,
            difficulty=difficulty,
            module_primary_task=module.primary_task,
            submodule_primary_task=submodule.primary_task,
            submodule_context=submodule.context,
        )
        if override.generation_prompt_override:
            prompt = render_override(override.generation_prompt_override, generation_values(ctx))
        else:
            prompt = definition.build_generation_prompt(ctx)

        trace = GenerationTrace(stage1_prompt=prompt)
        _log.info("Generate %s for %s/%s (%s → %s, %s)", exercise_type_id, module_id,
                  submodule_id, source_language, target_language, difficulty)

        question = await self._stage1(definition, prompt, trace)
        trace.stage1_result = question.model_dump(mode="json")

        question = await self._stage2(definition, question, ctx, trace)

        data = question.model_dump(mode="json")
        if definition.injects_errors:
            data = await self._stage3(question, data, override, target_language, trace)

        data["id"] = str(uuid.uuid4())
        return GenerationResult(
            question_data=data,
            ui_component=override.ui_component_override or definition.ui_component,
            trace=trace,
        )

    async def _stage1(
        self,
        definition: ExerciseTypeDefinition,
        prompt: str,
        trace: GenerationTrace,
    ) -> BaseModel:
        attempts = self.generation_retries + 1
        last_error: GenerationError | None = None
        for attempt in range(attempts):
            trace.stage1_attempts = attempt + 1
            try:
                _log.info("  Stage 1 (attempt %d/%d)", attempt + 1, attempts)
                result = await self.provider.generate(prompt, definition.generation_schema)
            except GenerationError as e:
                last_error = e
                _log.info("  Stage 1 failed: %s", e)
                continue
            _log.info("  Stage 1 OK")
            return result
        _log.warning("Giving up on %s after %d attempts", definition.id, attempts)
        raise GenerationFailed(definition.id, attempts, last_error)

    async def _stage2(
        self,
        definition: ExerciseTypeDefinition,
        question: BaseModel,
        ctx: GenerationContext,
        trace: GenerationTrace,
    ) -> BaseModel:
        if not definition.rewrite_fields or self.vocabulary is None:
            return question

        try:
            items = self.vocabulary.sample(ctx.target_language, limit=1)
        except Exception as e:
            _log.warning("  Stage 2 skipped: vocabulary lookup failed: %s", e)
            return question
        if not items:
            _log.info("  Stage 2 skipped: no vocabulary for %s", ctx.target_language)
            return question

        item = items[0]
        original = question.model_dump(mode="json")
        prompt = REWRITE_PROMPT.format(
            target_language=ctx.target_language,
            source_language=ctx.source_language,
            difficulty=ctx.difficulty,
            question_json=json.dumps(original, ensure_ascii=False, indent=2),
            word=item.word,
            word_info=_describe_word(item),
            fields=", ".join(f"`{f}`" for f in definition.rewrite_fields),
        )
        trace.stage2_prompt = prompt

        try:
            rewritten = await self.provider.generate(prompt, definition.generation_schema)
        except GenerationError as e:
            _log.info("  Stage 2 failed, keeping Stage 1 question: %s", e)
            return question

        changed = rewritten.model_dump(mode="json")
        allowed = {_top_level(f) for f in definition.rewrite_fields}
        touched = sorted(k for k in original.keys() | changed.keys()
                         if k not in allowed and original.get(k) != changed.get(k))
        if touched:
            _log.info("  Stage 2 changed fixed fields %s, keeping Stage 1 question", touched)
            return question

        trace.stage2_result = changed
        trace.vocabulary_used = [item.word]
        _log.info("  Stage 2 OK (word: %s)", item.word)
        return rewritten

    async def _stage3(
        self,
        question: BaseModel,
        data: dict,
        override: SubmoduleOverride,
        language: str,
        trace: GenerationTrace,
    ) -> dict:
        structure = question.sentence_structure
        allowed = override.allowed_error_types
        if allowed is None:
            allowed = list(DEFAULT_ERROR_TYPES)
        max_errors = override.max_errors if override.max_errors is not None else self.default_max_errors

        result = await self.injector.inject_errors(structure, allowed, max_errors, language)
        errors = [e.to_dict() for e in result.errors_introduced]
        trace.errors_injected = errors
        data["presented_sentence"] = (
            result.presented_sentence if result.has_error else structure.original_sentence
        )
        data["presented_tokens"] = [t.text for t in flatten_tokens(result.modified_structure)]
        data["has_error"] = result.has_error
        data["errors"] = errors
        _log.info("  Stage 3: %d error(s) injected", len(errors))
        return data
