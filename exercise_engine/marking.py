"""Mark a user's answer with the exercise type's rubric.

Whatever the type-specific marking schema looks like, callers get the
canonical :class:`MarkingResult`.  Provider trouble never escapes: it turns
into a zero-score result with a fixed feedback string.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from exercise_engine.errors import SchemaNotFound
from exercise_engine.exercise_types.base import marking_values, render_override
from exercise_engine.models import MarkingContext, MarkingResult

if TYPE_CHECKING:
    from exercise_engine.registry import ModuleRegistry, SchemaRegistry
    from exercise_engine.structured import StructuredGenerationProvider

_log = logging.getLogger("exercise_engine.marking")

MISMATCH_FEEDBACK = "Marking schema validation mismatch."
ERROR_FEEDBACK = "Error during marking process."


@dataclass
class MarkingScope:
    """Where the question came from; used for submodule context and overrides."""

    module_id: str | None = None
    submodule_id: str | None = None
    target_language: str = ""


class MarkingService:
    def __init__(
        self,
        schemas: SchemaRegistry,
        provider: StructuredGenerationProvider,
        modules: ModuleRegistry | None = None,
    ):
        self.schemas = schemas
        self.provider = provider
        self.modules = modules

    async def mark(
        self,
        exercise_type_id: str,
        question_data: dict,
        user_answer: Any,
        context: MarkingScope | None = None,
    ) -> MarkingResult:
        definition = self.schemas.get(exercise_type_id)
        if definition is None:
            raise SchemaNotFound(exercise_type_id)

        scope = context or MarkingScope()
        submodule_context = None
        override_template = None
        if scope.module_id and self.modules is not None:
            module = self.modules.get(scope.module_id)
            submodule = module.submodule(scope.submodule_id) if module and scope.submodule_id else None
            if submodule is None:
                _log.warning("Marking without submodule context: %s/%s not found",
                             scope.module_id, scope.submodule_id)
            else:
                submodule_context = submodule.context
                override_template = module.override_for(
                    submodule, exercise_type_id,
                ).marking_prompt_override

        ctx = MarkingContext(
            question_data=question_data,
            user_answer=user_answer,
            submodule_context=submodule_context,
            target_language=scope.target_language,
        )
        _log.info("Mark %s", exercise_type_id)
        try:
            if override_template:
                prompt = render_override(override_template, marking_values(ctx))
            else:
                prompt = definition.build_marking_prompt(ctx)
            raw = await self.provider.generate(prompt, definition.marking_schema)
        except Exception as e:
            _log.warning("Marking %s failed: %s", exercise_type_id, e)
            return MarkingResult.fallback(ERROR_FEEDBACK)

        try:
            result = MarkingResult.model_validate(raw.model_dump())
        except ValidationError as e:
            _log.warning("Marking %s: result does not fit the canonical shape: %s",
                         exercise_type_id, e.errors()[:3])
            return MarkingResult.fallback(MISMATCH_FEEDBACK)

        _log.info("  %s: correct=%s score=%.0f", exercise_type_id, result.is_correct, result.score)
        return result
