"""Tests for the marking service."""
from __future__ import annotations

import pytest
from pydantic import BaseModel

from exercise_engine.errors import GenerationError, SchemaNotFound
from exercise_engine.marking import ERROR_FEEDBACK, MISMATCH_FEEDBACK, MarkingScope, MarkingService
from exercise_engine.models import MarkingResult, ModuleDefinition
from exercise_engine.registry import ModuleRegistry

from conftest import FakeStructuredProvider

GOOD_MARK = {"is_correct": True, "score": 100, "feedback": "Richtig!", "correct_answer": "-en"}


class LooseMarking(BaseModel):
    """A marking schema that does not guarantee the canonical shape."""

    is_correct: bool
    score: float
    feedback: str


class TestMark:
    @pytest.mark.asyncio
    async def test_success(self, schemas, mc_question):
        provider = FakeStructuredProvider([GOOD_MARK])
        service = MarkingService(schemas, provider)
        result = await service.mark("multiple-choice", mc_question, 0)
        assert result == MarkingResult(**GOOD_MARK)
        assert provider.schemas == [schemas.get("multiple-choice").marking_schema]

    @pytest.mark.asyncio
    async def test_extra_fields_projected_away(self, schemas):
        reply = dict(GOOD_MARK, score=70, pronunciation={"score": 60, "feedback": "ok"})
        service = MarkingService(schemas, FakeStructuredProvider([reply]))
        result = await service.mark("speaking-conversation", {"questions": []}, "Hallo")
        assert isinstance(result, MarkingResult)
        assert result.score == 70

    @pytest.mark.asyncio
    async def test_unknown_type(self, schemas):
        service = MarkingService(schemas, FakeStructuredProvider([GOOD_MARK]))
        with pytest.raises(SchemaNotFound):
            await service.mark("dictation", {}, "x")

    @pytest.mark.asyncio
    async def test_provider_error_falls_back(self, schemas, mc_question):
        service = MarkingService(schemas, FakeStructuredProvider([GenerationError("down")]))
        result = await service.mark("multiple-choice", mc_question, 0)
        assert result == MarkingResult.fallback(ERROR_FEEDBACK)
        assert result.feedback == "Error during marking process."

    @pytest.mark.asyncio
    async def test_unexpected_exception_falls_back(self, schemas, mc_question):
        service = MarkingService(schemas, FakeStructuredProvider([RuntimeError("boom")]))
        result = await service.mark("multiple-choice", mc_question, 0)
        assert result.feedback == ERROR_FEEDBACK
        assert result.score == 0

    @pytest.mark.asyncio
    async def test_shape_mismatch_falls_back(self, schemas, mc_question):
        definition = schemas.get("multiple-choice")
        schemas.register(type(definition)(**{
            **{f: getattr(definition, f) for f in definition.__dataclass_fields__},
            "marking_schema": LooseMarking,
        }))
        reply = {"is_correct": True, "score": 150, "feedback": "too generous"}
        service = MarkingService(schemas, FakeStructuredProvider([reply]))
        result = await service.mark("multiple-choice", mc_question, 0)
        assert result == MarkingResult.fallback(MISMATCH_FEEDBACK)

    @pytest.mark.asyncio
    async def test_prompt_builder_failure_falls_back(self, schemas, mc_question):
        def broken_builder(ctx):
            raise KeyError("content")

        definition = schemas.get("multiple-choice")
        schemas.register(type(definition)(**{
            **{f: getattr(definition, f) for f in definition.__dataclass_fields__},
            "build_marking_prompt": broken_builder,
        }))
        provider = FakeStructuredProvider([GOOD_MARK])
        result = await MarkingService(schemas, provider).mark("multiple-choice", mc_question, 0)
        assert result == MarkingResult.fallback(ERROR_FEEDBACK)
        assert provider.call_count == 0

    @pytest.mark.asyncio
    async def test_malformed_error_list_still_marked(self, schemas):
        provider = FakeStructuredProvider([GOOD_MARK])
        question = {"errors": ["oops"], "has_error": True}
        result = await MarkingService(schemas, provider).mark(
            "correct-incorrect-sentence", question, "correct",
        )
        assert result == MarkingResult(**GOOD_MARK)
        assert provider.call_count == 1

    @pytest.mark.asyncio
    async def test_malformed_word_list_still_marked(self, schemas):
        provider = FakeStructuredProvider([GOOD_MARK])
        question = {"sentence": "Ich gehe.", "words": ["Ich", None], "has_error": True}
        result = await MarkingService(schemas, provider).mark("identify-error", question, 1)
        assert result.is_correct is True
        assert "[invalid selection]" in provider.prompts[0]


class TestMarkingScope:
    @pytest.mark.asyncio
    async def test_submodule_context_used(self, schemas, modules, mc_question):
        provider = FakeStructuredProvider([GOOD_MARK])
        service = MarkingService(schemas, provider, modules=modules)
        await service.mark("multiple-choice", mc_question, 0,
                           MarkingScope("adjectives", "declension", "German"))
        assert '"weak": "after der/die/das"' in provider.prompts[0]
        assert "German" in provider.prompts[0]

    @pytest.mark.asyncio
    async def test_unknown_submodule_still_marks(self, schemas, modules, mc_question):
        provider = FakeStructuredProvider([GOOD_MARK])
        service = MarkingService(schemas, provider, modules=modules)
        result = await service.mark("multiple-choice", mc_question, 0,
                                    MarkingScope("adjectives", "nope"))
        assert result.is_correct
        assert "Submodule context: (none)" in provider.prompts[0]

    @pytest.mark.asyncio
    async def test_marking_prompt_override(self, schemas, adjectives_module_dict, mc_question):
        adjectives_module_dict["submodules"][0]["overrides"]["multiple-choice"] = {
            "marking_prompt_override": "Answer {user_answer} to {question_data}",
        }
        registry = ModuleRegistry([ModuleDefinition.from_dict(adjectives_module_dict)])
        provider = FakeStructuredProvider([GOOD_MARK])
        service = MarkingService(schemas, provider, modules=registry)
        await service.mark("multiple-choice", mc_question, 2,
                           MarkingScope("adjectives", "declension", "German"))
        assert provider.prompts[0].startswith("Answer 2 to {")
        assert '"correct_option_index": 0' in provider.prompts[0]
