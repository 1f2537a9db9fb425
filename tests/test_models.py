"""Tests for data models."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from exercise_engine.models import (
    ErrorType,
    MarkingResult,
    ModuleDefinition,
    SessionEvent,
    SubmoduleOverride,
)


class TestSubmoduleOverride:
    def test_from_dict_parses_error_types(self):
        o = SubmoduleOverride.from_dict({"allowed_error_types": ["NOUN_CASE"], "max_errors": 2})
        assert o.allowed_error_types == [ErrorType.NOUN_CASE]
        assert o.max_errors == 2
        assert o.generation_prompt_override is None

    def test_unknown_error_type_rejected(self):
        with pytest.raises(ValueError):
            SubmoduleOverride.from_dict({"allowed_error_types": ["SPELLING"]})

    def test_empty_allowed_list_is_kept(self):
        o = SubmoduleOverride.from_dict({"allowed_error_types": []})
        assert o.allowed_error_types == []

    def test_merged_over_prefers_own_fields(self):
        base = SubmoduleOverride(ui_component_override="A", max_errors=3,
                                 allowed_error_types=[ErrorType.NOUN_CASE])
        own = SubmoduleOverride(ui_component_override="B")
        merged = own.merged_over(base)
        assert merged.ui_component_override == "B"
        assert merged.max_errors == 3
        assert merged.allowed_error_types == [ErrorType.NOUN_CASE]


class TestModuleDefinition:
    def test_from_dict(self, adjectives_module_dict):
        m = ModuleDefinition.from_dict(adjectives_module_dict)
        assert m.id == "adjectives"
        assert [s.id for s in m.submodules] == ["declension", "comparison"]
        assert m.submodule("declension").context == {"weak": "after der/die/das"}
        assert m.submodule("missing") is None

    def test_title_defaults_to_id(self):
        m = ModuleDefinition.from_dict({"id": "x", "submodules": [
            {"id": "y", "supported_exercise_type_ids": []}
        ]})
        assert m.title == "x"
        assert m.submodules[0].title == "y"

    def test_override_for_submodule_wins(self, adjectives_module_dict):
        adjectives_module_dict["module_overrides"] = {
            "correct-incorrect-sentence": {"max_errors": 4, "ui_component_override": "Mod"},
        }
        m = ModuleDefinition.from_dict(adjectives_module_dict)
        o = m.override_for(m.submodule("declension"), "correct-incorrect-sentence")
        assert o.max_errors == 1
        assert o.ui_component_override == "Mod"

    def test_override_for_missing_is_empty(self, adjectives_module_dict):
        m = ModuleDefinition.from_dict(adjectives_module_dict)
        o = m.override_for(m.submodule("comparison"), "true-false")
        assert o == SubmoduleOverride()


class TestMarkingResult:
    def test_extra_fields_ignored(self):
        r = MarkingResult.model_validate({
            "is_correct": True, "score": 90, "feedback": "ok", "pronunciation": {"score": 80},
        })
        assert r.score == 90
        assert r.correct_answer == ""

    def test_score_bounds(self):
        with pytest.raises(ValidationError):
            MarkingResult(is_correct=True, score=101, feedback="")

    def test_fallback(self):
        r = MarkingResult.fallback("oops")
        assert (r.is_correct, r.score, r.feedback, r.correct_answer) == (False, 0, "oops", "")


class TestSessionEvent:
    def test_from_marking_copies_correctness(self):
        result = MarkingResult(is_correct=True, score=100, feedback="")
        e = SessionEvent.from_marking("declension", "multiple-choice", {}, 0, result)
        assert e.is_correct is True
        assert e.timestamp.tzinfo is not None

    def test_dict_roundtrip(self):
        result = MarkingResult(is_correct=False, score=20, feedback="no", correct_answer="-en")
        e = SessionEvent.from_marking("declension", "fill-in-gap", {"id": "q"}, "e", result)
        back = SessionEvent.from_dict(e.to_dict())
        assert back.exercise_type_id == "fill-in-gap"
        assert back.marking_result == result
        assert back.timestamp == e.timestamp

    def test_from_dict_minimal(self):
        e = SessionEvent.from_dict({"exercise_type_id": "true-false", "is_correct": True})
        assert e.is_correct is True
        assert e.marking_result.score == 100
        assert e.submodule_id == ""
