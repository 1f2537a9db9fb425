"""Tests for per-skill performance summaries."""
from __future__ import annotations

import pytest

from exercise_engine.models import MarkingResult, SessionEvent, SkillType
from exercise_engine.statistics import NO_LEVEL, SkillPerformance, accuracy_to_cefr, summarize


def _event(type_id: str, correct: bool) -> SessionEvent:
    result = MarkingResult(is_correct=correct, score=100 if correct else 0, feedback="")
    return SessionEvent.from_marking("declension", type_id, {}, None, result)


class TestAccuracyToCefr:
    @pytest.mark.parametrize("accuracy,level", [
        (0, "A1"), (19, "A1"), (20, "A2"), (45, "B1"), (60, "B2"),
        (80, "C1"), (94.9, "C1"), (95, "C2"), (100, "C2"),
    ])
    def test_thresholds(self, accuracy, level):
        assert accuracy_to_cefr(accuracy) == level

    def test_unknown(self):
        assert accuracy_to_cefr(None) == NO_LEVEL
        assert accuracy_to_cefr(-1) == NO_LEVEL


class TestSummarize:
    def test_empty(self, schemas):
        perf = summarize([], schemas)
        assert perf.overall.total == 0
        assert perf.overall.accuracy == 0
        assert perf.to_dict()["levels"]["reading"] == NO_LEVEL

    def test_groups_by_skill(self, schemas):
        events = [
            _event("multiple-choice", True),
            _event("fill-in-gap", False),
            _event("true-false", True),
            _event("listening-transcribe", True),
        ]
        perf = summarize(events, schemas)
        assert perf.overall.to_dict() == {"total": 4, "correct": 3, "accuracy": 75}
        assert perf.by_skill[SkillType.WRITING].accuracy == 50
        assert perf.by_skill[SkillType.READING].accuracy == 100
        assert perf.by_skill[SkillType.SPEAKING].total == 0

    def test_unknown_type_counts_overall_only(self, schemas):
        perf = summarize([_event("dictation", True)], schemas)
        assert perf.overall.total == 1
        assert sum(p.total for p in perf.by_skill.values()) == 0

    def test_levels_in_dict(self, schemas):
        perf = summarize([_event("true-false", True)], schemas)
        d = perf.to_dict()
        assert d["levels"]["reading"] == "C2"
        assert d["by_skill"]["reading"]["correct"] == 1


def test_skill_performance_rounds():
    assert SkillPerformance(total=3, correct=2).accuracy == 67
