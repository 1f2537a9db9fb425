"""Per-skill performance summaries over session events."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from exercise_engine.models import SessionEvent, SkillType
from exercise_engine.registry import SchemaRegistry

_log = logging.getLogger("exercise_engine.statistics")

NO_LEVEL = "-"

# Upper accuracy bounds (exclusive, in percent) for each level.
CEFR_THRESHOLDS = (
    (20, "A1"),
    (40, "A2"),
    (60, "B1"),
    (80, "B2"),
    (95, "C1"),
)


@dataclass
class SkillPerformance:
    total: int = 0
    correct: int = 0

    @property
    def accuracy(self) -> int:
        """Rounded percentage; 0 with no events."""
        return round(self.correct / self.total * 100) if self.total else 0

    def to_dict(self) -> dict:
        return {"total": self.total, "correct": self.correct, "accuracy": self.accuracy}


@dataclass
class ModulePerformance:
    overall: SkillPerformance = field(default_factory=SkillPerformance)
    by_skill: dict[SkillType, SkillPerformance] = field(
        default_factory=lambda: {s: SkillPerformance() for s in SkillType}
    )

    def to_dict(self) -> dict:
        return {
            "overall": self.overall.to_dict(),
            "by_skill": {s.value: p.to_dict() for s, p in self.by_skill.items()},
            "levels": {
                s.value: accuracy_to_cefr(p.accuracy if p.total else None)
                for s, p in self.by_skill.items()
            },
        }


def accuracy_to_cefr(accuracy: float | None) -> str:
    """Rough CEFR label for an accuracy percentage; ``"-"`` when unknown."""
    if accuracy is None or accuracy < 0:
        return NO_LEVEL
    for bound, level in CEFR_THRESHOLDS:
        if accuracy < bound:
            return level
    return "C2"


def summarize(events: Iterable[SessionEvent], schemas: SchemaRegistry) -> ModulePerformance:
    perf = ModulePerformance()
    for event in events:
        perf.overall.total += 1
        if event.is_correct:
            perf.overall.correct += 1

        definition = schemas.get(event.exercise_type_id)
        if definition is None:
            _log.warning("No skill type for exercise type %s", event.exercise_type_id)
            continue
        skill = perf.by_skill[definition.skill_type]
        skill.total += 1
        if event.is_correct:
            skill.correct += 1
    return perf
