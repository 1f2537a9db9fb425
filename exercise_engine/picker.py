"""Choose the next (submodule, exercise type) pair for a module.

The draw is stratified so that a skill type or family with many exercise
types does not crowd out the others: submodule, then skill type, then family,
then exercise type, each uniform over what remains.  Strategies only change
how the skill type is weighted.
"""
from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from collections.abc import Sequence

from exercise_engine.errors import ModuleNotFound, NoAvailableExerciseTypes
from exercise_engine.models import PickResult, SessionEvent, SkillType
from exercise_engine.registry import ModuleRegistry, SchemaRegistry

_log = logging.getLogger("exercise_engine.picker")

# Events considered when weighting by accuracy.
HISTORY_WINDOW = 20
# Keeps mastered skills in rotation.
WEIGHT_FLOOR = 0.1


class PickerStrategy(ABC):
    @abstractmethod
    def skill_weights(
        self,
        skills: Sequence[SkillType],
        history: Sequence[SessionEvent],
        schemas: SchemaRegistry,
    ) -> list[float]:
        """Relative weights for *skills*, same order and length."""
        ...


class RandomStrategy(PickerStrategy):
    def skill_weights(self, skills, history, schemas) -> list[float]:
        return [1.0] * len(skills)


class AccuracyWeightedStrategy(PickerStrategy):
    """Favour skill types the learner has been getting wrong.

    Each skill's weight is ``1 - accuracy + floor`` over the last *window*
    events.  A skill with no events in the window counts as accuracy 0.  With
    no history at all every weight is equal.
    """

    def __init__(self, window: int = HISTORY_WINDOW, floor: float = WEIGHT_FLOOR):
        self.window = window
        self.floor = floor

    def skill_weights(self, skills, history, schemas) -> list[float]:
        recent = list(history)[-self.window:] if self.window > 0 else []
        if not recent:
            return [1.0] * len(skills)

        totals: dict[SkillType, int] = {}
        correct: dict[SkillType, int] = {}
        for event in recent:
            definition = schemas.get(event.exercise_type_id)
            if definition is None:
                continue
            skill = definition.skill_type
            totals[skill] = totals.get(skill, 0) + 1
            if event.is_correct:
                correct[skill] = correct.get(skill, 0) + 1

        weights = []
        for skill in skills:
            n = totals.get(skill, 0)
            accuracy = correct.get(skill, 0) / n if n else 0.0
            weights.append(1.0 - accuracy + self.floor)
        return weights


class Picker:
    def __init__(
        self,
        schemas: SchemaRegistry,
        modules: ModuleRegistry,
        rng: random.Random | None = None,
        strategy: str = "random",
    ):
        self.schemas = schemas
        self.modules = modules
        self.rng = rng or random.Random()
        self._strategies: dict[str, PickerStrategy] = {
            "random": RandomStrategy(),
            "accuracy": AccuracyWeightedStrategy(),
        }
        self._strategy_name = "random"
        self.set_strategy(strategy)

    @property
    def strategy_name(self) -> str:
        return self._strategy_name

    def register_strategy(self, name: str, strategy: PickerStrategy) -> None:
        self._strategies[name] = strategy

    def set_strategy(self, name: str) -> None:
        if name not in self._strategies:
            raise ValueError(
                f"Unknown picker strategy {name!r}; "
                f"available: {', '.join(sorted(self._strategies))}"
            )
        self._strategy_name = name

    def pick_next(
        self,
        module_id: str,
        history: Sequence[SessionEvent] | None = None,
        target_language: str | None = None,
    ) -> PickResult:
        module = self.modules.get(module_id, target_language)
        if module is None:
            if self.modules.get(module_id) is not None:
                raise ModuleNotFound(module_id, f"not available for language {target_language!r}")
            raise ModuleNotFound(module_id)
        if not module.submodules:
            raise ModuleNotFound(module_id, "has no submodules")

        submodule = self.rng.choice(module.submodules)

        available = [
            d for d in (self.schemas.get(i) for i in submodule.supported_exercise_type_ids)
            if d is not None
        ]
        if not available:
            _log.warning("Submodule %s lists [%s] but none are registered",
                         submodule.id, ", ".join(submodule.supported_exercise_type_ids))
            raise NoAvailableExerciseTypes(submodule.id, submodule.supported_exercise_type_ids)

        # Enum order keeps the draw reproducible under a seeded rng.
        present = {d.skill_type for d in available}
        skills = [s for s in SkillType if s in present]
        weights = self._strategies[self._strategy_name].skill_weights(
            skills, history or [], self.schemas,
        )
        if len(weights) != len(skills) or sum(weights) <= 0:
            _log.warning("Strategy %s gave unusable weights %s, drawing skills uniformly",
                         self._strategy_name, weights)
            weights = [1.0] * len(skills)
        skill = self.rng.choices(skills, weights=weights, k=1)[0]

        of_skill = [d for d in available if d.skill_type == skill]
        families = sorted({d.family for d in of_skill})
        family = self.rng.choice(families)

        candidates = [d for d in of_skill if d.family == family]
        chosen = self.rng.choice(candidates)

        _log.info("Picked %s / %s (skill=%s, family=%s)",
                  submodule.id, chosen.id, skill.value, family)
        return PickResult(submodule_id=submodule.id, exercise_type_id=chosen.id)
