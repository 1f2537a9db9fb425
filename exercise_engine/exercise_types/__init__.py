"""Built-in exercise type catalog."""
from __future__ import annotations

from typing import TYPE_CHECKING

from exercise_engine.exercise_types.correct_incorrect import CORRECT_INCORRECT
from exercise_engine.exercise_types.fill_in_gap import FILL_IN_GAP
from exercise_engine.exercise_types.listening import LISTENING_ERROR, LISTENING_TRANSCRIBE
from exercise_engine.exercise_types.multiple_choice import MULTIPLE_CHOICE, MULTIPLE_CHOICE_FULL_WORD
from exercise_engine.exercise_types.sentence_error import IDENTIFY_ERROR, REPLACE_ERROR
from exercise_engine.exercise_types.speaking import SPEAKING_CONVERSATION
from exercise_engine.exercise_types.true_false import TRUE_FALSE

if TYPE_CHECKING:
    from exercise_engine.registry import SchemaRegistry

BUILTIN_TYPES = (
    MULTIPLE_CHOICE,
    MULTIPLE_CHOICE_FULL_WORD,
    FILL_IN_GAP,
    TRUE_FALSE,
    IDENTIFY_ERROR,
    REPLACE_ERROR,
    CORRECT_INCORRECT,
    LISTENING_TRANSCRIBE,
    LISTENING_ERROR,
    SPEAKING_CONVERSATION,
)


def register_builtin_types(registry: SchemaRegistry) -> None:
    for definition in BUILTIN_TYPES:
        registry.register(definition)
