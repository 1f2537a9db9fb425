"""Shared test fixtures."""
from __future__ import annotations

import random

import pytest

from exercise_engine.errors import GenerationError
from exercise_engine.exercise_types import register_builtin_types
from exercise_engine.grammar import SentenceStructure
from exercise_engine.models import ModuleDefinition, VocabularyItem
from exercise_engine.registry import ModuleRegistry, SchemaRegistry
from exercise_engine.structured import StructuredGenerationProvider


class FakeLLM:
    """Plain-text LLM returning canned replies; the last one repeats."""

    def __init__(self, responses=None):
        self._responses = responses or ["{}"]
        self._call_count = 0
        self.prompts: list[str] = []

    async def generate(self, prompt: str, temperature: float = 0.7, thinking: bool = True) -> str:
        idx = min(self._call_count, len(self._responses) - 1)
        self._call_count += 1
        self.prompts.append(prompt)
        reply = self._responses[idx]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def name(self) -> str:
        return "fake-llm"

    @property
    def call_count(self):
        return self._call_count


class FakeStructuredProvider(StructuredGenerationProvider):
    """Structured provider driven by a script of replies.

    Each reply is a dict (validated into the requested schema), an exception
    (raised), or a callable ``(prompt, schema) -> dict``.  The last reply
    repeats once the script runs out.
    """

    def __init__(self, responses=None):
        self._responses = list(responses or [])
        self._call_count = 0
        self.prompts: list[str] = []
        self.schemas: list[type] = []

    async def generate(self, prompt, schema):
        self.prompts.append(prompt)
        self.schemas.append(schema)
        if not self._responses:
            raise GenerationError("no scripted response")
        idx = min(self._call_count, len(self._responses) - 1)
        self._call_count += 1
        reply = self._responses[idx]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(prompt, schema)
        return schema.model_validate(reply)

    @property
    def call_count(self):
        return self._call_count


@pytest.fixture
def schemas():
    registry = SchemaRegistry()
    register_builtin_types(registry)
    return registry


@pytest.fixture
def adjectives_module_dict():
    return {
        "id": "adjectives",
        "title": "Adjectives",
        "primary_task": "Use adjective endings correctly",
        "supported_target_languages": ["German"],
        "supported_source_languages": ["English"],
        "submodules": [
            {
                "id": "declension",
                "title": "Declension",
                "primary_task": "Pick the right adjective ending",
                "context": {"weak": "after der/die/das"},
                "supported_exercise_type_ids": [
                    "multiple-choice",
                    "fill-in-gap",
                    "identify-error",
                    "correct-incorrect-sentence",
                ],
                "overrides": {
                    "correct-incorrect-sentence": {
                        "allowed_error_types": ["ADJECTIVE_ENDING"],
                        "max_errors": 1,
                    },
                    "fill-in-gap": {"ui_component_override": "WritingFillInGapEnding"},
                },
            },
            {
                "id": "comparison",
                "title": "Comparison",
                "primary_task": "Form comparatives",
                "supported_exercise_type_ids": ["multiple-choice-full-word", "true-false"],
            },
        ],
    }


@pytest.fixture
def modules(adjectives_module_dict):
    return ModuleRegistry([ModuleDefinition.from_dict(adjectives_module_dict)])


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def vocab_items():
    return [
        VocabularyItem("Hund", "German", "NOUN", "dog", "Animals", "german.md"),
        VocabularyItem("schnell", "German", "ADJ", "fast", "Adjectives", "german.md"),
        VocabularyItem("perro", "Spanish", "NOUN", "dog", "Animales", "spanish.md"),
    ]


@pytest.fixture
def mc_question():
    """A valid multiple-choice generation reply."""
    return {
        "content": "Which ending is correct?\n\nIch sehe den groß- Hund.",
        "target_replace": "groß-",
        "target_replace_with": "groß-",
        "options": ["-en", "-e", "-er", "-es"],
        "correct_option_index": 0,
        "target_word_base": "groß",
        "explanation": "Masculine accusative after 'den' takes weak '-en'.",
    }


@pytest.fixture
def katze_structure_dict():
    """'Die Katze trinkt kalte Milch.' parsed into one main clause."""
    return {
        "original_sentence": "Die Katze trinkt kalte Milch.",
        "clauses": [{
            "type": "Main",
            "constituents": [
                {"type": "NP", "children": [
                    {"text": "Die", "lemma": "der", "pos": "DET",
                     "features": {"case": "Nominative", "gender": "Feminine", "number": "Singular"}},
                    {"text": "Katze", "lemma": "Katze", "pos": "NOUN",
                     "features": {"case": "Nominative", "gender": "Feminine", "number": "Singular"}},
                ], "head_token_index": 1},
                {"type": "VP", "children": [
                    {"text": "trinkt", "lemma": "trinken", "pos": "VERB",
                     "features": {"person": "Third", "number": "Singular", "tense": "Present"}},
                ]},
                {"type": "NP", "children": [
                    {"text": "kalte", "lemma": "kalt", "pos": "ADJ",
                     "features": {"case": "Accusative", "gender": "Feminine", "number": "Singular"}},
                    {"text": "Milch", "lemma": "Milch", "pos": "NOUN",
                     "features": {"case": "Accusative", "gender": "Feminine", "number": "Singular"}},
                    {"text": ".", "pos": "PUNCT"},
                ], "head_token_index": 1},
            ],
        }],
    }


@pytest.fixture
def katze_structure(katze_structure_dict):
    return SentenceStructure.model_validate(katze_structure_dict)


@pytest.fixture
def correct_incorrect_reply(katze_structure_dict):
    return {
        "question": "Is this sentence correct? If not, find and fix the mistake.",
        "sentence_structure": katze_structure_dict,
        "explanation": "'kalte' takes the strong feminine accusative ending.",
    }


@pytest.fixture
def vocab_md_content():
    """Minimal vocabulary file content for parser testing."""
    return """\
# German Vocabulary

---

## Animals

| Word | Definition | POS |
|------|------------|-----|
| **Hund** | dog | noun |
| **Katze** | cat | NOUN |

---

## Adjectives

| Word | Definition |
|------|------------|
| **schnell** | fast |
| **langsam** | slow; unhurried |
"""
