"""Sentence-error family: spot the wrong word, or spot it and correct it."""
from __future__ import annotations

import json

from pydantic import BaseModel, Field, model_validator

from exercise_engine.exercise_types.base import (
    NO_ERROR,
    BaseMarking,
    ErrorWord,
    as_index,
    difficulty_guidance,
    generation_header,
    marking_header,
)
from exercise_engine.models import ExerciseTypeDefinition, GenerationContext, MarkingContext, SkillType

QUESTION_TEXT = (
    "Find the grammatical error in this sentence, or select 'No error' if the sentence is correct."
)


class SentenceErrorQuestion(BaseModel):
    question: str = Field(description="The instruction telling the user what to do.")
    sentence: str = Field(description="The sentence shown to the user, possibly containing one error.")
    words: list[ErrorWord] = Field(
        min_length=1, description="Every word of the sentence in order, with the error word flagged."
    )
    has_error: bool = Field(description="Whether the sentence contains an error.")
    correct_version: str | None = Field(None, description="The correct form of the erroneous word.")
    acceptable_answers: list[str] | None = Field(None, description="Other acceptable corrections.")
    error_type: str | None = Field(None, description="The type of grammatical error.")
    explanation: str = Field(description="Why the error is wrong, or why the sentence is correct.")
    hint: str | None = Field(None, description="Optional concise hint about what to look for (max 1 line).")
    show_hint: bool = Field(False, description="Whether to show the hint by default.")
    topic: str | None = Field(None, description="Optional topic of the sentence.")

    @model_validator(mode="after")
    def _error_flags_match(self) -> SentenceErrorQuestion:
        flagged = sum(1 for w in self.words if w.is_error)
        if self.has_error and flagged != 1:
            raise ValueError(f"has_error is true but {flagged} words are flagged (expected exactly 1)")
        if not self.has_error and flagged:
            raise ValueError("has_error is false but some words are flagged as errors")
        return self


class IdentifyErrorMarking(BaseMarking):
    correct_answer: str = Field(
        description="If there was an error, the word containing it; otherwise 'no error'."
    )


class ReplaceErrorMarking(BaseMarking):
    correct_answer: str = Field(
        description="If there was an error, the corrected word; otherwise 'no error'."
    )


GENERATION_PROMPT = """\
{header}
Instructions:
1. First write a COMPLETELY CORRECT {target_language} sentence related to the submodule context.
2. Decide whether this exercise has an error. About 70% should have one, 30% should be \
completely correct.
3. With an error:
   a. Replace ONE word with an incorrect form (typically an article, adjective ending, \
noun case or verb form) and put that version in `sentence`.
   b. Set `has_error` to true and flag ONLY that word with `is_error: true` in `words`.
   c. Put the correct form of that word in `correct_version`, and fill `error_type` \
and `explanation`.
4. Without an error: set `has_error` to false, flag no words, and explain why the \
sentence is correct.
5. `words` lists every word of `sentence` in order with a 0-based `index`; punctuation \
stays attached to its word.
6. Use this `question`: "{question_text}"

{difficulty_guidance} Focus on the grammar relevant to the submodule.

Example:
{{
  "question": "{question_text}",
  "sentence": "Der Katze trinkt Milch.",
  "has_error": true,
  "words": [
    {{"text": "Der", "is_error": true, "index": 0}},
    {{"text": "Katze", "is_error": false, "index": 1}},
    {{"text": "trinkt", "is_error": false, "index": 2}},
    {{"text": "Milch.", "is_error": false, "index": 3}}
  ],
  "correct_version": "Die",
  "error_type": "gender agreement",
  "explanation": "'Katze' is feminine, so the article is 'die', not 'der'."
}}
"""

IDENTIFY_MARKING_PROMPT = """\
{header}
Question: {question}
Sentence: {sentence}
{facts}
Explanation: {explanation}

User selected: "{selected}"

Decide whether the user correctly identified whether there is an error and, if there is, \
picked the right word. Explain whether they were right, what the correct answer is, and \
the grammar rule behind it. Score 100 for a correct identification, 0 otherwise.
"""

REPLACE_MARKING_PROMPT = """\
{header}
Question: {question}
Sentence: {sentence}
{facts}
Acceptable alternatives: {acceptable}
Explanation: {explanation}

User selected: {selected}

{criteria}
Explain whether they were right, what the correct answer is, and the grammar rule behind it.
"""

REPLACE_CRITERIA_ERROR = """\
Evaluate whether:
1. the user picked the erroneous word ("{error_word}"), and
2. their replacement matches the correct version or an acceptable alternative.
Score 100 for an exact or acceptable correction, a partial score when the right word was \
picked but the correction has minor issues, and 0 otherwise."""

REPLACE_CRITERIA_NO_ERROR = """\
The sentence is correct, so the only right answer is "No error". Score 100 if the user \
chose it, 0 otherwise."""


def _error_word(q: dict) -> str:
    for w in q.get("words") or []:
        if isinstance(w, dict) and w.get("is_error"):
            return w.get("text", "")
    return "[error not found]"


def _word_at(q: dict, index) -> str:
    for w in q.get("words") or []:
        if isinstance(w, dict) and w.get("index") == index:
            return w.get("text", "")
    return "[invalid selection]"


def _facts(q: dict) -> str:
    if not q.get("has_error"):
        return "Does the sentence have an error: No\nThe sentence is grammatically correct."
    return (
        "Does the sentence have an error: Yes\n"
        f'Actual error word: "{_error_word(q)}"\n'
        f'Correct version: "{q.get("correct_version") or "[no correction provided]"}"\n'
        f"Error type: {q.get('error_type') or '[not specified]'}"
    )


def build_generation_prompt(ctx: GenerationContext) -> str:
    return GENERATION_PROMPT.format(
        header=generation_header(
            ctx, "an error identification exercise",
            "Identify grammatical errors", "Find and understand grammatical mistakes",
        ),
        target_language=ctx.target_language,
        question_text=QUESTION_TEXT,
        difficulty_guidance=difficulty_guidance(ctx.difficulty),
    )


def build_identify_marking_prompt(ctx: MarkingContext) -> str:
    q = ctx.question_data
    if ctx.user_answer == NO_ERROR:
        selected = "No error"
    else:
        selected = _word_at(q, as_index(ctx.user_answer))
    return IDENTIFY_MARKING_PROMPT.format(
        header=marking_header(ctx, "Evaluate the user's answer to an error identification exercise."),
        question=q.get("question", "[question missing]"),
        sentence=q.get("sentence", "[sentence missing]"),
        facts=_facts(q),
        explanation=q.get("explanation") or "[no explanation provided]",
        selected=selected,
    )


def build_replace_marking_prompt(ctx: MarkingContext) -> str:
    q = ctx.question_data
    answer = ctx.user_answer
    if answer == NO_ERROR:
        selected = '"No error"'
    elif isinstance(answer, dict):
        word = _word_at(q, as_index(answer.get("index")))
        selected = f'word "{word}" with correction "{answer.get("correction") or "[no correction]"}"'
    else:
        selected = "[invalid selection]"

    if q.get("has_error"):
        criteria = REPLACE_CRITERIA_ERROR.format(error_word=_error_word(q))
    else:
        criteria = REPLACE_CRITERIA_NO_ERROR
    return REPLACE_MARKING_PROMPT.format(
        header=marking_header(ctx, "Evaluate the user's correction of a grammatical error."),
        question=q.get("question", "[question missing]"),
        sentence=q.get("sentence", "[sentence missing]"),
        facts=_facts(q),
        acceptable=json.dumps(q.get("acceptable_answers") or [], ensure_ascii=False),
        explanation=q.get("explanation") or "[no explanation provided]",
        selected=selected,
        criteria=criteria,
    )


# `sentence` and `words` must stay in sync, so neither is offered to the
# vocabulary rewrite.
IDENTIFY_ERROR = ExerciseTypeDefinition(
    id="identify-error",
    family="sentence-error",
    skill_type=SkillType.READING,
    title="Identify the Error",
    ui_component="ReadingIdentifyError",
    generation_schema=SentenceErrorQuestion,
    marking_schema=IdentifyErrorMarking,
    build_generation_prompt=build_generation_prompt,
    build_marking_prompt=build_identify_marking_prompt,
)

REPLACE_ERROR = ExerciseTypeDefinition(
    id="replace-error",
    family="sentence-error",
    skill_type=SkillType.WRITING,
    title="Replace the Error",
    ui_component="WritingReplaceError",
    generation_schema=SentenceErrorQuestion,
    marking_schema=ReplaceErrorMarking,
    build_generation_prompt=build_generation_prompt,
    build_marking_prompt=build_replace_marking_prompt,
)
