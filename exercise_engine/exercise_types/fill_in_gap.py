from __future__ import annotations

import json

from pydantic import BaseModel, Field

from exercise_engine.exercise_types.base import (
    BaseMarking,
    difficulty_guidance,
    generation_header,
    marking_header,
)
from exercise_engine.models import ExerciseTypeDefinition, GenerationContext, MarkingContext, SkillType

GAP = "____"


class FillInGapQuestion(BaseModel):
    question: str = Field(description="The instruction telling the user what to do.")
    sentence: str = Field(description=f"The sentence with exactly one gap marked by {GAP}.")
    base_word: str = Field(
        description="Base form of the word to inflect (e.g. 'kalt' for adjectives, the infinitive for verbs)."
    )
    correct_answer: str = Field(description="The exact word or phrase that fills the gap.")
    acceptable_answers: list[str] | None = Field(None, description="Alternative acceptable answers.")
    hint: str | None = Field(None, description="Optional concise hint about the form needed (max 1 line).")
    show_hint: bool = Field(False, description="Whether to show the hint by default.")
    case_sensitive: bool = Field(False, description="Whether the answer is case-sensitive.")
    explanation: str = Field(description="Brief explanation of why the answer is correct.")
    category: str | None = Field(None, description="Grammar category tested (e.g. 'noun case').")


class FillInGapMarking(BaseMarking):
    correct_answer: str = Field(description="The expected correct answer.")


GENERATION_PROMPT = """\
{header}
Instructions:
1. Write a concise instruction in `question` (e.g. "Fill in the correct form of the adjective 'kalt'.").
2. Write a {target_language} `sentence` containing one gap marked with exactly four underscores: ____.
3. Set `base_word` to the base form of the word that goes in the gap.
4. Set `correct_answer` to the form that fills the gap, and list any equally valid \
forms in `acceptable_answers`.
5. Give a brief `explanation`. Optionally add a one-line `hint` (leave `show_hint` false) \
and a grammar `category`.

{difficulty_guidance} The gap should test a grammatical point relevant to the submodule task.

Example:
{{
  "question": "Fill in the correct form of the adjective 'kalt'.",
  "sentence": "Mit ____ Wasser wäscht er sein Auto.",
  "base_word": "kalt",
  "correct_answer": "kaltem",
  "acceptable_answers": ["kaltem"],
  "hint": "Dative, neuter, no article",
  "show_hint": false,
  "case_sensitive": false,
  "explanation": "Without an article the adjective takes the strong dative ending '-em'.",
  "category": "adjective declension"
}}
"""

MARKING_PROMPT = """\
{header}
Question: {question}
Sentence with gap: {sentence}
Correct answer: "{correct_answer}"
Acceptable alternative answers: {acceptable}
{comparison}
User answered: "{user_answer}"

Additional context: {hint}
Expected explanation: {explanation}

Decide whether the user's answer matches the correct answer or one of the acceptable \
alternatives. Explain why it is correct or incorrect. Score 100 for a match, a partial \
score for a near miss (e.g. a spelling slip in the right form), 0 otherwise.
"""


def build_generation_prompt(ctx: GenerationContext) -> str:
    return GENERATION_PROMPT.format(
        header=generation_header(
            ctx, "a fill-in-the-gap exercise",
            "Apply grammatical concepts", "Fill in appropriate word forms",
        ),
        target_language=ctx.target_language,
        difficulty_guidance=difficulty_guidance(ctx.difficulty),
    )


def build_marking_prompt(ctx: MarkingContext) -> str:
    q = ctx.question_data
    comparison = (
        "Case-sensitive comparison required."
        if q.get("case_sensitive") else "Case-insensitive comparison allowed."
    )
    return MARKING_PROMPT.format(
        header=marking_header(ctx, "Evaluate the user's answer to a fill-in-the-gap exercise."),
        question=q.get("question", "[question missing]"),
        sentence=q.get("sentence", "[sentence missing]"),
        correct_answer=q.get("correct_answer", ""),
        acceptable=json.dumps(q.get("acceptable_answers") or [], ensure_ascii=False),
        comparison=comparison,
        user_answer=ctx.user_answer if ctx.user_answer is not None else "",
        hint=q.get("hint") or "",
        explanation=q.get("explanation") or "",
    )


FILL_IN_GAP = ExerciseTypeDefinition(
    id="fill-in-gap",
    family="fill-in-gap",
    skill_type=SkillType.WRITING,
    title="Fill in the Gap",
    ui_component="WritingFillInGap",
    generation_schema=FillInGapQuestion,
    marking_schema=FillInGapMarking,
    build_generation_prompt=build_generation_prompt,
    build_marking_prompt=build_marking_prompt,
    rewrite_fields=("sentence",),
)
