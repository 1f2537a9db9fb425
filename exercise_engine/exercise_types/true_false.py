from __future__ import annotations

from pydantic import BaseModel, Field

from exercise_engine.exercise_types.base import (
    BaseMarking,
    as_bool,
    difficulty_guidance,
    generation_header,
    marking_header,
)
from exercise_engine.models import ExerciseTypeDefinition, GenerationContext, MarkingContext, SkillType


class TrueFalseQuestion(BaseModel):
    question: str = Field(description="The instruction telling the user what to do.")
    statement: str = Field(description="The statement to judge as true or false.")
    is_true: bool = Field(description="Whether the statement is true.")
    explanation: str = Field(description="Brief explanation of why the statement is true or false.")
    hint: str | None = Field(None, description="Optional concise hint (max 1 line).")
    show_hint: bool = Field(False, description="Whether to show the hint by default.")
    topic: str | None = Field(None, description="Optional topic of the statement.")


class TrueFalseMarking(BaseMarking):
    correct_answer: str = Field(description="'true' or 'false'.")


GENERATION_PROMPT = """\
{header}
Instructions:
1. Write a concise instruction in `question` (e.g. "Is this sentence grammatically correct?").
2. Write a {target_language} `statement` about the grammar point of the submodule. It may \
be a sentence to judge for correctness or a claim about a rule.
3. Set `is_true` accordingly. Aim for a roughly even mix of true and false statements.
4. Give a brief `explanation`, and optionally a one-line `hint` and a `topic`.

{difficulty_guidance}

Example:
{{
  "question": "Is this sentence grammatically correct?",
  "statement": "Ich gebe dem Mann das Buch.",
  "is_true": true,
  "explanation": "'geben' takes the recipient in the dative: 'dem Mann'.",
  "show_hint": false
}}
"""

MARKING_PROMPT = """\
{header}
Question: {question}
Statement: "{statement}"
The statement is: {truth}
Explanation: {explanation}

User answered: {user_answer}

Decide whether the user judged the statement correctly and explain the rule behind it. \
Score 100 for correct, 0 for incorrect. `correct_answer` is "{truth_lower}".
"""


def build_generation_prompt(ctx: GenerationContext) -> str:
    return GENERATION_PROMPT.format(
        header=generation_header(
            ctx, "a true/false question",
            "Understand grammatical concepts", "Apply specific grammatical rules",
        ),
        target_language=ctx.target_language,
        difficulty_guidance=difficulty_guidance(ctx.difficulty),
    )


def build_marking_prompt(ctx: MarkingContext) -> str:
    q = ctx.question_data
    truth = "true" if q.get("is_true") else "false"
    answer = as_bool(ctx.user_answer)
    return MARKING_PROMPT.format(
        header=marking_header(ctx, "Evaluate the user's answer to a true/false question."),
        question=q.get("question", "[question missing]"),
        statement=q.get("statement", "[statement missing]"),
        truth=truth.upper(),
        truth_lower=truth,
        explanation=q.get("explanation") or "",
        user_answer=("[no valid answer]" if answer is None else str(answer).lower()),
    )


TRUE_FALSE = ExerciseTypeDefinition(
    id="true-false",
    family="true-false",
    skill_type=SkillType.READING,
    title="True or False Statement",
    ui_component="ReadingTrueFalse",
    generation_schema=TrueFalseQuestion,
    marking_schema=TrueFalseMarking,
    build_generation_prompt=build_generation_prompt,
    build_marking_prompt=build_marking_prompt,
    rewrite_fields=("statement",),
)
