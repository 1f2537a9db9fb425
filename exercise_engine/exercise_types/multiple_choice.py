"""Multiple-choice exercises: pick an ending, or pick a full inflected word."""
from __future__ import annotations

import json

from pydantic import BaseModel, Field, model_validator

from exercise_engine.exercise_types.base import (
    BaseMarking,
    as_index,
    difficulty_guidance,
    format_submodule_context,
    generation_header,
    marking_header,
)
from exercise_engine.models import ExerciseTypeDefinition, GenerationContext, MarkingContext, SkillType


class WordDetail(BaseModel):
    content: str = Field(description="The actual word or token in the sentence.")
    type: str = Field(description="The grammatical type (e.g. 'article', 'noun', 'adjective', 'verb').")
    target: bool = Field(description="Is this word the target being tested?")


class MultipleChoiceQuestion(BaseModel):
    content: str = Field(
        description="The question, followed by a blank line (\\n\\n), followed by the sentence."
    )
    sentence_structure: list[WordDetail] | None = Field(
        None, description="Structured breakdown of the sentence part."
    )
    target_replace: str = Field(description="The word in the sentence that needs completing.")
    target_replace_with: str = Field(
        description="The base of the target word plus a separator (e.g. 'groß-', 'ein-')."
    )
    options: list[str] = Field(min_length=2, max_length=5, description="2-5 candidate answers.")
    correct_option_index: int = Field(ge=0, description="0-based index of the correct option.")
    target_word_base: str | None = Field(
        None, description="Dictionary form of the target word (e.g. 'groß')."
    )
    explanation: str | None = Field(None, description="Brief explanation of why the correct option is right.")
    hint: str | None = Field(None, description="Optional concise hint (max 1 line).")
    show_hint: bool = Field(False, description="Whether to show the hint by default.")

    @model_validator(mode="after")
    def _index_in_range(self) -> MultipleChoiceQuestion:
        if self.correct_option_index >= len(self.options):
            raise ValueError(
                f"correct_option_index {self.correct_option_index} is out of range "
                f"for {len(self.options)} options"
            )
        return self


class MultipleChoiceMarking(BaseMarking):
    correct_answer: str = Field(description="The correct option text.")


ENDING_PROMPT = """\
{header}
Instructions:
1. Create a concise question related to the submodule task (e.g. "Which ending is correct?").
2. Create a {target_language} sentence where the user must pick the correct grammatical \
ending for one target word.
3. Put the question and the sentence into `content`, separated by exactly one blank line.
4. Set `target_replace` to the incomplete target word as it appears in the sentence.
5. Set `target_replace_with` to the base of the target word plus a separator, like "groß-".
6. Provide 2-5 plausible **endings** in `options`. Exactly one is correct; the others \
should be common learner mistakes.
7. Set `correct_option_index` to the 0-based index of the correct ending.
8. Optionally add `target_word_base`, `explanation`, `hint` and `sentence_structure`.

{difficulty_guidance}

Example:
{{
  "content": "What is the correct article ending?\\n\\nIch sehe ein- großen Hund.",
  "target_replace": "ein-",
  "target_replace_with": "ein-",
  "options": ["-en", "-e", "-", "-er"],
  "correct_option_index": 0,
  "target_word_base": "ein",
  "explanation": "'Hund' is masculine and accusative here, so the article takes '-en'."
}}
"""

FULL_WORD_PROMPT = """\
{header}
Instructions:
1. Create a clear question related to the submodule task.
2. Write a {target_language} sentence where the user must choose the correct form of one \
target word, shown as a placeholder "______".
3. Put the question and the sentence into `content`, separated by exactly one blank line.
4. Set `target_replace` to the placeholder and `target_replace_with` to the placeholder \
or the base word.
5. Provide 2-5 plausible **full word** forms in `options`. Exactly one is correct; the \
others should be common learner mistakes.
6. Set `correct_option_index` to the 0-based index of the correct form.
7. Optionally add `target_word_base` and `explanation`.

{difficulty_guidance}

Example:
{{
  "content": "Choose the correct form of the adjective.\\n\\nIch habe das ______ Auto gesehen.",
  "target_replace": "______",
  "target_replace_with": "______",
  "options": ["neue", "neuen", "neuer", "neues"],
  "correct_option_index": 0,
  "target_word_base": "neu",
  "explanation": "After the definite article 'das' (neuter accusative) the adjective takes weak '-e'."
}}
"""

MARKING_PROMPT = """\
{header}Submodule context: {submodule_context}

Question: {question}
Sentence: {sentence}
Options: {options}
Target word base: {target_word_base}
Correct answer: "{correct}" (index {correct_index})

User's selection (index {user_index}): "{selected}"

Decide whether the selection is correct. Explain *why* it is right or wrong, \
referencing the grammar rule where possible. Score 100 for correct, 0 for incorrect.
"""


def _split_content(content: str) -> tuple[str, str]:
    question, sep, sentence = (content or "").partition("\n\n")
    return question, sentence if sep else "[missing sentence]"


def _generation_prompt(template: str, exercise: str):
    def build(ctx: GenerationContext) -> str:
        header = generation_header(
            ctx,
            exercise,
            "Translate or understand grammatical concepts",
            "Apply specific grammatical rules",
        )
        return template.format(
            header=header,
            target_language=ctx.target_language,
            difficulty_guidance=difficulty_guidance(ctx.difficulty),
        )
    return build


def build_marking_prompt(ctx: MarkingContext) -> str:
    q = ctx.question_data
    options = q.get("options") or []
    correct_index = q.get("correct_option_index")
    user_index = as_index(ctx.user_answer)

    def option_at(i):
        if isinstance(i, int) and 0 <= i < len(options):
            return options[i]
        return "[invalid index]"

    question, sentence = _split_content(q.get("content", ""))
    return MARKING_PROMPT.format(
        header=marking_header(ctx, "Evaluate the user's answer to a multiple-choice question."),
        submodule_context=format_submodule_context(ctx.submodule_context),
        question=question,
        sentence=sentence,
        options=json.dumps(options, ensure_ascii=False),
        target_word_base=q.get("target_word_base") or "N/A",
        correct=option_at(correct_index),
        correct_index=correct_index,
        user_index=ctx.user_answer,
        selected=option_at(user_index),
    )


MULTIPLE_CHOICE = ExerciseTypeDefinition(
    id="multiple-choice",
    family="multiple-choice",
    skill_type=SkillType.WRITING,
    title="Multiple Choice (Ending)",
    ui_component="MultipleChoiceModal",
    generation_schema=MultipleChoiceQuestion,
    marking_schema=MultipleChoiceMarking,
    build_generation_prompt=_generation_prompt(
        ENDING_PROMPT, "a multiple-choice question (ending focus)"
    ),
    build_marking_prompt=build_marking_prompt,
    rewrite_fields=("content",),
)

MULTIPLE_CHOICE_FULL_WORD = ExerciseTypeDefinition(
    id="multiple-choice-full-word",
    family="multiple-choice",
    skill_type=SkillType.WRITING,
    title="Multiple Choice (Full Word)",
    ui_component="MultipleChoiceModal",
    generation_schema=MultipleChoiceQuestion,
    marking_schema=MultipleChoiceMarking,
    build_generation_prompt=_generation_prompt(
        FULL_WORD_PROMPT, "a multiple-choice question (full word focus)"
    ),
    build_marking_prompt=build_marking_prompt,
    rewrite_fields=("content",),
)
