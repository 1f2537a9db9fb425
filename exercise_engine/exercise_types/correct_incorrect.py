"""Correct-or-incorrect sentences.

The model only writes a correct sentence with its parse; errors are injected
afterwards by :class:`exercise_engine.error_injection.ErrorInjector`; the
generator then adds ``presented_sentence``, ``presented_tokens``, ``has_error``
and ``errors`` to the question data.  A user's ``{index, correction}`` answer
indexes into ``presented_tokens``, as does each error's ``position``.
"""
from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from exercise_engine.exercise_types.base import (
    BaseMarking,
    as_index,
    difficulty_guidance,
    generation_header,
    marking_header,
)
from exercise_engine.grammar import SentenceStructure, flatten_tokens
from exercise_engine.models import ExerciseTypeDefinition, GenerationContext, MarkingContext, SkillType

ANSWER_CORRECT = "correct"
ANSWER_INCORRECT = "incorrect"


class CorrectIncorrectQuestion(BaseModel):
    question: str = Field(description="The instruction telling the user what to do.")
    sentence_structure: SentenceStructure = Field(
        description="Full parse of ONE grammatically correct sentence."
    )
    explanation: str = Field(description="Brief explanation of the grammar the sentence exercises.")
    hint: str | None = Field(None, description="Optional concise hint (max 1 line).")
    show_hint: bool = Field(False, description="Whether to show the hint by default.")
    topic: str | None = Field(None, description="Optional topic of the sentence.")

    @model_validator(mode="after")
    def _tokens_cover_sentence(self) -> CorrectIncorrectQuestion:
        joined = "".join(t.text for t in flatten_tokens(self.sentence_structure))
        original = self.sentence_structure.original_sentence
        if "".join(joined.split()) != "".join(original.split()):
            raise ValueError(
                "the tokens of sentence_structure must spell out original_sentence exactly "
                "(every word and punctuation mark, in order)"
            )
        return self


class CorrectIncorrectMarking(BaseMarking):
    correct_answer: str = Field(
        description="The corrected sentence if it contained errors, otherwise 'correct'."
    )


GENERATION_PROMPT = """\
{header}
Instructions:
1. Write ONE grammatically CORRECT {target_language} sentence that exercises the grammar \
of the submodule. Do NOT include any mistakes; errors are added later.
2. Parse it into `sentence_structure`: clauses in order, each split into non-overlapping \
constituents (NP, VP, PP, ...), each listing its tokens in order.
3. Every word and punctuation mark of `original_sentence` must appear as exactly one \
token, with its Universal Dependencies `pos` tag, `lemma`, and grammatical `features` \
(case, gender, number, person, tense) where they apply.
4. Use this `question`: "Is this sentence correct? If not, find and fix the mistake."
5. Give a brief `explanation` of the grammar involved, and optionally a one-line `hint`.

{difficulty_guidance}

Example:
{{
  "question": "Is this sentence correct? If not, find and fix the mistake.",
  "sentence_structure": {{
    "original_sentence": "Die Katze trinkt kalte Milch.",
    "clauses": [{{
      "type": "Main",
      "constituents": [
        {{"type": "NP", "children": [
          {{"text": "Die", "lemma": "der", "pos": "DET", "features": {{"case": "Nominative", "gender": "Feminine", "number": "Singular"}}}},
          {{"text": "Katze", "lemma": "Katze", "pos": "NOUN", "features": {{"case": "Nominative", "gender": "Feminine", "number": "Singular"}}}}
        ], "head_token_index": 1}},
        {{"type": "VP", "children": [
          {{"text": "trinkt", "lemma": "trinken", "pos": "VERB", "features": {{"person": "Third", "number": "Singular", "tense": "Present"}}}}
        ]}},
        {{"type": "NP", "children": [
          {{"text": "kalte", "lemma": "kalt", "pos": "ADJ", "features": {{"case": "Accusative", "gender": "Feminine", "number": "Singular"}}}},
          {{"text": "Milch", "lemma": "Milch", "pos": "NOUN", "features": {{"case": "Accusative", "gender": "Feminine", "number": "Singular"}}}},
          {{"text": ".", "pos": "PUNCT"}}
        ], "head_token_index": 1}}
      ]
    }}]
  }},
  "explanation": "'Katze' is feminine, so the article is 'die'; 'kalte' takes the strong feminine accusative ending."
}}
"""

MARKING_PROMPT = """\
{header}
Sentence shown to the user: "{presented}"
Correct sentence: "{correct}"
{facts}
Explanation: {explanation}

User's answer: {answer}

{criteria}
Explain whether the user was right and the grammar rule behind each error.
"""

CRITERIA_WITH_ERRORS = """\
The sentence was INCORRECT. Score 100 if the user picked an erroneous word and gave its \
exact correct form; a partial score if they only judged the sentence incorrect or picked \
the right word with a slightly wrong correction; 0 if they called it correct. \
`correct_answer` is the correct sentence."""

CRITERIA_NO_ERRORS = """\
The sentence was CORRECT. Score 100 if the user said so, 0 otherwise. `correct_answer` \
is "correct"."""


def _describe_errors(errors: list[dict]) -> str:
    if not errors:
        return "Errors introduced: none (the sentence is correct)."
    lines = ["Errors introduced:"]
    for e in errors:
        if not isinstance(e, dict):
            continue
        lines.append(
            f'  - word {e.get("position")}: "{e.get("original_text")}" was changed to '
            f'"{e.get("modified_text")}" ({e.get("type")})'
        )
    return "\n".join(lines)


def _describe_answer(q: dict, answer) -> str:
    if answer == ANSWER_CORRECT:
        return "the sentence is correct"
    if answer == ANSWER_INCORRECT:
        return "the sentence is incorrect (no correction given)"
    if isinstance(answer, dict):
        index = as_index(answer.get("index"))
        words = q.get("presented_tokens") or []
        word = words[index] if index is not None and 0 <= index < len(words) else "[invalid selection]"
        return f'word {index} ("{word}") should be "{answer.get("correction") or "[no correction]"}"'
    return "[invalid answer]"


def build_generation_prompt(ctx: GenerationContext) -> str:
    return GENERATION_PROMPT.format(
        header=generation_header(
            ctx, "a correct-or-incorrect sentence exercise",
            "Apply grammatical concepts", "Recognise and fix grammatical mistakes",
        ),
        target_language=ctx.target_language,
        difficulty_guidance=difficulty_guidance(ctx.difficulty),
    )


def build_marking_prompt(ctx: MarkingContext) -> str:
    q = ctx.question_data
    structure = q.get("sentence_structure") or {}
    correct = structure.get("original_sentence", "[correct sentence missing]")
    has_error = bool(q.get("has_error"))
    return MARKING_PROMPT.format(
        header=marking_header(ctx, "Evaluate whether the user judged and fixed the sentence correctly."),
        presented=q.get("presented_sentence") or correct,
        correct=correct,
        facts=_describe_errors(q.get("errors") or []),
        explanation=q.get("explanation") or "",
        answer=_describe_answer(q, ctx.user_answer),
        criteria=CRITERIA_WITH_ERRORS if has_error else CRITERIA_NO_ERRORS,
    )


CORRECT_INCORRECT = ExerciseTypeDefinition(
    id="correct-incorrect-sentence",
    family="correct-incorrect",
    skill_type=SkillType.WRITING,
    title="Correct or Incorrect?",
    ui_component="WritingCorrectIncorrect",
    generation_schema=CorrectIncorrectQuestion,
    marking_schema=CorrectIncorrectMarking,
    build_generation_prompt=build_generation_prompt,
    build_marking_prompt=build_marking_prompt,
    injects_errors=True,
)
