"""Listening exercises.  Audio is synthesised by the UI from ``audio_text``."""
from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from exercise_engine.exercise_types.base import (
    BaseMarking,
    difficulty_guidance,
    format_submodule_context,
    generation_header,
    marking_header,
)
from exercise_engine.models import ExerciseTypeDefinition, GenerationContext, MarkingContext, SkillType


class ListeningTranscribeQuestion(BaseModel):
    audio_text: str = Field(description="The sentence to synthesise and play to the user.")
    hint: str | None = Field(None, description="Optional concise hint about vocabulary or grammar (max 1 line).")
    show_hint: bool = Field(False, description="Whether to show the hint by default.")
    topic: str | None = Field(None, description="Optional topic of the sentence.")


class ListeningTranscribeMarking(BaseMarking):
    correct_answer: str = Field(description="The original sentence text.")


class ListeningErrorQuestion(BaseModel):
    audio_text: str = Field(description="The sentence the user hears; identical to error_version.")
    error_version: str = Field(description="The sentence with exactly one grammatical error.")
    correct_version: str = Field(description="The same sentence without the error.")
    error_position: int = Field(ge=0, description="0-based index of the error word in error_version.")
    error_word: str = Field(description="The word or phrase that contains the error.")
    error_type: str = Field(description="Specific error type (e.g. 'adjective ending - accusative masculine').")
    hint: str | None = Field(None, description="Optional hint about what to listen for (max 1 line).")
    show_hint: bool = Field(False, description="Whether to show the hint by default.")
    topic: str | None = Field(None, description="Optional topic of the sentence.")

    @model_validator(mode="after")
    def _audio_is_error_version(self) -> ListeningErrorQuestion:
        if self.audio_text.strip() != self.error_version.strip():
            raise ValueError("audio_text must be identical to error_version")
        if self.error_version.strip() == self.correct_version.strip():
            raise ValueError("error_version must differ from correct_version")
        return self


class ListeningErrorMarking(BaseMarking):
    correct_answer: str = Field(description="The correct version, or what exactly was wrong.")


TRANSCRIBE_PROMPT = """\
{header}
Instructions:
1. Create ONE grammatically correct {target_language} sentence that is easy to pronounce \
clearly and relevant to the submodule context.
2. Put the exact sentence in `audio_text`.
3. Optionally add a one-line `hint` and a `topic`.

{difficulty_guidance} The sentence should be a fair listening challenge for the level.

Example:
{{
  "audio_text": "Das Wetter ist heute sehr schön.",
  "hint": "Pay attention to the adjective.",
  "show_hint": false,
  "topic": "Weather"
}}
"""

TRANSCRIBE_MARKING_PROMPT = """\
{header}
Original sentence: "{original}"
User's transcription: "{transcription}"

Minor differences in punctuation and capitalisation are acceptable unless they change the \
meaning; the words and their forms must match. If the transcription is correct or very \
close, confirm it. Otherwise point out the specific differences (missing, extra or wrong \
words and forms). Score 100 for correct, a partial score for minor slips, 0 when it is \
substantially wrong. `correct_answer` is the original sentence.
"""

ERROR_PROMPT = """\
{header}
Instructions:
1. Write a grammatically CORRECT {target_language} sentence relevant to the submodule; \
this is `correct_version`.
2. Introduce ONE error into it, specifically {grammar_focus}, matching the {difficulty} level. \
This is `error_version`.
3. Set `error_word`, `error_position` (0-based word index in `error_version`) and a \
specific `error_type`.
4. `audio_text` MUST be identical to `error_version`; it is what the user hears.
5. Optionally add a one-line `hint` and a `topic`.

{difficulty_guidance}

Example (adjective declension):
{{
  "audio_text": "Ich sehe den alte Mann.",
  "error_version": "Ich sehe den alte Mann.",
  "correct_version": "Ich sehe den alten Mann.",
  "error_position": 3,
  "error_word": "alte",
  "error_type": "adjective ending - accusative masculine",
  "hint": "Check the adjective ending after the definite article.",
  "show_hint": false
}}
"""

ERROR_MARKING_PROMPT = """\
{header}
Submodule context: {submodule_context}

Sentence heard (with error): "{audio_text}"
Correct version: "{correct_version}"
Actual error word: "{error_word}"
Error type: "{error_type}"
User's answer: "{user_answer}"

Judge whether the user identified the error word and understood the grammatical issue \
described by the error type, even if their wording is not exact. If correct, confirm it \
and explain why the word is wrong. If partially correct, say what they missed. If wrong, \
explain the error and give the correct version. Score 100 for a full identification, \
50-75 for a partial one, 0 otherwise.
"""

_FOCUS = (
    ("adjective", "an adjective declension error"),
    ("preposition", "a prepositional error (e.g. wrong case after a preposition)"),
    ("verb", "a verb conjugation error"),
    ("article", "an article error"),
    ("case", "a noun case error"),
)


def grammar_focus(task: str) -> str:
    task = task.lower()
    for keyword, focus in _FOCUS:
        if keyword in task:
            return focus
    return "a grammatical error relevant to the task"


def build_transcribe_prompt(ctx: GenerationContext) -> str:
    return TRANSCRIBE_PROMPT.format(
        header=generation_header(
            ctx, "a listening transcription exercise",
            "Improve listening comprehension", "Transcribe spoken sentences",
        ),
        target_language=ctx.target_language,
        difficulty_guidance=difficulty_guidance(ctx.difficulty),
    )


def build_transcribe_marking_prompt(ctx: MarkingContext) -> str:
    answer = ctx.user_answer if isinstance(ctx.user_answer, str) else "[no transcription provided]"
    return TRANSCRIBE_MARKING_PROMPT.format(
        header=marking_header(ctx, "Compare the user's transcription with the original sentence."),
        original=ctx.question_data.get("audio_text", "[original text missing]"),
        transcription=answer,
    )


def build_error_prompt(ctx: GenerationContext) -> str:
    return ERROR_PROMPT.format(
        header=generation_header(
            ctx, "a listening error identification exercise",
            "Improve listening comprehension",
            "Identify grammatical errors in spoken sentences",
        ),
        target_language=ctx.target_language,
        grammar_focus=grammar_focus(ctx.submodule_primary_task),
        difficulty=ctx.difficulty,
        difficulty_guidance=difficulty_guidance(ctx.difficulty),
    )


def build_error_marking_prompt(ctx: MarkingContext) -> str:
    q = ctx.question_data
    answer = ctx.user_answer if isinstance(ctx.user_answer, str) else "[no error identified]"
    return ERROR_MARKING_PROMPT.format(
        header=marking_header(ctx, "Evaluate whether the user identified the error they heard."),
        submodule_context=format_submodule_context(ctx.submodule_context),
        audio_text=q.get("audio_text", "[audio text missing]"),
        correct_version=q.get("correct_version", "[correct version missing]"),
        error_word=q.get("error_word", "[error word missing]"),
        error_type=q.get("error_type", "[error type missing]"),
        user_answer=answer,
    )


LISTENING_TRANSCRIBE = ExerciseTypeDefinition(
    id="listening-transcribe",
    family="listening-transcribe",
    skill_type=SkillType.LISTENING,
    title="Listen and Transcribe",
    ui_component="ListeningTranscribe",
    generation_schema=ListeningTranscribeQuestion,
    marking_schema=ListeningTranscribeMarking,
    build_generation_prompt=build_transcribe_prompt,
    build_marking_prompt=build_transcribe_marking_prompt,
    rewrite_fields=("audio_text",),
)

LISTENING_ERROR = ExerciseTypeDefinition(
    id="listening-error",
    family="listening-error",
    skill_type=SkillType.LISTENING,
    title="Listen and Find the Error",
    ui_component="ListeningError",
    generation_schema=ListeningErrorQuestion,
    marking_schema=ListeningErrorMarking,
    build_generation_prompt=build_error_prompt,
    build_marking_prompt=build_error_marking_prompt,
)
