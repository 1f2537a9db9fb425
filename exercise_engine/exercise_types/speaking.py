from __future__ import annotations

import json

from pydantic import BaseModel, Field

from exercise_engine.exercise_types.base import (
    BaseMarking,
    as_index,
    difficulty_guidance,
    generation_header,
    marking_header,
)
from exercise_engine.models import ExerciseTypeDefinition, GenerationContext, MarkingContext, SkillType


class ConversationQuestion(BaseModel):
    content: str = Field(description="The question to ask, in the target language.")
    expected_answers: list[str] = Field(description="Acceptable answers or key phrases.")
    difficulty: str | None = Field(None, description="beginner, intermediate or advanced.")
    context_notes: str | None = Field(None, description="Optional notes about this question.")


class SpeakingConversationQuestion(BaseModel):
    questions: list[ConversationQuestion] = Field(
        min_length=1, max_length=5,
        description="Questions in order, from simpler to more complex.",
    )
    conversation_theme: str = Field(description="Theme of the conversation (e.g. 'Shopping').")
    hint: str | None = Field(None, description="Optional hint about vocabulary or grammar to use (max 1 line).")
    show_hint: bool = Field(False, description="Whether to show the hint by default.")
    target_language_instructions: str = Field(description="Brief instructions in the target language.")
    source_language_instructions: str = Field(description="Brief instructions in the source language.")


class SubScore(BaseModel):
    score: float = Field(ge=0, le=100)
    feedback: str


class GrammarCorrection(BaseModel):
    original: str
    correction: str
    explanation: str


class PronunciationScore(SubScore):
    problem_words: list[str] | None = None


class GrammarScore(SubScore):
    corrections: list[GrammarCorrection] | None = None


class SpeakingConversationMarking(BaseMarking):
    correct_answer: str = Field(description="A sample correct answer or the key points expected.")
    pronunciation: PronunciationScore | None = None
    grammar: GrammarScore | None = None
    fluency: SubScore | None = None


GENERATION_PROMPT = """\
{header}
Instructions:
1. Write 2-3 questions in {target_language} that form a natural conversation, starting \
simple and growing more complex.
2. For each question list acceptable answers or key phrases in `expected_answers`.
3. Pick a `conversation_theme` relevant to the submodule context.
4. Give brief instructions in both {target_language} and {source_language}.
5. Optionally add a one-line `hint` about vocabulary or grammar.

{difficulty_guidance}

Example:
{{
  "questions": [
    {{"content": "Wie heißt du?", "expected_answers": ["Ich heiße...", "Mein Name ist..."], "difficulty": "beginner"}},
    {{"content": "Woher kommst du?", "expected_answers": ["Ich komme aus..."], "difficulty": "beginner"}}
  ],
  "conversation_theme": "Personal introduction",
  "show_hint": false,
  "target_language_instructions": "Bitte antworte auf Deutsch.",
  "source_language_instructions": "Please answer in German."
}}
"""

MARKING_PROMPT = """\
{header}
Question: "{question}"
Expected answers or key elements: {expected}
User's spoken response (transcript): "{transcript}"

Evaluate the response for content (does it answer the question?), grammar, likely \
pronunciation issues inferred from the transcript, and fluency. Be encouraging but \
specific. For beginners focus on getting the message across; for higher levels give \
more detailed grammar and vocabulary feedback. The `pronunciation`, `grammar` and \
`fluency` sub-scores are optional.
"""


def build_generation_prompt(ctx: GenerationContext) -> str:
    return GENERATION_PROMPT.format(
        header=generation_header(
            ctx, "a speaking practice exercise",
            "Practical conversation skills",
            "Answer questions in a conversational context",
        ),
        target_language=ctx.target_language,
        source_language=ctx.source_language,
        difficulty_guidance=difficulty_guidance(ctx.difficulty),
    )


def build_marking_prompt(ctx: MarkingContext) -> str:
    answer = ctx.user_answer
    if isinstance(answer, dict):
        index = as_index(answer.get("question_index")) or 0
        transcript = answer.get("transcript") or "[no response]"
    else:
        index = 0
        transcript = answer if isinstance(answer, str) and answer else "[no response]"

    questions = ctx.question_data.get("questions") or []
    question = questions[index] if 0 <= index < len(questions) else {}
    return MARKING_PROMPT.format(
        header=marking_header(ctx, "Evaluate the user's spoken answer to a conversation question."),
        question=question.get("content", "[question missing]"),
        expected=json.dumps(question.get("expected_answers") or [], ensure_ascii=False),
        transcript=transcript,
    )


SPEAKING_CONVERSATION = ExerciseTypeDefinition(
    id="speaking-conversation",
    family="speaking-conversation",
    skill_type=SkillType.SPEAKING,
    title="Speaking Practice",
    ui_component="SpeakingConversation",
    generation_schema=SpeakingConversationQuestion,
    marking_schema=SpeakingConversationMarking,
    build_generation_prompt=build_generation_prompt,
    build_marking_prompt=build_marking_prompt,
    rewrite_fields=("questions[].content",),
)
