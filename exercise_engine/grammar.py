"""Parsed sentence structure (clauses → constituents → tokens) and helpers.

The field descriptions double as instructions when the schema is sent to the
LLM, so keep them precise.
"""
from __future__ import annotations

from collections.abc import Iterator

from pydantic import BaseModel, Field

# Tokens starting with one of these attach to the previous token without a space.
LEADING_PUNCTUATION = ".,!?;:"


class GrammaticalFeatures(BaseModel):
    case: str | None = Field(None, description="Grammatical case (e.g. Nominative, Accusative, Dative, Genitive)")
    gender: str | None = Field(None, description="Grammatical gender (e.g. Masculine, Feminine, Neuter)")
    number: str | None = Field(None, description="Grammatical number (e.g. Singular, Plural)")
    person: str | None = Field(None, description="Grammatical person (e.g. First, Second, Third)")
    tense: str | None = Field(None, description="Verb tense (e.g. Present, Past, Future)")
    mood: str | None = Field(None, description="Verb mood (e.g. Indicative, Subjunctive, Imperative)")
    voice: str | None = Field(None, description="Verb voice (e.g. Active, Passive)")
    aspect: str | None = Field(None, description="Verb aspect (e.g. Perfective, Imperfective)")
    degree: str | None = Field(None, description="Adjective/adverb degree (e.g. Positive, Comparative)")


class Token(BaseModel):
    text: str = Field(description="The exact text of the token as it appears in the sentence.")
    lemma: str | None = Field(None, description="Base or dictionary form of the word.")
    pos: str = Field(description="Universal Dependencies part-of-speech tag (NOUN, VERB, AUX, ADJ, DET, ADP, PUNCT, ...).")
    features: GrammaticalFeatures | None = None


class Constituent(BaseModel):
    type: str = Field(description="Phrase category (e.g. NP, VP, PP, ADJP, ADVP).")
    children: list[Token] = Field(description="Ordered list of ALL tokens belonging only to this constituent.")
    features: GrammaticalFeatures | None = None
    head_token_index: int | None = Field(None, description="0-based index of the head token within children.")


class Clause(BaseModel):
    type: str = Field(description="Clause type (e.g. Main, Subordinate-Relative).")
    constituents: list[Constituent] = Field(
        description="Sequential, non-overlapping constituents making up the clause, in surface order."
    )


class SentenceStructure(BaseModel):
    original_sentence: str = Field(description="The original, grammatically correct sentence.")
    clauses: list[Clause] = Field(min_length=1, description="One or more clauses in surface order.")


def iter_tokens(structure: SentenceStructure) -> Iterator[tuple[int, int, int, Token]]:
    """Yield ``(clause_idx, constituent_idx, token_idx, token)`` in surface order."""
    for ci, clause in enumerate(structure.clauses):
        for ki, constituent in enumerate(clause.constituents):
            for ti, token in enumerate(constituent.children):
                yield ci, ki, ti, token


def flatten_tokens(structure: SentenceStructure) -> list[Token]:
    return [token for _, _, _, token in iter_tokens(structure)]


def reconstruct_sentence(tokens: list[Token] | SentenceStructure) -> str:
    """Join tokens with single spaces, gluing leading punctuation to the previous word."""
    if isinstance(tokens, SentenceStructure):
        tokens = flatten_tokens(tokens)
    parts: list[str] = []
    for token in tokens:
        text = token.text
        if parts and not (text and text[0] in LEADING_PUNCTUATION):
            parts.append(" ")
        parts.append(text)
    return "".join(parts).strip()
