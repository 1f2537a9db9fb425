"""Inject plausible grammatical errors into a parsed, correct sentence.

Candidate words are chosen from the parse by part of speech; the incorrect
form of each chosen word comes from the structured provider, one call at a
time so that later prompts see the errors already made.
"""
from __future__ import annotations

import logging
import random
from dataclasses import asdict, dataclass, field

from pydantic import BaseModel, Field

from exercise_engine.grammar import Constituent, SentenceStructure, Token, reconstruct_sentence
from exercise_engine.models import ErrorType
from exercise_engine.structured import StructuredGenerationProvider

_log = logging.getLogger("exercise_engine.error_injection")

POS_ERROR_TYPES = {
    "ADJ": ErrorType.ADJECTIVE_ENDING,
    "DET": ErrorType.ARTICLE_ENDING,
    "NOUN": ErrorType.NOUN_CASE,
    "VERB": ErrorType.VERB_CONJUGATION,
    "AUX": ErrorType.VERB_CONJUGATION,
}

DEFAULT_ERROR_TYPES = (
    ErrorType.ARTICLE_ENDING,
    ErrorType.ADJECTIVE_ENDING,
    ErrorType.NOUN_CASE,
    ErrorType.VERB_CONJUGATION,
)


class IncorrectWord(BaseModel):
    incorrect_word: str = Field(
        description="A grammatically incorrect but plausible form of the target word, "
        "suited to the requested error type. A single word only."
    )


@dataclass
class ErrorRecord:
    type: ErrorType
    original_text: str
    modified_text: str
    clause_index: int
    constituent_index: int
    token_index: int
    # Index into the flattened token list of the whole sentence.
    position: int

    def to_dict(self) -> dict:
        d = asdict(self)
        d["type"] = self.type.value
        return d


@dataclass
class InjectionResult:
    modified_structure: SentenceStructure
    presented_sentence: str
    errors_introduced: list[ErrorRecord] = field(default_factory=list)

    @property
    def has_error(self) -> bool:
        return bool(self.errors_introduced)


@dataclass
class _Candidate:
    type: ErrorType
    clause_index: int
    constituent_index: int
    token_index: int
    position: int
    preceding: Token | None
    governing_noun: Token | None
    parent: Constituent


ERROR_HINTS = {
    ErrorType.ADJECTIVE_ENDING: (
        "adjective", "The error must be in the adjective ending: a common declension "
        "mistake such as the wrong case, gender or number ending, or mixing up "
        "strong, weak and mixed declension."
    ),
    ErrorType.ARTICLE_ENDING: (
        "article/determiner", "The error must be in the article or determiner form: a "
        "common mistake with case, gender or number."
    ),
    ErrorType.NOUN_CASE: (
        "noun", "The error must be in the noun form: a common mistake such as a missing "
        "or wrong case ending (e.g. a missing dative plural or genitive -s) or the "
        "wrong number."
    ),
    ErrorType.VERB_CONJUGATION: (
        "verb", "The error must be in the verb conjugation: a common mistake in person, "
        "number or tense agreement with the subject."
    ),
}

INCORRECT_WORD_PROMPT = """\
Generate a single, grammatically INCORRECT but plausible {language} form for the \
{word_kind} "{word}" as it appears in the sentence: "{sentence}". {hint}
{context}{prior}
Ensure the generated word is genuinely incorrect in this specific context and is NOT \
identical to "{word}". Output ONLY the single incorrect word form.
"""


class ErrorInjector:
    def __init__(
        self,
        provider: StructuredGenerationProvider,
        rng: random.Random | None = None,
    ):
        self.provider = provider
        self.rng = rng or random.Random()

    async def inject_errors(
        self,
        sentence_structure: SentenceStructure,
        allowed_error_types: list[ErrorType] | tuple[ErrorType, ...] | None,
        max_errors: int,
        language: str,
    ) -> InjectionResult:
        """Return a modified copy of *sentence_structure* with up to *max_errors* errors.

        The input is never mutated.  Candidates whose provider call fails or
        returns the unchanged word are skipped and do not count.
        """
        structure = sentence_structure.model_copy(deep=True)
        allowed = set(DEFAULT_ERROR_TYPES if allowed_error_types is None else allowed_error_types)

        if max_errors <= 0:
            return InjectionResult(structure, reconstruct_sentence(structure))

        candidates = find_candidates(structure, allowed)
        self.rng.shuffle(candidates)
        _log.info("Injecting up to %d error(s) into %r: %d candidate(s)",
                  max_errors, structure.original_sentence, len(candidates))

        errors: list[ErrorRecord] = []
        for cand in candidates:
            if len(errors) >= max_errors:
                break
            token = structure.clauses[cand.clause_index] \
                .constituents[cand.constituent_index].children[cand.token_index]
            original = token.text
            prompt = build_incorrect_word_prompt(cand, token, structure, errors, language)
            try:
                reply = await self.provider.generate(prompt, IncorrectWord)
            except Exception as e:
                _log.warning("  %s @ %r skipped: %s", cand.type.value, original, e)
                continue

            modified = reply.incorrect_word.strip()
            if not modified or modified == original.strip():
                _log.info("  %s @ %r skipped: provider returned the same word",
                          cand.type.value, original)
                continue

            token.text = modified
            errors.append(ErrorRecord(
                type=cand.type,
                original_text=original,
                modified_text=modified,
                clause_index=cand.clause_index,
                constituent_index=cand.constituent_index,
                token_index=cand.token_index,
                position=cand.position,
            ))
            _log.info("  %s: %r → %r", cand.type.value, original, modified)

        return InjectionResult(structure, reconstruct_sentence(structure), errors)


def find_candidates(structure: SentenceStructure, allowed: set[ErrorType]) -> list[_Candidate]:
    """Every token whose part of speech maps to an allowed error type, in surface order.

    ``WORD_ORDER`` has no part-of-speech mapping and never yields candidates.
    """
    out: list[_Candidate] = []
    position = 0
    for ci, clause in enumerate(structure.clauses):
        for ki, constituent in enumerate(clause.constituents):
            children = constituent.children
            for ti, token in enumerate(children):
                error_type = POS_ERROR_TYPES.get(token.pos.upper())
                if error_type is not None and error_type in allowed:
                    out.append(_Candidate(
                        type=error_type,
                        clause_index=ci,
                        constituent_index=ki,
                        token_index=ti,
                        position=position,
                        preceding=children[ti - 1] if ti > 0 else None,
                        governing_noun=_governing_noun(error_type, children, ti),
                        parent=constituent,
                    ))
                position += 1
    return out


def _governing_noun(error_type: ErrorType, children: list[Token], index: int) -> Token | None:
    if error_type == ErrorType.ARTICLE_ENDING:
        following = children[index + 1:]
        return next((t for t in following if t.pos.upper() == "NOUN"), None)
    if error_type == ErrorType.ADJECTIVE_ENDING:
        return next((t for t in children if t.pos.upper() == "NOUN"), None)
    return None


def _describe_features(token: Token) -> str:
    if token.features is None:
        return ""
    feats = token.features.model_dump(exclude_none=True)
    return ", ".join(f"{k}={v}" for k, v in feats.items())


def build_incorrect_word_prompt(
    cand: _Candidate,
    token: Token,
    structure: SentenceStructure,
    prior: list[ErrorRecord],
    language: str,
) -> str:
    word_kind, hint = ERROR_HINTS[cand.type]

    context_lines = [f"The word belongs to a {cand.parent.type} phrase."]
    feats = _describe_features(token)
    if feats:
        context_lines.append(f"Its correct grammatical features are: {feats}.")
    if cand.preceding is not None:
        context_lines.append(f'It follows the word "{cand.preceding.text}".')
    if cand.governing_noun is not None:
        noun = cand.governing_noun
        noun_feats = _describe_features(noun)
        context_lines.append(
            f'It agrees with the noun "{noun.text}"' + (f" ({noun_feats})." if noun_feats else ".")
        )

    prior_text = ""
    if prior:
        changes = "; ".join(f'"{e.original_text}" → "{e.modified_text}"' for e in prior)
        prior_text = (
            f'\nThe sentence currently reads: "{reconstruct_sentence(structure)}" '
            f"(already changed: {changes}). Do not undo those changes."
        )

    return INCORRECT_WORD_PROMPT.format(
        language=language,
        word_kind=word_kind,
        word=token.text,
        sentence=structure.original_sentence,
        hint=hint,
        context=" ".join(context_lines),
        prior=prior_text,
    )
