from __future__ import annotations

from abc import ABC, abstractmethod

from exercise_engine.models import VocabularyItem


class LLMProvider(ABC):
    @abstractmethod
    async def generate(self, prompt: str, temperature: float = 0.7, thinking: bool = True) -> str:
        ...

    @abstractmethod
    def name(self) -> str:
        ...


class VocabularyProvider(ABC):
    @abstractmethod
    def sample(self, language: str, limit: int = 1) -> list[VocabularyItem]:
        """Return up to *limit* random vocabulary items; an empty list is valid."""
        ...
