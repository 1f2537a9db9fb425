"""Process-wide engine state: registries plus the services built on them."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from exercise_engine.config import Settings
from exercise_engine.error_injection import ErrorInjector
from exercise_engine.exercise_types import register_builtin_types
from exercise_engine.marking import MarkingService
from exercise_engine.picker import Picker
from exercise_engine.providers.base import LLMProvider, VocabularyProvider
from exercise_engine.question_generator import QuestionGenerator
from exercise_engine.registry import ModuleRegistry, SchemaRegistry
from exercise_engine.structured import LLMStructuredProvider, StructuredGenerationProvider

_log = logging.getLogger("exercise_engine.engine")


@dataclass
class Engine:
    settings: Settings
    schemas: SchemaRegistry
    modules: ModuleRegistry
    provider: StructuredGenerationProvider
    vocabulary: VocabularyProvider | None
    picker: Picker
    generator: QuestionGenerator
    marker: MarkingService
    injector: ErrorInjector

    def close(self) -> None:
        close = getattr(self.vocabulary, "close", None)
        if close is not None:
            close()


def get_llm(settings: Settings) -> LLMProvider:
    if settings.llm_provider == "ollama":
        from exercise_engine.providers.llm_ollama import OllamaProvider
        return OllamaProvider(base_url=settings.ollama_url, model=settings.llm_model)
    elif settings.llm_provider == "anthropic":
        from exercise_engine.providers.llm_anthropic import AnthropicProvider
        return AnthropicProvider()
    elif settings.llm_provider == "openai":
        from exercise_engine.providers.llm_openai import OpenAIProvider
        return OpenAIProvider()
    raise ValueError(f"Unknown LLM provider: {settings.llm_provider}")


def bootstrap(
    settings: Settings,
    llm: LLMProvider | None = None,
    vocabulary: VocabularyProvider | None = None,
    provider: StructuredGenerationProvider | None = None,
    modules: ModuleRegistry | None = None,
    rng: random.Random | None = None,
) -> Engine:
    """Build the engine once at startup.

    Loads module definitions from ``settings.modules_dir`` unless a populated
    *modules* registry is passed; raises :class:`RegistryLoadError` when none
    can be loaded.  Without an explicit *vocabulary* the SQLite vocabulary at
    ``settings.vocab_db_path`` is opened.
    """
    schemas = SchemaRegistry()
    register_builtin_types(schemas)

    if modules is None:
        modules = ModuleRegistry()
        modules.load_directory(settings.modules_full_path)

    if provider is None:
        provider = LLMStructuredProvider(
            llm or get_llm(settings),
            max_repairs=settings.structured_repairs,
            temperature=settings.llm_temperature,
            thinking=settings.llm_thinking,
        )

    if vocabulary is None:
        from exercise_engine.vocabulary import SqliteVocabulary
        vocabulary = SqliteVocabulary(settings.vocab_db_full_path)

    rng = rng or random.Random()
    injector = ErrorInjector(provider, rng=rng)
    engine = Engine(
        settings=settings,
        schemas=schemas,
        modules=modules,
        provider=provider,
        vocabulary=vocabulary,
        picker=Picker(schemas, modules, rng=rng, strategy=settings.picker_strategy),
        generator=QuestionGenerator(
            schemas, modules, provider,
            vocabulary=vocabulary,
            injector=injector,
            generation_retries=settings.generation_retries,
            default_max_errors=settings.default_max_errors,
        ),
        marker=MarkingService(schemas, provider, modules=modules),
        injector=injector,
    )
    _log.info("Engine ready: %d exercise types, %d modules", len(schemas), len(modules))
    return engine
