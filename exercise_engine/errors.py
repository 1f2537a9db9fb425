"""Exception taxonomy for the exercise engine.

Configuration errors (unknown module / submodule / exercise type) are fatal to
the single call and never retried.  Provider errors are raised by structured
generation and retried only where the caller says so.
"""
from __future__ import annotations


class EngineError(Exception):
    """Base class for everything the engine raises on purpose."""


# ── Configuration ─────────────────────────────────────────────────────────


class ConfigurationError(EngineError):
    pass


class ModuleNotFound(ConfigurationError):
    def __init__(self, module_id: str, reason: str = "not found"):
        self.module_id = module_id
        super().__init__(f"Module {module_id!r}: {reason}")


class SubmoduleNotFound(ConfigurationError):
    def __init__(self, module_id: str, submodule_id: str):
        self.module_id = module_id
        self.submodule_id = submodule_id
        super().__init__(f"Submodule {submodule_id!r} not found in module {module_id!r}")


class UnsupportedExerciseType(ConfigurationError):
    def __init__(self, submodule_id: str, exercise_type_id: str):
        self.submodule_id = submodule_id
        self.exercise_type_id = exercise_type_id
        super().__init__(
            f"Submodule {submodule_id!r} does not support exercise type {exercise_type_id!r}"
        )


class SchemaNotFound(ConfigurationError):
    def __init__(self, exercise_type_id: str):
        self.exercise_type_id = exercise_type_id
        super().__init__(f"Exercise type {exercise_type_id!r} is not registered")


class NoAvailableExerciseTypes(ConfigurationError):
    def __init__(self, submodule_id: str, supported: list[str]):
        self.submodule_id = submodule_id
        self.supported = supported
        super().__init__(
            f"None of the exercise types supported by submodule {submodule_id!r} "
            f"are registered: [{', '.join(supported)}]"
        )


class RegistryLoadError(ConfigurationError):
    pass


# ── Provider ──────────────────────────────────────────────────────────────


class GenerationError(EngineError):
    """The structured generation provider could not produce a conformant object."""

    def __init__(self, message: str, raw: str | None = None):
        self.raw = raw
        super().__init__(message)


class GenerationFailed(EngineError):
    """Question generation gave up after exhausting its retries."""

    def __init__(self, exercise_type_id: str, attempts: int, cause: Exception | None = None):
        self.exercise_type_id = exercise_type_id
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Failed to generate {exercise_type_id!r} after {attempts} attempts: {cause}"
        )
