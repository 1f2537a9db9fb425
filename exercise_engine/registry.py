"""Schema and module registries.

Both are populated once at startup (see :func:`exercise_engine.engine.bootstrap`)
and only read afterwards, so concurrent readers need no locking.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path

from exercise_engine.errors import RegistryLoadError
from exercise_engine.models import (
    ExerciseTypeDefinition,
    ModuleDefinition,
    SkillType,
    SubmoduleDefinition,
)

_log = logging.getLogger("exercise_engine.registry")


class SchemaRegistry:
    """Catalog of exercise type definitions, keyed by id."""

    def __init__(self, definitions: list[ExerciseTypeDefinition] | None = None):
        self._definitions: dict[str, ExerciseTypeDefinition] = {}
        for d in definitions or []:
            self.register(d)

    def register(self, definition: ExerciseTypeDefinition) -> None:
        if definition.id in self._definitions:
            _log.debug("Re-registering exercise type %s", definition.id)
        self._definitions[definition.id] = definition

    def get(self, exercise_type_id: str) -> ExerciseTypeDefinition | None:
        return self._definitions.get(exercise_type_id)

    def all(self) -> list[ExerciseTypeDefinition]:
        return list(self._definitions.values())

    def by_family(self, family: str) -> list[ExerciseTypeDefinition]:
        return [d for d in self._definitions.values() if d.family == family]

    def by_skill_type(self, skill_type: SkillType | str) -> list[ExerciseTypeDefinition]:
        skill = SkillType(skill_type)
        return [d for d in self._definitions.values() if d.skill_type == skill]

    def families_for_skill_type(self, skill_type: SkillType | str) -> set[str]:
        return {d.family for d in self.by_skill_type(skill_type)}

    def __contains__(self, exercise_type_id: object) -> bool:
        return exercise_type_id in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)


class ModuleRegistry:
    """Topic modules and their submodules."""

    def __init__(self, modules: list[ModuleDefinition] | None = None):
        self._modules: dict[str, ModuleDefinition] = {}
        for m in modules or []:
            self.register(m)

    def register(self, module: ModuleDefinition) -> None:
        self._modules[module.id] = module

    def get(self, module_id: str, target_language: str | None = None) -> ModuleDefinition | None:
        module = self._modules.get(module_id)
        if module is None:
            return None
        if (
            target_language
            and module.supported_target_languages
            and target_language not in module.supported_target_languages
        ):
            return None
        return module

    def submodules_of(self, module_id: str) -> list[SubmoduleDefinition]:
        module = self._modules.get(module_id)
        return list(module.submodules) if module else []

    def get_submodule(self, module_id: str, submodule_id: str) -> SubmoduleDefinition | None:
        module = self._modules.get(module_id)
        return module.submodule(submodule_id) if module else None

    def all(self) -> list[ModuleDefinition]:
        return list(self._modules.values())

    def __len__(self) -> int:
        return len(self._modules)

    def load_directory(self, directory: Path) -> int:
        """Load every ``*.json`` module file in *directory*.

        Malformed files are skipped with a warning.  Raises
        :class:`RegistryLoadError` when nothing usable was found, since the
        engine cannot operate without at least one module.
        """
        if not directory.is_dir():
            raise RegistryLoadError(f"Module directory not found: {directory}")

        loaded = 0
        for path in sorted(directory.glob("*.json")):
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
                module = ModuleDefinition.from_dict(raw)
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                _log.warning("Skipping module file %s: %s", path.name, e)
                continue
            if not module.submodules:
                _log.warning("Skipping module file %s: no submodules", path.name)
                continue
            if module.id in self._modules:
                _log.warning("Duplicate module id %s in %s, overwriting", module.id, path.name)
            self.register(module)
            loaded += 1
            _log.info("Loaded module %s (%d submodules)", module.id, len(module.submodules))

        if not self._modules:
            raise RegistryLoadError(f"No module definitions could be loaded from {directory}")
        return loaded
