"""Tests for the schema and module registries."""
from __future__ import annotations

import json

import pytest

from exercise_engine.errors import RegistryLoadError
from exercise_engine.exercise_types import BUILTIN_TYPES
from exercise_engine.models import ModuleDefinition, SkillType
from exercise_engine.registry import ModuleRegistry, SchemaRegistry


class TestSchemaRegistry:
    def test_builtins_registered(self, schemas):
        assert len(schemas) == len(BUILTIN_TYPES)
        assert "correct-incorrect-sentence" in schemas
        assert schemas.get("dictation") is None

    def test_ids_unique(self):
        ids = [d.id for d in BUILTIN_TYPES]
        assert len(ids) == len(set(ids))

    def test_by_family(self, schemas):
        ids = {d.id for d in schemas.by_family("multiple-choice")}
        assert ids == {"multiple-choice", "multiple-choice-full-word"}

    def test_by_skill_type_accepts_str(self, schemas):
        reading = {d.id for d in schemas.by_skill_type("reading")}
        assert reading == {"true-false", "identify-error"}
        assert schemas.by_skill_type(SkillType.SPEAKING)[0].id == "speaking-conversation"

    def test_families_for_skill_type(self, schemas):
        assert schemas.families_for_skill_type(SkillType.WRITING) == {
            "multiple-choice", "fill-in-gap", "sentence-error", "correct-incorrect",
        }

    def test_reregister_replaces(self, schemas):
        schemas.register(BUILTIN_TYPES[0])
        assert len(schemas) == len(BUILTIN_TYPES)

    def test_empty_registry(self):
        r = SchemaRegistry()
        assert r.all() == []
        assert r.by_skill_type("reading") == []


class TestModuleRegistry:
    def test_get(self, modules):
        assert modules.get("adjectives").id == "adjectives"
        assert modules.get("missing") is None

    def test_language_filter(self, modules):
        assert modules.get("adjectives", "German") is not None
        assert modules.get("adjectives", "French") is None
        assert modules.get("adjectives", None) is not None

    def test_no_language_restriction(self):
        m = ModuleDefinition.from_dict({"id": "any", "submodules": [
            {"id": "s", "supported_exercise_type_ids": ["true-false"]}
        ]})
        assert ModuleRegistry([m]).get("any", "Klingon") is m

    def test_submodules_of(self, modules):
        assert [s.id for s in modules.submodules_of("adjectives")] == ["declension", "comparison"]
        assert modules.submodules_of("missing") == []

    def test_get_submodule(self, modules):
        assert modules.get_submodule("adjectives", "comparison").id == "comparison"
        assert modules.get_submodule("adjectives", "nope") is None
        assert modules.get_submodule("nope", "comparison") is None


class TestLoadDirectory:
    def test_loads_json_files(self, tmp_path, adjectives_module_dict):
        (tmp_path / "adjectives.json").write_text(json.dumps(adjectives_module_dict))
        (tmp_path / "notes.txt").write_text("ignored")
        registry = ModuleRegistry()
        assert registry.load_directory(tmp_path) == 1
        assert registry.get("adjectives") is not None

    def test_bad_files_skipped(self, tmp_path, adjectives_module_dict):
        (tmp_path / "a.json").write_text(json.dumps(adjectives_module_dict))
        (tmp_path / "broken.json").write_text("{not json")
        (tmp_path / "no_id.json").write_text(json.dumps({"submodules": []}))
        (tmp_path / "no_subs.json").write_text(json.dumps({"id": "empty", "submodules": []}))
        registry = ModuleRegistry()
        assert registry.load_directory(tmp_path) == 1
        assert registry.get("empty") is None

    def test_nothing_loadable_is_fatal(self, tmp_path):
        (tmp_path / "broken.json").write_text("[]")
        with pytest.raises(RegistryLoadError):
            ModuleRegistry().load_directory(tmp_path)

    def test_missing_directory_is_fatal(self, tmp_path):
        with pytest.raises(RegistryLoadError):
            ModuleRegistry().load_directory(tmp_path / "missing")

    def test_shipped_modules_load(self, schemas):
        """Every module under modules/ loads and only names registered types."""
        from exercise_engine.config import Settings

        registry = ModuleRegistry()
        registry.load_directory(Settings().modules_full_path)
        assert len(registry) >= 3
        for module in registry.all():
            for sub in module.submodules:
                for type_id in sub.supported_exercise_type_ids:
                    assert type_id in schemas, f"{module.id}/{sub.id}: {type_id}"
