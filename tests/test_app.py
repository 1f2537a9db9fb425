"""Tests for the FastAPI application routes."""
from __future__ import annotations

import random
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from exercise_engine import app as app_module
from exercise_engine.app import app
from exercise_engine.config import Settings
from exercise_engine.engine import bootstrap
from exercise_engine.errors import GenerationError
from exercise_engine.models import PickResult
from exercise_engine.vocabulary import InMemoryVocabulary, SqliteVocabulary

from conftest import FakeStructuredProvider

GOOD_MARK = {"is_correct": False, "score": 0, "feedback": "Falsch.", "correct_answer": "-en"}


def _client(engine):
    # Set globals BEFORE creating TestClient so startup() is a no-op
    app_module._engine = engine
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def provider():
    return FakeStructuredProvider()


@pytest.fixture
def test_app(tmp_path, modules, provider):
    """App wired to fake generation, in-memory vocabulary and the adjectives module."""
    settings = Settings(vocab_files=[], vocab_db_path=str(tmp_path / "v.db"))
    engine = bootstrap(
        settings,
        provider=provider,
        vocabulary=InMemoryVocabulary(),
        modules=modules,
        rng=random.Random(42),
    )
    with patch("exercise_engine.app.save_settings"):
        client = _client(engine)
        yield client, engine
        client.close()
    app_module._engine = None


class TestCatalog:
    def test_modules(self, test_app):
        client, _ = test_app
        resp = client.get("/api/modules")
        assert resp.status_code == 200
        data = resp.json()
        assert [m["id"] for m in data] == ["adjectives"]
        assert data[0]["submodules"][0]["id"] == "declension"

    def test_modules_language_filter(self, test_app):
        client, _ = test_app
        assert client.get("/api/modules", params={"target_language": "French"}).json() == []

    def test_exercise_types(self, test_app):
        client, _ = test_app
        data = client.get("/api/exercise-types").json()
        by_id = {d["id"]: d for d in data}
        assert len(by_id) == 10
        assert by_id["identify-error"]["skill_type"] == "reading"
        assert by_id["correct-incorrect-sentence"]["ui_component"] == "WritingCorrectIncorrect"


class TestNext:
    def test_pick_only(self, test_app, modules):
        client, _ = test_app
        resp = client.post("/api/next", json={"module_id": "adjectives"})
        assert resp.status_code == 200
        pick = resp.json()
        sub = modules.get_submodule("adjectives", pick["submodule_id"])
        assert pick["exercise_type_id"] in sub.supported_exercise_type_ids

    def test_with_history(self, test_app):
        client, _ = test_app
        history = [{"exercise_type_id": "true-false", "is_correct": True, "submodule_id": "comparison"}]
        resp = client.post("/api/next", json={"module_id": "adjectives", "history": history})
        assert resp.status_code == 200

    def test_bad_history(self, test_app):
        client, _ = test_app
        resp = client.post("/api/next", json={"module_id": "adjectives", "history": [{"x": 1}]})
        assert resp.status_code == 400

    def test_missing_module_id(self, test_app):
        client, _ = test_app
        assert client.post("/api/next", json={}).status_code == 400

    def test_unknown_module(self, test_app):
        client, _ = test_app
        assert client.post("/api/next", json={"module_id": "nope"}).status_code == 404

    def test_wrong_language(self, test_app):
        client, _ = test_app
        resp = client.post("/api/next", json={"module_id": "adjectives", "target_language": "French"})
        assert resp.status_code == 404

    def test_pick_and_generate(self, test_app, provider, mc_question):
        client, engine = test_app
        with patch.object(engine.picker, "pick_next") as pick_next:
            pick_next.return_value = PickResult("declension", "multiple-choice")
            provider._responses = [mc_question]
            resp = client.post("/api/next", json={"module_id": "adjectives", "generate": True})
        assert resp.status_code == 200
        data = resp.json()
        assert data["exercise_type_id"] == "multiple-choice"
        assert data["question_data"]["options"][0] == "-en"


class TestGenerate:
    def test_generate(self, test_app, provider, mc_question):
        client, _ = test_app
        provider._responses = [mc_question]
        resp = client.post("/api/generate", json={
            "module_id": "adjectives",
            "submodule_id": "declension",
            "exercise_type_id": "multiple-choice",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["ui_component"] == "MultipleChoiceModal"
        assert "id" in data["question_data"]
        assert "trace" not in data

    def test_debug_includes_trace(self, test_app, provider, mc_question):
        client, _ = test_app
        provider._responses = [mc_question]
        data = client.post("/api/generate", json={
            "module_id": "adjectives",
            "submodule_id": "declension",
            "exercise_type_id": "multiple-choice",
            "debug": True,
        }).json()
        assert data["trace"]["stage1_attempts"] == 1

    def test_missing_fields(self, test_app):
        client, _ = test_app
        resp = client.post("/api/generate", json={"module_id": "adjectives"})
        assert resp.status_code == 400
        assert "submodule_id" in resp.json()["detail"]

    def test_unknown_submodule(self, test_app):
        client, _ = test_app
        resp = client.post("/api/generate", json={
            "module_id": "adjectives", "submodule_id": "nope", "exercise_type_id": "multiple-choice",
        })
        assert resp.status_code == 404

    def test_unsupported_type(self, test_app):
        client, _ = test_app
        resp = client.post("/api/generate", json={
            "module_id": "adjectives", "submodule_id": "declension", "exercise_type_id": "true-false",
        })
        assert resp.status_code == 422

    def test_generation_failed(self, test_app, provider):
        client, _ = test_app
        provider._responses = [GenerationError("model offline")]
        resp = client.post("/api/generate", json={
            "module_id": "adjectives", "submodule_id": "declension", "exercise_type_id": "multiple-choice",
        })
        assert resp.status_code == 502
        assert "3 attempts" in resp.json()["detail"]


class TestMark:
    def test_mark_returns_event(self, test_app, provider, mc_question):
        client, _ = test_app
        provider._responses = [GOOD_MARK]
        resp = client.post("/api/mark", json={
            "exercise_type_id": "multiple-choice",
            "question_data": mc_question,
            "user_answer": 1,
            "module_id": "adjectives",
            "submodule_id": "declension",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["marking_result"]["correct_answer"] == "-en"
        assert data["event"]["is_correct"] is False
        assert data["event"]["submodule_id"] == "declension"
        assert data["event"]["user_answer"] == 1

    def test_provider_failure_still_200(self, test_app, provider, mc_question):
        client, _ = test_app
        provider._responses = [GenerationError("down")]
        resp = client.post("/api/mark", json={
            "exercise_type_id": "multiple-choice", "question_data": mc_question, "user_answer": 0,
        })
        assert resp.status_code == 200
        assert resp.json()["marking_result"]["feedback"] == "Error during marking process."

    def test_unknown_type(self, test_app):
        client, _ = test_app
        resp = client.post("/api/mark", json={
            "exercise_type_id": "dictation", "question_data": {"a": 1}, "user_answer": "x",
        })
        assert resp.status_code == 404


class TestInjectErrors:
    def test_inject(self, test_app, provider, katze_structure_dict):
        client, _ = test_app
        provider._responses = [{"incorrect_word": "Der"}]
        resp = client.post("/api/inject-errors", json={
            "sentence_structure": katze_structure_dict,
            "allowed_error_types": ["ARTICLE_ENDING"],
            "max_errors": 1,
            "language": "German",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["presented_sentence"] == "Der Katze trinkt kalte Milch."
        assert data["errors_introduced"][0]["type"] == "ARTICLE_ENDING"

    def test_invalid_error_type(self, test_app, katze_structure_dict):
        client, _ = test_app
        resp = client.post("/api/inject-errors", json={
            "sentence_structure": katze_structure_dict,
            "allowed_error_types": ["SPELLING"],
        })
        assert resp.status_code == 400

    def test_invalid_structure(self, test_app):
        client, _ = test_app
        resp = client.post("/api/inject-errors", json={"sentence_structure": {"clauses": []}})
        assert resp.status_code == 400


class TestStatistics:
    def test_summary(self, test_app):
        client, _ = test_app
        events = [
            {"exercise_type_id": "true-false", "is_correct": True},
            {"exercise_type_id": "fill-in-gap", "is_correct": False},
        ]
        data = client.post("/api/statistics", json={"events": events}).json()
        assert data["overall"]["total"] == 2
        assert data["by_skill"]["reading"]["accuracy"] == 100
        assert data["levels"]["writing"] == "A1"

    def test_empty_body(self, test_app):
        client, _ = test_app
        data = client.post("/api/statistics").json()
        assert data["overall"]["total"] == 0


class TestImportVocab:
    def test_in_memory_store_rejected(self, test_app):
        client, _ = test_app
        assert client.post("/api/import-vocab").status_code == 400

    def test_import(self, test_app, tmp_path, vocab_md_content):
        client, engine = test_app
        vf = tmp_path / "german.md"
        vf.write_text(vocab_md_content)
        engine.vocabulary = SqliteVocabulary(tmp_path / "v.db")
        engine.settings.vocab_files = [str(vf), str(tmp_path / "missing.md")]
        try:
            data = client.post("/api/import-vocab", json={"language": "German"}).json()
            assert data == {"words_imported": 4, "total_words": 4}
            # Re-import replaces rather than duplicates
            data = client.post("/api/import-vocab", json={"language": "German"}).json()
            assert data["total_words"] == 4
        finally:
            engine.vocabulary.close()


class TestSettingsAPI:
    def test_get_settings(self, test_app):
        client, _ = test_app
        data = client.get("/api/settings").json()
        assert data["llm_provider"] == "ollama"
        assert "picker_strategy" in data

    def test_update_settings(self, test_app):
        client, engine = test_app
        resp = client.put("/api/settings", json={"picker_strategy": "accuracy", "bogus": 1})
        assert resp.status_code == 200
        assert resp.json()["picker_strategy"] == "accuracy"
        assert engine.picker.strategy_name == "accuracy"

    def test_unknown_strategy(self, test_app):
        client, _ = test_app
        resp = client.put("/api/settings", json={"picker_strategy": "spaced"})
        assert resp.status_code == 400
