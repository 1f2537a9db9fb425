"""FastAPI application with all routes."""
from __future__ import annotations

import logging
from dataclasses import asdict

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, HTTPException, Request

from exercise_engine.config import Settings, load_settings, save_settings
from exercise_engine.engine import Engine, bootstrap
from exercise_engine.errors import (
    ConfigurationError,
    GenerationFailed,
    NoAvailableExerciseTypes,
    UnsupportedExerciseType,
)
from exercise_engine.grammar import SentenceStructure
from exercise_engine.marking import MarkingScope
from exercise_engine.models import ErrorType, SessionEvent
from exercise_engine.parsers.vocabulary_parser import parse_vocabulary_file
from exercise_engine.statistics import summarize
from exercise_engine.vocabulary import SqliteVocabulary

app = FastAPI(title="Exercise Engine")

# Global state (initialized in startup)
_engine: Engine | None = None

_log = logging.getLogger("exercise_engine.app")


def get_engine() -> Engine:
    assert _engine is not None
    return _engine


def get_settings() -> Settings:
    return get_engine().settings


@app.on_event("startup")
async def startup():
    global _engine
    if _engine is not None:
        return  # Already initialized (e.g. by tests)
    _engine = bootstrap(load_settings())


@app.on_event("shutdown")
async def shutdown():
    if _engine:
        _engine.close()


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, (UnsupportedExerciseType, NoAvailableExerciseTypes)):
        return HTTPException(422, str(e))
    if isinstance(e, ConfigurationError):
        return HTTPException(404, str(e))
    if isinstance(e, GenerationFailed):
        return HTTPException(502, str(e))
    return HTTPException(500, str(e))


def _require(body: dict, *keys: str) -> None:
    missing = [k for k in keys if not body.get(k)]
    if missing:
        raise HTTPException(400, f"Missing field(s): {', '.join(missing)}")


async def _json_body(request: Request) -> dict:
    return await request.json() if await request.body() else {}


# ── API: Catalog ──────────────────────────────────────────────────────────

@app.get("/api/modules")
async def api_modules(target_language: str | None = None):
    engine = get_engine()
    out = []
    for m in engine.modules.all():
        if engine.modules.get(m.id, target_language) is None:
            continue
        out.append({
            "id": m.id,
            "title": m.title,
            "primary_task": m.primary_task,
            "supported_target_languages": m.supported_target_languages,
            "submodules": [
                {
                    "id": s.id,
                    "title": s.title,
                    "supported_exercise_type_ids": s.supported_exercise_type_ids,
                }
                for s in m.submodules
            ],
        })
    return out


@app.get("/api/exercise-types")
async def api_exercise_types():
    return [
        {
            "id": d.id,
            "family": d.family,
            "skill_type": d.skill_type.value,
            "title": d.title,
            "ui_component": d.ui_component,
        }
        for d in get_engine().schemas.all()
    ]


# ── API: Pick / generate / mark ───────────────────────────────────────────

async def _generate(engine: Engine, body: dict, submodule_id: str, exercise_type_id: str) -> dict:
    s = engine.settings
    try:
        result = await engine.generator.generate(
            module_id=body["module_id"],
            submodule_id=submodule_id,
            exercise_type_id=exercise_type_id,
            target_language=body.get("target_language") or s.target_language,
            source_language=body.get("source_language") or s.source_language,
            difficulty=body.get("difficulty") or s.default_difficulty,
        )
    except (ConfigurationError, GenerationFailed) as e:
        raise _http_error(e) from e
    response = {
        "module_id": body["module_id"],
        "submodule_id": submodule_id,
        "exercise_type_id": exercise_type_id,
        "ui_component": result.ui_component,
        "question_data": result.question_data,
    }
    if body.get("debug") and result.trace is not None:
        response["trace"] = asdict(result.trace)
    return response


@app.post("/api/next")
async def api_next(request: Request):
    """Pick the next exercise; with ``"generate": true`` also generate it."""
    body = await _json_body(request)
    _require(body, "module_id")
    engine = get_engine()

    try:
        history = [SessionEvent.from_dict(e) for e in body.get("history") or []]
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(400, f"Invalid history: {e}") from e

    try:
        pick = engine.picker.pick_next(
            body["module_id"],
            history=history,
            target_language=body.get("target_language"),
        )
    except ConfigurationError as e:
        raise _http_error(e) from e

    if not body.get("generate"):
        return {"submodule_id": pick.submodule_id, "exercise_type_id": pick.exercise_type_id}
    return await _generate(engine, body, pick.submodule_id, pick.exercise_type_id)


@app.post("/api/generate")
async def api_generate(request: Request):
    body = await _json_body(request)
    _require(body, "module_id", "submodule_id", "exercise_type_id")
    return await _generate(get_engine(), body, body["submodule_id"], body["exercise_type_id"])


@app.post("/api/mark")
async def api_mark(request: Request):
    body = await _json_body(request)
    _require(body, "exercise_type_id", "question_data")
    engine = get_engine()

    scope = MarkingScope(
        module_id=body.get("module_id"),
        submodule_id=body.get("submodule_id"),
        target_language=body.get("target_language") or engine.settings.target_language,
    )
    try:
        result = await engine.marker.mark(
            body["exercise_type_id"], body["question_data"], body.get("user_answer"), scope,
        )
    except ConfigurationError as e:
        raise _http_error(e) from e

    event = SessionEvent.from_marking(
        submodule_id=body.get("submodule_id") or "",
        exercise_type_id=body["exercise_type_id"],
        question_data=body["question_data"],
        user_answer=body.get("user_answer"),
        marking_result=result,
    )
    return {"marking_result": result.model_dump(), "event": event.to_dict()}


@app.post("/api/inject-errors")
async def api_inject_errors(request: Request):
    body = await _json_body(request)
    _require(body, "sentence_structure")
    engine = get_engine()
    try:
        structure = SentenceStructure.model_validate(body["sentence_structure"])
        allowed = body.get("allowed_error_types")
        allowed = [ErrorType(t) for t in allowed] if allowed is not None else None
    except ValueError as e:
        raise HTTPException(400, f"Invalid request: {e}") from e

    max_errors = body.get("max_errors", engine.settings.default_max_errors)
    result = await engine.injector.inject_errors(
        structure, allowed, int(max_errors),
        body.get("language") or engine.settings.target_language,
    )
    return {
        "modified_structure": result.modified_structure.model_dump(),
        "presented_sentence": result.presented_sentence,
        "errors_introduced": [e.to_dict() for e in result.errors_introduced],
    }


# ── API: Statistics ───────────────────────────────────────────────────────

@app.post("/api/statistics")
async def api_statistics(request: Request):
    body = await _json_body(request)
    try:
        events = [SessionEvent.from_dict(e) for e in body.get("events") or []]
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(400, f"Invalid events: {e}") from e
    return summarize(events, get_engine().schemas).to_dict()


# ── API: Vocabulary ───────────────────────────────────────────────────────

@app.post("/api/import-vocab")
async def api_import_vocab(request: Request):
    body = await _json_body(request)
    engine = get_engine()
    vocab = engine.vocabulary
    if not isinstance(vocab, SqliteVocabulary):
        raise HTTPException(400, "Vocabulary store does not support import")
    language = body.get("language") or engine.settings.target_language

    total = 0
    for vf in engine.settings.resolved_vocab_files():
        if not vf.exists():
            _log.warning("Vocabulary file not found: %s", vf)
            continue
        vocab.delete_words_by_source(vf.name, language)
        total += vocab.import_words(parse_vocabulary_file(vf, language))
    return {"words_imported": total, "total_words": vocab.get_word_count(language)}


# ── API: Settings ─────────────────────────────────────────────────────────

@app.get("/api/settings")
async def api_get_settings():
    return get_settings().to_dict()


@app.put("/api/settings")
async def api_update_settings(request: Request):
    body = await request.json()
    s = get_settings()
    if "picker_strategy" in body:
        try:
            get_engine().picker.set_strategy(body["picker_strategy"])
        except ValueError as e:
            raise HTTPException(400, str(e)) from e
    known = {f.name for f in Settings.__dataclass_fields__.values()}
    for k, v in body.items():
        if k in known:
            setattr(s, k, v)
    save_settings(s)
    return s.to_dict()
