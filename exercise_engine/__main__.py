"""CLI entry point for exercise-engine.

Usage:
  python -m exercise_engine serve [--port PORT] [--host HOST]
  python -m exercise_engine modules [--language LANG]
  python -m exercise_engine types
  python -m exercise_engine pick MODULE [--count N] [--language LANG]
  python -m exercise_engine generate MODULE [--submodule ID] [--type ID] [--difficulty LEVEL]
  python -m exercise_engine import-vocab [--language LANG] [FILE ...]
"""
from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

from exercise_engine.errors import EngineError


def main():
    args = sys.argv[1:]
    command = args[0] if args else "serve"

    try:
        if command == "serve":
            _serve(args[1:])
        elif command == "modules":
            _modules(args[1:])
        elif command == "types":
            _types()
        elif command == "pick":
            _pick(args[1:])
        elif command == "generate":
            _generate(args[1:])
        elif command == "import-vocab":
            _import_vocab(args[1:])
        else:
            print(f"Unknown command: {command}")
            print("Commands: serve, modules, types, pick, generate, import-vocab")
            sys.exit(1)
    except EngineError as e:
        print(f"Error: {e}")
        sys.exit(1)


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _positional(args: list[str]) -> list[str]:
    """Arguments that are neither flags nor flag values."""
    out = []
    skip = False
    for a in args:
        if skip:
            skip = False
            continue
        if a.startswith("--"):
            skip = True
            continue
        out.append(a)
    return out


def _engine():
    from exercise_engine.config import load_settings
    from exercise_engine.engine import bootstrap
    return bootstrap(load_settings())


def _serve(args: list[str]):
    import uvicorn

    port = int(_parse_flag(args, "--port", "8766"))
    host = _parse_flag(args, "--host", "127.0.0.1")
    print(f"Starting Exercise Engine on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    uvicorn.run(
        "exercise_engine.app:app",
        host=host,
        port=port,
        reload=False,
        timeout_graceful_shutdown=5,
    )


def _modules(args: list[str]):
    language = _parse_flag(args, "--language", "") or None
    engine = _engine()
    try:
        for m in engine.modules.all():
            if engine.modules.get(m.id, language) is None:
                continue
            langs = ", ".join(m.supported_target_languages) or "any"
            print(f"{m.id}  ({m.title}; {langs})")
            for s in m.submodules:
                print(f"    {s.id:24s} {', '.join(s.supported_exercise_type_ids)}")
    finally:
        engine.close()


def _types():
    from exercise_engine.exercise_types import BUILTIN_TYPES

    for d in BUILTIN_TYPES:
        print(f"{d.id:30s} {d.skill_type.value:10s} {d.family:20s} {d.ui_component}")


def _pick(args: list[str]):
    pos = _positional(args)
    if not pos:
        print("Usage: pick MODULE [--count N] [--language LANG]")
        sys.exit(1)
    count = int(_parse_flag(args, "--count", "10"))
    language = _parse_flag(args, "--language", "") or None

    engine = _engine()
    try:
        for i in range(1, count + 1):
            pick = engine.picker.pick_next(pos[0], target_language=language)
            print(f"  [{i}] {pick.submodule_id:24s} {pick.exercise_type_id}")
    finally:
        engine.close()


def _generate(args: list[str]):
    pos = _positional(args)
    if not pos:
        print("Usage: generate MODULE [--submodule ID] [--type ID] [--difficulty LEVEL]")
        sys.exit(1)
    module_id = pos[0]

    engine = _engine()
    s = engine.settings
    try:
        submodule_id = _parse_flag(args, "--submodule", "")
        type_id = _parse_flag(args, "--type", "")
        if not submodule_id or not type_id:
            pick = engine.picker.pick_next(module_id, target_language=s.target_language)
            submodule_id = submodule_id or pick.submodule_id
            type_id = type_id or pick.exercise_type_id

        print(f"Generating {type_id} for {module_id}/{submodule_id} using {s.llm_provider}...")
        result = asyncio.run(engine.generator.generate(
            module_id=module_id,
            submodule_id=submodule_id,
            exercise_type_id=type_id,
            target_language=s.target_language,
            source_language=s.source_language,
            difficulty=_parse_flag(args, "--difficulty", s.default_difficulty),
        ))
        print(f"UI component: {result.ui_component}")
        print(json.dumps(result.question_data, indent=2, ensure_ascii=False))
    finally:
        engine.close()


def _import_vocab(args: list[str]):
    from exercise_engine.config import load_settings
    from exercise_engine.parsers.vocabulary_parser import parse_vocabulary_file
    from exercise_engine.vocabulary import SqliteVocabulary

    settings = load_settings()
    language = _parse_flag(args, "--language", settings.target_language)
    files = [Path(p) for p in _positional(args)] or settings.resolved_vocab_files()
    vocab = SqliteVocabulary(settings.vocab_db_full_path)

    total = 0
    for vf in files:
        if not vf.exists():
            print(f"  Skipping (not found): {vf}")
            continue
        print(f"  Parsing: {vf.name}")
        vocab.delete_words_by_source(vf.name, language)
        n = vocab.import_words(parse_vocabulary_file(vf, language))
        total += n
        print(f"    {n} words")

    print(f"\nImported {total} words; {vocab.get_word_count(language)} {language} words in DB")
    vocab.close()


if __name__ == "__main__":
    main()
