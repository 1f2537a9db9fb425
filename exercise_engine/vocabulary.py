"""Vocabulary providers backing the Stage-2 rewrite."""
from __future__ import annotations

import random
import sqlite3
from pathlib import Path

from exercise_engine.models import VocabularyItem
from exercise_engine.providers.base import VocabularyProvider

SCHEMA = """
CREATE TABLE IF NOT EXISTS words (
    word TEXT NOT NULL,
    language TEXT NOT NULL,
    pos TEXT,
    definition TEXT NOT NULL DEFAULT '',
    section TEXT,
    source_file TEXT NOT NULL DEFAULT '',
    PRIMARY KEY (word, language)
);

CREATE INDEX IF NOT EXISTS idx_words_language ON words(language);
"""


class SqliteVocabulary(VocabularyProvider):
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    # ── Import ────────────────────────────────────────────────────────────

    def delete_words_by_source(self, source_file: str, language: str) -> int:
        """Remove all *language* words originally imported from *source_file*."""
        cur = self.conn.execute(
            "DELETE FROM words WHERE source_file = ? AND language = ?",
            (source_file, language),
        )
        self.conn.commit()
        return cur.rowcount

    def import_words(self, items: list[VocabularyItem]) -> int:
        count = 0
        for w in items:
            self.conn.execute(
                "INSERT OR REPLACE INTO words (word, language, pos, definition, section, source_file) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (w.word, w.language, w.pos, w.definition, w.section, w.source_file),
            )
            count += 1
        self.conn.commit()
        return count

    # ── Queries ───────────────────────────────────────────────────────────

    def get_word_count(self, language: str | None = None) -> int:
        if language is None:
            return self.conn.execute("SELECT COUNT(*) FROM words").fetchone()[0]
        return self.conn.execute(
            "SELECT COUNT(*) FROM words WHERE language = ?", (language,)
        ).fetchone()[0]

    def get_languages(self) -> list[str]:
        rows = self.conn.execute("SELECT DISTINCT language FROM words ORDER BY language").fetchall()
        return [r[0] for r in rows]

    def sample(self, language: str, limit: int = 1) -> list[VocabularyItem]:
        rows = self.conn.execute(
            "SELECT word, language, pos, definition, section, source_file FROM words "
            "WHERE language = ? ORDER BY RANDOM() LIMIT ?",
            (language, limit),
        ).fetchall()
        return [
            VocabularyItem(
                word=r["word"],
                language=r["language"],
                pos=r["pos"],
                definition=r["definition"] or "",
                section=r["section"] or "",
                source_file=r["source_file"] or "",
            )
            for r in rows
        ]


class InMemoryVocabulary(VocabularyProvider):
    def __init__(self, items: list[VocabularyItem] | None = None, rng: random.Random | None = None):
        self.items = list(items or [])
        self.rng = rng or random.Random()

    def sample(self, language: str, limit: int = 1) -> list[VocabularyItem]:
        pool = [i for i in self.items if i.language == language]
        return self.rng.sample(pool, min(limit, len(pool)))
