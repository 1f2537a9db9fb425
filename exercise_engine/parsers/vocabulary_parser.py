"""Parse a markdown vocabulary list into VocabularyItem objects.

Table rows with a bold first column are words:
  | **Hund** | dog | NOUN |      (third column, part of speech, optional)
  | **schnell** | fast |

Section headers (``## Animals``) are kept as the item's section.
"""
from __future__ import annotations

import re
from pathlib import Path

from exercise_engine.models import VocabularyItem


def parse_vocabulary_file(path: Path, language: str) -> list[VocabularyItem]:
    text = path.read_text(encoding="utf-8")
    source = path.name
    items: list[VocabularyItem] = []
    current_section = "Unknown"

    for line in text.splitlines():
        m = re.match(r"^## (.+)", line)
        if m:
            current_section = m.group(1).strip()
            continue

        if not line.startswith("|"):
            continue

        cells = [c.strip() for c in line.strip().strip("|").split("|")]
        if len(cells) < 2:
            continue
        m = re.fullmatch(r"\*\*(.+?)\*\*", cells[0])
        if not m:
            continue
        pos = cells[2].upper() if len(cells) > 2 and cells[2] else None
        items.append(VocabularyItem(
            word=m.group(1).strip(),
            language=language,
            pos=pos,
            definition=cells[1],
            section=current_section,
            source_file=source,
        ))

    return items
