"""
Cached scripture text, one entry per (book, chapter, translation).

Chapters arrive either from a Bible-text snapshot / combined backup or
from a spreadsheet via import_chapters_from_file. The chapter payload is
opaque to this module; spreadsheet imports produce

    {"verses": [{"verse": 1, "text": "..."}, ...]}
"""

from __future__ import annotations

from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .canon import resolve_book
from .db import KeyValueBackend
from .errors import CompanionError, PersistenceError
from .excel_import import iter_verses_from_file
from .model import BibleChapter
from .util import info, warn


class BibleTextStore:
    def __init__(self, backend: KeyValueBackend) -> None:
        self.backend = backend

    def save_chapter(self, book_id: str, chapter: int, translation: str, data: Any) -> BibleChapter:
        item = BibleChapter(book_id=book_id, chapter=chapter, translation=translation, data=data)
        self.backend.put(item.key, item.to_dict())
        return item

    def get_chapter(self, book_id: str, chapter: int, translation: str) -> Optional[Any]:
        """Chapter data, or None when the chapter is not cached."""
        key = BibleChapter(book_id, chapter, translation, None).key
        payload = self.backend.get(key)
        return payload["data"] if payload else None

    def has_chapter(self, book_id: str, chapter: int, translations: Optional[Iterable[str]] = None) -> bool:
        """
        True if the chapter is cached in any translation, or in every one of
        `translations` when given.
        """
        if translations is not None:
            return all(self.get_chapter(book_id, chapter, t) is not None for t in translations)
        return any(c.book_id == book_id and c.chapter == chapter for c in self.all_chapters())

    def all_chapters(self) -> List[BibleChapter]:
        chapters: List[BibleChapter] = []
        for payload in self.backend.get_all():
            try:
                chapters.append(BibleChapter.from_dict(payload))
            except CompanionError as e:
                raise PersistenceError(f"Stored chapter is unreadable: {e}") from e
        return chapters

    def clear(self) -> None:
        self.backend.clear()


def import_chapters_from_file(
    texts: BibleTextStore,
    path: Path,
    translation: str,
    sheet_name: Optional[str] = None,
    max_rows: Optional[int] = None,
) -> int:
    """
    Read verse rows from an Excel/CSV file and cache them as chapters.

    Rows whose book is not in the catalog are skipped with a warning.
    Returns the number of chapters saved.
    """
    translation = translation.strip().lower()
    info("=== IMPORT BIBLE TEXT ===")
    info(f"File        : {path}")
    info(f"Translation : {translation}")

    grouped: Dict[Tuple[str, int], Dict[int, str]] = defaultdict(dict)
    skipped = 0
    for row in iter_verses_from_file(path, sheet_name=sheet_name, max_rows=max_rows):
        book_id = resolve_book(row.book)
        if book_id is None:
            warn(f"Row {row.line}: could not resolve book {row.book!r}; skipping.")
            skipped += 1
            continue
        grouped[(book_id, row.chapter)][row.verse] = row.text

    for (book_id, chapter), verses in grouped.items():
        data = {"verses": [{"verse": v, "text": verses[v]} for v in sorted(verses)]}
        texts.save_chapter(book_id, chapter, translation, data)

    info(f"Saved {len(grouped)} chapter(s) for {translation!r}.")
    if skipped:
        info(f"Skipped {skipped} row(s) due to unknown books.")
    return len(grouped)
