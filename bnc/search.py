"""
Whole-store search over personal notes and research entries.

Both searches are case-insensitive substring matches over a full scan of
the store; results are in catalog order (book, chapter, first verse).
"""

from __future__ import annotations

from typing import List

from .canon import book_order
from .model import VerseRecord
from .render import html_to_text, reference_label
from .store import VerseRecordStore
from .util import info


def _sorted(records: List[VerseRecord]) -> List[VerseRecord]:
    return sorted(records, key=lambda r: (book_order(r.book_id), r.chapter, r.key.first_verse))


def search_notes(store: VerseRecordStore, query: str) -> List[VerseRecord]:
    """Records whose personal note text contains `query`."""
    term = query.strip().lower()
    if not term:
        return []
    return _sorted([
        r for r in store.scan_all()
        if r.personal_note is not None and term in r.personal_note.text.lower()
    ])


def search_research(store: VerseRecordStore, query: str) -> List[VerseRecord]:
    """Records with a research entry whose query, response or a tag contains `query`."""
    term = query.strip().lower()
    if not term:
        return []

    def matches(record: VerseRecord) -> bool:
        return any(
            term in r.query.lower()
            or term in r.response.lower()
            or any(term in tag.lower() for tag in (r.tags or []))
            for r in record.ai_research
        )

    return _sorted([r for r in store.scan_all() if matches(r)])


def print_search_results(records: List[VerseRecord]) -> None:
    """
    Pretty-print matching records to the console.
    """
    if not records:
        info("No results.")
        return

    for record in records:
        print(f"[{record.id}] {reference_label(record)}")
        if record.personal_note is not None:
            print(f"    note: {html_to_text(record.personal_note.text)}")
        for research in record.ai_research:
            print(f"    Q ({research.id}): {research.query}")
        print()
