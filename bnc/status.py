"""
Status and data statistics for the Bible Notes Companion.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .bible_text import BibleTextStore
from .db import ping
from .store import VerseRecordStore
from .util import info, warn


@dataclass
class DataStats:
    personal_notes: int
    ai_research: int
    cached_chapters: int
    total_size: Optional[int] = None


def get_data_stats(
    store: VerseRecordStore,
    texts: Optional[BibleTextStore] = None,
    db_path: Optional[Path] = None,
) -> DataStats:
    """
    personal_notes  : records with a personal note
    ai_research     : research entries across all records
    cached_chapters : distinct (book, chapter) pairs, translations not counted separately
    total_size      : size of the database file in bytes, when known
    """
    records = store.scan_all()
    personal_notes = sum(1 for r in records if r.personal_note is not None)
    ai_research = sum(len(r.ai_research) for r in records)

    cached_chapters = 0
    if texts is not None:
        cached_chapters = len({(c.book_id, c.chapter) for c in texts.all_chapters()})

    total_size = None
    if db_path is not None and db_path.exists():
        total_size = db_path.stat().st_size

    return DataStats(
        personal_notes=personal_notes,
        ai_research=ai_research,
        cached_chapters=cached_chapters,
        total_size=total_size,
    )


def print_status(stats: DataStats, db_path: Optional[Path] = None) -> None:
    """
    Print a human-readable status report.
    """
    if db_path is not None:
        info(f"Database: {db_path}")
        if not ping(db_path):
            warn("Database not found or not readable.")
    if stats.total_size is not None:
        info(f"Database size: {stats.total_size / 1024:.1f} KiB")

    if not stats.personal_notes and not stats.ai_research:
        warn("No notes or research stored yet.")
    else:
        info(f"Personal notes : {stats.personal_notes}")
        info(f"AI research    : {stats.ai_research}")
    info(f"Cached chapters: {stats.cached_chapters}")
