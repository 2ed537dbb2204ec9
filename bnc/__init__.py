"""
bnc - Bible Notes Companion core package

This package contains the verse-keyed note store and its import/export:
- config: Project configuration and versioning
- paths: Path management and directory setup
- util: Console output and timestamp helpers
- model: Verse keys and record types
- store: The verse record store
- research: Research entry ids and tags
- snapshot: Portable export documents
- render / pdfgen: Human-readable exports
- reconcile: Merging imported data into the store
- bible_text: Cached scripture chapters
"""

from . import config
from .paths import PROJECT_ROOT, DB_PATH, ensure_basic_dirs
from .util import info, warn, ok
from .errors import CompanionError, ValidationError, FormatError, PersistenceError
from .model import VerseKey, PersonalNote, ResearchEntry, MediaAttachment, VerseRecord, BibleChapter, canonicalize
from .db import MemoryBackend, SqliteBackend
from .store import VerseRecordStore
from .research import ResearchDraft, ResearchManager, normalize_tags
from .bible_text import BibleTextStore
from .snapshot import serialize_notes, deserialize_notes
from .reconcile import Reconciler, Strategy, ImportReport, BackupImportReport

__version__ = config.__version__
__all__ = [
    "config",
    "PROJECT_ROOT",
    "DB_PATH",
    "ensure_basic_dirs",
    "info",
    "warn",
    "ok",
    "CompanionError",
    "ValidationError",
    "FormatError",
    "PersistenceError",
    "VerseKey",
    "PersonalNote",
    "ResearchEntry",
    "MediaAttachment",
    "VerseRecord",
    "BibleChapter",
    "canonicalize",
    "MemoryBackend",
    "SqliteBackend",
    "VerseRecordStore",
    "ResearchDraft",
    "ResearchManager",
    "normalize_tags",
    "BibleTextStore",
    "serialize_notes",
    "deserialize_notes",
    "Reconciler",
    "Strategy",
    "ImportReport",
    "BackupImportReport",
]
