"""
Reconciliation of imported data with the live store.

For every incoming record the existing record at the same key is looked
up and the chosen strategy decides the outcome:

    strategy        no existing   existing present
    replace         import        overwrite with incoming
    merge_newer     import        import only if incoming note is strictly newer, else skip
    merge_combine   import        newer note + existing research + unseen incoming research
    skip_existing   import        skip

Incoming records are written verbatim (research ids and note timestamps
are kept), so running the same import twice leaves the store as the
first run left it.

One failing record never aborts an import: the failure is collected in
`errors` and processing moves on. Document-level problems (unknown
version, unparseable text) raise FormatError before anything is written.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Optional, Union

from . import config
from .bible_text import BibleTextStore
from .errors import FormatError, ValidationError
from .model import BibleChapter, PersonalNote, VerseRecord
from .snapshot import check_notes_document, check_text_document, loads
from .store import VerseRecordStore
from .util import info, warn


class Strategy(str, Enum):
    REPLACE = "replace"
    MERGE_NEWER = "merge_newer"
    MERGE_COMBINE = "merge_combine"
    SKIP_EXISTING = "skip_existing"

    @classmethod
    def parse(cls, value: Union["Strategy", str]) -> "Strategy":
        try:
            return cls(value)
        except ValueError:
            names = ", ".join(s.value for s in cls)
            raise ValidationError(f"Unknown merge strategy {value!r} (expected one of: {names})") from None


@dataclass
class ImportReport:
    imported: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class TextImportReport:
    imported: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class BackupImportReport:
    notes_imported: int = 0
    notes_skipped: int = 0
    chapters_imported: int = 0
    errors: List[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return not self.errors


# ---------- record-level rules ----------


def note_time(record: Optional[VerseRecord]) -> int:
    """updatedAt of the record's note; an absent note counts as 0."""
    if record is None or record.personal_note is None:
        return 0
    return record.personal_note.updated_at


def is_newer(incoming: VerseRecord, existing: VerseRecord) -> bool:
    return note_time(incoming) > note_time(existing)


def pick_note(existing: VerseRecord, incoming: VerseRecord) -> Optional[PersonalNote]:
    """Incoming note only when strictly newer; ties keep the existing note."""
    return incoming.personal_note if is_newer(incoming, existing) else existing.personal_note


def combine(existing: VerseRecord, incoming: VerseRecord) -> VerseRecord:
    """
    Combined record for merge_combine: the newer note, then existing
    research in its current order followed by incoming entries whose id
    is not already present (first seen wins).
    """
    research = list(existing.ai_research)
    seen = {r.id for r in research}
    for entry in incoming.ai_research:
        if entry.id not in seen:
            seen.add(entry.id)
            research.append(entry)
    return VerseRecord(key=existing.key, personal_note=pick_note(existing, incoming), ai_research=research)


# ---------- engine ----------


class Reconciler:
    def __init__(self, store: VerseRecordStore, texts: Optional[BibleTextStore] = None) -> None:
        self.store = store
        self.texts = texts

    def merge(
        self,
        records: Iterable[VerseRecord],
        strategy: Union[Strategy, str] = config.DEFAULT_STRATEGY,
        cancel: Optional[threading.Event] = None,
    ) -> ImportReport:
        """
        Merge incoming records into the store.

        `cancel` is checked before each record; once set, the remaining
        records are left untouched and the report is marked cancelled.
        """
        strategy = Strategy.parse(strategy)
        report = ImportReport()
        for record in records:
            if cancel is not None and cancel.is_set():
                report.cancelled = True
                warn(f"Import cancelled after {report.imported + report.skipped} record(s).")
                break
            try:
                if self._merge_one(record, strategy):
                    report.imported += 1
                else:
                    report.skipped += 1
            except Exception as e:
                report.errors.append(f"Failed to import {record.id}: {e}")
        return report

    def _merge_one(self, incoming: VerseRecord, strategy: Strategy) -> bool:
        """Apply one record; True if it was imported, False if skipped."""
        if incoming.is_empty():
            return False

        with self.store.locked(incoming.key):
            existing = self.store.get(incoming.key)

            if existing is None or strategy is Strategy.REPLACE:
                self.store.put_record(incoming)
                return True

            if strategy is Strategy.SKIP_EXISTING:
                return False

            if strategy is Strategy.MERGE_NEWER:
                if not is_newer(incoming, existing):
                    return False
                self.store.put_record(incoming)
                return True

            self.store.put_record(combine(existing, incoming))
            return True

    # ---------- documents ----------

    def import_notes(
        self,
        doc: Any,
        strategy: Union[Strategy, str] = config.DEFAULT_STRATEGY,
        cancel: Optional[threading.Event] = None,
    ) -> ImportReport:
        """
        Import a notes snapshot (version "1.0" with `data`).

        A record that does not parse is reported in `errors` under its
        key in the document; the others are still imported.
        """
        strategy = Strategy.parse(strategy)
        data = check_notes_document(doc)

        records: List[VerseRecord] = []
        parse_errors: List[str] = []
        for key, raw in data.items():
            try:
                records.append(VerseRecord.from_dict(raw))
            except Exception as e:
                parse_errors.append(f"Failed to import {key}: {e}")

        report = self.merge(records, strategy, cancel=cancel)
        report.errors = parse_errors + report.errors
        info(f"Notes import: imported={report.imported}, skipped={report.skipped}, errors={len(report.errors)}")
        return report

    def import_bible_texts(self, doc: Any) -> TextImportReport:
        """Import a Bible-text snapshot (version "1.0" with `chapters`)."""
        chapters = check_text_document(doc)
        if self.texts is None:
            raise ValidationError("No Bible text store configured for this import")

        report = TextImportReport()
        for idx, raw in enumerate(chapters):
            try:
                chapter = BibleChapter.from_dict(raw)
                self.texts.save_chapter(chapter.book_id, chapter.chapter, chapter.translation, chapter.data)
                report.imported += 1
            except Exception as e:
                label = _chapter_label(raw, idx)
                report.errors.append(f"Failed to import {label}: {e}")
        info(f"Bible text import: imported={report.imported}, errors={len(report.errors)}")
        return report

    def import_backup(
        self,
        raw: Union[str, bytes, dict],
        strategy: Union[Strategy, str] = config.DEFAULT_STRATEGY,
        cancel: Optional[threading.Event] = None,
    ) -> BackupImportReport:
        """
        Detect the document shape and import it.

        - version "2.0"                 : combined notes + Bible texts
        - version "1.0" with `data`     : notes only
        - version "1.0" with `chapters` : Bible texts only

        Anything else raises FormatError with nothing written.
        """
        strategy = Strategy.parse(strategy)
        doc = raw if isinstance(raw, dict) else loads(raw)
        version = doc.get("version")

        if version == config.BACKUP_VERSION:
            notes_doc = doc.get("notes")
            texts_doc = doc.get("bibleTexts")
            # both halves are checked before either is written
            check_notes_document(notes_doc)
            check_text_document(texts_doc)
            self._require_texts()
            notes = self.import_notes(notes_doc, strategy, cancel=cancel)
            texts = self.import_bible_texts(texts_doc) if not notes.cancelled else TextImportReport()
            return BackupImportReport(
                notes_imported=notes.imported,
                notes_skipped=notes.skipped,
                chapters_imported=texts.imported,
                errors=notes.errors + texts.errors,
                cancelled=notes.cancelled,
            )

        if version == config.NOTES_SNAPSHOT_VERSION and "data" in doc:
            notes = self.import_notes(doc, strategy, cancel=cancel)
            return BackupImportReport(
                notes_imported=notes.imported,
                notes_skipped=notes.skipped,
                errors=notes.errors,
                cancelled=notes.cancelled,
            )

        if version == config.TEXT_SNAPSHOT_VERSION and "chapters" in doc:
            self._require_texts()
            texts = self.import_bible_texts(doc)
            return BackupImportReport(chapters_imported=texts.imported, errors=texts.errors)

        raise FormatError(f"Unrecognized backup format (version={version!r})")

    def _require_texts(self) -> None:
        if self.texts is None:
            raise ValidationError("No Bible text store configured for this import")


def _chapter_label(raw: Any, idx: int) -> str:
    if isinstance(raw, dict):
        return f"{raw.get('bookId')} {raw.get('chapter')} ({raw.get('translation')})"
    return f"chapter #{idx}"
