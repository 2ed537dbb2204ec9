"""
The verse record store.

VerseRecordStore maps a VerseKey to at most one VerseRecord and keeps the
store sparse: a record that ends up with no personal note and no research
entries is deleted, never persisted empty.

Every read-modify-write on a key runs under that key's lock, so two
callers editing the same verse can not lose each other's update.
Backend failures surface as PersistenceError.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Union

from .db import KeyValueBackend
from .errors import CompanionError, PersistenceError
from .model import PersonalNote, VerseKey, VerseRecord
from .research import ResearchDraft, ResearchManager
from .util import info, now_ms

KeyLike = Union[VerseKey, str]


def _as_key(key: KeyLike) -> VerseKey:
    return key if isinstance(key, VerseKey) else VerseKey.parse(key)


@dataclass
class _KeyLock:
    lock: threading.RLock = field(default_factory=threading.RLock)
    users: int = 0  # holders plus waiters


class VerseRecordStore:
    def __init__(
        self,
        backend: KeyValueBackend,
        clock: Callable[[], int] = now_ms,
        research: Optional[ResearchManager] = None,
    ) -> None:
        self.backend = backend
        self.clock = clock
        self.research = research or ResearchManager(clock)
        self._guard = threading.Lock()
        self._locks: Dict[str, _KeyLock] = {}

    # ---------- locking ----------

    @contextmanager
    def locked(self, key: KeyLike) -> Iterator[VerseKey]:
        """
        Hold the per-key lock for a read-modify-write unit.

        The lock is re-entrant, so store operations may be called while
        it is held. A key's lock is dropped once no caller holds or waits
        for it, so the table only holds keys currently in use.
        """
        vkey = _as_key(key)
        with self._guard:
            entry = self._locks.get(vkey.key)
            if entry is None:
                entry = self._locks[vkey.key] = _KeyLock()
            entry.users += 1
        try:
            with entry.lock:
                yield vkey
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[vkey.key]

    # ---------- internal helpers ----------

    def _load(self, vkey: VerseKey) -> Optional[VerseRecord]:
        payload = self.backend.get(vkey.key)
        if payload is None:
            return None
        try:
            return VerseRecord.from_dict(payload)
        except CompanionError as e:
            raise PersistenceError(f"Stored record {vkey.key!r} is unreadable: {e}") from e

    def _get_or_create(self, vkey: VerseKey) -> VerseRecord:
        """The single place a new record comes into existence."""
        record = self._load(vkey)
        if record is None:
            record = VerseRecord(key=vkey)
        return record

    def _persist(self, record: VerseRecord) -> None:
        """Write the record, or delete its key if it has become empty."""
        if record.is_empty():
            self.backend.delete(record.id)
        else:
            self.backend.put(record.id, record.to_dict())

    # ---------- queries ----------

    def get(self, key: KeyLike) -> Optional[VerseRecord]:
        """Point lookup; None when nothing is stored for the key."""
        return self._load(_as_key(key))

    def scan_all(self) -> List[VerseRecord]:
        """Materialize every record (unordered). Used by export and search."""
        records: List[VerseRecord] = []
        for payload in self.backend.get_all():
            try:
                records.append(VerseRecord.from_dict(payload))
            except CompanionError as e:
                label = payload.get("id") if isinstance(payload, dict) else payload
                raise PersistenceError(f"Stored record {label!r} is unreadable: {e}") from e
        return records

    def get_chapter_records(self, book_id: str, chapter: int) -> List[VerseRecord]:
        return [r for r in self.scan_all() if r.book_id == book_id and r.chapter == chapter]

    def get_book_records(self, book_id: str) -> List[VerseRecord]:
        return [r for r in self.scan_all() if r.book_id == book_id]

    # ---------- personal notes ----------

    def save_note(self, key: KeyLike, note: PersonalNote) -> PersonalNote:
        """
        Replace the personal note for a key.

        updatedAt is stamped with the current time; createdAt is kept from
        the note already stored, if any. Returns the note as stored.
        """
        with self.locked(key) as vkey:
            record = self._get_or_create(vkey)
            now = self.clock()
            if record.personal_note is not None:
                created_at = record.personal_note.created_at
            else:
                created_at = note.created_at or now
            stored = PersonalNote(
                text=note.text,
                created_at=min(created_at, now),
                updated_at=now,
                drawing=note.drawing,
                media=list(note.media) if note.media is not None else None,
            )
            record.personal_note = stored
            self._persist(record)
            return stored

    def delete_note(self, key: KeyLike) -> None:
        """Remove the personal note; a missing key is a no-op."""
        with self.locked(key) as vkey:
            record = self._load(vkey)
            if record is None or record.personal_note is None:
                return
            record.personal_note = None
            self._persist(record)

    # ---------- research ----------

    def add_research(self, key: KeyLike, draft: ResearchDraft) -> str:
        """Append a new research entry and return its id."""
        with self.locked(key) as vkey:
            record = self._get_or_create(vkey)
            entry = self.research.build_entry(draft, existing_ids=set(record.research_ids()))
            record.ai_research.append(entry)
            self._persist(record)
            return entry.id

    def delete_research(self, key: KeyLike, entry_id: str) -> None:
        """Remove the research entry with this id; missing key or id is a no-op."""
        with self.locked(key) as vkey:
            record = self._load(vkey)
            if record is None:
                return
            remaining = [r for r in record.ai_research if r.id != entry_id]
            if len(remaining) == len(record.ai_research):
                return
            record.ai_research = remaining
            self._persist(record)

    # ---------- whole records ----------

    def put_record(self, record: VerseRecord) -> None:
        """
        Store a record verbatim (ids and timestamps untouched).

        An empty record deletes whatever is stored under its key.
        """
        with self.locked(record.key):
            self._persist(record)

    def clear(self) -> None:
        """Remove every record (idempotent)."""
        with self._guard:
            self.backend.clear()

    # ---------- legacy data ----------

    def migrate_legacy_notes(self, old_notes: Mapping[str, str]) -> int:
        """
        Import notes from the old flat format { "book:chapter:verse": text }.

        Keys that already hold a personal note are left alone. Returns the
        number of notes migrated.
        """
        migrated = 0
        for old_key, content in old_notes.items():
            parts = old_key.split(":")
            if len(parts) < 3:
                info(f"Skipping legacy note with unrecognized key {old_key!r}")
                continue
            try:
                vkey = VerseKey(parts[0], int(parts[1]), [int(parts[2])])
            except ValueError:
                info(f"Skipping legacy note with unrecognized key {old_key!r}")
                continue

            with self.locked(vkey):
                existing = self._load(vkey)
                if existing is not None and existing.personal_note is not None:
                    continue
                now = self.clock()
                self.save_note(vkey, PersonalNote(text=content, created_at=now, updated_at=now))
            migrated += 1
        return migrated
