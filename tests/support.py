"""
Shared fixtures for the test suite.
"""

import sys
from pathlib import Path

# Make the project root importable when running from a checkout
sys.path.insert(0, str(Path(__file__).parent.parent))

from bnc.db import MemoryBackend
from bnc.errors import PersistenceError
from bnc.model import PersonalNote, ResearchEntry, VerseKey, VerseRecord
from bnc.store import VerseRecordStore


class FakeClock:
    """Deterministic millisecond clock; every call advances by `step`."""

    def __init__(self, start: int = 1_000, step: int = 1) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value


class FailingBackend(MemoryBackend):
    """Memory backend whose writes (or reads) fail on demand."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_writes = False
        self.fail_reads = False
        self.fail_keys = set()

    def get(self, key):
        if self.fail_reads:
            raise PersistenceError(f"read failed for {key}")
        return super().get(key)

    def put(self, key, payload):
        if self.fail_writes or key in self.fail_keys:
            raise PersistenceError(f"write failed for {key}")
        super().put(key, payload)


def make_store(start: int = 1_000):
    clock = FakeClock(start)
    backend = MemoryBackend()
    return VerseRecordStore(backend, clock=clock), backend, clock


def entry(entry_id: str, query: str = "q", timestamp: int = 1) -> ResearchEntry:
    return ResearchEntry(id=entry_id, query=query, response=f"answer to {query}", timestamp=timestamp)


def record(key: str, note_text=None, updated_at: int = 0, research=()) -> VerseRecord:
    note = None
    if note_text is not None:
        note = PersonalNote(text=note_text, created_at=min(updated_at, 1), updated_at=updated_at)
    return VerseRecord(key=VerseKey.parse(key), personal_note=note, ai_research=list(research))
