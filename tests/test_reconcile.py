"""
Tests for merge strategies and backup import dispatch.
"""

import json
import threading
import unittest

from support import FailingBackend, FakeClock, entry, make_store, record

from bnc.bible_text import BibleTextStore
from bnc.db import MemoryBackend
from bnc.errors import FormatError, ValidationError
from bnc.model import BibleChapter
from bnc.reconcile import Reconciler, Strategy, combine, is_newer
from bnc.snapshot import serialize_backup, serialize_bible_texts, serialize_notes
from bnc.store import VerseRecordStore


def snapshot(store):
    return sorted((r.to_dict() for r in store.scan_all()), key=lambda d: d["id"])


class ReconcileCase(unittest.TestCase):
    def setUp(self):
        self.store, self.backend, self.clock = make_store()
        self.texts = BibleTextStore(MemoryBackend())
        self.reconciler = Reconciler(self.store, self.texts)
        # existing: newer note, one research entry
        self.store.put_record(record("john_3_16", note_text="mine", updated_at=200, research=[entry("r2")]))


class TestRecordRules(unittest.TestCase):
    def test_is_newer_is_strict(self):
        self.assertTrue(is_newer(record("john_3_16", "a", 2), record("john_3_16", "b", 1)))
        self.assertFalse(is_newer(record("john_3_16", "a", 1), record("john_3_16", "b", 1)))
        self.assertFalse(is_newer(record("john_3_16", research=[entry("r")]), record("john_3_16", "b", 1)))

    def test_combine_keeps_existing_order_and_first_seen(self):
        existing = record("john_3_16", research=[entry("b", query="old b"), entry("a")])
        incoming = record("john_3_16", research=[entry("a", query="new a"), entry("c"), entry("b", query="new b")])
        combined = combine(existing, incoming)
        self.assertEqual(combined.research_ids(), ["b", "a", "c"])
        self.assertEqual(combined.ai_research[0].query, "old b")

    def test_strategy_parse(self):
        self.assertIs(Strategy.parse("merge_newer"), Strategy.MERGE_NEWER)
        self.assertIs(Strategy.parse(Strategy.REPLACE), Strategy.REPLACE)
        with self.assertRaises(ValidationError):
            Strategy.parse("overwrite")


class TestStrategies(ReconcileCase):
    def test_merge_newer_skips_older_incoming(self):
        before = snapshot(self.store)
        incoming = record("john_3_16", note_text="theirs", updated_at=100, research=[entry("r1")])
        report = self.reconciler.merge([incoming], "merge_newer")
        self.assertEqual((report.imported, report.skipped, report.errors), (0, 1, []))
        self.assertEqual(snapshot(self.store), before)

    def test_merge_newer_takes_newer_incoming(self):
        incoming = record("john_3_16", note_text="theirs", updated_at=300, research=[entry("r1")])
        report = self.reconciler.merge([incoming], Strategy.MERGE_NEWER)
        self.assertEqual(report.imported, 1)
        stored = self.store.get("john_3_16")
        self.assertEqual(stored.personal_note.text, "theirs")
        self.assertEqual(stored.research_ids(), ["r1"])

    def test_merge_combine_unions_research(self):
        incoming = record("john_3_16", note_text="theirs", updated_at=100, research=[entry("r1"), entry("r2")])
        report = self.reconciler.merge([incoming], "merge_combine")
        self.assertEqual((report.imported, report.skipped), (1, 0))
        stored = self.store.get("john_3_16")
        self.assertEqual(stored.personal_note.text, "mine")
        self.assertEqual(stored.research_ids(), ["r2", "r1"])

    def test_merge_combine_is_idempotent(self):
        incoming = [
            record("john_3_16", note_text="theirs", updated_at=300, research=[entry("r1")]),
            record("genesis_1_1", research=[entry("g1")]),
        ]
        self.reconciler.merge(incoming, "merge_combine")
        once = snapshot(self.store)
        self.reconciler.merge(incoming, "merge_combine")
        self.assertEqual(snapshot(self.store), once)

    def test_skip_existing(self):
        before = snapshot(self.store)
        report = self.reconciler.merge(
            [record("john_3_16", note_text="theirs", updated_at=999), record("john_1_1", note_text="new")],
            "skip_existing",
        )
        self.assertEqual((report.imported, report.skipped), (1, 1))
        self.assertEqual(snapshot(self.store)[1:], before)
        self.assertEqual(self.store.get("john_1_1").personal_note.text, "new")

    def test_replace_overwrites_verbatim(self):
        incoming = record("john_3_16", research=[entry("r9", timestamp=42)])
        report = self.reconciler.merge([incoming], "replace")
        self.assertEqual(report.imported, 1)
        stored = self.store.get("john_3_16")
        self.assertIsNone(stored.personal_note)
        self.assertEqual(stored.research_ids(), ["r9"])
        self.assertEqual(stored.ai_research[0].timestamp, 42)

    def test_every_strategy_imports_new_keys(self):
        for strategy in Strategy:
            store = VerseRecordStore(MemoryBackend(), clock=FakeClock())
            report = Reconciler(store).merge([record("ruth_1_16", note_text="whither")], strategy)
            self.assertEqual(report.imported, 1, strategy)
            self.assertEqual(store.get("ruth_1_16").personal_note.text, "whither")

    def test_empty_incoming_record_is_skipped(self):
        report = self.reconciler.merge([record("john_1_1")], "replace")
        self.assertEqual((report.imported, report.skipped), (0, 1))
        self.assertIsNone(self.store.get("john_1_1"))

    def test_unknown_strategy_writes_nothing(self):
        before = snapshot(self.store)
        with self.assertRaises(ValidationError):
            self.reconciler.merge([record("john_1_1", note_text="x")], "newest")
        self.assertEqual(snapshot(self.store), before)


class TestFailuresAndCancellation(unittest.TestCase):
    def setUp(self):
        self.backend = FailingBackend()
        self.store = VerseRecordStore(self.backend, clock=FakeClock())
        self.reconciler = Reconciler(self.store)

    def test_one_failure_does_not_abort(self):
        self.backend.fail_keys = {"john_3_17"}
        records = [
            record("john_3_16", note_text="a"),
            record("john_3_17", note_text="b"),
            record("john_3_18", note_text="c"),
        ]
        report = self.reconciler.merge(records, "replace")
        self.assertEqual(report.imported, 2)
        self.assertEqual(len(report.errors), 1)
        self.assertIn("john_3_17", report.errors[0])
        self.assertFalse(report.success)
        self.assertIsNotNone(self.store.get("john_3_18"))

    def test_cancel_before_start(self):
        cancel = threading.Event()
        cancel.set()
        report = self.reconciler.merge([record("john_3_16", note_text="a")], "replace", cancel=cancel)
        self.assertTrue(report.cancelled)
        self.assertEqual(report.imported, 0)
        self.assertEqual(self.store.scan_all(), [])

    def test_cancel_midway_keeps_applied_records(self):
        cancel = threading.Event()

        def feed():
            yield record("john_3_16", note_text="a")
            cancel.set()
            yield record("john_3_17", note_text="b")

        report = self.reconciler.merge(feed(), "replace", cancel=cancel)
        self.assertTrue(report.cancelled)
        self.assertEqual(report.imported, 1)
        self.assertIsNotNone(self.store.get("john_3_16"))
        self.assertIsNone(self.store.get("john_3_17"))


class TestDocumentImport(ReconcileCase):
    def notes_doc(self, *records):
        return serialize_notes(records, device_id="device_1_x")

    def texts_doc(self):
        return serialize_bible_texts([BibleChapter("john", 3, "web", {"verses": [{"verse": 16, "text": "For God"}]})])

    def test_notes_document_with_malformed_record(self):
        doc = self.notes_doc(record("john_1_1", note_text="word"))
        doc["data"]["bad_key"] = {"bookId": "john"}
        report = self.reconciler.import_notes(doc, "merge_combine")
        self.assertEqual(report.imported, 1)
        self.assertEqual(len(report.errors), 1)
        self.assertIn("bad_key", report.errors[0])

    def test_backup_v2(self):
        notes = self.notes_doc(record("john_3_16", note_text="theirs", updated_at=100, research=[entry("r1")]))
        doc = serialize_backup(notes, self.texts_doc(), device_id="device_1_x")
        report = self.reconciler.import_backup(json.dumps(doc), "merge_combine")
        self.assertEqual((report.notes_imported, report.notes_skipped, report.chapters_imported), (1, 0, 1))
        self.assertTrue(report.success)
        self.assertEqual(self.store.get("john_3_16").research_ids(), ["r2", "r1"])
        self.assertEqual(self.texts.get_chapter("john", 3, "web")["verses"][0]["text"], "For God")

    def test_notes_only_v1(self):
        doc = self.notes_doc(record("john_1_1", note_text="word"))
        report = self.reconciler.import_backup(json.dumps(doc).encode("utf-8"), "skip_existing")
        self.assertEqual((report.notes_imported, report.chapters_imported), (1, 0))

    def test_texts_only_v1(self):
        report = self.reconciler.import_backup(self.texts_doc())
        self.assertEqual((report.notes_imported, report.chapters_imported), (0, 1))
        self.assertTrue(self.texts.has_chapter("john", 3))

    def test_texts_without_text_store(self):
        with self.assertRaises(ValidationError):
            Reconciler(self.store).import_backup(self.texts_doc())

    def test_unknown_version_leaves_store_untouched(self):
        before = snapshot(self.store)
        doc = self.notes_doc(record("john_1_1", note_text="word"))
        doc["version"] = "1.5"
        with self.assertRaises(FormatError):
            self.reconciler.import_backup(doc)
        self.assertEqual(snapshot(self.store), before)

    def test_bad_half_of_backup_writes_nothing(self):
        before = snapshot(self.store)
        notes = self.notes_doc(record("john_1_1", note_text="word"))
        texts = self.texts_doc()
        texts["version"] = "9.9"
        with self.assertRaises(FormatError):
            self.reconciler.import_backup(serialize_backup(notes, texts, device_id="d"))
        self.assertEqual(snapshot(self.store), before)
        self.assertEqual(self.texts.all_chapters(), [])

    def test_unparseable_text(self):
        with self.assertRaises(FormatError):
            self.reconciler.import_backup("{not json")
        with self.assertRaises(FormatError):
            self.reconciler.import_backup("[]")

    def test_undecodable_bytes_leave_store_untouched(self):
        before = snapshot(self.store)
        with self.assertRaises(FormatError):
            self.reconciler.import_backup(b'{"version": "1.0", "data": {"\xff": 1}}')
        self.assertEqual(snapshot(self.store), before)


if __name__ == "__main__":
    unittest.main()
