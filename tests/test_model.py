"""
Tests for verse keys, record wire forms and reference parsing.
"""

import itertools
import unittest

import support  # noqa: F401

from bnc.canon import book_name, load_canon, resolve_book, require_book
from bnc.errors import FormatError, ValidationError
from bnc.model import (
    BibleChapter,
    MediaAttachment,
    PersonalNote,
    ResearchEntry,
    VerseKey,
    VerseRecord,
    canonicalize,
)
from bnc.reference import format_verse_label, parse_reference, parse_verse_list


class TestCanonicalize(unittest.TestCase):
    """Key construction and normalization."""

    def test_single_verse(self):
        self.assertEqual(canonicalize("john", 3, [16]), "john_3_16")

    def test_permutations_give_same_key(self):
        verses = [18, 16, 17]
        keys = {canonicalize("john", 3, list(p)) for p in itertools.permutations(verses)}
        self.assertEqual(keys, {"john_3_16_17_18"})

    def test_duplicates_collapse(self):
        self.assertEqual(canonicalize("john", 3, [16, 16, 17]), "john_3_16_17")

    def test_numeric_sort_not_lexical(self):
        self.assertEqual(canonicalize("psalms", 119, [105, 9, 10]), "psalms_119_9_10_105")

    def test_invalid_inputs(self):
        with self.assertRaises(ValidationError):
            canonicalize("john", 0, [1])
        with self.assertRaises(ValidationError):
            canonicalize("john", 3, [])
        with self.assertRaises(ValidationError):
            canonicalize("john", 3, [0])
        with self.assertRaises(ValidationError):
            canonicalize("john", 3, [-2])
        with self.assertRaises(ValidationError):
            canonicalize("", 3, [1])
        with self.assertRaises(ValidationError):
            canonicalize("song_of", 3, [1])
        with self.assertRaises(ValidationError):
            canonicalize("john", True, [1])

    def test_parse_inverts_key(self):
        key = VerseKey.parse("1john_1_9_10")
        self.assertEqual(key.book_id, "1john")
        self.assertEqual(key.chapter, 1)
        self.assertEqual(key.verses, (9, 10))
        self.assertEqual(key, VerseKey("1john", 1, [10, 9]))

    def test_parse_rejects_garbage(self):
        for bad in ("john", "john_3", "john_x_1", "john_3_a"):
            with self.assertRaises(ValidationError):
                VerseKey.parse(bad)

    def test_key_is_hashable(self):
        self.assertEqual(len({VerseKey("john", 3, [16, 17]), VerseKey("john", 3, [17, 16])}), 1)


class TestWireForm(unittest.TestCase):
    """to_dict / from_dict of the record types."""

    def _full_record(self):
        note = PersonalNote(
            text="<p>God <b>so</b> loved</p>",
            created_at=10,
            updated_at=20,
            drawing="data:image/png;base64,AAAA",
            media=[MediaAttachment(id="m1", type="image", data="QUJD", timestamp=11, caption="sketch")],
        )
        research = ResearchEntry(
            id="ai_1_abc",
            query="What is agape?",
            response="Self-giving love.",
            timestamp=30,
            selected_text="For God so loved",
            tags=["love"],
            highlighted=["Self-giving"],
        )
        return VerseRecord(key=VerseKey("john", 3, [16, 17]), personal_note=note, ai_research=[research])

    def test_round_trip(self):
        rec = self._full_record()
        self.assertEqual(VerseRecord.from_dict(rec.to_dict()), rec)

    def test_wire_keys_are_camel_case(self):
        raw = self._full_record().to_dict()
        self.assertEqual(raw["id"], "john_3_16_17")
        self.assertEqual(raw["bookId"], "john")
        self.assertEqual(raw["verses"], [16, 17])
        self.assertEqual(raw["personalNote"]["updatedAt"], 20)
        self.assertEqual(raw["aiResearch"][0]["selectedText"], "For God so loved")

    def test_optional_fields_omitted(self):
        rec = VerseRecord(
            key=VerseKey("john", 3, [16]),
            ai_research=[ResearchEntry(id="r1", query="q", response="a", timestamp=1)],
        )
        raw = rec.to_dict()
        self.assertNotIn("personalNote", raw)
        self.assertEqual(set(raw["aiResearch"][0]), {"id", "query", "response", "timestamp"})

    def test_stale_id_is_recomputed(self):
        raw = self._full_record().to_dict()
        raw["id"] = "something_else"
        raw["verses"] = [17, 16]
        self.assertEqual(VerseRecord.from_dict(raw).id, "john_3_16_17")

    def test_missing_research_defaults_to_empty(self):
        raw = {"bookId": "john", "chapter": 3, "verses": [16], "personalNote": {"text": "x", "createdAt": 1, "updatedAt": 2}}
        self.assertEqual(VerseRecord.from_dict(raw).ai_research, [])

    def test_malformed_records(self):
        with self.assertRaises(FormatError):
            VerseRecord.from_dict({"bookId": "john", "chapter": 3})
        with self.assertRaises(FormatError):
            VerseRecord.from_dict({"bookId": "john", "chapter": 3, "verses": [1], "aiResearch": [{"id": "r"}]})
        with self.assertRaises(ValidationError):
            VerseRecord.from_dict({"bookId": "john", "chapter": 0, "verses": [1]})
        with self.assertRaises(FormatError):
            MediaAttachment.from_dict({"id": "m", "type": "pdf", "data": "", "timestamp": 1})

    def test_non_finite_timestamps(self):
        for bad in (float("nan"), float("inf"), float("-inf")):
            with self.assertRaises(FormatError):
                PersonalNote.from_dict({"text": "x", "createdAt": bad, "updatedAt": 1})
            with self.assertRaises(FormatError):
                ResearchEntry.from_dict({"id": "r", "query": "q", "response": "a", "timestamp": bad})

    def test_empty_record(self):
        self.assertTrue(VerseRecord(key=VerseKey("john", 3, [16])).is_empty())

    def test_bible_chapter_key(self):
        chapter = BibleChapter.from_dict({"bookId": "john", "chapter": 3, "translation": "web", "data": {"verses": []}})
        self.assertEqual(chapter.key, "john_3_web")
        with self.assertRaises(FormatError):
            BibleChapter.from_dict({"bookId": "john", "chapter": 3, "translation": "web"})


class TestReferences(unittest.TestCase):
    """Human references and the book catalog."""

    def test_catalog_loaded(self):
        canon = load_canon()
        self.assertEqual(len(canon), 66)
        self.assertEqual(list(canon)[0], "genesis")
        self.assertEqual(list(canon)[-1], "revelation")

    def test_resolve_book_variants(self):
        for s in ("john", "John", "JHN", "jhn"):
            self.assertEqual(resolve_book(s), "john")
        self.assertEqual(resolve_book("1 Samuel"), "1samuel")
        self.assertEqual(resolve_book("song of solomon"), "songofsolomon")
        self.assertIsNone(resolve_book("Hezekiah"))
        with self.assertRaises(ValidationError):
            require_book("Hezekiah")

    def test_book_name(self):
        self.assertEqual(book_name("1john"), "1 John")
        self.assertEqual(book_name("unknownbook"), "unknownbook")

    def test_parse_verse_list(self):
        self.assertEqual(parse_verse_list("16"), [16])
        self.assertEqual(parse_verse_list("16-18"), [16, 17, 18])
        self.assertEqual(parse_verse_list("1-3, 7"), [1, 2, 3, 7])
        for bad in ("", "a", "5-3", "1-b"):
            with self.assertRaises(ValidationError):
                parse_verse_list(bad)

    def test_parse_reference(self):
        self.assertEqual(parse_reference("John 3:16").key, "john_3_16")
        self.assertEqual(parse_reference("1 John 1:9-10").key, "1john_1_9_10")
        self.assertEqual(parse_reference("Gen 1:3,1").key, "genesis_1_1_3")
        for bad in ("", "John", "John 3", "John x:1", "Nowhere 1:1"):
            with self.assertRaises(ValidationError):
                parse_reference(bad)

    def test_format_verse_label(self):
        self.assertEqual(format_verse_label((16,)), "16")
        self.assertEqual(format_verse_label((16, 17, 18)), "16-18")
        self.assertEqual(format_verse_label((1, 3, 4, 9)), "1, 3-4, 9")


if __name__ == "__main__":
    unittest.main()
