"""
Data model definitions for the Bible Notes Companion.

- VerseKey      : a normalized (book_id, chapter, verses) reference
- MediaAttachment, PersonalNote, ResearchEntry : record contents
- VerseRecord   : everything stored for one verse key
- BibleChapter  : one cached chapter of scripture text

Every type converts to and from the camelCase wire form used by the
portable export documents (to_dict / from_dict). Optional fields that are
absent are omitted from the wire form.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import FormatError, ValidationError

KEY_SEPARATOR = "_"
MEDIA_TYPES = ("image", "audio", "video")


def _positive_int(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{what} must be an integer, got {value!r}")
    if value < 1:
        raise ValidationError(f"{what} must be >= 1, got {value}")
    return value


def _check_book_id(book_id: Any) -> str:
    if not isinstance(book_id, str) or not book_id.strip():
        raise ValidationError(f"book id must be a non-empty string, got {book_id!r}")
    if KEY_SEPARATOR in book_id or book_id != book_id.strip() or " " in book_id:
        raise ValidationError(f"book id may not contain spaces or {KEY_SEPARATOR!r}: {book_id!r}")
    return book_id


def canonicalize(book_id: str, chapter: int, verses: Iterable[int]) -> str:
    """
    Compute the canonical key string, e.g. ('john', 3, [17, 16]) -> 'john_3_16_17'.

    Verses are de-duplicated and sorted ascending, so every ordering of the
    same verse set produces the same key.
    """
    return VerseKey(book_id, chapter, verses).key


@dataclass(frozen=True, init=False)
class VerseKey:
    """
    A normalized reference to a verse or verse set within one chapter.

    book_id: catalog id (e.g. 'john')
    chapter: 1..N
    verses : sorted, de-duplicated tuple of verse numbers (non-empty)
    """
    book_id: str
    chapter: int
    verses: Tuple[int, ...]

    def __init__(self, book_id: str, chapter: int, verses: Iterable[int]) -> None:
        _check_book_id(book_id)
        _positive_int(chapter, "chapter")
        if isinstance(verses, int):
            verses = [verses]
        normalized = tuple(sorted({_positive_int(v, "verse") for v in verses}))
        if not normalized:
            raise ValidationError("verses must not be empty")
        object.__setattr__(self, "book_id", book_id)
        object.__setattr__(self, "chapter", chapter)
        object.__setattr__(self, "verses", normalized)

    @property
    def key(self) -> str:
        parts = [self.book_id, str(self.chapter)] + [str(v) for v in self.verses]
        return KEY_SEPARATOR.join(parts)

    @property
    def first_verse(self) -> int:
        return self.verses[0]

    @classmethod
    def parse(cls, key: str) -> "VerseKey":
        """Invert the canonical form: 'john_3_16_17' -> VerseKey('john', 3, (16, 17))."""
        parts = key.split(KEY_SEPARATOR)
        if len(parts) < 3:
            raise ValidationError(f"Not a verse key: {key!r}")
        try:
            chapter = int(parts[1])
            verses = [int(p) for p in parts[2:]]
        except ValueError:
            raise ValidationError(f"Not a verse key: {key!r}") from None
        return cls(parts[0], chapter, verses)

    def __str__(self) -> str:
        return self.key


@dataclass
class MediaAttachment:
    id: str
    type: str
    data: str
    timestamp: int
    thumbnail: Optional[str] = None
    caption: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "data": self.data,
            "timestamp": self.timestamp,
        }
        if self.thumbnail is not None:
            out["thumbnail"] = self.thumbnail
        if self.caption is not None:
            out["caption"] = self.caption
        return out

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "MediaAttachment":
        _require_mapping(raw, "media attachment")
        media_type = raw.get("type")
        if media_type not in MEDIA_TYPES:
            raise FormatError(f"Unsupported media type: {media_type!r}")
        return cls(
            id=_require_str(raw, "id"),
            type=media_type,
            data=_require_str(raw, "data"),
            timestamp=_require_int(raw, "timestamp"),
            thumbnail=raw.get("thumbnail"),
            caption=raw.get("caption"),
        )


@dataclass
class PersonalNote:
    """
    A personal note. `text` is a rich-text (HTML) payload stored verbatim;
    `drawing` is an opaque blob (usually a data URL).
    """
    text: str
    created_at: int = 0
    updated_at: int = 0
    drawing: Optional[str] = None
    media: Optional[List[MediaAttachment]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "text": self.text,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.drawing is not None:
            out["drawing"] = self.drawing
        if self.media is not None:
            out["media"] = [m.to_dict() for m in self.media]
        return out

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PersonalNote":
        _require_mapping(raw, "personal note")
        media_raw = raw.get("media")
        media = None
        if media_raw is not None:
            if not isinstance(media_raw, list):
                raise FormatError("personalNote.media must be a list")
            media = [MediaAttachment.from_dict(m) for m in media_raw]
        return cls(
            text=_require_str(raw, "text"),
            created_at=_require_int(raw, "createdAt"),
            updated_at=_require_int(raw, "updatedAt"),
            drawing=raw.get("drawing"),
            media=media,
        )


@dataclass
class ResearchEntry:
    id: str
    query: str
    response: str
    timestamp: int
    selected_text: Optional[str] = None
    tags: Optional[List[str]] = None
    highlighted: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "query": self.query,
            "response": self.response,
            "timestamp": self.timestamp,
        }
        if self.selected_text is not None:
            out["selectedText"] = self.selected_text
        if self.tags is not None:
            out["tags"] = list(self.tags)
        if self.highlighted is not None:
            out["highlighted"] = list(self.highlighted)
        return out

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ResearchEntry":
        _require_mapping(raw, "research entry")
        return cls(
            id=_require_str(raw, "id"),
            query=_require_str(raw, "query"),
            response=_require_str(raw, "response"),
            timestamp=_require_int(raw, "timestamp"),
            selected_text=raw.get("selectedText"),
            tags=_optional_str_list(raw, "tags"),
            highlighted=_optional_str_list(raw, "highlighted"),
        )


@dataclass
class VerseRecord:
    """
    Everything stored for one verse key.

    A record with neither a personal note nor research entries is never
    persisted; the store deletes it instead.
    """
    key: VerseKey
    personal_note: Optional[PersonalNote] = None
    ai_research: List[ResearchEntry] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.key.key

    @property
    def book_id(self) -> str:
        return self.key.book_id

    @property
    def chapter(self) -> int:
        return self.key.chapter

    def is_empty(self) -> bool:
        return self.personal_note is None and not self.ai_research

    def research_ids(self) -> List[str]:
        return [r.id for r in self.ai_research]

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.key.key,
            "bookId": self.key.book_id,
            "chapter": self.key.chapter,
            "verses": list(self.key.verses),
        }
        if self.personal_note is not None:
            out["personalNote"] = self.personal_note.to_dict()
        out["aiResearch"] = [r.to_dict() for r in self.ai_research]
        return out

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "VerseRecord":
        """
        Build a record from its wire form.

        The key is recomputed from bookId/chapter/verses; a stale or
        non-canonical "id" field in the document is ignored.
        """
        _require_mapping(raw, "verse record")
        verses = raw.get("verses")
        if not isinstance(verses, list):
            raise FormatError("verse record is missing a 'verses' list")
        key = VerseKey(raw.get("bookId"), raw.get("chapter"), verses)

        note_raw = raw.get("personalNote")
        research_raw = raw.get("aiResearch", [])
        if not isinstance(research_raw, list):
            raise FormatError("aiResearch must be a list")

        return cls(
            key=key,
            personal_note=PersonalNote.from_dict(note_raw) if note_raw is not None else None,
            ai_research=[ResearchEntry.from_dict(r) for r in research_raw],
        )


@dataclass
class BibleChapter:
    """One chapter of scripture text in one translation. `data` is opaque JSON."""
    book_id: str
    chapter: int
    translation: str
    data: Any

    @property
    def key(self) -> str:
        return KEY_SEPARATOR.join([self.book_id, str(self.chapter), self.translation])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bookId": self.book_id,
            "chapter": self.chapter,
            "translation": self.translation,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "BibleChapter":
        _require_mapping(raw, "chapter")
        translation = _require_str(raw, "translation")
        if not translation or KEY_SEPARATOR in translation:
            raise FormatError(f"Invalid translation code: {translation!r}")
        if "data" not in raw:
            raise FormatError("chapter is missing 'data'")
        return cls(
            book_id=_check_book_id(raw.get("bookId")),
            chapter=_positive_int(raw.get("chapter"), "chapter"),
            translation=translation,
            data=raw["data"],
        )


# ---------- wire-form helpers ----------


def _require_mapping(raw: Any, what: str) -> None:
    if not isinstance(raw, dict):
        raise FormatError(f"{what} must be an object, got {type(raw).__name__}")


def _require_str(raw: Dict[str, Any], name: str) -> str:
    value = raw.get(name)
    if not isinstance(value, str):
        raise FormatError(f"field {name!r} must be a string, got {value!r}")
    return value


def _require_int(raw: Dict[str, Any], name: str) -> int:
    value = raw.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FormatError(f"field {name!r} must be a number, got {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise FormatError(f"field {name!r} must be finite, got {value!r}")
    return int(value)


def _optional_str_list(raw: Dict[str, Any], name: str) -> Optional[List[str]]:
    value = raw.get(name)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise FormatError(f"field {name!r} must be a list of strings")
    return list(value)
