"""
Portable export documents.

Three document shapes are produced and accepted:

- notes snapshot   {version:"1.0", exportDate, deviceId?, metadata, data:{key: record}}
- text snapshot    {version:"1.0", exportDate, metadata, chapters:[...]}
- combined backup  {version:"2.0", exportDate, deviceId, notes, bibleTexts}

Versions are matched exactly; there is no range matching. Documents are
independent copies: serializing never shares objects with the store.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Optional, Union

from . import config
from .canon import sort_book_ids
from .errors import CompanionError, FormatError
from .model import BibleChapter, VerseRecord
from .util import utc_now_iso

Document = Dict[str, Any]


# ---------- notes ----------


def notes_metadata(records: Iterable[VerseRecord]) -> Dict[str, Any]:
    """
    totalNotes    : records holding a personal note
    totalResearch : research entries across all records
    booksIncluded : distinct book ids (catalog order)
    """
    books = set()
    total_notes = 0
    total_research = 0
    for record in records:
        books.add(record.book_id)
        if record.personal_note is not None:
            total_notes += 1
        total_research += len(record.ai_research)
    return {
        "totalNotes": total_notes,
        "totalResearch": total_research,
        "booksIncluded": sort_book_ids(list(books)),
    }


def serialize_notes(
    records: Iterable[VerseRecord],
    device_id: Optional[str] = None,
    export_date: Optional[str] = None,
) -> Document:
    records = list(records)
    doc: Document = {
        "version": config.NOTES_SNAPSHOT_VERSION,
        "exportDate": export_date or utc_now_iso(),
    }
    if device_id is not None:
        doc["deviceId"] = device_id
    doc["metadata"] = notes_metadata(records)
    doc["data"] = {record.id: record.to_dict() for record in records}
    return doc


def check_notes_document(doc: Any) -> Dict[str, Any]:
    """
    Validate the envelope of a notes snapshot and return its `data` mapping.

    Raises FormatError for a missing or unsupported version or a missing
    `data` object. Individual records are not inspected.
    """
    if not isinstance(doc, dict):
        raise FormatError("Notes export must be a JSON object")
    version = doc.get("version")
    if version is None:
        raise FormatError("Notes export has no version")
    if version != config.NOTES_SNAPSHOT_VERSION:
        raise FormatError(f"Unsupported notes export version: {version!r}")
    data = doc.get("data")
    if not isinstance(data, dict):
        raise FormatError("Notes export has no 'data' object")
    return data


def deserialize_notes(doc: Any) -> List[VerseRecord]:
    """Parse every record of a notes snapshot; any malformed record raises FormatError."""
    records: List[VerseRecord] = []
    for key, raw in check_notes_document(doc).items():
        try:
            records.append(VerseRecord.from_dict(raw))
        except CompanionError as e:
            raise FormatError(f"Malformed record {key!r}: {e}") from e
    return records


# ---------- bible texts ----------


def serialize_bible_texts(chapters: Iterable[BibleChapter], export_date: Optional[str] = None) -> Document:
    chapters = list(chapters)
    translations: List[str] = []
    for chapter in chapters:
        if chapter.translation not in translations:
            translations.append(chapter.translation)
    return {
        "version": config.TEXT_SNAPSHOT_VERSION,
        "exportDate": export_date or utc_now_iso(),
        "metadata": {
            "totalChapters": len(chapters),
            "translations": translations,
        },
        "chapters": [c.to_dict() for c in chapters],
    }


def check_text_document(doc: Any) -> List[Any]:
    """Validate the envelope of a Bible-text snapshot and return its `chapters` list."""
    if not isinstance(doc, dict):
        raise FormatError("Bible text export must be a JSON object")
    version = doc.get("version")
    if version != config.TEXT_SNAPSHOT_VERSION:
        raise FormatError(f"Unsupported Bible text export version: {version!r}")
    chapters = doc.get("chapters")
    if not isinstance(chapters, list):
        raise FormatError("Bible text export has no 'chapters' list")
    return chapters


def deserialize_bible_texts(doc: Any) -> List[BibleChapter]:
    chapters: List[BibleChapter] = []
    for idx, raw in enumerate(check_text_document(doc)):
        try:
            chapters.append(BibleChapter.from_dict(raw))
        except CompanionError as e:
            raise FormatError(f"Malformed chapter #{idx}: {e}") from e
    return chapters


# ---------- combined backup ----------


def serialize_backup(
    notes_doc: Document,
    texts_doc: Document,
    device_id: str,
    export_date: Optional[str] = None,
) -> Document:
    return {
        "version": config.BACKUP_VERSION,
        "exportDate": export_date or utc_now_iso(),
        "deviceId": device_id,
        "notes": notes_doc,
        "bibleTexts": texts_doc,
    }


# ---------- text form ----------


def dumps(doc: Document) -> str:
    return json.dumps(doc, indent=2, ensure_ascii=False)


def loads(text: Union[str, bytes]) -> Document:
    """
    Parse a document; bytes are decoded as UTF-8.

    Undecodable bytes, unparseable text or a non-object top level raise
    FormatError.
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FormatError(f"Export is not valid UTF-8: {e}") from e
    try:
        doc = json.loads(text)
    except (TypeError, ValueError) as e:
        raise FormatError(f"Parse error: {e}") from e
    if not isinstance(doc, dict):
        raise FormatError("Export document must be a JSON object")
    return doc
