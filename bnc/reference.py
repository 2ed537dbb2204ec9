"""
Parsing of human-entered references into verse keys.

- parse_verse_list("16-18,20") -> [16, 17, 18, 20]
- parse_reference("John 3:16-18") -> VerseKey('john', 3, (16, 17, 18))
- format_verse_label((16, 17, 18, 20)) -> "16-18, 20"
"""

from __future__ import annotations

from typing import List, Sequence

from .canon import require_book
from .errors import ValidationError
from .model import VerseKey


def parse_verse_list(verses_text: str) -> List[int]:
    """
    Parse a verse list like '16', '16-18', '16,18' or '1-3, 7'.
    """
    verses: List[int] = []
    for part in verses_text.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start_str, end_str = part.split("-", 1)
            try:
                start = int(start_str.strip())
                end = int(end_str.strip())
            except ValueError:
                raise ValidationError(f"Invalid verse range: {part!r}") from None
            if end < start:
                raise ValidationError(f"Verse range runs backwards: {part!r}")
            verses.extend(range(start, end + 1))
        else:
            try:
                verses.append(int(part))
            except ValueError:
                raise ValidationError(f"Invalid verse number: {part!r}") from None

    if not verses:
        raise ValidationError(f"No verses in {verses_text!r}")
    return verses


def parse_reference(ref: str) -> VerseKey:
    """
    Parse a reference string like 'John 3:16-18', '1 John 1:9' or 'Gen 1:1,3'.

    The book part may be a catalog id, a 3-letter code or a full name.
    """
    s = ref.strip()
    if not s:
        raise ValidationError("Empty reference string.")

    try:
        space_idx = s.rindex(" ")
    except ValueError:
        raise ValidationError(f"Could not split book and chapter:verse from reference: {ref!r}") from None

    book_str = s[:space_idx].strip()
    cv_str = s[space_idx + 1 :].strip()

    if ":" not in cv_str:
        raise ValidationError(f"Reference missing ':' in chapter:verse part: {ref!r}")

    chap_str, verse_part = cv_str.split(":", 1)
    try:
        chapter = int(chap_str)
    except ValueError:
        raise ValidationError(f"Non-integer chapter in reference: {ref!r}") from None

    return VerseKey(require_book(book_str), chapter, parse_verse_list(verse_part))


def format_verse_label(verses: Sequence[int]) -> str:
    """Compress sorted verses into runs: (16, 17, 18, 20) -> '16-18, 20'."""
    runs: List[str] = []
    start = prev = None
    for v in verses:
        if start is None:
            start = prev = v
        elif v == prev + 1:
            prev = v
        else:
            runs.append(f"{start}-{prev}" if prev != start else str(start))
            start = prev = v
    if start is not None:
        runs.append(f"{start}-{prev}" if prev != start else str(start))
    return ", ".join(runs)
