"""
Spreadsheet readers for scripture text.

A sheet (Excel workbook or CSV) holds one verse per row under a header
row naming the book, chapter, verse and text columns. Header spellings
vary between sources, so columns are matched against SHEET_COLUMNS
aliases after normalization ("Verse Text" -> "versetext").

Rows that can not be read are reported with warn() and left out; a
missing column or an unsupported file type raises FormatError.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional, Sequence

from openpyxl import load_workbook

from .errors import FormatError
from .util import info, warn

SHEET_COLUMNS: Dict[str, Sequence[str]] = {
    "book": ("book", "bookname", "bookid", "bk"),
    "chapter": ("chapter", "chap", "ch"),
    "verse": ("verse", "versenum", "vs", "v"),
    "text": ("text", "versetext", "content", "body"),
}

SUPPORTED_SUFFIXES = (".csv", ".xlsx", ".xlsm")


@dataclass
class SheetVerse:
    book: str        # as written in the sheet; resolved against the catalog later
    chapter: int
    verse: int
    text: str
    line: int        # 1-based sheet row, header included


def _column_key(label: object) -> str:
    if label is None:
        return ""
    key = str(label).strip().lower()
    for ch in (" ", "-", "_"):
        key = key.replace(ch, "")
    return key


def locate_columns(header: Sequence[object]) -> Dict[str, int]:
    """Map each of book/chapter/verse/text to its column position."""
    keys = [_column_key(label) for label in header]
    positions: Dict[str, int] = {}
    for field, aliases in SHEET_COLUMNS.items():
        found = next((pos for pos, key in enumerate(keys) if key in aliases), None)
        if found is None:
            raise FormatError(f"No {field!r} column in header {list(header)!r}")
        positions[field] = found
    return positions


def _blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _read_row(row: Sequence[object], columns: Dict[str, int], line: int) -> Optional[SheetVerse]:
    if len(row) <= max(columns.values()):
        warn(f"Line {line}: too few cells, ignored.")
        return None

    book, chapter, verse, text = (row[columns[f]] for f in ("book", "chapter", "verse", "text"))
    if _blank(book) or _blank(chapter) or _blank(verse):
        warn(f"Line {line}: book, chapter or verse is blank, ignored.")
        return None
    if _blank(text):
        warn(f"Line {line}: no verse text, ignored.")
        return None

    try:
        numbers = int(chapter), int(verse)
    except (TypeError, ValueError):
        warn(f"Line {line}: chapter {chapter!r} / verse {verse!r} are not numbers, ignored.")
        return None

    return SheetVerse(book=str(book).strip(), chapter=numbers[0], verse=numbers[1], text=str(text).strip(), line=line)


def _read_sheet(rows: Iterable[Sequence[object]], limit: Optional[int]) -> Iterator[SheetVerse]:
    """rows: the header row first, then data rows."""
    rows = iter(rows)
    header = next(rows, None)
    if header is None:
        warn("Sheet has no header row; nothing to read.")
        return
    columns = locate_columns(header)

    produced = 0
    for line, row in enumerate(rows, start=2):
        if limit is not None and produced >= limit:
            info(f"Row limit of {limit} reached.")
            return
        verse = _read_row(row, columns, line)
        if verse is not None:
            produced += 1
            yield verse


def iter_verses_from_file(
    path: Path,
    sheet_name: Optional[str] = None,
    max_rows: Optional[int] = None,
) -> Iterator[SheetVerse]:
    """
    Yield the verses of a .csv, .xlsx or .xlsm file in sheet order.

    sheet_name picks a worksheet (workbooks only; default is the active
    one). max_rows caps the number of verses yielded.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise FormatError(f"Can not read {path.name}: expected one of {', '.join(SUPPORTED_SUFFIXES)}")
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    if suffix == ".csv":
        info(f"Reading CSV {path}")
        with open(path, "r", encoding="utf-8", newline="") as f:
            yield from _read_sheet(csv.reader(f), max_rows)
        return

    info(f"Reading workbook {path}")
    wb = load_workbook(filename=str(path), read_only=True, data_only=True)
    try:
        if sheet_name is not None and sheet_name not in wb.sheetnames:
            raise FormatError(f"Workbook has no sheet {sheet_name!r} (sheets: {', '.join(wb.sheetnames)})")
        ws = wb[sheet_name] if sheet_name is not None else wb.active
        info(f"Sheet: {ws.title}")
        yield from _read_sheet(ws.iter_rows(values_only=True), max_rows)
    finally:
        wb.close()
