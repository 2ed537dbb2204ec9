"""
The closed book catalog (66-book Protestant canon).

The catalog is shipped as bnc/data/canon.json; each entry carries the
stable book id used in verse keys (e.g. 'john'), a 3-letter code, a
display name and the testament.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, Dict, List, Optional

from .errors import ValidationError
from .paths import PACKAGE_DATA_DIR


@lru_cache(maxsize=1)
def load_canon() -> Dict[str, Dict[str, Any]]:
    """
    Load the 66-book canon definition from bnc/data/canon.json.

    Returns
    -------
    dict:
        Map of book_id -> { "book_num": int, "code": str, "name": str, "testament": str }
        in canonical order.
    """
    canon_path = PACKAGE_DATA_DIR / "canon.json"
    data = json.loads(canon_path.read_text(encoding="utf-8"))

    result: Dict[str, Dict[str, Any]] = {}
    for entry in sorted(data, key=lambda e: int(e["book_num"])):
        result[entry["id"]] = {
            "book_num": int(entry["book_num"]),
            "code": entry["code"],
            "name": entry["name"],
            "testament": entry.get("testament", "unknown"),
        }
    return result


@lru_cache(maxsize=1)
def _build_book_lookup() -> Dict[str, str]:
    """
    Build a mapping from various book strings to book_id.

    Keys include:
    - book id (john)
    - 3-letter code (JHN)
    - full name (John, "1 Samuel")
    - the name without spaces ("1samuel", "songofsolomon")
    all lowercased.
    """
    lookup: Dict[str, str] = {}
    for book_id, meta in load_canon().items():
        name = meta["name"].lower()
        for key in {book_id, meta["code"].lower(), name, name.replace(" ", "")}:
            lookup[key] = book_id
    return lookup


def resolve_book(book_str: str) -> Optional[str]:
    """
    Resolve a book id, code or name (any case) to a catalog book id.

    Returns None when the book is not in the catalog.
    """
    key = " ".join(book_str.split()).lower()
    lookup = _build_book_lookup()
    return lookup.get(key) or lookup.get(key.replace(" ", ""))


def require_book(book_str: str) -> str:
    """Like resolve_book, but raise ValidationError for unknown books."""
    book_id = resolve_book(book_str)
    if book_id is None:
        raise ValidationError(f"Unknown book: {book_str!r}")
    return book_id


def book_name(book_id: str) -> str:
    """Display name for a book id; unknown ids are returned unchanged."""
    meta = load_canon().get(book_id)
    return meta["name"] if meta else book_id


def book_order(book_id: str) -> int:
    """Canonical position of a book (1..66); unknown books sort after Revelation."""
    meta = load_canon().get(book_id)
    return meta["book_num"] if meta else len(load_canon()) + 1


def sort_book_ids(book_ids: List[str]) -> List[str]:
    return sorted(book_ids, key=lambda b: (book_order(b), b))
