"""
Research entry policy: id generation, tag normalization and entry stamping.

Entry ids look like 'ai_1714557600000_k3j9x0q2a': the creation time in
milliseconds plus a random base36 suffix, so ids stay unique across the
lifetime of a store and across devices that later merge their data.
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from typing import Callable, Container, Iterable, List, Optional

from . import config
from .model import ResearchEntry
from .util import now_ms

_BASE36 = string.digits + string.ascii_lowercase
_SUFFIX_LEN = 9
_MAX_ATTEMPTS = 16


@dataclass
class ResearchDraft:
    """A research entry before it has an id and timestamp."""
    query: str
    response: str
    selected_text: Optional[str] = None
    tags: Optional[List[str]] = None
    highlighted: Optional[List[str]] = None


def normalize_tags(tags: Optional[Iterable[str]]) -> Optional[List[str]]:
    """
    Trim tags, drop empty ones and repeated ones (first occurrence wins).

    Case is preserved. Returns None when no tags were given at all.
    """
    if tags is None:
        return None
    seen = set()
    result: List[str] = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.add(tag)
            result.append(tag)
    return result


class ResearchManager:
    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self.clock = clock

    def new_entry_id(self) -> str:
        suffix = "".join(secrets.choice(_BASE36) for _ in range(_SUFFIX_LEN))
        return f"{config.RESEARCH_ID_PREFIX}{self.clock()}_{suffix}"

    def build_entry(self, draft: ResearchDraft, existing_ids: Container[str] = ()) -> ResearchEntry:
        """
        Stamp a draft with a fresh id and the current time.

        existing_ids are the ids already present in the owning record; a
        generated id is never one of them.
        """
        for _ in range(_MAX_ATTEMPTS):
            entry_id = self.new_entry_id()
            if entry_id not in existing_ids:
                break
        else:
            raise RuntimeError("Could not generate a unique research entry id")

        return ResearchEntry(
            id=entry_id,
            query=draft.query,
            response=draft.response,
            timestamp=self.clock(),
            selected_text=draft.selected_text,
            tags=normalize_tags(draft.tags),
            highlighted=list(draft.highlighted) if draft.highlighted is not None else None,
        )
