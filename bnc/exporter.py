"""
Export of the store to files.

    json      bible-notes-YYYY-MM-DD.json       (notes snapshot, re-importable)
    markdown  bible-notes-YYYY-MM-DD.md
    html      bible-notes-YYYY-MM-DD.html
    pdf       bible-notes-YYYY-MM-DD.pdf
    backup    bible-app-backup-YYYY-MM-DD.json  (notes + Bible texts, re-importable)
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from . import config
from .bible_text import BibleTextStore
from .errors import ValidationError
from .pdfgen import generate_notes_pdf
from .render import render_html, render_markdown
from .snapshot import dumps, serialize_backup, serialize_bible_texts, serialize_notes
from .store import VerseRecordStore
from .util import ok, today_stamp

EXPORT_FORMATS = ("json", "markdown", "html", "pdf")

_SUFFIXES = {"json": ".json", "markdown": ".md", "html": ".html", "pdf": ".pdf"}


def export_to_json(store: VerseRecordStore, device_id: Optional[str] = None) -> str:
    return dumps(serialize_notes(store.scan_all(), device_id=device_id))


def export_backup_to_json(store: VerseRecordStore, texts: BibleTextStore, device_id: str) -> str:
    notes_doc = serialize_notes(store.scan_all(), device_id=device_id)
    texts_doc = serialize_bible_texts(texts.all_chapters())
    return dumps(serialize_backup(notes_doc, texts_doc, device_id))


def export_notes(
    store: VerseRecordStore,
    fmt: str,
    output_dir: Path,
    device_id: Optional[str] = None,
) -> Path:
    """Write the notes in one of EXPORT_FORMATS and return the file path."""
    if fmt not in EXPORT_FORMATS:
        raise ValidationError(f"Unknown export format {fmt!r} (expected one of: {', '.join(EXPORT_FORMATS)})")

    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / f"{config.NOTES_EXPORT_STEM}-{today_stamp()}{_SUFFIXES[fmt]}"

    if fmt == "pdf":
        return generate_notes_pdf(store.scan_all(), output_path)

    if fmt == "json":
        content = export_to_json(store, device_id=device_id)
    elif fmt == "markdown":
        content = render_markdown(store.scan_all())
    else:
        content = render_html(store.scan_all())

    output_path.write_text(content, encoding="utf-8")
    ok(f"Exported {fmt} to {output_path}")
    return output_path


def export_backup(
    store: VerseRecordStore,
    texts: BibleTextStore,
    output_dir: Path,
    device_id: str,
) -> Path:
    """Write a combined backup (notes + Bible texts) and return the file path."""
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / f"{config.BACKUP_EXPORT_STEM}-{today_stamp()}.json"
    output_path.write_text(export_backup_to_json(store, texts, device_id), encoding="utf-8")
    ok(f"Exported backup to {output_path}")
    return output_path
