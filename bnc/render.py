"""
Human-readable renderings of the notes (export-only, not re-importable).

- render_markdown : structured text; note markup flattened to plain text
- render_html     : standalone page; note markup kept, research escaped

Both group records by book (catalog order), then sort by chapter and by
lowest verse number.
"""

from __future__ import annotations

import html
import re
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from .canon import book_name, sort_book_ids
from .model import VerseRecord
from .reference import format_verse_label

HTML_STYLE = """\
    body { font-family: Arial, sans-serif; max-width: 800px; margin: 0 auto; padding: 20px; }
    h1 { color: #333; }
    h2 { color: #4f46e5; margin-top: 30px; }
    h3 { color: #666; }
    .note { background: #f8f8f8; padding: 15px; border-radius: 8px; margin: 10px 0; }
    .research { background: #e0e7ff; padding: 15px; border-radius: 8px; margin: 10px 0; }
    .tags { color: #666; font-size: 0.9em; font-style: italic; }
    .timestamp { color: #999; font-size: 0.85em; }"""


def group_by_book(records: Iterable[VerseRecord]) -> List[Tuple[str, List[VerseRecord]]]:
    """[(book_id, records sorted by chapter then first verse), ...] in catalog order."""
    grouped: Dict[str, List[VerseRecord]] = {}
    for record in records:
        grouped.setdefault(record.book_id, []).append(record)
    return [
        (book_id, sorted(grouped[book_id], key=lambda r: (r.chapter, r.key.first_verse)))
        for book_id in sort_book_ids(list(grouped))
    ]


def reference_label(record: VerseRecord) -> str:
    """e.g. 'John 3:16-18'."""
    return f"{book_name(record.book_id)} {record.chapter}:{format_verse_label(record.key.verses)}"


def html_to_text(markup: str) -> str:
    """Flatten rich-text note markup to plain text."""
    text = re.sub(r"<br\s*/?>", "\n", markup, flags=re.IGNORECASE)
    text = re.sub(r"</?p\s*>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]*>", "", text)
    text = html.unescape(text).replace("\xa0", " ")
    return text.strip()


def render_markdown(records: Iterable[VerseRecord], export_day: Optional[date] = None) -> str:
    export_day = export_day or date.today()
    lines: List[str] = [
        "# Bible Notes Export",
        "",
        f"**Export Date:** {export_day.isoformat()}",
        "",
        "---",
        "",
    ]

    for book_id, book_records in group_by_book(records):
        lines += [f"## {book_name(book_id)}", ""]

        for record in book_records:
            lines += [f"### {reference_label(record)}", ""]

            if record.personal_note is not None:
                lines.append("**Personal Note:**")
                lines += [html_to_text(record.personal_note.text), ""]

            if record.ai_research:
                lines += ["**AI Research:**", ""]
                for research in record.ai_research:
                    lines.append(f"- **Q:** {research.query}")
                    lines += [f"  **A:** {research.response}", ""]
                    if research.tags:
                        lines += [f"  _Tags: {', '.join(research.tags)}_", ""]

            lines += ["---", ""]

    return "\n".join(lines)


def render_html(records: Iterable[VerseRecord], export_day: Optional[date] = None) -> str:
    export_day = export_day or date.today()
    parts: List[str] = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        '  <meta charset="UTF-8">',
        "  <title>Bible Notes Export</title>",
        "  <style>",
        HTML_STYLE,
        "  </style>",
        "</head>",
        "<body>",
        "  <h1>Bible Notes Export</h1>",
        f'  <p class="timestamp">Export Date: {export_day.isoformat()}</p>',
    ]

    for book_id, book_records in group_by_book(records):
        parts.append(f"<h2>{html.escape(book_name(book_id))}</h2>")

        for record in book_records:
            parts.append(f"<h3>{html.escape(reference_label(record))}</h3>")

            if record.personal_note is not None:
                parts.append('<div class="note">')
                parts.append("<strong>Personal Note:</strong><br>")
                # note text is already markup and is embedded as-is
                parts.append(record.personal_note.text)
                parts.append("</div>")

            if record.ai_research:
                parts += ['<div class="research">', "<strong>AI Research:</strong>", "<ul>"]
                for research in record.ai_research:
                    item = (
                        f"<li>\n<strong>Q:</strong> {html.escape(research.query)}<br>\n"
                        f"<strong>A:</strong> {html.escape(research.response)}"
                    )
                    if research.tags:
                        tags = html.escape(", ".join(research.tags))
                        item += f'<br><span class="tags">Tags: {tags}</span>'
                    parts.append(item + "\n</li>")
                parts += ["</ul>", "</div>"]

    parts.append("</body></html>")
    return "\n".join(parts)
