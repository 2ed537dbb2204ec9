"""
PDF report of the notes, built with ReportLab.

Same projection as the Markdown rendering: grouped by book, sorted by
chapter then verse, note markup flattened to plain text.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from .canon import book_name
from .model import VerseRecord
from .render import group_by_book, html_to_text, reference_label
from .util import info


def _paragraph_text(text: str) -> str:
    """Escape for ReportLab's mini-markup and keep line breaks."""
    return escape(text).replace("\n", "<br/>")


def generate_notes_pdf(
    records: Iterable[VerseRecord],
    output_path: Path,
    export_day: Optional[date] = None,
) -> Path:
    """
    Write a PDF report of all notes and research to output_path (.pdf).
    """
    export_day = export_day or date.today()
    output_path = output_path.with_suffix(".pdf")
    output_path.parent.mkdir(parents=True, exist_ok=True)

    styles = getSampleStyleSheet()
    story: List = []

    story.append(Paragraph("Bible Notes Export", styles["Title"]))
    story.append(Paragraph(f"Export Date: {export_day.isoformat()}", styles["Italic"]))
    story.append(Spacer(1, 12))

    for book_id, book_records in group_by_book(records):
        story.append(Paragraph(_paragraph_text(book_name(book_id)), styles["Heading1"]))

        for record in book_records:
            story.append(Paragraph(_paragraph_text(reference_label(record)), styles["Heading3"]))

            if record.personal_note is not None:
                story.append(Paragraph("<b>Personal Note:</b>", styles["Normal"]))
                story.append(Paragraph(_paragraph_text(html_to_text(record.personal_note.text)), styles["Normal"]))
                story.append(Spacer(1, 6))

            for research in record.ai_research:
                story.append(Paragraph(f"<b>Q:</b> {_paragraph_text(research.query)}", styles["Normal"]))
                story.append(Paragraph(f"<b>A:</b> {_paragraph_text(research.response)}", styles["Normal"]))
                if research.tags:
                    story.append(Paragraph(f"<i>Tags: {_paragraph_text(', '.join(research.tags))}</i>", styles["Italic"]))
                story.append(Spacer(1, 4))

            story.append(Spacer(1, 8))

    doc = SimpleDocTemplate(str(output_path), pagesize=LETTER, title="Bible Notes Export")
    doc.build(story)
    info(f"PDF exported: {output_path}")
    return output_path
