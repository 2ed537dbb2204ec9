#!/usr/bin/env python
"""
companion.py – unified CLI for the Bible Notes Companion

Commands:

  python companion.py status
      Show note/research/chapter counts

  python companion.py note-save "John 3:16" --text "<p>For God so loved...</p>"
  python companion.py note-show "John 3:16"
  python companion.py note-delete "John 3:16"

  python companion.py research-add "John 3:16-17" --query "..." --response "..." --tag love
  python companion.py research-delete "John 3:16-17" ai_1714557600000_k3j9x0q2a

  python companion.py search "grace" [--research]

  python companion.py export --format markdown
  python companion.py export-backup
  python companion.py import bible-app-backup-2024-05-01.json --strategy merge_newer

  python companion.py import-bible-text web.xlsx web
  python companion.py migrate-notes old_notes.json
  python companion.py clear --yes
"""

import argparse
import json
import sys
from pathlib import Path

from bnc import config
from bnc.bible_text import BibleTextStore, import_chapters_from_file
from bnc.db import CHAPTER_TABLE, VERSE_TABLE, SqliteBackend
from bnc.device import get_or_create_device_id
from bnc.errors import CompanionError
from bnc.exporter import EXPORT_FORMATS, export_backup, export_notes
from bnc.model import PersonalNote
from bnc.paths import DB_PATH, EXPORT_DIR, ensure_basic_dirs
from bnc.reconcile import Reconciler, Strategy
from bnc.reference import parse_reference
from bnc.render import html_to_text, reference_label
from bnc.research import ResearchDraft
from bnc.search import print_search_results, search_notes, search_research
from bnc.status import get_data_stats, print_status
from bnc.store import VerseRecordStore
from bnc.util import info, ok, warn


# ---------- Wiring ----------


def _db_path(args: argparse.Namespace) -> Path:
    return Path(args.db) if args.db else DB_PATH


def open_store(args: argparse.Namespace) -> VerseRecordStore:
    return VerseRecordStore(SqliteBackend(_db_path(args), table=VERSE_TABLE))


def open_texts(args: argparse.Namespace) -> BibleTextStore:
    return BibleTextStore(SqliteBackend(_db_path(args), table=CHAPTER_TABLE))


def _read_text_arg(text: str, text_file: str, what: str) -> str:
    if text_file:
        path = Path(text_file)
        if not path.exists():
            raise CompanionError(f"{what} file not found: {path}")
        return path.read_text(encoding="utf-8")
    if text is None:
        raise CompanionError(f"Provide --{what} or --{what}-file")
    return text


# ---------- Command handlers ----------


def cmd_status(args: argparse.Namespace) -> None:
    """
    Print note, research and cached chapter counts.
    """
    stats = get_data_stats(open_store(args), open_texts(args), db_path=_db_path(args))
    print_status(stats, db_path=_db_path(args))


def cmd_note_save(args: argparse.Namespace) -> None:
    key = parse_reference(args.ref)
    text = _read_text_arg(args.text, args.text_file, "text")
    drawing = Path(args.drawing_file).read_text(encoding="utf-8").strip() if args.drawing_file else None
    stored = open_store(args).save_note(key, PersonalNote(text=text, drawing=drawing))
    ok(f"Saved note for {key.key} (updatedAt={stored.updated_at})")


def cmd_note_show(args: argparse.Namespace) -> None:
    key = parse_reference(args.ref)
    record = open_store(args).get(key)
    if record is None:
        info(f"Nothing stored for {key.key}.")
        return

    print(reference_label(record))
    if record.personal_note is not None:
        print("  Personal note:")
        print("    " + html_to_text(record.personal_note.text).replace("\n", "\n    "))
    for research in record.ai_research:
        print(f"  [{research.id}] Q: {research.query}")
        print(f"      A: {research.response}")
        if research.tags:
            print(f"      Tags: {', '.join(research.tags)}")


def cmd_note_delete(args: argparse.Namespace) -> None:
    key = parse_reference(args.ref)
    open_store(args).delete_note(key)
    ok(f"Deleted note for {key.key} (if any).")


def cmd_research_add(args: argparse.Namespace) -> None:
    key = parse_reference(args.ref)
    draft = ResearchDraft(
        query=args.query,
        response=_read_text_arg(args.response, args.response_file, "response"),
        selected_text=args.selected_text,
        tags=args.tag,
    )
    entry_id = open_store(args).add_research(key, draft)
    ok(f"Added research {entry_id} to {key.key}")


def cmd_research_delete(args: argparse.Namespace) -> None:
    key = parse_reference(args.ref)
    open_store(args).delete_research(key, args.entry_id)
    ok(f"Deleted research {args.entry_id} from {key.key} (if present).")


def cmd_search(args: argparse.Namespace) -> None:
    store = open_store(args)
    if args.research:
        rows = search_research(store, args.query)
    else:
        rows = search_notes(store, args.query)
    info(f"Search returned {len(rows)} record(s).")
    print_search_results(rows)


def cmd_export(args: argparse.Namespace) -> None:
    output_dir = Path(args.output) if args.output else EXPORT_DIR
    export_notes(open_store(args), args.format, output_dir, device_id=get_or_create_device_id())


def cmd_export_backup(args: argparse.Namespace) -> None:
    output_dir = Path(args.output) if args.output else EXPORT_DIR
    export_backup(open_store(args), open_texts(args), output_dir, device_id=get_or_create_device_id())


def cmd_import(args: argparse.Namespace) -> None:
    path = Path(args.file)
    if not path.exists():
        raise CompanionError(f"File not found: {path}")

    info(f"Importing {path} with strategy {args.strategy!r}")
    reconciler = Reconciler(open_store(args), open_texts(args))
    report = reconciler.import_backup(path.read_bytes(), args.strategy)

    info(f"Notes imported   : {report.notes_imported}")
    info(f"Notes skipped    : {report.notes_skipped}")
    info(f"Chapters imported: {report.chapters_imported}")
    for err in report.errors:
        warn(err)
    if report.success:
        ok("Import complete.")
    else:
        warn(f"Import finished with {len(report.errors)} error(s).")
        sys.exit(1)


def cmd_import_bible_text(args: argparse.Namespace) -> None:
    path = Path(args.file)
    if not path.exists():
        raise CompanionError(f"File not found: {path}")
    count = import_chapters_from_file(
        open_texts(args),
        path,
        args.translation,
        sheet_name=args.sheet,
        max_rows=args.max_rows,
    )
    ok(f"Imported {count} chapter(s).")


def cmd_migrate_notes(args: argparse.Namespace) -> None:
    """
    Migrate notes from the old flat JSON format { "book:chapter:verse": "text" }.
    """
    path = Path(args.file)
    if not path.exists():
        raise CompanionError(f"File not found: {path}")
    try:
        old_notes = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise CompanionError(f"Invalid JSON: {e}") from e
    if not isinstance(old_notes, dict):
        raise CompanionError("Legacy notes file must contain a JSON object")

    migrated = open_store(args).migrate_legacy_notes(old_notes)
    ok(f"Migrated {migrated} note(s).")


def cmd_clear(args: argparse.Namespace) -> None:
    if not args.yes:
        warn("Refusing to clear without --yes.")
        sys.exit(1)
    open_store(args).clear()
    if args.include_texts:
        open_texts(args).clear()
    ok("Store cleared.")


# ---------- Parser setup ----------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="companion",
        description=f"{config.APP_NAME} CLI (v{config.__version__})",
    )
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Path to SQLite DB (default: companion.sqlite in the home directory)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # status
    p_status = sub.add_parser("status", help="Show note, research and chapter counts")
    p_status.set_defaults(func=cmd_status)

    # note-save
    p_ns = sub.add_parser("note-save", help="Save (replace) the personal note for a reference")
    p_ns.add_argument("ref", type=str, help="Reference, e.g. 'John 3:16' or 'John 3:16-18'")
    p_ns.add_argument("--text", type=str, default=None, help="Note text (HTML allowed)")
    p_ns.add_argument("--text-file", type=str, default=None, help="Read note text from a file")
    p_ns.add_argument("--drawing-file", type=str, default=None, help="File holding a drawing data URL")
    p_ns.set_defaults(func=cmd_note_save)

    # note-show
    p_nshow = sub.add_parser("note-show", help="Show the note and research stored for a reference")
    p_nshow.add_argument("ref", type=str, help="Reference, e.g. 'John 3:16'")
    p_nshow.set_defaults(func=cmd_note_show)

    # note-delete
    p_nd = sub.add_parser("note-delete", help="Delete the personal note for a reference")
    p_nd.add_argument("ref", type=str, help="Reference, e.g. 'John 3:16'")
    p_nd.set_defaults(func=cmd_note_delete)

    # research-add
    p_ra = sub.add_parser("research-add", help="Add an AI research entry to a reference")
    p_ra.add_argument("ref", type=str, help="Reference, e.g. 'John 3:16'")
    p_ra.add_argument("--query", type=str, required=True, help="The question asked")
    p_ra.add_argument("--response", type=str, default=None, help="The answer received")
    p_ra.add_argument("--response-file", type=str, default=None, help="Read the answer from a file")
    p_ra.add_argument("--selected-text", type=str, default=None, help="Verse text the question was about")
    p_ra.add_argument("--tag", action="append", default=None, help="Tag (repeatable)")
    p_ra.set_defaults(func=cmd_research_add)

    # research-delete
    p_rd = sub.add_parser("research-delete", help="Delete a research entry by id")
    p_rd.add_argument("ref", type=str, help="Reference, e.g. 'John 3:16'")
    p_rd.add_argument("entry_id", type=str, help="Research entry id")
    p_rd.set_defaults(func=cmd_research_delete)

    # search
    p_search = sub.add_parser("search", help="Search personal notes (or research with --research)")
    p_search.add_argument("query", type=str, help="Search text")
    p_search.add_argument("--research", action="store_true", help="Search AI research instead of notes")
    p_search.set_defaults(func=cmd_search)

    # export
    p_exp = sub.add_parser("export", help="Export notes and research to a file")
    p_exp.add_argument("--format", choices=EXPORT_FORMATS, default="json", help="Output format (default: json)")
    p_exp.add_argument("--output", type=str, default=None, help="Output directory (default: exports/)")
    p_exp.set_defaults(func=cmd_export)

    # export-backup
    p_bak = sub.add_parser("export-backup", help="Export notes and cached Bible texts as one backup file")
    p_bak.add_argument("--output", type=str, default=None, help="Output directory (default: exports/)")
    p_bak.set_defaults(func=cmd_export_backup)

    # import
    p_imp = sub.add_parser("import", help="Import a notes export, Bible text export or combined backup")
    p_imp.add_argument("file", type=str, help="JSON file to import")
    p_imp.add_argument(
        "--strategy",
        choices=[s.value for s in Strategy],
        default=config.DEFAULT_STRATEGY,
        help=f"How to resolve keys that already exist (default: {config.DEFAULT_STRATEGY})",
    )
    p_imp.set_defaults(func=cmd_import)

    # import-bible-text
    p_ibt = sub.add_parser("import-bible-text", help="Cache Bible chapters from an Excel or CSV file")
    p_ibt.add_argument("file", type=str, help="Path to .xlsx or .csv with book/chapter/verse/text columns")
    p_ibt.add_argument("translation", type=str, help="Translation code, e.g. web")
    p_ibt.add_argument("--sheet", type=str, default=None, help="Worksheet name (default: active sheet)")
    p_ibt.add_argument("--max-rows", type=int, default=None, help="Maximum number of data rows to read")
    p_ibt.set_defaults(func=cmd_import_bible_text)

    # migrate-notes
    p_mig = sub.add_parser("migrate-notes", help="Migrate notes from the old flat JSON format")
    p_mig.add_argument("file", type=str, help="JSON object of 'book:chapter:verse' -> text")
    p_mig.set_defaults(func=cmd_migrate_notes)

    # clear
    p_clear = sub.add_parser("clear", help="Delete all notes and research")
    p_clear.add_argument("--yes", action="store_true", help="Confirm deletion")
    p_clear.add_argument("--include-texts", action="store_true", help="Also delete cached Bible texts")
    p_clear.set_defaults(func=cmd_clear)

    return parser


# ---------- Main ----------


def main(argv=None) -> None:
    ensure_basic_dirs()
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except CompanionError as e:
        warn(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
