import argparse
import sys
from pathlib import Path

from pydantic import BaseModel

from studybank.database import SessionLocal, init_db
from studybank.errors import BankError
from studybank.logging_setup import setup_console_logging
from studybank.services.bank_service import (
    export_bank,
    export_global_bank,
    import_bank,
    merge_global_bank,
)
from studybank.services.compact_service import export_all_compact_subjects, export_compact_subject
from studybank.services.contribution_service import (
    export_contribution_pack,
    import_contribution_pack,
    load_pack_file,
)
from studybank.services.grading_service import subject_grade_breakdown
from studybank.services.settings_service import get_settings
from studybank.utils import json_dump, write_json_file

setup_console_logging()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Study question bank tools")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the database tables")

    import_pack = commands.add_parser("import-pack", help="Merge a contribution pack")
    import_pack.add_argument("file", type=Path, help="Path to the pack JSON file")

    export_pack = commands.add_parser("export-pack", help="Export a contribution pack")
    export_pack.add_argument("subject_id", help="Subject to export")
    export_pack.add_argument("--topic", dest="topic_id", help="Only questions of this topic")
    export_pack.add_argument(
        "--alias",
        help="Only questions created by this alias (defaults to the configured alias)",
    )
    export_pack.add_argument("--output", type=Path, help="Write to this file instead of stdout")

    bank = commands.add_parser("export-bank", help="Export a bank snapshot")
    bank.add_argument(
        "--subject",
        dest="subject_ids",
        action="append",
        help="Subject to include (repeatable, all by default)",
    )
    bank.add_argument(
        "--global",
        dest="global_bank",
        action="store_true",
        help="Shareable snapshot without exam dates, stats or pack ids",
    )
    bank.add_argument("--output", type=Path, help="Write to this file instead of stdout")

    import_bank_cmd = commands.add_parser("import-bank", help="Import a bank snapshot as new rows")
    import_bank_cmd.add_argument("file", type=Path, help="Path to the bank JSON file")

    merge = commands.add_parser("merge-global-bank", help="Merge a shared bank by identity")
    merge.add_argument("file", type=Path, help="Path to the bank JSON file")

    compact = commands.add_parser("export-compact", help="Export the compact question summary")
    compact.add_argument("--subject", dest="subject_id", help="Single subject (all by default)")
    compact.add_argument("--output", type=Path, help="Write to this file instead of stdout")

    grades = commands.add_parser("grades", help="Show the grade breakdown of a subject")
    grades.add_argument("subject_id", help="Subject to grade")

    return parser.parse_args(argv)


def _payload(result: object) -> object:
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json", exclude_none=True)
    if isinstance(result, list):
        return [_payload(item) for item in result]
    return result


def _emit(result: object, output: Path | None = None) -> None:
    payload = _payload(result)
    if output:
        write_json_file(output, payload)
        print(f"Saved to {output}")
    else:
        print(json_dump(payload))


def run(args: argparse.Namespace) -> None:
    init_db()
    if args.command == "init-db":
        print("Database ready")
        return

    db = SessionLocal()
    try:
        if args.command == "import-pack":
            _emit(import_contribution_pack(db, load_pack_file(args.file)))
        elif args.command == "export-pack":
            alias = args.alias if args.alias is not None else get_settings(db).alias
            _emit(export_contribution_pack(db, args.subject_id, alias, args.topic_id), args.output)
        elif args.command == "export-bank":
            export = export_global_bank if args.global_bank else export_bank
            _emit(export(db, args.subject_ids), args.output)
        elif args.command == "import-bank":
            _emit(import_bank(db, load_pack_file(args.file)))
        elif args.command == "merge-global-bank":
            _emit(merge_global_bank(db, load_pack_file(args.file)))
        elif args.command == "export-compact":
            if args.subject_id:
                _emit(export_compact_subject(db, args.subject_id), args.output)
            else:
                _emit(export_all_compact_subjects(db), args.output)
        elif args.command == "grades":
            _emit(subject_grade_breakdown(db, args.subject_id))
        else:
            raise ValueError(f"Unknown command: {args.command}")
    finally:
        db.close()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        run(args)
    except BankError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
