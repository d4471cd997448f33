from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from app.core.settings import settings, validate_settings
from app.db.session import SessionLocal, engine
from app.models import Base
from app.services.census.errors import CensusImportBlocked
from app.services.census.importer import ImportPolicy, apply_census_import, preview_census
from app.services.census.sql_store import SqlDocumentStore
from app.services.census.store import DocumentStore, JsonFileDocumentStore


def _read_census(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    source = Path(path)
    if not source.exists():
        raise RuntimeError(f"Census file does not exist: {source}")
    return source.read_text(encoding="utf-8", errors="replace")


def _build_store(kind: str, path: str | None) -> DocumentStore:
    if kind == "json":
        return JsonFileDocumentStore(path or settings.json_store_path)
    Base.metadata.create_all(bind=engine)
    return SqlDocumentStore(SessionLocal, key=settings.document_key)


def _print_json(payload: dict[str, object]) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True, default=str))


def main() -> int:
    parser = argparse.ArgumentParser(description="Preview or apply a pasted census report.")
    parser.add_argument("census_file", help="Census text file, or '-' to read stdin.")
    parser.add_argument(
        "--store",
        choices=["json", "sql"],
        default="json",
        help="Where the facility document lives (default: json).",
    )
    parser.add_argument(
        "--path",
        default=None,
        help="JSON document path for --store json (default: JSON_STORE_PATH).",
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Apply the selected rows (default is a dry-run preview).",
    )
    parser.add_argument(
        "--confirm",
        default="",
        help="Safety latch for apply mode (must be 'APPLY').",
    )
    parser.add_argument(
        "--select-all",
        action="store_true",
        help="Select every parsed row instead of the default selection.",
    )
    parser.add_argument(
        "--allow-errors",
        action="store_true",
        help="Allow rows with validation errors to be imported.",
    )
    parser.add_argument("--user", default=None, help="User recorded on audit entries.")
    args = parser.parse_args()

    if args.apply and args.confirm != "APPLY":
        print("Refusing to apply without --confirm APPLY.")
        return 2

    try:
        validate_settings(settings)
        policy = ImportPolicy.from_settings(settings)
        raw_text = _read_census(args.census_file)
        preview = preview_census(raw_text, policy)
        selected = (
            [row.key for row in preview.rows] if args.select_all else preview.default_selected
        )
        if not args.apply:
            _print_json(
                {
                    "mode": "dry-run",
                    "summary": preview.summary.as_dict(),
                    "selected": selected,
                    "rows": [row.model_dump(mode="json") for row in preview.rows],
                }
            )
            return 0
        stats = apply_census_import(
            _build_store(args.store, args.path),
            raw_text,
            selected,
            allow_error_override=args.allow_errors,
            policy=policy,
            user=args.user,
        )
    except CensusImportBlocked as exc:
        _print_json({"mode": "apply", "error": str(exc), "error_keys": exc.error_keys})
        return 2
    except RuntimeError as exc:
        print(f"Census import failed: {exc}", file=sys.stderr)
        return 1

    _print_json({"mode": "apply", "stats": stats.as_dict()})
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
