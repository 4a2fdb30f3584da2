from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

from crm_import.config.loader import DEFAULT_CONFIG_PATH, AppConfig, ConfigError, load_config
from crm_import.db.insert import StoreError
from crm_import.db.store import MemoryStore, Store, connect, ensure_schema
from crm_import.logging.error_log import ErrorLogBuffer
from crm_import.logging.init import log_summary, setup_logging
from crm_import.models.import_kind import ImportKind, InvalidImportKindError
from crm_import.models.import_result import ImportResult
from crm_import.parsing.reader import ParseError
from crm_import.services.export import export_filename, export_workbook
from crm_import.services.mapping import MappingIncompleteError
from crm_import.services.orchestrator import ProcessingError, commit_file, preview_file
from crm_import.services.summary import render_summary_line
from crm_import.services.templates import build_template
from crm_import.services.validation import ValidationError

"""``crm-import`` command line.

Subcommands:
    preview FILE --type KIND          headers, proposed mapping and first rows
    import FILE --type KIND           parse, map, validate and write
    template --type KIND              write the sample import file
    export --type KIND --out PATH     write stored rows as .xlsx
    init-db                           create the tables from schema.sql
    serve                             run the HTTP API with uvicorn

Exit codes: 0 everything imported, 2 some records skipped, 1 fatal.
A finished ``import`` ends with a SUMMARY line.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

# Batch-blocking failures: reported with one ERROR line, exit 1
FATAL_ERRORS: tuple[type[Exception], ...] = (
    ConfigError,
    InvalidImportKindError,
    MappingIncompleteError,
    ParseError,
    ProcessingError,
    StoreError,
    ValidationError,
)

KINDS = [k.value for k in ImportKind]


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; its values win over the process environment for DB settings."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="crm-import", description="CRM spreadsheet importer (customers, leads, sales)")
    p.add_argument("--config", type=Path, default=None, help=f"YAML config (default: {DEFAULT_CONFIG_PATH} if present)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    pv = sub.add_parser("preview", help="Show headers, proposed mapping and first rows")
    pv.add_argument("file", type=Path)
    pv.add_argument("--type", dest="kind", required=True, choices=KINDS)
    pv.add_argument("--limit", type=int, default=5, help="Rows to print (default 5)")

    im = sub.add_parser("import", help="Import a CSV/XLSX file")
    im.add_argument("file", type=Path)
    im.add_argument("--type", dest="kind", required=True, choices=KINDS)
    im.add_argument("--mappings", default=None, help="FieldMapping[] as JSON, or @path to a JSON file")
    im.add_argument("--dry-run", action="store_true", help="Run the whole pipeline against an in-memory store")

    tp = sub.add_parser("template", help="Write the sample import file")
    tp.add_argument("--type", dest="kind", required=True, choices=KINDS)
    tp.add_argument("--format", dest="fmt", choices=["csv", "xlsx"], default="csv")
    tp.add_argument("--out", type=Path, default=None, help="Output path (default: template file name)")

    ex = sub.add_parser("export", help="Export stored rows to .xlsx")
    ex.add_argument("--type", dest="kind", required=True, choices=KINDS)
    ex.add_argument("--out", type=Path, default=None)

    sub.add_parser("init-db", help="Create customers/leads/sales tables if missing")

    sv = sub.add_parser("serve", help="Run the HTTP API")
    sv.add_argument("--host", default=None)
    sv.add_argument("--port", type=int, default=None)
    return p.parse_args(argv)


def _resolve_config(path: Path | None) -> AppConfig:
    if path is not None:
        return load_config(path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return load_config(None)


def _read_mappings(value: str | None) -> str | None:
    if value and value.startswith("@"):
        return Path(value[1:]).read_text(encoding="utf-8")
    return value


def _cmd_preview(args: argparse.Namespace, cfg: AppConfig, logger) -> int:
    result = preview_file(
        args.file.read_bytes(),
        args.kind,
        cfg.updated(preview_limit=max(args.limit, 1)).imports,
        filename=args.file.name,
    )
    logger.info(f"file={args.file.name} kind={args.kind} total={result.total}")
    logger.info(f"headers={result.headers}")
    for m in result.mappings:
        logger.info(f"  {m.source_field} -> {m.target_field or '(not imported)'}")
    for i, row in enumerate(result.data, start=1):
        logger.info(f"  row {i}: {row}")
    return EXIT_SUCCESS_ALL


def _cmd_import(args: argparse.Namespace, cfg: AppConfig, logger) -> int:
    kind = ImportKind.parse(args.kind)
    content = args.file.read_bytes()
    mappings = _read_mappings(args.mappings)
    error_log = ErrorLogBuffer(cfg.imports.error_log_dir)
    start = time.perf_counter()

    def run(store: Store) -> ImportResult:
        return commit_file(
            content,
            kind,
            store,
            cfg.imports,
            filename=args.file.name,
            mappings=mappings,
            error_log=error_log,
        )

    if args.dry_run:
        logger.info("dry-run: writing to an in-memory store")
        result = run(MemoryStore())
    else:
        with connect(cfg.database) as store:
            result = run(store)

    log_summary(render_summary_line(kind, result, time.perf_counter() - start)[len("SUMMARY "):])
    return EXIT_SUCCESS_ALL if result.complete else EXIT_PARTIAL_FAILURE


def _cmd_template(args: argparse.Namespace, cfg: AppConfig, logger) -> int:
    template = build_template(args.kind, args.fmt)
    out = args.out or Path(template.filename)
    out.write_bytes(template.content)
    logger.info(f"template written: {out}")
    return EXIT_SUCCESS_ALL


def _cmd_export(args: argparse.Namespace, cfg: AppConfig, logger) -> int:
    kind = ImportKind.parse(args.kind)
    out = args.out or Path(export_filename(kind))
    with connect(cfg.database) as store:
        rows = store.fetch_all(kind)
        customers = store.fetch_all(ImportKind.CUSTOMERS) if kind is ImportKind.SALES else None
    out.write_bytes(export_workbook(kind, rows, customers))
    logger.info(f"exported {len(rows)} {kind.value} to {out}")
    return EXIT_SUCCESS_ALL


def _cmd_init_db(args: argparse.Namespace, cfg: AppConfig, logger) -> int:
    with connect(cfg.database) as store:
        ensure_schema(store.cursor)
    logger.info("schema ready: customers, leads, sales")
    return EXIT_SUCCESS_ALL


def _cmd_serve(args: argparse.Namespace, cfg: AppConfig, logger) -> int:  # pragma: no cover (blocking)
    import uvicorn

    from crm_import.api.app import create_app

    uvicorn.run(create_app(cfg), host=args.host or cfg.api.host, port=args.port or cfg.api.port)
    return EXIT_SUCCESS_ALL


COMMANDS = {
    "preview": _cmd_preview,
    "import": _cmd_import,
    "template": _cmd_template,
    "export": _cmd_export,
    "init-db": _cmd_init_db,
    "serve": _cmd_serve,
}


def main(argv: list[str] | None = None) -> int:
    # argv=[] must not fall back to sys.argv (pytest flags would leak in)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    if args.debug:
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = _resolve_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        return COMMANDS[args.command](args, cfg, logger)
    except FATAL_ERRORS as e:
        logger.error(f"{args.command}: {e}")
        return EXIT_FATAL
    except OSError as e:
        logger.error(f"{args.command}: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
