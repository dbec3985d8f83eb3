#!/usr/bin/env python3
"""
Dealership Stock Inventory - Command Line Tools

CLI Commands:
    doctor             - Run preflight checks (Python, deps, config, database)
    init-db            - Create tables, optionally seeding a branch
    import-csv <file>  - Import stock units from a CSV file
    batches            - List CSV import batches

Usage:
    python main.py doctor
    python main.py init-db --branch "Main Showroom"
    python main.py import-csv stock.csv --branch-id 1
    python main.py import-csv stock.csv --branch-id 1 --preview
    python main.py batches --limit 10
"""

import argparse
import json
import os
import sys
from pathlib import Path

# Ensure project root is in path
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


def cmd_doctor(args):
    """Run preflight checks to ensure system is ready."""
    print("=" * 50)
    print(" Dealership Stock Inventory - System Check")
    print("=" * 50)
    print()

    all_ok = True
    warnings = []

    # Check 1: Python version
    print("[1/4] Python version...")
    py_version = sys.version_info
    if py_version.major >= 3 and py_version.minor >= 9:
        print(f"  OK: Python {py_version.major}.{py_version.minor}.{py_version.micro}")
    else:
        print(f"  FAIL: Python 3.9+ required (found {py_version.major}.{py_version.minor})")
        all_ok = False

    # Check 2: Required dependencies
    print("[2/4] Core dependencies...")
    required_deps = [
        ("fastapi", "HTTP API"),
        ("uvicorn", "ASGI server"),
        ("pydantic", "Request/response models"),
        ("multipart", "File uploads", "python-multipart"),
        ("dotenv", "Environment loading", "python-dotenv"),
    ]
    for dep in required_deps:
        module_name = dep[0]
        description = dep[1]
        pip_name = dep[2] if len(dep) > 2 else module_name
        try:
            __import__(module_name)
            print(f"  OK: {pip_name} ({description})")
        except ImportError:
            print(f"  FAIL: {pip_name} not installed")
            all_ok = False

    # Check 3: Configuration
    print("[3/4] Configuration validation...")
    try:
        from core.config import get_config

        config = get_config()
        config.validate()
        print(f"  OK: database at {config.storage.database_path}")
        print(f"  OK: import limits {config.imports.max_rows} rows / "
              f"{config.imports.max_file_bytes} bytes")
    except Exception as e:
        print(f"  FAIL: {e}")
        all_ok = False

    if not (Path(PROJECT_ROOT) / ".env").exists():
        print("  SKIP: No .env file, using environment and defaults")
        warnings.append("No .env file - defaults in effect")

    # Check 4: Database
    print("[4/4] Database...")
    if all_ok:
        from api.database import get_connection, get_db_path

        db_path = get_db_path()
        if db_path.exists():
            with get_connection() as conn:
                tables = {
                    row[0] for row in conn.execute(
                        "SELECT name FROM sqlite_master WHERE type = 'table'"
                    ).fetchall()
                }
            missing = {"stock_units", "customer_vehicles", "audit_events"} - tables
            if missing:
                print(f"  WARN: tables missing: {', '.join(sorted(missing))}")
                warnings.append("Database not fully initialized (run: python main.py init-db)")
            else:
                print(f"  OK: {db_path}")
        else:
            print(f"  SKIP: {db_path} does not exist yet")
            warnings.append("Database not created (run: python main.py init-db)")

    # Summary
    print()
    print("=" * 50)
    if all_ok and not warnings:
        print(" STATUS: ALL CHECKS PASSED")
    elif all_ok:
        print(f" STATUS: PASSED WITH {len(warnings)} WARNING(S)")
        for w in warnings:
            print(f"   - {w}")
    else:
        print(" STATUS: SOME CHECKS FAILED")
        print(" Fix the issues above before proceeding.")
    print("=" * 50)

    return 0 if all_ok else 1


def cmd_init_db(args):
    """Create tables and optionally a branch to import into."""
    from api.models import BranchRepository, init_schema
    from api.database import get_db_path

    init_schema()
    print(f"Database initialized: {get_db_path()}")

    if args.branch:
        branch_id = BranchRepository.create(args.branch)
        print(f"Created branch '{args.branch}' with id {branch_id}")

    return 0


def cmd_import_csv(args):
    """Import (or preview) a CSV stock file."""
    from api.models import init_schema
    from core.config import get_config
    from core.logging_config import setup_logging
    from services.errors import StockError
    from services.csv_reader import read_csv_rows
    from services.schema_detector import detect_schema
    from services.stock_ingestion import StockIngestionPipeline

    config = get_config()
    setup_logging(level=config.log_level, format_type=config.log_format)

    path = Path(args.file)
    if not path.is_file():
        print(f"Error: File not found: {path}")
        return 1

    content = path.read_bytes()
    if len(content) > config.imports.max_file_bytes:
        print(f"Error: File exceeds {config.imports.max_file_bytes} bytes")
        return 1

    init_schema()
    actor_id = args.actor or config.api.default_actor

    try:
        if args.preview:
            rows = read_csv_rows(content, max_rows=config.imports.max_rows)
            schema = detect_schema(rows, sample_size=config.imports.sample_size)
            result = {
                "total_rows": len(rows),
                "columns": schema.columns,
                "mappings": schema.mappings,
                "sample_data": schema.sample_data,
            }
        else:
            report = StockIngestionPipeline(config).run(
                content, path.name, args.branch_id, actor_id,
            )
            result = report.to_dict()
    except StockError as e:
        print(f"Error: {e.message}")
        return 1

    if args.json:
        print(json.dumps(result, indent=2, default=str))
        return 0

    if args.preview:
        print(f"Rows: {result['total_rows']}")
        print("Mappings:")
        for field_name, column in result["mappings"].items():
            print(f"  {field_name:16s} <- {column}")
        return 0

    print(f"Batch: {result['batch_id']}")
    print(f"Rows: {result['total_rows']}  "
          f"created: {result['success_count']}  failed: {result['failure_count']}")
    for error in result["errors"]:
        print(f"  row {error['row']}: {error['error']}")

    return 0 if result["success"] else 2


def cmd_batches(args):
    """List CSV import batches."""
    from api.models import init_schema
    from services.batch_reporting import list_batches

    init_schema()
    summaries, pagination = list_batches(page=args.page, limit=args.limit)

    if args.json:
        print(json.dumps({"items": summaries, "pagination": pagination}, indent=2, default=str))
        return 0

    if not summaries:
        print("No import batches")
        return 0

    print(f"{'BATCH':32s} {'IMPORTED':26s} {'TOTAL':>6s} {'AVAIL':>6s} {'SOLD':>6s}  FILE")
    for s in summaries:
        print(f"{s['batch_id']:32s} {str(s['import_date']):26s} {s['total_stocks']:6d} "
              f"{s['available_stocks']:6d} {s['sold_stocks']:6d}  {s['file_name'] or ''}")
    print(f"Page {pagination['page']} of {pagination['pages']} ({pagination['total']} batches)")

    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Dealership Stock Inventory - Command Line Tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py doctor
    python main.py init-db --branch "Main Showroom"
    python main.py import-csv stock.csv --branch-id 1 --json
    python main.py batches --page 2
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # doctor command
    subparsers.add_parser("doctor", help="Run preflight checks")

    # init-db command
    init_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_parser.add_argument("--branch", help="Also create a branch with this name")

    # import-csv command
    import_parser = subparsers.add_parser("import-csv", help="Import stock from a CSV file")
    import_parser.add_argument("file", help="Path to CSV file")
    import_parser.add_argument("--branch-id", type=int, help="Default branch for imported units")
    import_parser.add_argument("--actor", help="Actor recorded as updatedBy (default from config)")
    import_parser.add_argument("--preview", action="store_true", help="Detect columns only")
    import_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # batches command
    batches_parser = subparsers.add_parser("batches", help="List CSV import batches")
    batches_parser.add_argument("--page", type=int, default=1, help="Page number")
    batches_parser.add_argument("--limit", type=int, default=20, help="Batches per page")
    batches_parser.add_argument("--json", action="store_true", help="Output as JSON")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "doctor": cmd_doctor,
        "init-db": cmd_init_db,
        "import-csv": cmd_import_csv,
        "batches": cmd_batches,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
