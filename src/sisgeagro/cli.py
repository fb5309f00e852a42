"""Command-line interface for SisGeAgro."""

import argparse
import os
import sys
from datetime import date
from pathlib import Path

from sisgeagro import __version__
from sisgeagro.config import DatabaseType, Settings, get_settings
from sisgeagro.container import Container
from sisgeagro.domain.movements import MovementFilter
from sisgeagro.domain.value_objects import MovementType
from sisgeagro.exceptions import SisGeAgroError
from sisgeagro.logging_config import LogContext, configure_logging
from sisgeagro.parsers.csv_parser import MovementCSVParser
from sisgeagro.repositories.sqlite import SQLiteDatabase


def get_default_db_path() -> Path:
    """Get the default database path in user's home directory."""
    return Path.home() / ".sisgeagro" / "sisgeagro.db"


def _db_path(args: argparse.Namespace) -> Path:
    return Path(args.database) if args.database else get_default_db_path()


def create_container(db_path: Path | None = None) -> Container:
    """Create a container bound to a SQLite file, creating its directory."""
    if db_path is None:
        db_path = get_default_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return Container(
        settings=Settings(database_type=DatabaseType.SQLITE, sqlite_path=db_path)
    )


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize a new database."""
    db_path = _db_path(args)

    if db_path.exists() and not args.force:
        print(f"Database already exists at {db_path}")
        print("Use --force to reinitialize (WARNING: will delete existing data)")
        return 1

    if db_path.exists() and args.force:
        db_path.unlink()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = SQLiteDatabase(str(db_path))
    db.initialize()
    db.close()

    print(f"Initialized database at {db_path}")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show database status."""
    db_path = _db_path(args)

    if not db_path.exists():
        print(f"No database found at {db_path}")
        print("Run 'sisgeagro init' to create a new database")
        return 1

    with create_container(db_path) as container:
        repos = container.repositories
        print(f"Database: {db_path}")
        print(f"Entities: {len(list(repos.entities.list_all()))}")
        print(f"Categories: {len(list(repos.categories.list_all()))}")
        print(f"Subcategories: {len(list(repos.subcategories.list_all()))}")
        print(f"Taxes: {len(list(repos.taxes.list_all()))}")
        for movement_type in MovementType:
            count = len(
                repos.movements.list_views(MovementFilter(movement_type=movement_type))
            )
            print(f"  - {movement_type.value}: {count} movements")

    return 0


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    print(f"SisGeAgro v{__version__}")
    return 0


def cmd_import_csv(args: argparse.Namespace) -> int:
    """Import movements from a semicolon-delimited CSV file."""
    file_path = Path(args.file)

    if not file_path.exists():
        print(f"Error: File not found: {file_path}")
        return 1

    rows = MovementCSVParser(delimiter=args.delimiter).parse_file(file_path)
    if not rows:
        print(f"No data rows found in {file_path}")
        return 1

    with create_container(_db_path(args)) as container:
        try:
            with LogContext(actor_id=args.user, source=str(file_path)):
                results = container.bulk_importer.import_rows(rows, args.user)
        except SisGeAgroError as e:
            print(f"Error: {e.message}")
            return 1

    failed = [r for r in results if not r.success]
    print(f"Imported {len(results) - len(failed)} of {len(results)} rows from {file_path}")
    for result in failed:
        print(f"  Row {result.row}: {result.error}")

    return 1 if failed else 0


def cmd_stats(args: argparse.Namespace) -> int:
    """Show income, expense and balance for a bill-date range."""
    try:
        start_date = date.fromisoformat(args.start)
        end_date = date.fromisoformat(args.end)
    except ValueError as e:
        print(f"Error: Invalid date: {e}")
        return 1

    with create_container(_db_path(args)) as container:
        try:
            stats = container.dashboard_service.get_stats(start_date, end_date)
        except SisGeAgroError as e:
            print(f"Error: {e.message}")
            return 1

    totals = stats.totals
    print(f"Period: {stats.start_date} to {stats.end_date}")
    print(f"Movements: {stats.movement_count}")
    print(f"Income:     {totals.income:>14,.2f}  ({stats.income_change:+}%)")
    print(f"Expense:    {totals.expense:>14,.2f}  ({stats.expense_change:+}%)")
    print(f"Investment: {totals.investment:>14,.2f}")
    print(f"Taxes:      {totals.taxes:>14,.2f}")
    print(f"Balance:    {totals.balance:>14,.2f}  ({stats.balance_change:+}%)")

    if stats.by_category:
        print("\nBy category:")
        for category, per_type in sorted(stats.by_category.items()):
            parts = ", ".join(f"{kind} {amount:,.2f}" for kind, amount in sorted(per_type.items()))
            print(f"  {category}: {parts}")

    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    if args.database:
        os.environ["SGA_DATABASE_TYPE"] = DatabaseType.SQLITE.value
        os.environ["SGA_SQLITE_PATH"] = str(Path(args.database))

    settings = get_settings()
    uvicorn.run(
        "sisgeagro.api.app:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        reload=args.reload or settings.api_reload,
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="sisgeagro",
        description="SisGeAgro - Income, expense and investment movements with bills and taxes",
    )
    parser.add_argument(
        "--database",
        "-d",
        help="Path to SQLite database file",
        default=None,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init command
    init_parser = subparsers.add_parser("init", help="Initialize a new database")
    init_parser.add_argument(
        "--force",
        "-f",
        action="store_true",
        help="Force reinitialization (deletes existing data)",
    )
    init_parser.set_defaults(func=cmd_init)

    # status command
    status_parser = subparsers.add_parser("status", help="Show database status")
    status_parser.set_defaults(func=cmd_status)

    # version command
    version_parser = subparsers.add_parser("version", help="Show version")
    version_parser.set_defaults(func=cmd_version)

    # import-csv command
    import_parser = subparsers.add_parser(
        "import-csv", help="Import movements from a CSV file"
    )
    import_parser.add_argument("file", help="CSV file to import")
    import_parser.add_argument(
        "--user",
        "-u",
        required=True,
        help="User id recorded as the creator of the movements",
    )
    import_parser.add_argument(
        "--delimiter",
        default=";",
        help="Column delimiter (default: ';')",
    )
    import_parser.set_defaults(func=cmd_import_csv)

    # stats command
    stats_parser = subparsers.add_parser("stats", help="Show dashboard totals")
    stats_parser.add_argument("--start", required=True, help="Start date (YYYY-MM-DD)")
    stats_parser.add_argument("--end", required=True, help="End date (YYYY-MM-DD)")
    stats_parser.set_defaults(func=cmd_stats)

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address (default: SGA_API_HOST)")
    serve_parser.add_argument("--port", type=int, help="Port (default: SGA_API_PORT)")
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload (development only)"
    )
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command != "serve":
        configure_logging()

    result: int = args.func(args)
    return result


if __name__ == "__main__":
    sys.exit(main())
