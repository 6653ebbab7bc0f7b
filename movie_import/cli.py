"""
Command-line interface for the movie import pipeline.

Provides commands for:
- setup: Check and create required tables
- status: Show current database status
- test: Test the database connection
- run: Import a CSV export (batched, resumable)
- duplicates: List duplicate (title, year) groups
- clean: Remove duplicate movies
"""

import argparse
import sys
from typing import Optional

from .config import Config
from .database import DatabaseManager
from .exceptions import ReconciliationError
from .models import ResolutionPolicy
from .pipeline import MovieImportPipeline
from .utils import (
    confirm_action,
    format_number,
    print_header,
    print_status_table,
    truncate_string,
)


def positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def non_negative_int(value: str) -> int:
    """argparse type for offsets."""
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative, got {number}")
    return number


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with all commands."""
    parser = argparse.ArgumentParser(
        prog="movie_import",
        description="Movie import pipeline - load a movie export into a normalized schema",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Setup (run first)
  python -m movie_import setup

  # Import the whole export, skipping titles already in the database
  python -m movie_import run data/movies_last30years.csv

  # Import 2500 rows starting at row 5000
  python -m movie_import run data/movies_last30years.csv --offset 5000 --limit 2500

  # Show duplicates for 2019, then remove all duplicates
  python -m movie_import duplicates --year 2019
  python -m movie_import clean
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("setup", help="Check for missing tables and create them")
    subparsers.add_parser("status", help="Show current database status")
    subparsers.add_parser("test", help="Test database connection")

    # Run (import) command
    run_parser = subparsers.add_parser("run", help="Import a CSV export")
    run_parser.add_argument("csv_path", help="Path to the CSV export")
    run_parser.add_argument(
        "--batch-size",
        type=positive_int,
        help="Rows per batch (default: BATCH_SIZE or 500)",
    )
    run_parser.add_argument(
        "--offset",
        type=non_negative_int,
        default=0,
        help="Row offset to start from (resume cursor, default: 0)",
    )
    run_parser.add_argument(
        "--limit",
        type=positive_int,
        help="Maximum number of rows to process in this run",
    )
    run_parser.add_argument(
        "--no-skip-existing",
        action="store_true",
        help="Don't skip titles already in the database",
    )
    run_parser.add_argument("--min-year", type=int, help="Earliest release year to accept")
    run_parser.add_argument("--max-year", type=int, help="Latest release year to accept")
    run_parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Stop at the first failed batch",
    )
    run_parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable the progress bar",
    )

    # Duplicates command
    dup_parser = subparsers.add_parser("duplicates", help="List duplicate (title, year) groups")
    dup_parser.add_argument("--year", type=int, help="Only show this release year")
    dup_parser.add_argument(
        "--limit",
        type=positive_int,
        default=20,
        help="Number of groups to show (default: 20)",
    )

    # Clean command
    clean_parser = subparsers.add_parser("clean", help="Remove duplicate movies")
    clean_parser.add_argument(
        "--keep",
        choices=[p.value for p in ResolutionPolicy],
        default=ResolutionPolicy.KEEP_EARLIEST.value,
        help="Which movie of each group survives (default: earliest)",
    )
    clean_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report what would be removed",
    )
    clean_parser.add_argument(
        "--yes",
        action="store_true",
        help="Skip confirmation prompt",
    )

    return parser


def cmd_setup(pipeline: MovieImportPipeline) -> int:
    """Run setup command."""
    print_header("Movie Import Setup")

    result = pipeline.setup_database()

    print()
    for table in DatabaseManager.REQUIRED_TABLES:
        if table in result["existing"]:
            print(f"  {table:<20} EXISTS")
        elif table in result["created"]:
            print(f"  {table:<20} CREATED")
        else:
            print(f"  {table:<20} MISSING")

    print(f"\nSetup complete! {len(result['created'])} tables created, "
          f"{len(result['existing'])} already existed.")

    if result["all_present"]:
        return 0
    print("WARNING: Some tables are still missing!")
    return 1


def cmd_status(pipeline: MovieImportPipeline) -> int:
    """Run status command."""
    print_header("Movie Import Status")

    status = pipeline.get_status()

    def show(value):
        return "MISSING" if value is None else format_number(value)

    print_status_table(
        {
            "Movies": show(status["movie"]),
            "Directors": show(status["director"]),
            "Genres": show(status["genre"]),
            "Actors": show(status["actor"]),
            "Countries": show(status["country"]),
            "Movie-genre links": show(status["movie_genre"]),
            "Movie-actor links": show(status["movie_actor"]),
            "Duplicate groups": show(status["duplicate_groups"]),
        },
        title="Database Status",
    )

    if status["missing_tables"]:
        print(f"Missing tables: {', '.join(status['missing_tables'])}")
        print("\nRun 'python -m movie_import setup' to create missing tables.")

    return 0


def cmd_test(pipeline: MovieImportPipeline) -> int:
    """Run test connection command."""
    print_header("Connection Test")

    result = pipeline.test_connection()
    print(f"\nDB Connection: {'OK' if result['db_connected'] else 'FAILED'}")
    if result["db_error"]:
        print(f"  Error: {result['db_error']}")

    return 0 if result["db_connected"] else 1


def cmd_run(pipeline: MovieImportPipeline, args) -> int:
    """Run import command."""
    print_header("Import Movies")

    if args.offset:
        print(f"Resuming at row offset {format_number(args.offset)}")
    if args.limit is not None:
        print(f"Limited to {format_number(args.limit)} rows")
    print()

    try:
        stats = pipeline.run_csv(
            args.csv_path,
            start_offset=args.offset,
            skip_existing=not args.no_skip_existing,
            limit=args.limit,
            fail_fast=args.fail_fast,
        )
    except (RuntimeError, FileNotFoundError) as e:
        print(f"\nERROR: {e}")
        return 1

    print_status_table(
        {
            "Processed": format_number(stats.processed),
            "Inserted": format_number(stats.inserted),
            "Skipped (existing)": format_number(stats.skipped_existing),
            "Skipped (no title)": format_number(stats.skipped_no_title),
            "Skipped (no year)": format_number(stats.skipped_no_year),
            "Skipped (year range)": format_number(stats.skipped_year_range),
            "Skipped (insert failed)": format_number(stats.skipped_errors),
            "Failed batches": format_number(stats.failed_batches),
            "Genre links": format_number(stats.genre_links),
            "Actor links": format_number(stats.actor_links),
            "Next offset": stats.next_offset,
        },
        title="Results",
    )

    if not stats.exhausted:
        print(f"Run again with: --offset {stats.next_offset}")

    return 1 if stats.failed_batches else 0


def cmd_duplicates(pipeline: MovieImportPipeline, args) -> int:
    """Run duplicates listing command."""
    print_header("Duplicate Movies")

    groups = pipeline.find_duplicates(year=args.year, limit=args.limit)
    if not groups:
        print("\nNo duplicates found!")
        return 0

    print(f"\nShowing {len(groups)} duplicate groups:\n")
    for group in groups:
        print(f"  {truncate_string(group.display_line(), 100)}")
    return 0


def cmd_clean(pipeline: MovieImportPipeline, args) -> int:
    """Run duplicate removal command."""
    print_header("Remove Duplicate Movies")

    policy = ResolutionPolicy(args.keep)

    preview = pipeline.clean(policy=policy, dry_run=True)
    if preview.groups_found == 0:
        print("\nNo duplicates found!")
        return 0

    print(f"\nDuplicate groups: {format_number(preview.groups_found)}")
    print(f"Movies to remove: {format_number(preview.rows_to_remove)} (keeping {policy.value} of each)")

    if args.dry_run:
        print("\nDry run, nothing removed.")
        return 0

    if not args.yes:
        print("\nThis action CANNOT be undone!")
        try:
            if not confirm_action("Remove duplicates?"):
                print("Cancelled.")
                return 0
        except (EOFError, KeyboardInterrupt):
            print("\nCancelled.")
            return 0

    try:
        result = pipeline.clean(policy=policy)
    except ReconciliationError as e:
        print(f"\nERROR: {e} (no changes were made)")
        return 1

    print_status_table(
        {
            "Movies removed": format_number(result.rows_removed),
            "Links removed": format_number(result.links_removed),
            "Movies before": format_number(result.total_before),
            "Movies after": format_number(result.total_after),
            "Remaining duplicate groups": format_number(result.residual_groups),
        },
        title="Results",
    )

    if result.residual_groups:
        print("WARNING: duplicates remain after a committed pass; check for concurrent writers.")
        return 1
    return 0


def main(args: Optional[list] = None) -> int:
    """Main entry point for CLI."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 0

    try:
        config = Config.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}")
        print("\nMake sure your .env file contains either:")
        print("  DATABASE_URL=<sqlalchemy url>")
        print("or:")
        print("  SQL_HOST, SQL_PORT, SQL_USER, SQL_PASS, SQL_DB")
        return 1

    if parsed_args.command == "run":
        if parsed_args.batch_size is not None:
            config.batch_size = parsed_args.batch_size
        if parsed_args.min_year is not None:
            config.min_year = parsed_args.min_year
        if parsed_args.max_year is not None:
            config.max_year = parsed_args.max_year
        if parsed_args.no_progress:
            config.show_progress = False

    try:
        db = DatabaseManager(config)
        pipeline = MovieImportPipeline(db, config)
    except Exception as e:
        print(f"Error initializing pipeline: {e}")
        return 1

    try:
        if parsed_args.command == "setup":
            return cmd_setup(pipeline)
        elif parsed_args.command == "status":
            return cmd_status(pipeline)
        elif parsed_args.command == "test":
            return cmd_test(pipeline)
        elif parsed_args.command == "run":
            return cmd_run(pipeline, parsed_args)
        elif parsed_args.command == "duplicates":
            return cmd_duplicates(pipeline, parsed_args)
        elif parsed_args.command == "clean":
            return cmd_clean(pipeline, parsed_args)
        else:
            parser.print_help()
            return 0

    except KeyboardInterrupt:
        print("\n\nOperation cancelled.")
        return 130
    except Exception as e:
        print(f"\nError: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
