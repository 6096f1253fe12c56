#!/usr/bin/env python3
# MDBMerge - Merge Sources
# ========================
# Command-line entry point for importing, removing and reporting
"""
MDBMerge command line.

Usage:
    # Fresh import of a folder of Access files
    python scripts/merge_sources.py import data/raw --fresh

    # Merge more files into the existing store
    python scripts/merge_sources.py import site_a.mdb site_b.accdb

    # Remove everything imported for one facility
    python scripts/merge_sources.py remove 104321-5

    # Inspect the store
    python scripts/merge_sources.py sources
    python scripts/merge_sources.py tables
    python scripts/merge_sources.py query "SELECT COUNT(*) FROM tblVisit"

    # Run a catalog report and save it as CSV
    python scripts/merge_sources.py report "Visits per facility" \\
        --start 2023-01-01 --end 2023-12-31 --output visits.csv
"""

import sys
import argparse
import logging
from pathlib import Path
from typing import List, Optional

import duckdb

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from mdbmerge.config import MergeConfig
from mdbmerge.data.source_reader import discover_source_files
from mdbmerge.data.store import DestinationStore
from mdbmerge.errors import MergeError
from mdbmerge.ingest.coordinator import ImportCoordinator
from mdbmerge.ingest.duplicate_guard import DuplicateGuard
from mdbmerge.ingest.models import ImportMode, ProgressUpdate
from mdbmerge.ingest.removal import RemovalEngine
from mdbmerge.reports.catalog import QueryCatalog
from mdbmerge.reports.export import export_csv
from mdbmerge.reports.runner import QueryResult, ReportQueryRunner

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def print_result(result: QueryResult, limit: int = 50):
    """Print a query result as a plain text table."""
    print(" | ".join(result.columns))
    print("-" * 60)
    for row in result.rows[:limit]:
        print(" | ".join("" if v is None else v for v in row))
    if result.row_count > limit:
        print(f"... {result.row_count - limit} more rows")


def cmd_import(args, config: MergeConfig, store: DestinationStore) -> int:
    files = discover_source_files(args.paths)
    if not files:
        logger.error("No .mdb or .accdb files found")
        return 1

    def on_progress(update: ProgressUpdate):
        print(update.describe())

    mode = ImportMode.FRESH if args.fresh else ImportMode.MERGE
    summary = ImportCoordinator(store, config).run(files, mode, on_progress=on_progress)

    print("\n" + "=" * 60)
    print(f"{mode.value.upper()} IMPORT: {summary.succeeded}/{summary.total} imported "
          f"({summary.rows_written} rows) in {summary.duration_seconds:.1f}s")
    if summary.skipped:
        print("\nSkipped (already imported):")
        for message in summary.skipped:
            print(f"  - {message}")
    if summary.failures:
        print("\nFailed:")
        for name, error in summary.failures_by_file.items():
            print(f"  - {name}: {error}")
    print("=" * 60)
    return 1 if summary.failures else 0


def cmd_remove(args, config: MergeConfig, store: DestinationStore) -> int:
    result = RemovalEngine(store, atomic=config.atomic_removal).remove(args.code)
    if not result.rows_deleted:
        print(f"No records found for {args.code}")
        return 0
    for table_name, count in sorted(result.table_rows.items()):
        if count:
            print(f"  {table_name}: {count}")
    print(f"Removed {result.rows_deleted} rows for {args.code}")
    return 0


def cmd_sources(args, config: MergeConfig, store: DestinationStore) -> int:
    sources = DuplicateGuard(store, config.marker_table).imported_sources()
    for code, file_name in sources:
        print(f"{code} [ {file_name} ]")
    print(f"{len(sources)} imported source(s)")
    return 0


def cmd_tables(args, config: MergeConfig, store: DestinationStore) -> int:
    for table_name in store.list_tables():
        print(f"{table_name}: {store.count_rows(table_name)} rows")
    return 0


def cmd_query(args, config: MergeConfig, store: DestinationStore) -> int:
    with ReportQueryRunner(store) as runner:
        result = runner.execute_query(args.sql)
    _emit(result, args.output)
    return 0


def cmd_report(args, config: MergeConfig, store: DestinationStore) -> int:
    catalog_path = args.catalog or config.query_catalog_path
    if not catalog_path:
        logger.error("No query catalog configured (use --catalog or MDBMERGE_QUERY_CATALOG)")
        return 1

    with ReportQueryRunner(store, QueryCatalog.load(catalog_path)) as runner:
        result = runner.submit(args.name, args.start, args.end).result()
    _emit(result, args.output)
    return 0


def _emit(result: QueryResult, output: Optional[str]):
    if output:
        path = export_csv(result, output)
        print(f"Saved {result.row_count} rows to {path}")
    else:
        print_result(result)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='MDBMerge - Consolidate Access databases into one DuckDB store',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        '--db',
        type=str,
        help='Destination DuckDB file (default: MDBMERGE_DB_PATH or the app data folder)'
    )
    parser.add_argument(
        '--env-file',
        type=str,
        help='Path to a .env file with MDBMERGE_* settings'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    sub = parser.add_subparsers(dest='command', required=True)

    p_import = sub.add_parser('import', help='Import .mdb/.accdb files or folders')
    p_import.add_argument('paths', nargs='+', help='Source files or directories')
    mode = p_import.add_mutually_exclusive_group()
    mode.add_argument('--fresh', action='store_true', help='Discard the store before importing')
    mode.add_argument('--merge', action='store_true', help='Append to the store (default)')
    p_import.set_defaults(handler=cmd_import)

    p_remove = sub.add_parser('remove', help='Remove all records of one identity code')
    p_remove.add_argument('code', help='Identity code to remove')
    p_remove.set_defaults(handler=cmd_remove)

    p_sources = sub.add_parser('sources', help='List imported sources')
    p_sources.set_defaults(handler=cmd_sources)

    p_tables = sub.add_parser('tables', help='List destination tables with row counts')
    p_tables.set_defaults(handler=cmd_tables)

    p_query = sub.add_parser('query', help='Run an ad-hoc SQL query')
    p_query.add_argument('sql', help='SQL to execute')
    p_query.add_argument('--output', '-o', type=str, help='Write the result to a CSV file')
    p_query.set_defaults(handler=cmd_query)

    p_report = sub.add_parser('report', help='Run a catalog report for a date range')
    p_report.add_argument('name', help='Report name')
    p_report.add_argument('--start', required=True, help='Start date (YYYY-MM-DD)')
    p_report.add_argument('--end', required=True, help='End date (YYYY-MM-DD)')
    p_report.add_argument('--catalog', type=str, help='Query catalog JSON file')
    p_report.add_argument('--output', '-o', type=str, help='Write the result to a CSV file')
    p_report.set_defaults(handler=cmd_report)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = MergeConfig.from_env(args.env_file)
        if args.db:
            config.db_path = args.db
        with DestinationStore.from_config(config) as store:
            return args.handler(args, config, store)
    except MergeError as e:
        logger.error(str(e))
        return 1
    except duckdb.Error as e:
        logger.error(f"Query failed: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
