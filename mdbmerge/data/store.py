# MDBMerge - Destination Store
# ============================
# Owns the single DuckDB connection that all imports merge into
"""
Destination store handle.

One DestinationStore owns one DuckDB connection. Every mutation
(duplicate check, table creation, batched insert, removal, reset) runs
under write_lock; reads go through short-lived cursors so reporting
never queues behind an import.

Example:
    store = DestinationStore('data/converted.duckdb')

    with store.write_lock:
        with store.transaction() as conn:
            conn.execute('INSERT INTO ...')

    with store.read_cursor() as cursor:
        rows = cursor.execute('SELECT ...').fetchall()
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import duckdb

from ..config import LEDGER_TABLE, MergeConfig
from ..errors import StoreConnectionError

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"
INTERNAL_PREFIX = "_mdbmerge_"

# Checkpoint threshold used while an import session is running
BULK_CHECKPOINT_THRESHOLD = "1GB"


def quote_identifier(name: str) -> str:
    """Double-quote a SQL identifier, escaping embedded quotes."""
    escaped = name.replace('"', '""')
    return f'"{escaped}"'


class DestinationStore:
    """
    Handle on the consolidated DuckDB store.

    Thread Safety:
    - Mutations: callers hold write_lock (re-entrant) around them
    - Reads: read_cursor() gives each caller its own cursor
    """

    def __init__(self, db_path: str,
                 identity_column: str = "hfr_code",
                 filename_column: str = "source_mdb"):
        """
        Open (or create) the destination store.

        Args:
            db_path: Path to the DuckDB file, or ":memory:"
            identity_column: Provenance column holding the identity code
            filename_column: Provenance column holding the source file name

        Raises:
            StoreConnectionError: If the database cannot be opened
        """
        self.db_path = db_path
        self.identity_column = identity_column
        self.filename_column = filename_column
        self.write_lock = threading.RLock()

        self._conn: Optional[duckdb.DuckDBPyConnection] = None
        self._connect()

    @classmethod
    def from_config(cls, config: MergeConfig) -> "DestinationStore":
        return cls(
            config.db_path,
            identity_column=config.identity_column,
            filename_column=config.filename_column,
        )

    @property
    def is_memory(self) -> bool:
        return self.db_path == MEMORY_PATH

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """The writer connection. Use only while holding write_lock."""
        if self._conn is None:
            raise StoreConnectionError(self.db_path, "store is closed")
        return self._conn

    def _connect(self):
        """Establish the database connection and the import ledger."""
        try:
            if not self.is_memory:
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = duckdb.connect(self.db_path)
            self._init_ledger_table()
        except (duckdb.Error, OSError) as e:
            self._conn = None
            raise StoreConnectionError(self.db_path, str(e)) from e
        logger.info(f"Connected to destination store: {self.db_path}")

    def _init_ledger_table(self):
        """Create the import ledger if not exists."""
        self._conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {quote_identifier(LEDGER_TABLE)} (
                {quote_identifier(self.identity_column)} VARCHAR,
                {quote_identifier(self.filename_column)} VARCHAR,
                imported_at TIMESTAMP,
                table_count INTEGER,
                row_count BIGINT
            )
        """)

    def ensure_open(self):
        """
        Reconnect if the store was closed.

        Raises:
            StoreConnectionError: If the database cannot be opened
        """
        with self.write_lock:
            if self._conn is None:
                self._connect()

    def close(self):
        """Close database connection."""
        with self.write_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def reset(self):
        """
        Discard the whole store and start empty (fresh import).

        Raises:
            StoreConnectionError: If the file cannot be removed or reopened
        """
        with self.write_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
            if not self.is_memory:
                for path in (Path(self.db_path), Path(self.db_path + ".wal")):
                    try:
                        path.unlink()
                    except FileNotFoundError:
                        pass
                    except OSError as e:
                        raise StoreConnectionError(self.db_path, f"cannot remove {path}: {e}") from e
            logger.info(f"Reset destination store: {self.db_path}")
            self._connect()

    @contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """
        Run a block in one transaction on the writer connection.

        Commits on success; rolls back and re-raises on any exception.
        """
        with self.write_lock:
            conn = self.connection
            conn.begin()
            try:
                yield conn
            except Exception:
                conn.rollback()
                raise
            else:
                conn.commit()

    @contextmanager
    def read_cursor(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Yield a dedicated cursor for read-only queries."""
        cursor = self.connection.cursor()
        try:
            yield cursor
        finally:
            cursor.close()

    @contextmanager
    def relaxed_durability(self) -> Iterator[None]:
        """
        Defer checkpoints for the duration of a bulk import session.

        The setting is reset and the WAL checkpointed on exit.
        """
        with self.write_lock:
            self.connection.execute(
                f"SET checkpoint_threshold = '{BULK_CHECKPOINT_THRESHOLD}'"
            )
        try:
            yield
        finally:
            with self.write_lock:
                if self._conn is not None:
                    self._conn.execute("RESET checkpoint_threshold")
                    try:
                        self._conn.execute("CHECKPOINT")
                    except duckdb.Error as e:
                        logger.warning(f"Checkpoint after import deferred: {e}")

    def list_tables(self, include_internal: bool = False) -> List[str]:
        """List tables in the store, ordered by name."""
        with self.write_lock:
            rows = self.connection.execute("""
                SELECT table_name FROM information_schema.tables
                WHERE table_schema = 'main' AND table_type = 'BASE TABLE'
                ORDER BY table_name
            """).fetchall()
        names = [r[0] for r in rows]
        if include_internal:
            return names
        return [n for n in names if not n.startswith(INTERNAL_PREFIX)]

    def table_columns(self, table_name: str) -> List[str]:
        """
        Get ordered column names of a table.

        Returns:
            Column names, or an empty list if the table does not exist
        """
        with self.write_lock:
            rows = self.connection.execute("""
                SELECT column_name FROM information_schema.columns
                WHERE table_schema = 'main' AND lower(table_name) = lower(?)
                ORDER BY ordinal_position
            """, [table_name]).fetchall()
        return [r[0] for r in rows]

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        with self.write_lock:
            result = self.connection.execute("""
                SELECT COUNT(*) FROM information_schema.tables
                WHERE table_schema = 'main' AND lower(table_name) = lower(?)
            """, [table_name]).fetchone()
        return result[0] > 0

    def count_rows(self, table_name: str, identity_code: Optional[str] = None) -> int:
        """Count rows of a table, optionally only those of one identity code."""
        sql = f"SELECT COUNT(*) FROM {quote_identifier(table_name)}"
        params: list = []
        if identity_code is not None:
            sql += f" WHERE {quote_identifier(self.identity_column)} = ?"
            params.append(identity_code)
        with self.write_lock:
            return self.connection.execute(sql, params).fetchone()[0]
