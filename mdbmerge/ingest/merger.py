# MDBMerge - Source Merger
# ========================
# Writes every table of one source file in a single transaction
"""
Merges one open source file into the destination store.

Tables are written in source-listed order. All tables and the ledger
row share one transaction, so a failure on any table leaves the store
exactly as it was before the file's import began.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from ..config import LEDGER_TABLE, MergeConfig
from ..data.batch_writer import BatchWriter
from ..data.schema import SchemaUnifier
from ..data.source_reader import SourceReader
from ..data.store import DestinationStore, quote_identifier

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    """Rows written per table for one source file."""
    identity_code: str
    source_name: str
    table_rows: Dict[str, int] = field(default_factory=dict)
    skipped_tables: List[str] = field(default_factory=list)

    @property
    def rows_written(self) -> int:
        return sum(self.table_rows.values())


class SourceMerger:
    """
    Schema unification plus batched writes for whole source files.

    One merger (and its schema cache) is shared by all jobs of a session.
    """

    def __init__(self, store: DestinationStore, batch_size: int = 500,
                 unifier: Optional[SchemaUnifier] = None):
        self.store = store
        self.unifier = unifier or SchemaUnifier(store)
        self.writer = BatchWriter(store, batch_size=batch_size)

    @classmethod
    def from_config(cls, store: DestinationStore, config: MergeConfig) -> "SourceMerger":
        return cls(store, batch_size=config.batch_size)

    def merge_source(self, reader: SourceReader, identity_code: str,
                     source_name: Optional[str] = None) -> MergeResult:
        """
        Write all tables of a source file tagged with its provenance.

        Args:
            reader: Open source reader
            identity_code: Resolved identity code
            source_name: File name for the provenance column

        Returns:
            MergeResult with per-table row counts

        Raises:
            SchemaMismatchError: If a table does not fit its destination
            WriteFailureError: If a batched insert fails
            SourceReadError: If a table cannot be read
        """
        source_name = source_name or reader.display_name
        result = MergeResult(identity_code=identity_code, source_name=source_name)
        created: List[str] = []

        with self.store.write_lock:
            try:
                with self.store.transaction() as conn:
                    for table_name in reader.list_tables():
                        table = reader.open_table(table_name)
                        if not table.columns:
                            logger.warning(f"{source_name}: table {table_name} has no readable columns, skipped")
                            result.skipped_tables.append(table_name)
                            continue

                        schema, was_created = self.unifier.ensure_table(table_name, table.columns)
                        if was_created:
                            created.append(table_name)
                        result.table_rows[table_name] = self.writer.write_table(
                            table, schema, identity_code, source_name
                        )

                    self._record_import(conn, result)
            except Exception:
                self.unifier.forget(created)
                logger.error(f"Rolled back import of {source_name} ({identity_code})")
                raise

        logger.info(
            f"Merged {source_name} as {identity_code}: "
            f"{result.rows_written} rows in {len(result.table_rows)} tables"
        )
        return result

    def _record_import(self, conn, result: MergeResult):
        """Append the ledger row for a merged source."""
        conn.execute(
            f"INSERT INTO {quote_identifier(LEDGER_TABLE)} ("
            f"{quote_identifier(self.store.identity_column)}, "
            f"{quote_identifier(self.store.filename_column)}, "
            f"imported_at, table_count, row_count) VALUES (?, ?, ?, ?, ?)",
            [result.identity_code, result.source_name, datetime.now(),
             len(result.table_rows), result.rows_written]
        )
