# MDBMerge - Removal Engine
# =========================
"""
Removes every row of one imported source from the store.

All tables carrying the identity column are cleaned, the import ledger
included. By default the deletes share one transaction. With
atomic=False each delete commits on its own and a failure part-way
leaves earlier tables cleaned (PartialRemovalError says which).
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List

import duckdb

from ..data.store import DestinationStore, quote_identifier
from ..errors import PartialRemovalError, RemovalError

logger = logging.getLogger(__name__)


@dataclass
class RemovalResult:
    """Rows deleted per table for one identity code."""
    identity_code: str
    table_rows: Dict[str, int] = field(default_factory=dict)

    @property
    def rows_deleted(self) -> int:
        return sum(self.table_rows.values())


class RemovalEngine:
    """Deletes all rows tagged with an identity code, serialized with imports."""

    def __init__(self, store: DestinationStore, atomic: bool = True):
        self.store = store
        self.atomic = atomic

    def remove(self, identity_code: str) -> RemovalResult:
        """
        Remove all records of an identity code.

        Removing a code that owns no rows is a no-op.

        Args:
            identity_code: Identity code to remove

        Returns:
            RemovalResult with per-table deleted counts

        Raises:
            RemovalError: If the atomic removal failed (nothing deleted)
            PartialRemovalError: If a non-atomic removal failed part-way
        """
        with self.store.write_lock:
            tables = self._tables_with_identity()
            if self.atomic:
                result = self._remove_atomic(identity_code, tables)
            else:
                result = self._remove_each(identity_code, tables)

        logger.info(
            f"Removed {result.rows_deleted} rows for {identity_code} "
            f"from {len(result.table_rows)} tables"
        )
        return result

    def _tables_with_identity(self) -> List[str]:
        identity = self.store.identity_column.lower()
        return [
            t for t in self.store.list_tables(include_internal=True)
            if identity in (c.lower() for c in self.store.table_columns(t))
        ]

    def _delete_sql(self, table_name: str) -> str:
        return (
            f"DELETE FROM {quote_identifier(table_name)} "
            f"WHERE {quote_identifier(self.store.identity_column)} = ?"
        )

    def _remove_atomic(self, identity_code: str, tables: List[str]) -> RemovalResult:
        result = RemovalResult(identity_code=identity_code)
        try:
            with self.store.transaction() as conn:
                for table_name in tables:
                    deleted = conn.execute(self._delete_sql(table_name), [identity_code]).fetchone()
                    result.table_rows[table_name] = deleted[0] if deleted else 0
        except duckdb.Error as e:
            logger.error(f"Removal of {identity_code} rolled back: {e}")
            raise RemovalError(f"Failed to remove records for {identity_code}: {e}") from e
        return result

    def _remove_each(self, identity_code: str, tables: List[str]) -> RemovalResult:
        result = RemovalResult(identity_code=identity_code)
        conn = self.store.connection
        for table_name in tables:
            try:
                deleted = conn.execute(self._delete_sql(table_name), [identity_code]).fetchone()
            except duckdb.Error as e:
                logger.error(f"Removal of {identity_code} failed on {table_name}: {e}")
                if not result.table_rows:
                    raise RemovalError(
                        f"Failed to remove records for {identity_code}: {e}"
                    ) from e
                raise PartialRemovalError(identity_code, table_name, result.table_rows, str(e)) from e
            result.table_rows[table_name] = deleted[0] if deleted else 0
        return result
