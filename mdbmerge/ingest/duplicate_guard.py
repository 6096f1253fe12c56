# MDBMerge - Duplicate Guard
# ==========================
"""
At-most-one-import-per-identity check.

The guard looks for rows owned by an identity code in the marker table
(the import ledger by default). It must be called while holding the
store's write_lock, in the same critical section as the write it gates.
Query errors propagate: a guard that cannot answer fails the job rather
than letting a possible duplicate through.
"""

import logging
from typing import List, Tuple

from ..config import LEDGER_TABLE
from ..data.store import DestinationStore, quote_identifier

logger = logging.getLogger(__name__)


class DuplicateGuard:
    """Answers whether an identity code already owns rows in the store."""

    def __init__(self, store: DestinationStore, marker_table: str = LEDGER_TABLE):
        self.store = store
        self.marker_table = marker_table

    def is_imported(self, identity_code: str) -> bool:
        """
        Check whether an identity code has already been imported.

        Args:
            identity_code: Resolved identity code

        Returns:
            True if the marker table has a row for the code
        """
        with self.store.write_lock:
            if not self.store.table_exists(self.marker_table):
                return False
            row = self.store.connection.execute(
                f"SELECT 1 FROM {quote_identifier(self.marker_table)} "
                f"WHERE {quote_identifier(self.store.identity_column)} = ? LIMIT 1",
                [identity_code]
            ).fetchone()
        return row is not None

    def imported_sources(self) -> List[Tuple[str, str]]:
        """
        List imported sources as (identity code, file name) pairs.

        Returns:
            Distinct pairs ordered by identity code
        """
        identity = quote_identifier(self.store.identity_column)
        filename = quote_identifier(self.store.filename_column)
        with self.store.write_lock:
            if not self.store.table_exists(self.marker_table):
                return []
            rows = self.store.connection.execute(
                f"SELECT DISTINCT {identity}, {filename} "
                f"FROM {quote_identifier(self.marker_table)} "
                f"WHERE {identity} IS NOT NULL AND {filename} IS NOT NULL "
                f"ORDER BY {identity}, {filename}"
            ).fetchall()
        return [(r[0], r[1]) for r in rows]
