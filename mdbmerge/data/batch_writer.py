# MDBMerge - Batch Writer
# =======================
# Streams source rows into destination tables in bounded batches
"""
Batched row writer.

Rows are mapped by column name into the destination column order,
coerced to text, tagged with the provenance values and appended in
batches of `batch_size`. Each batch is materialized as a DataFrame and
inserted with INSERT ... SELECT, so memory stays bounded regardless of
source size.

The writer never opens or commits transactions itself: the caller wraps
all tables of one source file in a single transaction.
"""

import logging
from typing import Any, List, Optional, Sequence, Tuple

import duckdb
import pandas as pd

from .schema import TableSchema
from .source_reader import SourceTable, to_text
from .store import DestinationStore
from ..errors import MergeError, SchemaMismatchError, WriteFailureError

logger = logging.getLogger(__name__)

BATCH_RELATION = "_mdbmerge_batch"


class BatchWriter:
    """
    Writes one source table into its destination table.

    Example:
        writer = BatchWriter(store, batch_size=500)
        with store.transaction():
            rows = writer.write_table(source_table, schema, 'HFR-001', 'site.mdb')
    """

    def __init__(self, store: DestinationStore, batch_size: int = 500):
        self.store = store
        self.batch_size = batch_size

    def write_table(self, table: SourceTable, schema: TableSchema,
                    identity_code: str, source_name: str) -> int:
        """
        Stream all rows of a source table into the destination table.

        Args:
            table: Open source table
            schema: Destination schema descriptor
            identity_code: Value for the identity provenance column
            source_name: Value for the filename provenance column

        Returns:
            Number of rows written

        Raises:
            SchemaMismatchError: If the table or a row does not fit the schema
            WriteFailureError: For any other failure while writing
        """
        source_columns = schema.bind(table.columns)
        allowed = set(table.columns)
        provenance = (identity_code, source_name)

        written = 0
        batch: List[Tuple[Optional[str], ...]] = []
        try:
            for row in table.rows:
                unexpected = [k for k in row.keys() if k not in allowed]
                if unexpected:
                    raise SchemaMismatchError(schema.table_name, unexpected=unexpected,
                                              reason="row does not match table schema")
                batch.append(tuple(to_text(row.get(c)) for c in source_columns) + provenance)
                if len(batch) >= self.batch_size:
                    written += self._flush(schema, batch)
                    batch = []

            if batch:
                written += self._flush(schema, batch)
        except MergeError:
            raise
        except Exception as e:
            raise WriteFailureError(schema.table_name, str(e)) from e

        logger.debug(f"Wrote {written} rows into {schema.table_name} for {identity_code}")
        return written

    def _flush(self, schema: TableSchema, batch: Sequence[Tuple[Any, ...]]) -> int:
        """Insert one batch through a registered DataFrame."""
        frame = pd.DataFrame(
            list(batch),
            columns=[f"c{i}" for i in range(len(schema.columns))],
            dtype=object,
        )
        conn = self.store.connection
        conn.register(BATCH_RELATION, frame)
        try:
            conn.execute(schema.insert_sql(BATCH_RELATION))
        except duckdb.Error as e:
            raise WriteFailureError(schema.table_name, str(e)) from e
        finally:
            conn.unregister(BATCH_RELATION)
        return len(batch)
