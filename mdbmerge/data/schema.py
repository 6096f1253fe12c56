# MDBMerge - Schema Unifier
# =========================
# Shared destination tables for heterogeneous source tables
"""
Schema unification for destination tables.

A destination table is named after its source table and holds the
source columns followed by the two provenance columns, all VARCHAR.
The first source to bring a table creates it; later sources must match
its column set or the write is rejected. Existing tables are never
altered.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Set, Tuple

from .store import DestinationStore, quote_identifier
from ..errors import SchemaMismatchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableSchema:
    """Ordered column layout of one destination table."""
    table_name: str
    data_columns: Tuple[str, ...]
    identity_column: str
    filename_column: str

    @property
    def columns(self) -> Tuple[str, ...]:
        """All columns in insert order, provenance last."""
        return self.data_columns + (self.identity_column, self.filename_column)

    def create_sql(self) -> str:
        column_defs = ", ".join(f"{quote_identifier(c)} VARCHAR" for c in self.columns)
        return f"CREATE TABLE IF NOT EXISTS {quote_identifier(self.table_name)} ({column_defs})"

    def insert_sql(self, relation: str) -> str:
        column_list = ", ".join(quote_identifier(c) for c in self.columns)
        return (
            f"INSERT INTO {quote_identifier(self.table_name)} ({column_list}) "
            f"SELECT * FROM {relation}"
        )

    def bind(self, source_columns: Iterable[str]) -> List[str]:
        """
        Map each data column to the source column of the same name.

        Returns:
            Source column names in data column order

        Raises:
            SchemaMismatchError: If the column sets differ
        """
        by_key = {c.lower(): c for c in source_columns}
        missing, unexpected = _diff_columns(self.data_columns, by_key.values())
        if missing or unexpected:
            raise SchemaMismatchError(self.table_name, missing=missing, unexpected=unexpected)
        return [by_key[c.lower()] for c in self.data_columns]


def _diff_columns(expected: Iterable[str], actual: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Return (missing, unexpected) comparing column names case-insensitively."""
    expected_by_key = {c.lower(): c for c in expected}
    actual_by_key = {c.lower(): c for c in actual}
    missing = [expected_by_key[k] for k in expected_by_key if k not in actual_by_key]
    unexpected = [actual_by_key[k] for k in actual_by_key if k not in expected_by_key]
    return missing, unexpected


class SchemaUnifier:
    """
    Creates destination tables on first encounter and reuses them after.

    The cache lives for one session: each new table costs one CREATE
    statement, and known tables are validated without touching the
    store. Callers must hold the store's write_lock.
    """

    def __init__(self, store: DestinationStore):
        self.store = store
        self._known: Dict[str, TableSchema] = {}

    def ensure_table(self, table_name: str, source_columns: List[str]) -> Tuple[TableSchema, bool]:
        """
        Ensure a destination table exists for a source table.

        Args:
            table_name: Source (and destination) table name
            source_columns: Ordered source column names

        Returns:
            Tuple of (schema descriptor, whether the table was created)

        Raises:
            SchemaMismatchError: If the columns clash with provenance
                columns or with an existing table
        """
        self._check_source_columns(table_name, source_columns)

        key = table_name.lower()
        schema = self._known.get(key)
        if schema is None:
            existing = self.store.table_columns(table_name)
            if existing:
                schema = self._schema_from_existing(table_name, existing)
                self._known[key] = schema
            else:
                schema = TableSchema(
                    table_name=table_name,
                    data_columns=tuple(source_columns),
                    identity_column=self.store.identity_column,
                    filename_column=self.store.filename_column,
                )
                self.store.connection.execute(schema.create_sql())
                self._known[key] = schema
                logger.info(f"Created destination table {table_name} ({len(source_columns)} columns)")
                return schema, True

        schema.bind(source_columns)
        return schema, False

    def forget(self, table_names: Iterable[str]):
        """Drop cached schemas, e.g. for tables created in a rolled-back transaction."""
        for name in table_names:
            self._known.pop(name.lower(), None)

    def clear(self):
        self._known.clear()

    def _check_source_columns(self, table_name: str, source_columns: List[str]):
        reserved = {self.store.identity_column.lower(), self.store.filename_column.lower()}
        clashes = [c for c in source_columns if c.lower() in reserved]
        if clashes:
            raise SchemaMismatchError(
                table_name, unexpected=clashes,
                reason="source columns collide with provenance columns"
            )
        seen: Set[str] = set()
        duplicates = []
        for column in source_columns:
            if column.lower() in seen:
                duplicates.append(column)
            seen.add(column.lower())
        if duplicates:
            raise SchemaMismatchError(table_name, unexpected=duplicates,
                                      reason="duplicate source column names")

    def _schema_from_existing(self, table_name: str, existing: List[str]) -> TableSchema:
        """Build a descriptor from a table created in an earlier session."""
        provenance = [self.store.identity_column, self.store.filename_column]
        if [c.lower() for c in existing[-2:]] != [p.lower() for p in provenance]:
            raise SchemaMismatchError(
                table_name,
                reason=f"existing table lacks trailing provenance columns {provenance}"
            )
        return TableSchema(
            table_name=table_name,
            data_columns=tuple(existing[:-2]),
            identity_column=existing[-2],
            filename_column=existing[-1],
        )
