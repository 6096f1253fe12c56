"""
Tests for SourceMerger and DuplicateGuard.
"""

import duckdb
import pytest

from mdbmerge.config import LEDGER_TABLE
from mdbmerge.errors import SchemaMismatchError
from mdbmerge.ingest.duplicate_guard import DuplicateGuard
from mdbmerge.ingest.merger import SourceMerger


class TestSourceMerger:
    """Test whole-file merges."""

    def test_merge_writes_all_tables_and_ledger(self, store, make_reader, facility_tables):
        reader = make_reader(facility_tables('A'), path='a.mdb')
        result = SourceMerger(store).merge_source(reader, 'A')

        assert result.source_name == 'a.mdb'
        assert result.table_rows == {'tblConfig': 1, 'tblPatient': 2, 'tblVisit': 3}
        assert result.rows_written == 6

        ledger = store.connection.execute(
            f'SELECT hfr_code, source_mdb, table_count, row_count FROM "{LEDGER_TABLE}"'
        ).fetchall()
        assert ledger == [('A', 'a.mdb', 3, 6)]

    def test_tables_without_columns_skipped(self, store, make_reader, facility_tables):
        tables = facility_tables('A')
        tables['tblEmpty'] = {'columns': [], 'rows': []}
        result = SourceMerger(store).merge_source(make_reader(tables), 'A')
        assert result.skipped_tables == ['tblEmpty']
        assert not store.table_exists('tblEmpty')

    def test_failure_leaves_store_unchanged(self, store, make_reader, facility_tables):
        """Test that a failing table undoes every table of the file."""
        tables = facility_tables('A')
        tables['tblBad'] = {'columns': ['hfr_code'], 'rows': []}
        merger = SourceMerger(store)

        with pytest.raises(SchemaMismatchError):
            merger.merge_source(make_reader(tables), 'A')

        assert store.list_tables() == []
        assert store.count_rows(LEDGER_TABLE) == 0

        # Tables created by the rolled-back file are created again next time
        result = merger.merge_source(make_reader(facility_tables('A')), 'A')
        assert result.rows_written == 6
        assert store.list_tables() == ['tblConfig', 'tblPatient', 'tblVisit']


class TestDuplicateGuard:
    """Test marker table lookups."""

    def test_empty_store(self, store):
        guard = DuplicateGuard(store)
        assert guard.is_imported('A') is False
        assert guard.imported_sources() == []

    def test_after_merge(self, store, make_reader, facility_tables):
        SourceMerger(store).merge_source(make_reader(facility_tables('A'), path='a.mdb'), 'A')
        guard = DuplicateGuard(store)
        assert guard.is_imported('A') is True
        assert guard.is_imported('B') is False
        assert guard.imported_sources() == [('A', 'a.mdb')]

    def test_custom_marker_table(self, store, make_reader, facility_tables):
        """Test using a data table as marker."""
        SourceMerger(store).merge_source(make_reader(facility_tables('A')), 'A')
        guard = DuplicateGuard(store, marker_table='tblConfig')
        assert guard.is_imported('A') is True

    def test_missing_marker_table(self, store):
        guard = DuplicateGuard(store, marker_table='tblNotThere')
        assert guard.is_imported('A') is False

    def test_marker_table_without_identity_column_fails(self, store):
        """Test that lookup errors propagate rather than allowing a duplicate."""
        store.connection.execute('CREATE TABLE plain (a VARCHAR)')
        guard = DuplicateGuard(store, marker_table='plain')
        with pytest.raises(duckdb.Error):
            guard.is_imported('A')
