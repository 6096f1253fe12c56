"""
Tests for SchemaUnifier and TableSchema.
"""

import pytest

from mdbmerge.data.schema import SchemaUnifier, TableSchema
from mdbmerge.errors import SchemaMismatchError


@pytest.fixture
def unifier(store):
    return SchemaUnifier(store)


class TestTableSchema:
    """Test the ordered schema descriptor."""

    def test_provenance_columns_last(self):
        schema = TableSchema('tblVisit', ('VisitID', 'VisitDate'), 'hfr_code', 'source_mdb')
        assert schema.columns == ('VisitID', 'VisitDate', 'hfr_code', 'source_mdb')

    def test_bind_maps_by_name(self):
        """Test that binding follows names, not positions."""
        schema = TableSchema('t', ('A', 'B'), 'hfr_code', 'source_mdb')
        assert schema.bind(['b', 'a']) == ['a', 'b']

    def test_bind_rejects_different_columns(self):
        schema = TableSchema('t', ('A', 'B'), 'hfr_code', 'source_mdb')
        with pytest.raises(SchemaMismatchError) as exc_info:
            schema.bind(['A', 'C'])
        assert exc_info.value.missing == ['B']
        assert exc_info.value.unexpected == ['C']


class TestSchemaUnifier:
    """Test suite for SchemaUnifier class."""

    def test_creates_table_with_provenance(self, store, unifier):
        """Test first encounter creates the table."""
        schema, created = unifier.ensure_table('tblVisit', ['VisitID', 'VisitDate'])
        assert created is True
        assert store.table_columns('tblVisit') == ['VisitID', 'VisitDate', 'hfr_code', 'source_mdb']
        assert schema.data_columns == ('VisitID', 'VisitDate')

    def test_second_encounter_reuses(self, store, unifier, monkeypatch):
        """Test that a known table costs no further statements."""
        unifier.ensure_table('tblVisit', ['VisitID', 'VisitDate'])

        def fail_lookup(name):
            raise AssertionError('store queried for a known table')

        monkeypatch.setattr(store, 'table_columns', fail_lookup)
        schema, created = unifier.ensure_table('tblVisit', ['VisitDate', 'VisitID'])
        assert created is False
        assert schema.data_columns == ('VisitID', 'VisitDate')

    def test_mismatch_is_rejected(self, store, unifier):
        """Test that a later layout is not reconciled."""
        unifier.ensure_table('tblVisit', ['VisitID', 'VisitDate'])
        with pytest.raises(SchemaMismatchError) as exc_info:
            unifier.ensure_table('tblVisit', ['VisitID', 'Weight'])
        assert 'tblVisit' in str(exc_info.value)
        assert store.table_columns('tblVisit') == ['VisitID', 'VisitDate', 'hfr_code', 'source_mdb']

    def test_existing_table_from_earlier_session(self, store):
        """Test that a fresh unifier adopts a table already in the store."""
        SchemaUnifier(store).ensure_table('tblPatient', ['PatientID'])
        schema, created = SchemaUnifier(store).ensure_table('tblPatient', ['PatientID'])
        assert created is False
        assert schema.data_columns == ('PatientID',)

    def test_existing_table_without_provenance(self, store, unifier):
        store.connection.execute('CREATE TABLE legacy (a VARCHAR, b VARCHAR)')
        with pytest.raises(SchemaMismatchError):
            unifier.ensure_table('legacy', ['a', 'b'])

    def test_provenance_clash(self, unifier):
        """Test source columns that collide with provenance columns."""
        with pytest.raises(SchemaMismatchError):
            unifier.ensure_table('t', ['ID', 'HFR_CODE'])

    def test_duplicate_source_columns(self, unifier):
        with pytest.raises(SchemaMismatchError):
            unifier.ensure_table('t', ['Name', 'name'])

    def test_forget_drops_cache(self, store, unifier):
        """Test that forgotten tables are looked up again."""
        with pytest.raises(RuntimeError):
            with store.transaction():
                unifier.ensure_table('rolled_back', ['a'])
                raise RuntimeError('abort')
        unifier.forget(['rolled_back'])

        schema, created = unifier.ensure_table('rolled_back', ['a'])
        assert created is True
        assert store.table_exists('rolled_back')
