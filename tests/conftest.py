"""
Pytest fixtures shared by the MDBMerge test suites.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from mdbmerge.config import MergeConfig
from mdbmerge.data.source_reader import SourceReader, SourceTable
from mdbmerge.data.store import DestinationStore
from mdbmerge.errors import SourceReadError


class FakeSourceReader(SourceReader):
    """In-memory source file: table name -> (columns, rows)."""

    def __init__(self, path, tables: Mapping[str, Dict[str, Any]]):
        super().__init__(path)
        self.tables = dict(tables)
        self.closed = False

    def list_tables(self) -> List[str]:
        return list(self.tables)

    def open_table(self, name: str) -> SourceTable:
        if name not in self.tables:
            raise KeyError(name)
        spec = self.tables[name]
        return SourceTable(name=name, columns=list(spec['columns']), rows=iter(list(spec['rows'])))

    def close(self):
        self.closed = True


def make_source(code: Optional[str], visits: int = 3, patients: int = 2,
                visit_dates: Optional[Sequence[str]] = None) -> Dict[str, Dict[str, Any]]:
    """Build the tables of one facility file with tblConfig naming its code."""
    dates = list(visit_dates or [f"2023-0{(i % 9) + 1}-15" for i in range(visits)])
    return {
        'tblConfig': {
            'columns': ['HFRCode', 'FacilityName'],
            'rows': [{'HFRCode': code, 'FacilityName': f'Facility {code}'}],
        },
        'tblPatient': {
            'columns': ['PatientID', 'Sex', 'Age'],
            'rows': [
                {'PatientID': f'{code}-P{i}', 'Sex': 'F' if i % 2 else 'M', 'Age': 20 + i}
                for i in range(patients)
            ],
        },
        'tblVisit': {
            'columns': ['VisitID', 'PatientID', 'VisitDate'],
            'rows': [
                {'VisitID': f'{code}-V{i}', 'PatientID': f'{code}-P0', 'VisitDate': d}
                for i, d in enumerate(dates)
            ],
        },
    }


class FakeSourceFactory:
    """Reader factory resolving paths to registered fake sources."""

    def __init__(self):
        self.sources: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.broken: Dict[str, str] = {}
        self.opened: List[FakeSourceReader] = []

    def add(self, name: str, tables: Mapping[str, Dict[str, Any]]) -> Path:
        self.sources[name] = dict(tables)
        return Path(name)

    def add_broken(self, name: str, error: str = 'not a database file') -> Path:
        self.broken[name] = error
        return Path(name)

    def __call__(self, path) -> SourceReader:
        path = Path(path)
        if path.name in self.broken:
            raise SourceReadError(f"Cannot open {path.name}: {self.broken[path.name]}")
        if path.name not in self.sources:
            raise SourceReadError(f"File not found: {path}")
        reader = FakeSourceReader(path, self.sources[path.name])
        self.opened.append(reader)
        return reader


@pytest.fixture
def temp_db_path(tmp_path):
    """Path for a temporary DuckDB store."""
    return str(tmp_path / 'store' / 'converted.duckdb')


@pytest.fixture
def merge_config(temp_db_path):
    """Configuration pointing at the temporary store."""
    return MergeConfig(db_path=temp_db_path, max_workers=4)


@pytest.fixture
def store(merge_config):
    """Open destination store, closed after the test."""
    store = DestinationStore.from_config(merge_config)
    yield store
    store.close()


@pytest.fixture
def source_factory():
    """Empty fake reader factory."""
    return FakeSourceFactory()


@pytest.fixture
def facility_tables():
    """Builder for the tables of one facility file."""
    return make_source


@pytest.fixture
def make_reader():
    """Build a FakeSourceReader from a table mapping."""
    def _make(tables, path='site.mdb'):
        return FakeSourceReader(path, tables)
    return _make
