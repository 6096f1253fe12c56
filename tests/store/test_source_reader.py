"""
Tests for source reading helpers.
"""

from datetime import date, datetime, time
from decimal import Decimal

import pytest

from mdbmerge.data.source_reader import discover_source_files, open_source_file, to_text
from mdbmerge.errors import SourceReadError


class TestToText:
    """Test text coercion at the write boundary."""

    @pytest.mark.parametrize('value,expected', [
        (None, None),
        ('abc', 'abc'),
        (42, '42'),
        (1.5, '1.5'),
        (True, 'True'),
        (Decimal('10.25'), '10.25'),
        (b'\x01\xff', '01ff'),
        (datetime(2023, 5, 1, 8, 30), '2023-05-01 08:30:00'),
        (date(2023, 5, 1), '2023-05-01'),
        (time(8, 30), '08:30:00'),
    ])
    def test_coercion(self, value, expected):
        assert to_text(value) == expected


class TestDiscoverSourceFiles:
    """Test expansion of files and folders."""

    def test_walks_folders(self, tmp_path):
        (tmp_path / 'north').mkdir()
        (tmp_path / 'north' / 'a.mdb').touch()
        (tmp_path / 'north' / 'B.ACCDB').touch()
        (tmp_path / 'notes.txt').touch()
        (tmp_path / 'c.mdb').touch()

        found = discover_source_files([tmp_path])
        assert [p.name for p in found] == ['c.mdb', 'B.ACCDB', 'a.mdb']

    def test_explicit_files_kept(self, tmp_path):
        """Test that named files are kept whatever their extension."""
        odd = tmp_path / 'export.txt'
        odd.touch()
        assert discover_source_files([odd, odd]) == [odd]


class TestOpenSourceFile:
    """Test reader selection."""

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / 'data.csv'
        path.write_text('a,b\n')
        with pytest.raises(SourceReadError):
            open_source_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceReadError):
            open_source_file(tmp_path / 'gone.mdb')

    def test_corrupt_file(self, tmp_path):
        """Test that a file that is not a database fails to open."""
        path = tmp_path / 'broken.mdb'
        path.write_bytes(b'this is not an access database')
        with pytest.raises(SourceReadError):
            open_source_file(path)
