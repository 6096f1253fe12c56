# MDBMerge - Source Reader Module
# ===============================
# Reads legacy desktop-database files table by table
"""
Source readers for legacy tabular files.

All readers expose the same capability:
- list_tables(): user table names in source order
- open_table(name): SourceTable with ordered columns and a lazy row stream

Rows are mappings of column name to raw value. Text coercion happens
once, at the write boundary, through to_text().
"""

import os
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Union

from access_parser import AccessParser

from ..errors import SourceReadError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ('.mdb', '.accdb')


def to_text(value: Any) -> Optional[str]:
    """Coerce a raw source value to its text cell representation."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, datetime):
        return value.isoformat(sep=' ')
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value)


@dataclass
class SourceTable:
    """One table of an open source file."""
    name: str
    columns: List[str]
    rows: Iterable[Mapping[str, Any]]


class SourceReader(ABC):
    """
    Abstract base class for source file readers.

    Readers are opened per import job and are never shared between
    threads, so implementations need no locking.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @property
    def display_name(self) -> str:
        """File name recorded in the provenance column."""
        return self.path.name

    @abstractmethod
    def list_tables(self) -> List[str]:
        """Return user table names in source order."""
        pass

    @abstractmethod
    def open_table(self, name: str) -> SourceTable:
        """
        Open a table for reading.

        Raises:
            KeyError: If the table does not exist
        """
        pass

    def close(self):
        """Release any resources held by the reader."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class AccessSourceReader(SourceReader):
    """Reader for Microsoft Access (.mdb / .accdb) files via access-parser."""

    def __init__(self, path: Union[str, Path]):
        super().__init__(path)
        if not self.path.exists():
            raise SourceReadError(f"File not found: {self.path}")
        try:
            self._db = AccessParser(str(self.path))
        except Exception as e:
            raise SourceReadError(f"Cannot open {self.path.name}: {e}") from e

    def list_tables(self) -> List[str]:
        return [
            name for name in self._db.catalog
            if not name.startswith('MSys')
        ]

    def open_table(self, name: str) -> SourceTable:
        if name not in self._db.catalog:
            raise KeyError(name)
        try:
            parsed = self._db.parse_table(name)
        except Exception as e:
            raise SourceReadError(
                f"Cannot read table '{name}' from {self.path.name}: {e}"
            ) from e

        columns = list(parsed.keys())
        return SourceTable(name=name, columns=columns, rows=_iter_columnar(parsed, columns))

    def close(self):
        self._db = None


def _iter_columnar(parsed: Dict[str, Sequence[Any]],
                   columns: List[str]) -> Iterator[Dict[str, Any]]:
    """Turn column-oriented parser output into a row stream."""
    row_count = max((len(parsed[c]) for c in columns), default=0)
    for i in range(row_count):
        yield {
            c: parsed[c][i] if i < len(parsed[c]) else None
            for c in columns
        }


def open_source_file(path: Union[str, Path]) -> SourceReader:
    """
    Open a source file with the reader matching its extension.

    Raises:
        SourceReadError: For unsupported extensions or unreadable files
    """
    path = Path(path)
    if path.suffix.lower() in SUPPORTED_EXTENSIONS:
        return AccessSourceReader(path)
    raise SourceReadError(f"Unsupported source file type: {path.name}")


def discover_source_files(paths: Iterable[Union[str, Path]],
                          extensions: Sequence[str] = SUPPORTED_EXTENSIONS) -> List[Path]:
    """
    Expand files and folders into the list of source files to import.

    Folders are walked recursively. Explicitly named files are kept even
    if their extension is not recognised, so that they fail visibly.

    Args:
        paths: Files and/or folders
        extensions: Extensions matched (case-insensitive) inside folders

    Returns:
        Sorted, de-duplicated list of file paths
    """
    found = set()
    for entry in paths:
        entry = Path(entry)
        if entry.is_dir():
            for root, _dirs, files in os.walk(entry):
                for filename in files:
                    if filename.lower().endswith(tuple(extensions)):
                        found.add(Path(root) / filename)
        else:
            found.add(entry)
    return sorted(found)


ReaderFactory = Callable[[Path], SourceReader]
