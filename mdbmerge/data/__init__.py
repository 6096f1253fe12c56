# MDBMerge Data Module
# ====================
"""
Source reading and destination storage.

This module provides:
- SourceReader / AccessSourceReader: read legacy tables as row streams
- resolve_identity: majority-vote identity code per source
- DestinationStore: the single DuckDB handle with its write lock
- SchemaUnifier / TableSchema: shared destination tables
- BatchWriter: bounded-batch inserts tagged with provenance
"""

from .source_reader import (
    SourceReader,
    AccessSourceReader,
    SourceTable,
    open_source_file,
    discover_source_files,
    to_text,
)
from .identity import resolve_identity, pick_majority, UNKNOWN_IDENTITY
from .store import DestinationStore, quote_identifier
from .schema import SchemaUnifier, TableSchema
from .batch_writer import BatchWriter

__all__ = [
    # Sources
    'SourceReader',
    'AccessSourceReader',
    'SourceTable',
    'open_source_file',
    'discover_source_files',
    'to_text',
    # Identity
    'resolve_identity',
    'pick_majority',
    'UNKNOWN_IDENTITY',
    # Store
    'DestinationStore',
    'quote_identifier',
    'SchemaUnifier',
    'TableSchema',
    'BatchWriter',
]
