# MDBMerge Ingest Module
# ======================
"""
Import sessions and source removal.

This module provides:
- ImportCoordinator: concurrent multi-source import with progress events
- SourceMerger: whole-file transactional merge of one source
- DuplicateGuard: at-most-one-import-per-identity check
- RemovalEngine: delete every row of one identity code
"""

from .models import (
    ImportMode,
    JobStatus,
    ImportJob,
    ImportSession,
    ImportSummary,
    ProgressUpdate,
)
from .duplicate_guard import DuplicateGuard
from .merger import SourceMerger, MergeResult
from .coordinator import ImportCoordinator, ImportHandle
from .removal import RemovalEngine, RemovalResult

__all__ = [
    # Models
    'ImportMode',
    'JobStatus',
    'ImportJob',
    'ImportSession',
    'ImportSummary',
    'ProgressUpdate',
    # Import
    'DuplicateGuard',
    'SourceMerger',
    'MergeResult',
    'ImportCoordinator',
    'ImportHandle',
    # Removal
    'RemovalEngine',
    'RemovalResult',
]
