# MDBMerge Reports Module
# =======================
"""
Reporting over the merged store.

This module provides:
- QueryCatalog: named date-range report templates
- ReportQueryRunner / QueryResult: background query execution
- ProgressTicker: indeterminate progress while a report runs
- export_csv / read_csv: delimited-text export
"""

from .catalog import QueryCatalog
from .progress import ProgressTicker
from .runner import ReportQueryRunner, QueryResult
from .export import export_csv, read_csv

__all__ = [
    'QueryCatalog',
    'ProgressTicker',
    'ReportQueryRunner',
    'QueryResult',
    'export_csv',
    'read_csv',
]
