# MDBMerge
# ========
"""
Consolidates legacy Access database files into one DuckDB store.

Subpackages:
- data: source reading, identity resolution, store, schema and writes
- ingest: concurrent import sessions, duplicate guard, removal
- reports: catalog reports, ad-hoc queries and CSV export
"""

__version__ = "0.1.0"
