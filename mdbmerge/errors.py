# MDBMerge - Error Classes
# ========================
"""
Exception hierarchy for the import/merge engine.

Duplicate identities are not errors: a duplicate source ends in the
SKIPPED job status and is reported separately from failures.
"""

from typing import Dict, List, Optional


class MergeError(Exception):
    """Base exception for all merge engine failures."""
    pass


class ConfigError(MergeError):
    """Raised for invalid runtime configuration."""
    pass


class StoreConnectionError(MergeError):
    """Raised when the destination store cannot be opened."""

    def __init__(self, db_path: str, original_error: Optional[str] = None):
        self.db_path = db_path
        self.original_error = original_error
        super().__init__(
            f"Cannot open destination store at {db_path}"
            + (f": {original_error}" if original_error else "")
        )


class SourceReadError(MergeError):
    """Raised when a source file cannot be opened or read."""
    pass


class IdentityResolutionError(MergeError):
    """Raised when the configuration table is missing or unreadable."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Cannot resolve identity code for {source}: {reason}")


class SchemaMismatchError(MergeError):
    """Raised when source columns do not fit an existing destination table."""

    def __init__(self, table_name: str, missing: Optional[List[str]] = None,
                 unexpected: Optional[List[str]] = None, reason: Optional[str] = None):
        self.table_name = table_name
        self.missing = list(missing or [])
        self.unexpected = list(unexpected or [])
        parts = []
        if self.missing:
            parts.append(f"missing columns {self.missing}")
        if self.unexpected:
            parts.append(f"unexpected columns {self.unexpected}")
        if reason:
            parts.append(reason)
        super().__init__(
            f"Schema mismatch for table '{table_name}': " + "; ".join(parts)
        )


class WriteFailureError(MergeError):
    """Raised when a batched insert fails; the transaction is rolled back."""

    def __init__(self, table_name: str, original_error: str):
        self.table_name = table_name
        self.original_error = original_error
        super().__init__(f"Write to table '{table_name}' failed: {original_error}")


class RemovalError(MergeError):
    """Raised when records for an identity code could not be removed."""
    pass


class PartialRemovalError(RemovalError):
    """Raised when non-atomic removal fails after some tables were cleaned."""

    def __init__(self, identity_code: str, failed_table: str,
                 cleaned: Dict[str, int], original_error: str):
        self.identity_code = identity_code
        self.failed_table = failed_table
        self.cleaned = dict(cleaned)
        self.original_error = original_error
        super().__init__(
            f"Removal of '{identity_code}' failed on table '{failed_table}' "
            f"after cleaning {sorted(cleaned)}: {original_error}"
        )


class ImportInProgressError(MergeError):
    """Raised when a second import session is started while one is running."""
    pass


class UnknownQueryError(MergeError):
    """Raised for a report name that is not in the query catalog."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Query key not found: {name}")


class InvalidDateRangeError(MergeError):
    """Raised when a report start date is after its end date."""
    pass
