# MDBMerge - Identity Resolver
# ============================
"""
Derives one identity code per source file.

The identity field of the configuration table is tallied over all rows
and the most frequent non-null value wins. Ties go to the
lexicographically smallest value so the result never depends on row
order. A source with no non-null values resolves to UNKNOWN_IDENTITY,
while a missing configuration table or field is an error.
"""

import logging
from collections import Counter
from typing import Optional

from .source_reader import SourceReader, to_text
from ..errors import IdentityResolutionError, SourceReadError

logger = logging.getLogger(__name__)

UNKNOWN_IDENTITY = "UNKNOWN"


def pick_majority(counts: Counter) -> Optional[str]:
    """Return the most common value, smallest value first on ties."""
    if not counts:
        return None
    top = max(counts.values())
    return min(value for value, count in counts.items() if count == top)


def resolve_identity(reader: SourceReader,
                     config_table: str = "tblConfig",
                     identity_field: str = "HFRCode") -> str:
    """
    Resolve the identity code of an open source file.

    Args:
        reader: Open source reader
        config_table: Name of the configuration table
        identity_field: Column holding the identity code

    Returns:
        The majority identity code, or UNKNOWN_IDENTITY

    Raises:
        IdentityResolutionError: If the configuration table or field
            cannot be read
    """
    source = reader.display_name
    try:
        table = reader.open_table(config_table)
    except KeyError:
        raise IdentityResolutionError(source, f"configuration table '{config_table}' not found")
    except SourceReadError as e:
        raise IdentityResolutionError(source, str(e)) from e

    if identity_field not in table.columns:
        raise IdentityResolutionError(
            source, f"field '{identity_field}' missing from '{config_table}'"
        )

    counts: Counter = Counter()
    try:
        for row in table.rows:
            value = to_text(row.get(identity_field))
            if value is not None:
                counts[value] += 1
    except Exception as e:
        raise IdentityResolutionError(source, f"error reading '{config_table}': {e}") from e

    code = pick_majority(counts)
    if code is None:
        logger.warning(f"{source}: no {identity_field} values, using {UNKNOWN_IDENTITY}")
        return UNKNOWN_IDENTITY

    if len(counts) > 1:
        logger.info(f"{source}: {len(counts)} distinct {identity_field} values, chose {code}")
    return code
