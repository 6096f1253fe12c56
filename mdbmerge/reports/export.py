# MDBMerge - CSV Export
# =====================
"""Delimited-text export of query results."""

import csv
import logging
from pathlib import Path
from typing import Union

from .runner import QueryResult

logger = logging.getLogger(__name__)


def export_csv(result: QueryResult, output_path: Union[str, Path]) -> Path:
    """
    Write a query result as CSV.

    One header row, comma separator, minimal quoting with doubled
    embedded quotes, null cells written empty, LF line endings.

    Returns:
        Path to the written file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f, lineterminator='\n')
        writer.writerow(result.columns)
        for row in result.rows:
            writer.writerow(['' if v is None else v for v in row])

    logger.info(f"Exported {len(result.rows)} rows to {output_path}")
    return output_path


def read_csv(path: Union[str, Path]) -> QueryResult:
    """Read a CSV written by export_csv back into a QueryResult."""
    with open(path, newline='', encoding='utf-8') as f:
        reader = csv.reader(f)
        try:
            columns = next(reader)
        except StopIteration:
            return QueryResult(columns=[])
        rows = [list(row) for row in reader]
    return QueryResult(columns=columns, rows=rows)
