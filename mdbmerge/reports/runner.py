# MDBMerge - Report Query Runner
# ==============================
# Runs report and ad-hoc queries off the caller's thread
"""
Background report execution.

A report resolves its name in the QueryCatalog, binds the start and end
dates as ISO text and runs on a single background worker against a
dedicated read cursor, so it never waits on an in-flight import.
Results come back as column labels plus rows of text cells.

Example:
    runner = ReportQueryRunner(store, QueryCatalog.load('queries.json'))
    future = runner.submit('Visits per facility', date(2023, 1, 1), date(2023, 12, 31))
    result = future.result()
    print(result.columns, len(result.rows))
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, List, Optional, Sequence

from .catalog import QueryCatalog
from .progress import ProgressTicker
from ..data.source_reader import to_text
from ..data.store import DestinationStore
from ..errors import InvalidDateRangeError

logger = logging.getLogger(__name__)


@dataclass
class QueryResult:
    """Tabular query result with text cells."""
    columns: List[str]
    rows: List[List[Optional[str]]] = field(default_factory=list)
    sql: str = ""

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_dicts(self) -> List[dict]:
        return [dict(zip(self.columns, row)) for row in self.rows]


def _as_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise InvalidDateRangeError(f"Not an ISO date: {value}")


class ReportQueryRunner:
    """Executes catalog reports and ad-hoc queries in the background."""

    def __init__(self, store: DestinationStore, catalog: Optional[QueryCatalog] = None,
                 progress_interval: float = 0.3):
        self.store = store
        self.catalog = catalog or QueryCatalog(queries={})
        self.progress_interval = progress_interval
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="mdbmerge-report"
        )

    def submit(self, name: str, start: Any, end: Any,
               on_complete: Optional[Callable[[QueryResult], None]] = None,
               on_error: Optional[Callable[[Exception], None]] = None,
               on_progress: Optional[Callable[[float], None]] = None) -> "Future[QueryResult]":
        """
        Schedule a named report for a date range.

        Args:
            name: Report name in the catalog
            start: Start date (date or ISO string), inclusive
            end: End date (date or ISO string), inclusive
            on_complete: Called with the QueryResult on success
            on_error: Called with the exception on failure
            on_progress: Called with ticker values until completion

        Returns:
            Future resolving to the QueryResult

        Raises:
            UnknownQueryError: If the report name is not in the catalog
            InvalidDateRangeError: If start is after end
        """
        sql = self.catalog.get(name)
        start_date, end_date = _as_date(start), _as_date(end)
        if start_date > end_date:
            raise InvalidDateRangeError(
                f"Start date {start_date.isoformat()} is after end date {end_date.isoformat()}"
            )

        params = [start_date.isoformat(), end_date.isoformat()]
        logger.info(f"Running report '{name}' for {params[0]} to {params[1]}")
        return self._executor.submit(
            self._run, sql, params, on_complete, on_error, on_progress
        )

    def execute_query(self, sql: str) -> QueryResult:
        """
        Run ad-hoc SQL on the calling thread.

        The statement may mutate the store, so it runs under write_lock
        and waits for any in-flight import file to finish.
        """
        with self.store.write_lock:
            return self._execute(sql, [])

    def _run(self, sql: str, params: Sequence[str],
             on_complete: Optional[Callable], on_error: Optional[Callable],
             on_progress: Optional[Callable]) -> QueryResult:
        ticker = None
        if on_progress is not None:
            ticker = ProgressTicker(on_progress, interval=self.progress_interval)
            ticker.start()
        try:
            result = self._execute(sql, params)
        except Exception as e:
            if ticker is not None:
                ticker.stop(complete=False)
            logger.error(f"Report query failed: {e}")
            if on_error is not None:
                on_error(e)
            raise

        if ticker is not None:
            ticker.stop(complete=True)
        if on_complete is not None:
            on_complete(result)
        return result

    def _execute(self, sql: str, params: Sequence[str]) -> QueryResult:
        with self.store.read_cursor() as cursor:
            cursor.execute(sql, list(params))
            columns = [d[0] for d in cursor.description] if cursor.description else []
            rows = [[to_text(v) for v in row] for row in cursor.fetchall()]
        logger.debug(f"Query returned {len(rows)} rows")
        return QueryResult(columns=columns, rows=rows, sql=sql)

    def close(self):
        """Wait for scheduled reports and stop the worker."""
        self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
