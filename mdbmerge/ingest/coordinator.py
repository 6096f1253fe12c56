# MDBMerge - Import Coordinator
# =============================
# Fans source files out to a worker pool and aggregates the outcome
"""
Concurrent multi-source import.

Each source file becomes an ImportJob run on a bounded thread pool.
Opening the source and resolving its identity run fully in parallel;
the duplicate check, table creation and batched insert for one file
run as one critical section under the store's write_lock, so files
never interleave writes.

A separate aggregator thread joins the pool, restores the store's
durability settings, refreshes the table and source listings and then
signals completion exactly once.

Example:
    coordinator = ImportCoordinator(store, config)
    handle = coordinator.start(files, ImportMode.MERGE, on_progress=print)
    summary = handle.wait()
    print(summary.succeeded, summary.failures)
"""

import os
import time
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from contextlib import ExitStack
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from .duplicate_guard import DuplicateGuard
from .merger import SourceMerger
from .models import (
    ImportJob,
    ImportMode,
    ImportSession,
    ImportSummary,
    JobStatus,
    ProgressUpdate,
)
from ..config import MergeConfig
from ..data.identity import resolve_identity
from ..data.source_reader import ReaderFactory, open_source_file
from ..data.store import DestinationStore
from ..errors import ImportInProgressError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressUpdate], None]
FinishedCallback = Callable[[ImportSummary], None]


class ImportHandle:
    """Tracks one running import session."""

    def __init__(self, session: ImportSession):
        self.session = session
        self._done = threading.Event()
        self._summary: Optional[ImportSummary] = None
        self._error: Optional[BaseException] = None

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def progress(self) -> float:
        if self.session.total == 0:
            return 1.0
        return self.session.completed / self.session.total

    def wait(self, timeout: Optional[float] = None) -> ImportSummary:
        """
        Block until the session has finished.

        Raises:
            TimeoutError: If the session is still running after timeout
        """
        if not self._done.wait(timeout):
            raise TimeoutError(
                f"Import still running: {self.session.completed}/{self.session.total} done"
            )
        if self._error is not None:
            raise self._error
        return self._summary

    def _finish(self, summary: Optional[ImportSummary] = None,
                error: Optional[BaseException] = None):
        self._summary = summary
        self._error = error
        self._done.set()


class ImportCoordinator:
    """
    Runs import sessions against one destination store.

    Only one session may run at a time; removal and reporting may be
    used concurrently and serialize on the same write lock.
    """

    def __init__(self, store: DestinationStore,
                 config: Optional[MergeConfig] = None,
                 reader_factory: ReaderFactory = open_source_file):
        """
        Args:
            store: Destination store shared by all jobs
            config: Merge configuration
            reader_factory: Opens a SourceReader for a path
        """
        self.store = store
        self.config = config or MergeConfig(db_path=store.db_path)
        self.reader_factory = reader_factory
        self.guard = DuplicateGuard(store, self.config.marker_table)

        self._active: Optional[ImportHandle] = None
        self._state_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._active is not None and not self._active.done

    def pool_size(self, file_count: int) -> int:
        """Workers for a session: min(files, CPUs, configured cap), at least 1."""
        size = min(file_count, os.cpu_count() or 1)
        if self.config.max_workers:
            size = min(size, self.config.max_workers)
        return max(1, size)

    def start(self, paths: Iterable[Union[str, Path]],
              mode: ImportMode = ImportMode.MERGE,
              on_progress: Optional[ProgressCallback] = None,
              on_finished: Optional[FinishedCallback] = None) -> ImportHandle:
        """
        Start importing source files in the background.

        Args:
            paths: Source files to import
            mode: FRESH discards the store first, MERGE appends
            on_progress: Called after every terminal job transition
            on_finished: Called once with the summary after all jobs end

        Returns:
            ImportHandle for waiting on the session

        Raises:
            ImportInProgressError: If a session is already running
            StoreConnectionError: If the store cannot be (re)opened
        """
        with self._state_lock:
            if self.is_running:
                raise ImportInProgressError("An import session is already running")

            jobs = [ImportJob(path=Path(p)) for p in paths]
            if mode == ImportMode.FRESH:
                self.store.reset()
            else:
                self.store.ensure_open()

            session = ImportSession(mode, jobs)
            handle = ImportHandle(session)
            self._active = handle

        logger.info(f"Starting {mode.value} import of {len(jobs)} source(s)")

        stack = ExitStack()
        try:
            stack.enter_context(self.store.relaxed_durability())
            merger = SourceMerger.from_config(self.store, self.config)
            executor = ThreadPoolExecutor(
                max_workers=self.pool_size(len(jobs)),
                thread_name_prefix="mdbmerge-import",
            )
            futures = [
                executor.submit(self._run_job, job, session, merger, on_progress)
                for job in jobs
            ]
        except Exception as e:
            stack.close()
            handle._finish(error=e)
            raise

        aggregator = threading.Thread(
            target=self._await_completion,
            args=(handle, executor, futures, stack, on_finished),
            name="mdbmerge-import-aggregator",
            daemon=True,
        )
        aggregator.start()
        return handle

    def run(self, paths: Iterable[Union[str, Path]],
            mode: ImportMode = ImportMode.MERGE,
            on_progress: Optional[ProgressCallback] = None) -> ImportSummary:
        """Import source files and block until done."""
        return self.start(paths, mode, on_progress=on_progress).wait()

    def _run_job(self, job: ImportJob, session: ImportSession,
                 merger: SourceMerger, on_progress: Optional[ProgressCallback]):
        """Carry one job from QUEUED to a terminal state."""
        try:
            job.advance(JobStatus.RESOLVING_IDENTITY)
            with self.reader_factory(job.path) as reader:
                code = resolve_identity(
                    reader, self.config.config_table, self.config.identity_field
                )
                job.identity_code = code
                job.advance(JobStatus.AWAITING_STORE_LOCK)
                logger.debug(f"{job.display_name}: resolved {code}, waiting for store")

                with self.store.write_lock:
                    job.advance(JobStatus.CHECKING_DUPLICATE)
                    if self.guard.is_imported(code):
                        job.message = f"{code} [ {job.display_name} ] already imported"
                        job.advance(JobStatus.SKIPPED)
                        logger.warning(job.message)
                    else:
                        job.advance(JobStatus.IMPORTING)
                        result = merger.merge_source(reader, code, job.display_name)
                        job.rows_written = result.rows_written
                        job.tables_written = len(result.table_rows)
                        job.message = f"{code} [ {job.display_name} ]"
                        job.advance(JobStatus.SUCCEEDED)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            if job.status.is_terminal:
                logger.warning(f"{job.display_name}: error after {job.status.value}: {error}")
            else:
                logger.error(f"Import of {job.display_name} failed: {error}")
                job.fail(error)
        finally:
            update = session.record_terminal(job)
            _notify(on_progress, update)

    def _await_completion(self, handle: ImportHandle, executor: ThreadPoolExecutor,
                          futures: List[Future], stack: ExitStack,
                          on_finished: Optional[FinishedCallback]):
        """Join the pool, then aggregate and signal completion once."""
        session = handle.session
        try:
            try:
                wait(futures)
                executor.shutdown(wait=True)
            finally:
                stack.close()
            summary = self._summarize(session)
        except Exception as e:
            logger.error(f"Import session failed during aggregation: {e}")
            handle._finish(error=e)
            return

        logger.info(
            f"Import finished: {summary.succeeded} succeeded, "
            f"{len(summary.skipped)} skipped, {len(summary.failures)} failed "
            f"of {summary.total} in {summary.duration_seconds:.2f}s"
        )
        _notify(on_finished, summary)
        handle._finish(summary=summary)

    def _summarize(self, session: ImportSession) -> ImportSummary:
        return ImportSummary(
            mode=session.mode,
            total=session.total,
            jobs=list(session.jobs),
            skipped=session.skipped(),
            failures=session.failures(),
            tables=self.store.list_tables(),
            sources=self.guard.imported_sources(),
            duration_seconds=time.time() - session.started_at.timestamp(),
        )


def _notify(callback: Optional[Callable], payload: object):
    """Invoke a listener; listener errors are logged, never propagated into workers."""
    if callback is None:
        return
    try:
        callback(payload)
    except Exception as e:
        logger.error(f"Import listener {getattr(callback, '__name__', callback)} failed: {e}")
