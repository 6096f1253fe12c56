# MDBMerge - Import Models
# ========================
"""
Import job state machine and session bookkeeping.

An ImportJob moves through
    queued -> resolving_identity -> awaiting_store_lock -> checking_duplicate
           -> {skipped | importing} -> {succeeded | failed}
and may fail from any non-terminal state. The ImportSession folds
terminal jobs into its counters from arbitrary worker threads.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Tuple


class ImportMode(str, Enum):
    """How an import session treats the existing store."""
    FRESH = "fresh"   # Discard the store first
    MERGE = "merge"   # Append to the existing store


class JobStatus(str, Enum):
    """Status of one source file in an import session."""
    QUEUED = "queued"                          # Waiting for a worker slot
    RESOLVING_IDENTITY = "resolving_identity"  # Opening source, tallying identity
    AWAITING_STORE_LOCK = "awaiting_store_lock"
    CHECKING_DUPLICATE = "checking_duplicate"
    IMPORTING = "importing"                    # Writing tables
    SKIPPED = "skipped"                        # Identity already imported
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[JobStatus] = frozenset({
    JobStatus.SKIPPED, JobStatus.SUCCEEDED, JobStatus.FAILED,
})

_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.RESOLVING_IDENTITY}),
    JobStatus.RESOLVING_IDENTITY: frozenset({JobStatus.AWAITING_STORE_LOCK}),
    JobStatus.AWAITING_STORE_LOCK: frozenset({JobStatus.CHECKING_DUPLICATE}),
    JobStatus.CHECKING_DUPLICATE: frozenset({JobStatus.SKIPPED, JobStatus.IMPORTING}),
    JobStatus.IMPORTING: frozenset({JobStatus.SUCCEEDED}),
    JobStatus.SKIPPED: frozenset(),
    JobStatus.SUCCEEDED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


@dataclass
class ImportJob:
    """One source file queued for import."""
    path: Path
    status: JobStatus = JobStatus.QUEUED
    identity_code: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    rows_written: int = 0
    tables_written: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.path.name

    def advance(self, status: JobStatus):
        """
        Move to the next state.

        Raises:
            ValueError: If the transition is not allowed
        """
        allowed = _TRANSITIONS[self.status]
        if status == JobStatus.FAILED and not self.status.is_terminal:
            allowed = allowed | {JobStatus.FAILED}
        if status not in allowed:
            raise ValueError(f"Illegal job transition {self.status.value} -> {status.value}")
        if self.status == JobStatus.QUEUED:
            self.started_at = datetime.now()
        self.status = status
        if status.is_terminal:
            self.finished_at = datetime.now()

    def fail(self, error: str):
        self.error = error
        self.message = f"Failed: [ {self.display_name} ] - {error}"
        self.advance(JobStatus.FAILED)

    def to_dict(self) -> Dict[str, object]:
        return {
            'file': self.display_name,
            'path': str(self.path),
            'status': self.status.value,
            'identity_code': self.identity_code,
            'message': self.message,
            'error': self.error,
            'rows_written': self.rows_written,
            'tables_written': self.tables_written,
        }


@dataclass
class ProgressUpdate:
    """Published after every terminal job transition."""
    completed: int
    total: int
    file_name: str
    status: JobStatus

    @property
    def fraction(self) -> float:
        return 1.0 if self.total <= 0 else self.completed / self.total

    def describe(self) -> str:
        suffix = " (skipped duplicate)" if self.status == JobStatus.SKIPPED else ""
        return f"Processed {self.completed} / {self.total} sources{suffix}"


@dataclass
class ImportSummary:
    """Final outcome of an import session."""
    mode: ImportMode
    total: int
    jobs: List[ImportJob]
    skipped: List[str]
    failures: List[str]
    tables: List[str] = field(default_factory=list)
    sources: List[Tuple[str, str]] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> int:
        return sum(1 for j in self.jobs if j.status == JobStatus.SUCCEEDED)

    @property
    def rows_written(self) -> int:
        return sum(j.rows_written for j in self.jobs)

    @property
    def failures_by_file(self) -> Dict[str, str]:
        return {j.display_name: j.error for j in self.jobs if j.status == JobStatus.FAILED}

    def to_dict(self) -> Dict[str, object]:
        return {
            'mode': self.mode.value,
            'total': self.total,
            'succeeded': self.succeeded,
            'skipped': list(self.skipped),
            'failures': list(self.failures),
            'rows_written': self.rows_written,
            'tables': list(self.tables),
            'duration_seconds': self.duration_seconds,
        }


class ImportSession:
    """
    Aggregate state of one user-triggered import.

    record_terminal() is called from worker threads; counters and lists
    are only touched under the session lock.
    """

    def __init__(self, mode: ImportMode, jobs: List[ImportJob]):
        self.mode = mode
        self.jobs = list(jobs)
        self.total = len(jobs)
        self.started_at = datetime.now()
        self._completed = 0
        self._skipped: List[str] = []
        self._failures: List[str] = []
        self._lock = threading.Lock()

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    @property
    def is_complete(self) -> bool:
        return self.completed >= self.total

    def record_terminal(self, job: ImportJob) -> ProgressUpdate:
        """
        Fold one terminal job into the counters.

        Raises:
            ValueError: If the job is not in a terminal state
        """
        if not job.status.is_terminal:
            raise ValueError(f"Job {job.display_name} is not terminal: {job.status.value}")
        with self._lock:
            self._completed += 1
            if job.status == JobStatus.SKIPPED:
                self._skipped.append(job.message)
            elif job.status == JobStatus.FAILED:
                self._failures.append(job.message)
            return ProgressUpdate(
                completed=self._completed,
                total=self.total,
                file_name=job.display_name,
                status=job.status,
            )

    def skipped(self) -> List[str]:
        with self._lock:
            return list(self._skipped)

    def failures(self) -> List[str]:
        with self._lock:
            return list(self._failures)
