"""
Tests for the import job state machine and session counters.
"""

import threading
from pathlib import Path

import pytest

from mdbmerge.ingest.models import (
    ImportJob,
    ImportMode,
    ImportSession,
    JobStatus,
    ProgressUpdate,
)

HAPPY_PATH = [
    JobStatus.RESOLVING_IDENTITY,
    JobStatus.AWAITING_STORE_LOCK,
    JobStatus.CHECKING_DUPLICATE,
    JobStatus.IMPORTING,
    JobStatus.SUCCEEDED,
]


class TestImportJob:
    """Test job transitions."""

    def test_happy_path(self):
        job = ImportJob(path=Path('a.mdb'))
        for status in HAPPY_PATH:
            job.advance(status)
        assert job.status == JobStatus.SUCCEEDED
        assert job.started_at is not None
        assert job.finished_at is not None

    def test_skip_path(self):
        job = ImportJob(path=Path('a.mdb'))
        for status in HAPPY_PATH[:3]:
            job.advance(status)
        job.advance(JobStatus.SKIPPED)
        assert job.status.is_terminal

    def test_illegal_transition(self):
        """Test that states cannot be skipped."""
        job = ImportJob(path=Path('a.mdb'))
        with pytest.raises(ValueError):
            job.advance(JobStatus.IMPORTING)

    @pytest.mark.parametrize('steps', range(5))
    def test_fail_from_any_non_terminal_state(self, steps):
        job = ImportJob(path=Path('a.mdb'))
        for status in HAPPY_PATH[:steps]:
            job.advance(status)
        job.fail('boom')
        assert job.status == JobStatus.FAILED
        assert job.message == 'Failed: [ a.mdb ] - boom'

    def test_terminal_is_final(self):
        """Test that terminal jobs cannot fail afterwards."""
        job = ImportJob(path=Path('a.mdb'))
        for status in HAPPY_PATH:
            job.advance(status)
        with pytest.raises(ValueError):
            job.fail('late error')


class TestProgressUpdate:

    def test_fraction_and_description(self):
        update = ProgressUpdate(completed=3, total=4, file_name='c.mdb', status=JobStatus.SKIPPED)
        assert update.fraction == 0.75
        assert update.describe() == 'Processed 3 / 4 sources (skipped duplicate)'

    def test_empty_session_is_complete(self):
        assert ProgressUpdate(0, 0, '', JobStatus.SUCCEEDED).fraction == 1.0


class TestImportSession:
    """Test concurrent terminal bookkeeping."""

    def _terminal_job(self, name, status):
        job = ImportJob(path=Path(name))
        if status == JobStatus.FAILED:
            job.fail('bad file')
            return job
        for step in HAPPY_PATH[:3]:
            job.advance(step)
        if status == JobStatus.SKIPPED:
            job.message = f'X [ {name} ] already imported'
            job.advance(JobStatus.SKIPPED)
        else:
            job.advance(JobStatus.IMPORTING)
            job.advance(JobStatus.SUCCEEDED)
        return job

    def test_counts_each_terminal_job_once(self):
        statuses = [JobStatus.SUCCEEDED, JobStatus.SKIPPED, JobStatus.FAILED] * 20
        jobs = [self._terminal_job(f'f{i}.mdb', s) for i, s in enumerate(statuses)]
        session = ImportSession(ImportMode.MERGE, jobs)

        updates = []
        lock = threading.Lock()

        def record(job):
            update = session.record_terminal(job)
            with lock:
                updates.append(update.completed)

        threads = [threading.Thread(target=record, args=(job,)) for job in jobs]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert session.completed == 60
        assert session.is_complete
        assert sorted(updates) == list(range(1, 61))
        assert len(session.skipped()) == 20
        assert len(session.failures()) == 20

    def test_rejects_non_terminal_job(self):
        job = ImportJob(path=Path('a.mdb'))
        session = ImportSession(ImportMode.FRESH, [job])
        with pytest.raises(ValueError):
            session.record_terminal(job)
        assert session.completed == 0
