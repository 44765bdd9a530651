"""
Job store: durable scrape jobs that survive process restarts.

One JSON file per job under the jobs directory, named <id>.json:
{
  "id":         "3f0c...",
  "status":     "queued" | "running" | "completed" | "failed" | "cancelled",
  "createdAt":  "2026-01-01T12:00:00+00:00",
  "updatedAt":  "2026-01-01T12:05:00+00:00",
  "params":     {...},            opaque to the store
  "resultPath": "/abs/out.csv",   optional
  "error":      "..."             optional
}

State machine:
  queued  → running | cancelled
  running → completed | failed | cancelled
  completed, failed, cancelled are terminal.

Every mutation of one job runs under that job's asyncio.Lock; the record is
written to disk (temp file + os.replace, under a per-job filelock) before the
in-memory copy changes. Different jobs never share a lock.

Usage:
    store = JobStore(jobs_dir)
    await store.load()
    job = await store.create({"url": search_url})
    await store.transition(job.id, JobStatus.RUNNING)
    ...
    await store.transition(job.id, JobStatus.COMPLETED, result_path=csv_path)
"""

import asyncio
import json
import logging
import os
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from filelock import FileLock

from leadscraper.errors import CorruptJobRecord, InvalidTransition, JobNotFound

logger = logging.getLogger("lead_scraper")


class JobStatus(str, Enum):
    QUEUED    = "queued"
    RUNNING   = "running"
    COMPLETED = "completed"
    FAILED    = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})

ALLOWED_TRANSITIONS = {
    JobStatus.QUEUED:    frozenset({JobStatus.RUNNING, JobStatus.CANCELLED}),
    JobStatus.RUNNING:   frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED:    frozenset(),
    JobStatus.CANCELLED: frozenset(),
}

_LOCK_TIMEOUT = 30  # seconds


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Job:
    id: str
    status: JobStatus
    created_at: datetime
    updated_at: datetime
    params: dict = field(default_factory=dict)
    result_path: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def age(self, now: datetime = None) -> timedelta:
        return (now or _now()) - self.created_at

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "params": self.params,
        }
        if self.result_path is not None:
            data["resultPath"] = self.result_path
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Job":
        """Build a Job from its persisted form. Raises ValueError/KeyError/TypeError."""
        if not isinstance(data, dict):
            raise ValueError("record is not a JSON object")
        job_id = data["id"]
        if not isinstance(job_id, str) or not job_id:
            raise ValueError("missing or invalid id")
        params = data.get("params") or {}
        if not isinstance(params, dict):
            raise ValueError("params must be an object")
        return cls(
            id=job_id,
            status=JobStatus(data["status"]),
            created_at=_parse_time(data["createdAt"]),
            updated_at=_parse_time(data["updatedAt"]),
            params=params,
            result_path=data.get("resultPath"),
            error=data.get("error"),
        )


@dataclass
class LoadResult:
    loaded: int = 0
    errors: list = field(default_factory=list)  # [CorruptJobRecord, ...]


class JobStore:
    """
    Persistent job registry with an enforced status state machine.

    Args:
        jobs_dir: Directory holding one <id>.json file per job.
    """

    def __init__(self, jobs_dir: str):
        self._dir = os.path.abspath(jobs_dir)
        self._jobs: dict = {}
        self._locks: dict = {}

    @property
    def jobs_dir(self) -> str:
        return self._dir

    # ── Public API ────────────────────────────────────────────────────────

    def ensure_dir(self) -> None:
        os.makedirs(self._dir, exist_ok=True)

    async def create(self, params: dict = None) -> Job:
        """Create a queued job and persist it before returning."""
        now = _now()
        job = Job(
            id=uuid.uuid4().hex,
            status=JobStatus.QUEUED,
            created_at=now,
            updated_at=now,
            params=dict(params or {}),
        )
        async with self._lock_for(job.id):
            await asyncio.to_thread(self._write, job)
            self._jobs[job.id] = job
        logger.info(f"  [jobs] Created job {job.id}")
        return job

    async def transition(
        self,
        job_id: str,
        new_status,
        *,
        result_path: str = None,
        error: str = None,
    ) -> Job:
        """
        Move a job to `new_status` if the state machine allows it.

        Raises:
            JobNotFound: unknown job id.
            InvalidTransition: the move is not allowed; the job is unchanged.
        """
        try:
            target = JobStatus(new_status)
        except ValueError:
            current = self.get(job_id).status.value
            raise InvalidTransition(job_id, current, str(new_status)) from None

        async with self._lock_for(job_id):
            job = self.get(job_id)
            if target not in ALLOWED_TRANSITIONS[job.status]:
                raise InvalidTransition(job_id, job.status.value, target.value)

            updated = replace(
                job,
                status=target,
                updated_at=_now(),
                result_path=result_path if result_path is not None else job.result_path,
                error=error if error is not None else job.error,
            )
            await asyncio.to_thread(self._write, updated)
            self._jobs[job_id] = updated

        logger.info(f"  [jobs] {job_id}: {job.status.value} → {target.value}")
        return updated

    def get(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def list_jobs(self, status=None) -> list:
        jobs = self._jobs.values()
        if status is not None:
            wanted = JobStatus(status)
            jobs = [j for j in jobs if j.status is wanted]
        return sorted(jobs, key=lambda j: j.created_at)

    def summary(self) -> dict:
        """Return a {status: count} summary of all known jobs."""
        counts = {s.value: 0 for s in JobStatus}
        for job in self._jobs.values():
            counts[job.status.value] += 1
        return counts

    async def load(self) -> LoadResult:
        """
        Read every <id>.json in the jobs directory into memory.

        Unreadable or invalid files are logged and skipped; they never abort
        the load.
        """
        result = LoadResult()
        if not os.path.isdir(self._dir):
            logger.info(f"  [jobs] No jobs directory yet: {self._dir}")
            return result

        names = sorted(n for n in os.listdir(self._dir) if n.endswith(".json"))
        for name in names:
            path = os.path.join(self._dir, name)
            try:
                job = await asyncio.to_thread(self._read, path)
            except CorruptJobRecord as err:
                logger.warning(f"  [jobs] Skipping {name}: {err.reason}")
                result.errors.append(err)
                continue
            self._jobs[job.id] = job
            result.loaded += 1

        logger.info(
            f"  [jobs] Loaded {result.loaded} job(s) from {self._dir}"
            + (f" ({len(result.errors)} skipped)" if result.errors else "")
        )
        return result

    async def cleanup(self, max_age_days: float) -> list:
        """
        Delete terminal jobs older than `max_age_days`.

        Running and queued jobs are kept regardless of age. Returns the ids
        of removed jobs.
        """
        cutoff = timedelta(days=max_age_days)
        now = _now()
        candidates = [
            j.id for j in list(self._jobs.values())
            if j.is_terminal and j.age(now) > cutoff
        ]

        removed = []
        for job_id in candidates:
            async with self._lock_for(job_id):
                job = self._jobs.get(job_id)
                # Re-check under the lock; the job may have changed meanwhile.
                if job is None or not job.is_terminal or job.age(now) <= cutoff:
                    continue
                try:
                    await asyncio.to_thread(self._delete, job_id)
                except OSError as e:
                    logger.warning(f"  [jobs] Failed to delete {job_id}: {e}")
                    continue
                del self._jobs[job_id]
            self._locks.pop(job_id, None)
            removed.append(job_id)

        if removed:
            logger.info(f"  [jobs] Removed {len(removed)} job(s) older than {max_age_days} day(s)")
        return removed

    # ── Private helpers ───────────────────────────────────────────────────

    def _lock_for(self, job_id: str) -> asyncio.Lock:
        lock = self._locks.get(job_id)
        if lock is None:
            lock = self._locks[job_id] = asyncio.Lock()
        return lock

    def _path(self, job_id: str) -> str:
        return os.path.join(self._dir, f"{job_id}.json")

    def _read(self, path: str) -> Job:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            job = Job.from_dict(data)
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise CorruptJobRecord(path, f"{e.__class__.__name__}: {e}") from e
        expected = os.path.splitext(os.path.basename(path))[0]
        if job.id != expected:
            raise CorruptJobRecord(path, f"id {job.id!r} does not match file name")
        return job

    def _write(self, job: Job) -> None:
        """Write one job record atomically. Raises OSError on failure."""
        self.ensure_dir()
        path = self._path(job.id)
        tmp = path + ".tmp"
        with FileLock(path + ".lock", timeout=_LOCK_TIMEOUT):
            try:
                with open(tmp, "w", encoding="utf-8") as f:
                    json.dump(job.to_dict(), f, indent=2)
                os.replace(tmp, path)
            except Exception:
                try:
                    os.unlink(tmp)
                except OSError:
                    pass
                raise

    def _delete(self, job_id: str) -> None:
        path = self._path(job_id)
        lock_path = path + ".lock"
        with FileLock(lock_path, timeout=_LOCK_TIMEOUT):
            if os.path.exists(path):
                os.remove(path)
        try:
            os.remove(lock_path)
        except FileNotFoundError:
            pass
