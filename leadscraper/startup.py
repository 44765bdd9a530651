"""
Explicit initialization phase.

Each step runs even when an earlier one failed; failures are collected in
the returned StartupReport and the caller decides whether any of them blocks
readiness.

Steps:
  1. ensure_dirs      : jobs and data directories exist
  2. load_jobs        : persisted jobs read into the JobStore
  3. cleanup_jobs     : terminal jobs past job_retention_days removed
  4. cleanup_exports  : export files past export_retention_days removed
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass, field

from leadscraper.exporter import CsvExporter
from leadscraper.jobs import JobStore, LoadResult
from leadscraper.timing import PacingConfig, TimingEngine
from leadscraper.utils import resolve_path
from leadscraper.waits import ListReadinessWaiter

logger = logging.getLogger("lead_scraper")


@dataclass
class StartupReport:
    store: JobStore
    load: LoadResult = field(default_factory=LoadResult)
    removed_jobs: list = field(default_factory=list)
    removed_files: list = field(default_factory=list)
    errors: list = field(default_factory=list)  # [(step, exception), ...]

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class Components:
    """Pacing, readiness and export objects wired from one config dict."""

    pacing: PacingConfig
    timing: TimingEngine
    waiter: ListReadinessWaiter
    exporter: CsvExporter


def build_components(config: dict) -> Components:
    pacing = PacingConfig.from_config(config)
    timing = TimingEngine(pacing)
    return Components(
        pacing=pacing,
        timing=timing,
        waiter=ListReadinessWaiter(timing, timeout=config["list_timeout_ms"]),
        exporter=CsvExporter(resolve_path(config["data_dir"])),
    )


def cleanup_old_files(directory: str, max_age_days: float, now: float = None) -> list:
    """Delete regular files in `directory` not modified for `max_age_days`."""
    if not os.path.isdir(directory):
        return []
    cutoff = (now or time.time()) - max_age_days * 86_400
    removed = []
    for name in sorted(os.listdir(directory)):
        path = os.path.join(directory, name)
        if not os.path.isfile(path):
            continue
        if os.path.getmtime(path) < cutoff:
            os.remove(path)
            removed.append(path)
    if removed:
        logger.info(f"  [startup] Removed {len(removed)} old file(s) from {directory}")
    return removed


async def initialize(config: dict) -> StartupReport:
    """Run every startup step and report what happened."""
    jobs_dir = resolve_path(config["jobs_dir"])
    data_dir = resolve_path(config["data_dir"])
    report = StartupReport(store=JobStore(jobs_dir))

    try:
        os.makedirs(jobs_dir, exist_ok=True)
        os.makedirs(data_dir, exist_ok=True)
    except OSError as e:
        logger.error(f"  [startup] Could not create directories: {e}")
        report.errors.append(("ensure_dirs", e))

    try:
        report.load = await report.store.load()
    except OSError as e:
        logger.error(f"  [startup] Loading jobs failed: {e}")
        report.errors.append(("load_jobs", e))

    try:
        report.removed_jobs = await report.store.cleanup(config["job_retention_days"])
    except OSError as e:
        logger.error(f"  [startup] Job cleanup failed: {e}")
        report.errors.append(("cleanup_jobs", e))

    try:
        report.removed_files = await asyncio.to_thread(
            cleanup_old_files, data_dir, config["export_retention_days"]
        )
    except OSError as e:
        logger.error(f"  [startup] Export cleanup failed: {e}")
        report.errors.append(("cleanup_exports", e))

    status = "ready" if report.ok else f"ready with {len(report.errors)} error(s)"
    logger.info(
        f"Startup {status}: {report.load.loaded} job(s) loaded, "
        f"{len(report.removed_jobs)} job(s) and {len(report.removed_files)} file(s) pruned"
    )
    return report
