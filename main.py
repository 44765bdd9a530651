"""
Lead Scraper: command line entry point.

Usage:
    python main.py init
    python main.py jobs [--status running]
    python main.py cleanup [--days 3]
    python main.py migrate exports/leads.csv exports/
    python main.py --config path/to/config.yaml <command>
"""

import argparse
import asyncio
import csv
import os
import sys

from leadscraper.utils import setup_logging, load_config, resolve_path
from leadscraper.errors import MigrationBackupFailure
from leadscraper.jobs import JobStatus, JobStore
from leadscraper.migrate import SchemaMigrator
from leadscraper.startup import build_components, initialize


def cmd_init(logger, config: dict, args) -> int:
    report = asyncio.run(initialize(config))
    components = build_components(config)
    logger.info(f"  Jobs dir:         {report.store.jobs_dir}")
    logger.info(f"  Jobs loaded:      {report.load.loaded}")
    logger.info(f"  Corrupt records:  {len(report.load.errors)}")
    logger.info(f"  Summary:          {report.store.summary()}")
    logger.info(
        f"  Pacing:           {components.pacing.profile.value} "
        f"(scale {components.pacing.scale}, min rows {components.pacing.min_rows})"
    )
    logger.info(f"  Export file:      {components.exporter.resolve()}")
    for step, err in report.errors:
        logger.error(f"  {step} failed: {err}")
    return 0 if report.ok else 1


def cmd_jobs(logger, config: dict, args) -> int:
    store = JobStore(resolve_path(config["jobs_dir"]))
    asyncio.run(store.load())
    jobs = store.list_jobs(args.status)
    if not jobs:
        print("No jobs.")
    for job in jobs:
        line = f"{job.id}  {job.status.value:<10} {job.created_at:%Y-%m-%d %H:%M}"
        if job.result_path:
            line += f"  {job.result_path}"
        if job.error:
            line += f"  error={job.error[:60]}"
        print(line)
    return 0


def cmd_cleanup(logger, config: dict, args) -> int:
    days = args.days if args.days is not None else config["job_retention_days"]
    store = JobStore(resolve_path(config["jobs_dir"]))

    async def run():
        await store.load()
        return await store.cleanup(days)

    # Export files are only pruned by `init`.
    removed = asyncio.run(run())
    logger.info(f"Removed {len(removed)} job(s) older than {days} day(s)")
    return 0


def cmd_migrate(logger, config: dict, args) -> int:
    migrator = SchemaMigrator()
    failures = 0
    for target in args.paths:
        if os.path.isdir(target):
            results, errors = migrator.upgrade_directory(target)
            failures += len(errors)
        else:
            try:
                results = [migrator.upgrade(target)]
            except (OSError, ValueError, csv.Error, MigrationBackupFailure) as e:
                logger.error(f"Migration failed for {target}: {e}")
                failures += 1
                continue
        for result in results:
            state = "upgraded" if result.changed else f"unchanged ({result.reason})"
            logger.info(f"  {result.path}: {state}")
    return 1 if failures else 0


COMMANDS = {
    "init": cmd_init,
    "jobs": cmd_jobs,
    "cleanup": cmd_cleanup,
    "migrate": cmd_migrate,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Lead scraper job store and CSV maintenance"
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to config.yaml (default: ./config.yaml)"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create directories, load jobs and prune old data")

    jobs = sub.add_parser("jobs", help="List persisted jobs")
    jobs.add_argument("--status", choices=[s.value for s in JobStatus], default=None)

    cleanup = sub.add_parser("cleanup", help="Delete old finished jobs")
    cleanup.add_argument("--days", type=float, default=None,
                         help="Retention in days (default: job_retention_days)")

    migrate = sub.add_parser("migrate", help="Upgrade CSV files to the canonical headers")
    migrate.add_argument("paths", nargs="+", help="CSV files or directories of CSV files")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    config = load_config(args.config)
    logger = setup_logging(resolve_path(config["log_dir"]), config["log_level"])
    logger.info(f"Configuration loaded (fast_mode={config['fast_mode']}, jobs_dir={config['jobs_dir']})")

    return COMMANDS[args.command](logger, config, args)


if __name__ == "__main__":
    sys.exit(main())
