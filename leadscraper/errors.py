"""
Exception types raised across the lead scraper core.

Messages carry enough context to diagnose a failure (job id, destination
path, selector) but never page content or credentials.
"""


class LeadScraperError(Exception):
    """Base class for every error raised by this package."""


class InvalidTransition(LeadScraperError):
    """A job status change that the state machine does not allow."""

    def __init__(self, job_id: str, current: str, requested: str):
        self.job_id = job_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Job {job_id}: cannot transition from '{current}' to '{requested}'"
        )


class JobNotFound(LeadScraperError, KeyError):
    """No job with the given id is known to the store."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")

    def __str__(self) -> str:
        return self.args[0]


class CorruptJobRecord(LeadScraperError):
    """A persisted job file that cannot be read or validated."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Corrupt job record {path}: {reason}")


class ElementWaitTimeout(LeadScraperError):
    """The readiness selector never became visible/attached in time."""

    def __init__(self, selector: str, timeout_ms: int, state: str = "visible"):
        self.selector = selector
        self.timeout_ms = timeout_ms
        self.state = state
        super().__init__(
            f"Selector '{selector}' not {state} within {timeout_ms}ms"
        )


class CsvWriteFailure(LeadScraperError):
    """A CSV destination could not be read or written."""

    def __init__(self, destination: str, reason: str = ""):
        self.destination = destination
        self.reason = reason
        message = f"Failed to write CSV {destination}"
        super().__init__(f"{message}: {reason}" if reason else message)


class MigrationBackupFailure(LeadScraperError):
    """The .bak copy could not be written, so the migration was aborted."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        super().__init__(
            f"Backup of {path} failed ({reason}); original file left untouched"
        )
