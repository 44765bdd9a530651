"""
Utility functions: config loading, logging setup, and path helpers.

Every component receives its settings explicitly from the dict returned by
load_config(); nothing below the entry point reads the process environment.
"""

import os
import logging
import yaml
from datetime import datetime


ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
LOG_DIR = os.path.join(ROOT_DIR, "logs")

LOGGER_NAME = "lead_scraper"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def setup_logging(log_dir: str = LOG_DIR, level: str = "INFO") -> logging.Logger:
    """
    Configure and return the project logger.

    The console shows `level` and above; every run also gets a DEBUG file
    run_<timestamp>.log under `log_dir`. Calling it again re-points the
    logger instead of stacking handlers.
    """
    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"run_{timestamp}.log")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # Console handler
    ch = logging.StreamHandler()
    ch.setLevel(getattr(logging, level.upper()))
    ch_fmt = logging.Formatter("[%(asctime)s] %(levelname)-8s %(message)s", datefmt="%H:%M:%S")
    ch.setFormatter(ch_fmt)

    # File handler
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh_fmt = logging.Formatter("[%(asctime)s] %(levelname)-8s %(name)s - %(message)s")
    fh.setFormatter(fh_fmt)

    logger.addHandler(ch)
    logger.addHandler(fh)

    logger.info(f"Log file: {log_file}")
    return logger


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def load_config(config_path: str = None) -> dict:
    """Load and validate config.yaml, applying safe defaults for every key."""
    if config_path is None:
        config_path = os.path.join(ROOT_DIR, "config.yaml")

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")

    # Storage
    config.setdefault("jobs_dir", "all_jobs")
    config.setdefault("data_dir", "data")
    for key in ("jobs_dir", "data_dir"):
        if not isinstance(config[key], str) or not config[key].strip():
            raise ValueError(f"{key} must be a non-empty path, got: {config[key]!r}")

    # Pacing
    fast = config.setdefault("fast_mode", False)
    if not isinstance(fast, bool):
        raise ValueError(f"fast_mode must be true or false, got: {fast!r}")

    scale = config.setdefault("timing_scale", None)
    if scale is not None and (not _is_number(scale) or scale < 0):
        raise ValueError(f"timing_scale must be a number >= 0, got: {scale!r}")

    fast_rows = config.setdefault("fast_min_rows", 5)
    if not isinstance(fast_rows, int) or isinstance(fast_rows, bool) or fast_rows < 1:
        raise ValueError(f"fast_min_rows must be int >= 1, got: {fast_rows!r}")

    min_rows = config.setdefault("min_rows", None)
    if min_rows is not None and (
        not isinstance(min_rows, int) or isinstance(min_rows, bool) or min_rows < 1
    ):
        raise ValueError(f"min_rows must be int >= 1, got: {min_rows!r}")

    timeout = config.setdefault("list_timeout_ms", 10_000)
    if not isinstance(timeout, int) or isinstance(timeout, bool) or timeout < 1000:
        raise ValueError(f"list_timeout_ms must be int >= 1000, got: {timeout!r}")

    # Logging
    config.setdefault("log_dir", "logs")
    if not isinstance(config["log_dir"], str) or not config["log_dir"].strip():
        raise ValueError(f"log_dir must be a non-empty path, got: {config['log_dir']!r}")
    level = config.setdefault("log_level", "INFO")
    if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
        raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got: {level!r}")
    config["log_level"] = level.upper()

    # Retention
    for key in ("job_retention_days", "export_retention_days"):
        days = config.setdefault(key, 3)
        if not _is_number(days) or days <= 0:
            raise ValueError(f"{key} must be a number > 0, got: {days!r}")

    return config


def resolve_path(path: str) -> str:
    """Resolve a config-relative directory against the repository root."""
    if os.path.isabs(path):
        return path
    return os.path.join(ROOT_DIR, path)
