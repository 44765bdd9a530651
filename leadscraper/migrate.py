"""
Schema migrator: rewrite legacy CSV exports to the canonical header set.

    Full Name, First Name, Last Name, Title, Company, Person Location,
    LinkedIn URL, Website

Email is always dropped. Columns that match no canonical alias are kept,
after the canonical ones, in their original order. A file that is already
canonical is left byte-for-byte untouched.

On an actual change the original bytes are first copied to <file>.bak. If
that backup cannot be written the migration is aborted before the original
is touched.
"""

import csv
import io
import logging
import os
from dataclasses import dataclass, field

from leadscraper.columns import CANONICAL_COLUMNS, CANONICAL_HEADERS, EXCLUDED_HEADER
from leadscraper.errors import MigrationBackupFailure

logger = logging.getLogger("lead_scraper")

BACKUP_SUFFIX = ".bak"
BOM = "\ufeff"

REASON_EMPTY = "empty"
REASON_CANONICAL = "already-canonical"


@dataclass
class MigrationResult:
    path: str
    changed: bool
    columns: list = field(default_factory=list)
    reason: str = ""
    backup_path: str | None = None


def _ci_find(headers: list, name: str) -> str | None:
    needle = name.lower()
    for h in headers:
        if h.lower() == needle:
            return h
    return None


def parse_csv(text: str) -> tuple:
    """
    Parse CSV text into (headers, rows-as-dicts).

    Fields are trimmed and blank lines skipped. A row of empty fields such
    as `"",""` is still a row. Rows shorter than the header are padded with
    empty strings; extra trailing cells are dropped.
    """
    records = []
    for record in csv.reader(io.StringIO(text)):
        cells = [cell.strip() for cell in record]
        if not cells:
            continue
        # A whitespace-only line parses as one empty cell.
        if cells == [""] and (not records or len(records[0]) > 1):
            continue
        records.append(cells)
    if not records:
        return [], []
    headers = records[0]
    width = len(headers)
    rows = []
    for record in records[1:]:
        padded = (record + [""] * width)[:width]
        rows.append(dict(zip(headers, padded)))
    return headers, rows


def is_canonical(headers: list) -> bool:
    lower = [h.lower() for h in headers]
    if EXCLUDED_HEADER in lower:
        return False
    if len(headers) < len(CANONICAL_HEADERS):
        return False
    return all(h.lower() == c.lower() for h, c in zip(headers, CANONICAL_HEADERS))


def extra_headers(headers: list) -> list:
    """Original columns that no canonical alias consumes (minus Email)."""
    aliases = {a.lower() for col in CANONICAL_COLUMNS for a in col.aliases}
    return [
        h for h in headers
        if h.lower() != EXCLUDED_HEADER and h.lower() not in aliases
    ]


def migrate_row(row: dict, headers: list, extras: list) -> dict:
    out = {}
    for col in CANONICAL_COLUMNS:
        value = ""
        for alias in col.aliases:
            found = _ci_find(headers, alias)
            if found and row.get(found, "").strip():
                value = row[found]
                break
        out[col.header] = value
    for h in extras:
        out[h] = row.get(h, "")
    return out


def render_csv(columns: list, rows: list) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\r\n")
    writer.writerow(columns)
    for row in rows:
        writer.writerow([row.get(c, "") for c in columns])
    return BOM + buf.getvalue()


class SchemaMigrator:
    """Upgrades CSV files in place to the canonical header set."""

    def __init__(self, backup_suffix: str = BACKUP_SUFFIX):
        self._backup_suffix = backup_suffix

    def upgrade(self, path: str) -> MigrationResult:
        """
        Migrate one CSV file.

        Raises:
            OSError / UnicodeDecodeError: the file could not be read.
            MigrationBackupFailure: the backup could not be written; the
                original file is untouched.
        """
        full = os.path.abspath(path)
        with open(full, "rb") as f:
            raw = f.read()

        headers, rows = parse_csv(raw.decode("utf-8-sig"))
        if not rows:
            logger.info(f"  [migrate] {full}: no data rows, skipped")
            return MigrationResult(full, changed=False, reason=REASON_EMPTY)

        if is_canonical(headers):
            logger.info(f"  [migrate] {full}: already canonical")
            return MigrationResult(full, changed=False, columns=list(headers), reason=REASON_CANONICAL)

        extras = extra_headers(headers)
        columns = list(CANONICAL_HEADERS) + extras
        migrated = [migrate_row(row, headers, extras) for row in rows]
        content = render_csv(columns, migrated)

        backup_path = full + self._backup_suffix
        try:
            with open(backup_path, "wb") as f:
                f.write(raw)
        except OSError as e:
            logger.error(f"  [migrate] Backup failed for {full}: {e}")
            raise MigrationBackupFailure(full, str(e)) from e

        self._write(full, content)
        logger.info(
            f"  [migrate] {full}: {len(migrated)} row(s) rewritten "
            f"({len(headers)} → {len(columns)} columns)"
        )
        return MigrationResult(full, changed=True, columns=columns, backup_path=backup_path)

    def upgrade_directory(self, directory: str) -> tuple:
        """
        Migrate every *.csv file in `directory` (not recursive).

        Returns (results, errors) where errors is [(path, exception), ...].
        One failing file never stops the others.
        """
        results, errors = [], []
        for name in sorted(os.listdir(directory)):
            if not name.lower().endswith(".csv"):
                continue
            path = os.path.join(directory, name)
            try:
                results.append(self.upgrade(path))
            except (OSError, UnicodeDecodeError, csv.Error, MigrationBackupFailure) as e:
                logger.warning(f"  [migrate] {path} failed: {e}")
                errors.append((path, e))
        return results, errors

    @staticmethod
    def _write(path: str, content: str) -> None:
        """Write through a temp file so a crash never leaves half a CSV."""
        tmp = path + ".tmp"
        try:
            with open(tmp, "w", encoding="utf-8", newline="") as f:
                f.write(content)
            os.replace(tmp, path)
        except Exception:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise


def upgrade_csv_headers(path: str) -> MigrationResult:
    return SchemaMigrator().upgrade(path)


def upgrade_directory(directory: str) -> tuple:
    return SchemaMigrator().upgrade_directory(directory)
