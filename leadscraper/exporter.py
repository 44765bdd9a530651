"""
CSV exporter for scraped profile rows.

Appends to or creates CSV files without corrupting column order:
  - an existing file keeps the column set its header line implies
    (base columns, or base + Website);
  - new files always get the Website column;
  - every value is quoted, NUL-free and single-line;
  - the header and the first batch of rows go out in one write.

A UTF-8 BOM (for Excel) is written only when the header is written.

No lock is taken on the destination. Two processes appending to the same
file at once is unsupported.
"""

import asyncio
import logging
import os
import re

from leadscraper.columns import WEBSITE_COLUMNS, columns_for_header
from leadscraper.errors import CsvWriteFailure

logger = logging.getLogger("lead_scraper")

BOM = "\ufeff"
CRLF = "\r\n"
DEFAULT_FILENAME = "output.csv"

_LINE_BREAKS = re.compile(r"\r\n|\r|\n")


def escape_field(value) -> str:
    """Quote one CSV field. None becomes an empty quoted field."""
    if value is None:
        return '""'
    text = _LINE_BREAKS.sub(" ", str(value).replace("\x00", "")).strip()
    return '"' + text.replace('"', '""') + '"'


def read_header_line(path: str) -> str | None:
    """Return the first line of `path` (BOM stripped), or None if absent or empty."""
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        line = f.readline()
    return line.rstrip("\r\n") if line else None


def normalize_rows(rows, columns) -> list:
    """Copy each row, defaulting every column key to an empty string."""
    normalized = []
    for row in rows:
        filled = dict(row)
        for col in columns:
            if filled.get(col.key) is None:
                filled[col.key] = ""
        normalized.append(filled)
    return normalized


def render_rows(rows, columns) -> str:
    return "".join(
        ",".join(escape_field(row[c.key]) for c in columns) + CRLF
        for row in rows
    )


def render_header(columns) -> str:
    return ",".join(escape_field(c.header or c.key) for c in columns) + CRLF


class CsvExporter:
    """
    Writes profile rows to CSV files under an output directory.

    Args:
        output_dir: Directory used for relative destinations and the default
                    output.csv.
        include_bom: Prefix newly written headers with a UTF-8 BOM.
    """

    def __init__(self, output_dir: str = ".", *, include_bom: bool = True):
        self._output_dir = os.path.abspath(output_dir)
        self._include_bom = include_bom

    def resolve(self, destination: str = None) -> str:
        if not destination:
            destination = DEFAULT_FILENAME
        return os.path.abspath(os.path.join(self._output_dir, destination))

    async def save(self, rows, destination: str = None, *, append: bool = None) -> str:
        """
        Save profile rows and return the absolute path of the CSV.

        append=None appends when the file already exists and creates it
        otherwise; append=True does the same; append=False overwrites.

        Raises:
            CsvWriteFailure: the file could not be read or written.
        """
        path = self.resolve(destination)
        rows = list(rows or [])
        if not rows:
            return path
        return await asyncio.to_thread(self._save_sync, rows, path, append)

    def _save_sync(self, rows: list, path: str, append: bool) -> str:
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            # An empty (or BOM-only) file has no header and is written as new.
            header = read_header_line(path)
            columns = columns_for_header(header) if header is not None else WEBSITE_COLUMNS
        except (OSError, UnicodeDecodeError) as e:
            raise CsvWriteFailure(path, str(e)) from e

        body = render_rows(normalize_rows(rows, columns), columns)
        should_append = append is not False and header is not None
        if should_append:
            mode, payload = "a", body
        else:
            prefix = BOM if self._include_bom else ""
            mode, payload = "w", prefix + render_header(columns) + body

        try:
            # Single write: a header never lands without its first rows.
            with open(path, mode, encoding="utf-8", newline="") as f:
                f.write(payload)
        except OSError as e:
            logger.error(f"  [csv] Write failed for {path}: {e}")
            raise CsvWriteFailure(path, str(e)) from e

        action = "Appended" if should_append else "Wrote"
        logger.info(f"  [csv] {action} {len(rows)} row(s) → {path} ({len(columns)} columns)")
        return path


async def save_profiles_csv(rows, destination: str = None, *, append: bool = None,
                            include_bom: bool = True) -> str:
    """Convenience wrapper: save rows relative to the current directory."""
    return await CsvExporter(".", include_bom=include_bom).save(rows, destination, append=append)
