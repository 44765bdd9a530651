"""
Column definitions shared by the CSV exporter and the header migrator.

Profile rows use snake_case keys; CSV files use the human header labels.
The canonical header order is fixed, and Email is never part of it.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ColumnDescriptor:
    key: str
    header: str
    aliases: tuple = ()


BASE_COLUMNS = (
    ColumnDescriptor("name", "Full Name",
                     ("Full Name", "Name", "full name", "fullname", "full_name")),
    ColumnDescriptor("first_name", "First Name",
                     ("First Name", "first_name", "first name", "firstname")),
    ColumnDescriptor("last_name", "Last Name",
                     ("Last Name", "last_name", "last name", "lastname")),
    ColumnDescriptor("title", "Title", ("Title", "title")),
    ColumnDescriptor("company", "Company", ("Company", "company")),
    ColumnDescriptor("person_location", "Person Location",
                     ("Person Location", "Location", "person_location", "person location", "location")),
    # person_title carries the profile URL, not a job title.
    ColumnDescriptor("person_title", "LinkedIn URL",
                     ("LinkedIn URL", "LinkedIn", "person_title", "linkedin url", "linkedin")),
)

WEBSITE_COLUMN = ColumnDescriptor(
    "domain", "Website", ("Website", "domain", "Domain", "domain1", "domain2", "domain3"),
)

WEBSITE_COLUMNS = BASE_COLUMNS + (WEBSITE_COLUMN,)

# Every export converges to this set.
CANONICAL_COLUMNS = WEBSITE_COLUMNS
CANONICAL_HEADERS = tuple(c.header for c in CANONICAL_COLUMNS)

EXCLUDED_HEADER = "email"

# Substrings in an existing header line that mean it already has a Website column.
WEBSITE_MARKERS = ("website", "domain")


def columns_for_header(header_line: str) -> tuple:
    """Pick the column set matching an existing file's header line."""
    lower = (header_line or "").lower()
    if any(marker in lower for marker in WEBSITE_MARKERS):
        return WEBSITE_COLUMNS
    return BASE_COLUMNS
