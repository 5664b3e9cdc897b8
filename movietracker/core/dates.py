"""Date helpers shared by the repository, importer and API."""

import re
import time
from datetime import date

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_YEAR = re.compile(r"\b\d{4}\b")


def today_iso() -> str:
    """Return today's date as YYYY-MM-DD."""
    return date.today().isoformat()


def now_ms() -> int:
    """Current epoch time in milliseconds."""
    return int(time.time() * 1000)


def is_valid_date_format(value: str) -> bool:
    """Check that value is a real calendar date in YYYY-MM-DD form."""
    if not _ISO_DATE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def get_release_year(value: str | None) -> str:
    """Extract the four-digit year from a release date."""
    if not value:
        return ""
    if not _ISO_DATE.match(value):
        match = _YEAR.search(value)
        return match.group(0) if match else ""
    return value.split("-")[0]


def format_runtime(minutes: int | None) -> str:
    """Format minutes as '2h 15m'."""
    if not minutes or minutes <= 0:
        return "Unknown"

    hours, remaining = divmod(minutes, 60)
    if hours == 0:
        return f"{remaining}m"
    if remaining == 0:
        return f"{hours}h"
    return f"{hours}h {remaining}m"


def is_within_days(value: str, days: int, today: date | None = None) -> bool:
    """True if the ISO date is no more than `days` days before today."""
    today = today or date.today()
    return (today - date.fromisoformat(value)).days <= days
