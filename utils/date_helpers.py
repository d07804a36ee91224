from datetime import date, datetime, timedelta
import calendar
from utils.constants import DATE_FORMAT


def today() -> date:
    return date.today()


def parse_date(date_str) -> date | None:
    """Parse a date string in YYYY-MM-DD format, returning None on failure.

    `date` instances pass through unchanged.
    """
    if not date_str:
        return None
    if isinstance(date_str, date):
        return date_str
    for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d"):
        try:
            return datetime.strptime(date_str, fmt).date()
        except (TypeError, ValueError):
            continue
    return None


def format_date(d: date) -> str:
    return d.strftime(DATE_FORMAT)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamp_day_to_month(year: int, month: int, day: int) -> int:
    """Clamp day to valid range for the given year/month."""
    return min(day, days_in_month(year, month))


def shift_month(year: int, month: int, n: int) -> tuple[int, int]:
    """Return the (year, month) n months after the given one."""
    index = month - 1 + n
    return year + index // 12, index % 12 + 1


def add_months(d: date, n: int) -> date:
    """Add n months to date d, clamping day to month end."""
    year, month = shift_month(d.year, d.month, n)
    return d.replace(year=year, month=month, day=clamp_day_to_month(year, month, d.day))


def is_business_day(d: date) -> bool:
    """Monday to Friday. Public holidays are not taken into account."""
    return d.weekday() < 5


def end_of_year(year: int) -> date:
    return date(year, 12, 31)


def default_horizon(start: date) -> date:
    """Last day of the twelve-month window opened by `start`."""
    return add_months(start, 12) - timedelta(days=1)
