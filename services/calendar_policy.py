"""Pick the concrete date of a month under a day-selection policy.

Business days are Monday to Friday; no public-holiday calendar is consulted.
"""
from datetime import date, timedelta

from utils.constants import DayPolicy
from utils.date_helpers import clamp_day_to_month, days_in_month, is_business_day
from utils.errors import InvalidPolicyInput


def _coerce_policy(policy) -> DayPolicy:
    try:
        return DayPolicy(policy)
    except ValueError:
        raise InvalidPolicyInput(f"Unknown day policy: {policy!r}") from None


def _first_business_day(year: int, month: int) -> date:
    d = date(year, month, 1)
    while not is_business_day(d):
        d += timedelta(days=1)
    return d


def _last_business_day(year: int, month: int) -> date:
    d = date(year, month, days_in_month(year, month))
    while not is_business_day(d):
        d -= timedelta(days=1)
    return d


def resolve(policy, year: int, month: int, specific_day: int | None = None) -> date:
    """Return the date of (year, month) selected by policy.

    SPECIFIC_DAY clamps to the month length: day 31 in February gives the
    28th (29th in leap years), never a day of March.
    """
    policy = _coerce_policy(policy)
    if not isinstance(month, int) or not 1 <= month <= 12:
        raise InvalidPolicyInput(f"Month must be 1-12, got {month!r}")

    if policy is DayPolicy.SPECIFIC_DAY:
        if not isinstance(specific_day, int) or not 1 <= specific_day <= 31:
            raise InvalidPolicyInput(
                f"Specific day must be 1-31, got {specific_day!r}"
            )
        return date(year, month, clamp_day_to_month(year, month, specific_day))
    if policy is DayPolicy.FIRST_CALENDAR_DAY:
        return date(year, month, 1)
    if policy is DayPolicy.LAST_CALENDAR_DAY:
        return date(year, month, days_in_month(year, month))
    if policy is DayPolicy.FIRST_BUSINESS_DAY:
        return _first_business_day(year, month)
    return _last_business_day(year, month)
