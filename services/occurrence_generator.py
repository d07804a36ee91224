"""Expand a recurring template into its ordered due dates."""
from datetime import date
from typing import Iterator

from services import calendar_policy
from utils.constants import DayPolicy, Frequency, MONTH_STEPS
from utils.date_helpers import parse_date, shift_month
from utils.errors import InvalidPolicyInput, InvalidTemplate


def _check_template(template) -> tuple[Frequency, DayPolicy, date, date | None]:
    if not getattr(template, "frequency", None):
        raise InvalidTemplate("Template has no frequency.")
    if not getattr(template, "day_policy", None):
        raise InvalidTemplate("Template has no day policy.")
    try:
        frequency = Frequency(template.frequency)
    except ValueError:
        raise InvalidTemplate(f"Unknown frequency: {template.frequency!r}") from None
    try:
        policy = DayPolicy(template.day_policy)
    except ValueError:
        raise InvalidTemplate(f"Unknown day policy: {template.day_policy!r}") from None

    start = parse_date(getattr(template, "start_date", None))
    if start is None:
        raise InvalidTemplate("Template has no valid start date.")
    end = None
    if getattr(template, "end_date", None):
        end = parse_date(template.end_date)
        if end is None:
            raise InvalidTemplate(f"Invalid end date: {template.end_date!r}")
        if end < start:
            raise InvalidTemplate("End date is before start date.")

    if policy is DayPolicy.SPECIFIC_DAY:
        day = getattr(template, "specific_day", None)
        if not isinstance(day, int) or not 1 <= day <= 31:
            raise InvalidTemplate(f"Specific day must be 1-31, got {day!r}")
    return frequency, policy, start, end


def _iter_dates(
    step: int, policy: DayPolicy, specific_day, start: date, bound: date
) -> Iterator[date]:
    year, month = start.year, start.month
    while True:
        try:
            due = calendar_policy.resolve(policy, year, month, specific_day)
        except InvalidPolicyInput as exc:
            raise InvalidTemplate(str(exc)) from exc
        if due > bound:
            return
        if due >= start:
            yield due
        year, month = shift_month(year, month, step)


def generate(template, horizon_end) -> Iterator[date]:
    """Due dates of template up to min(end_date, horizon_end), ascending.

    Stepping starts at the month of start_date and moves 1, 3, 6 or 12
    months at a time. A date of the first period falling before start_date
    is skipped. The template is validated before anything is yielded, and
    every call returns a fresh iterator.
    """
    frequency, policy, start, end = _check_template(template)
    horizon = parse_date(horizon_end)
    if horizon is None:
        raise InvalidTemplate(f"Invalid horizon: {horizon_end!r}")
    bound = min(end, horizon) if end else horizon
    specific_day = template.specific_day if policy is DayPolicy.SPECIFIC_DAY else None
    return _iter_dates(MONTH_STEPS[frequency], policy, specific_day, start, bound)


def preview_count(template, horizon_end) -> int:
    return sum(1 for _ in generate(template, horizon_end))
