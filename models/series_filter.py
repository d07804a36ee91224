from dataclasses import dataclass
from datetime import date
from typing import Optional

from utils.date_helpers import parse_date


@dataclass(frozen=True)
class SeriesFilter:
    """Which occurrences an edit or delete touches.

    Either a single record (`occurrence_id`) or every record of a series,
    optionally restricted to due dates on or after `on_or_after`.
    """
    occurrence_id: Optional[int] = None
    series_id: Optional[int] = None
    on_or_after: Optional[date] = None

    @property
    def is_single(self) -> bool:
        return self.occurrence_id is not None

    def matches(self, occurrence) -> bool:
        if self.occurrence_id is not None:
            return occurrence.id == self.occurrence_id
        if self.series_id is None or occurrence.series_id != self.series_id:
            return False
        if self.on_or_after is not None:
            return parse_date(occurrence.due_date) >= self.on_or_after
        return True
