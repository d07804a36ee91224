import logging
from datetime import date
from typing import Iterable

from models.occurrence import Occurrence
from models.recurring_template import RecurringTemplate
from utils.constants import DEFAULT_STATUS
from utils.currency import document_totals
from utils.date_helpers import format_date, parse_date

logger = logging.getLogger(__name__)


def build_occurrence(template: RecurringTemplate, due: date) -> Occurrence:
    """Unsaved occurrence carrying a snapshot of the template's financial fields."""
    payload = template.payload()
    totals = document_totals(
        payload["base_amount"], payload["vat_rate"], payload["withholding_rate"]
    )
    return Occurrence(
        id=None,
        owner_id=template.owner_id,
        kind=template.kind,
        due_date=format_date(due),
        series_id=template.id,
        status=DEFAULT_STATUS,
        **payload,
        **totals,
    )


class SeriesMaterializer:
    """Turns due dates into stored occurrences, skipping dates already present."""

    def __init__(self, store):
        self._store = store

    def plan(
        self,
        template: RecurringTemplate,
        due_dates: Iterable[date],
        existing: Iterable[date],
    ) -> list[Occurrence]:
        """Occurrences to create: one per due date not in `existing`."""
        seen = {parse_date(d) for d in existing}
        drafts = []
        for due in due_dates:
            if due in seen:
                continue
            seen.add(due)
            drafts.append(build_occurrence(template, due))
        return drafts

    def materialize(
        self,
        template: RecurringTemplate,
        due_dates: Iterable[date],
        existing: Iterable[date] | None = None,
    ) -> list[Occurrence]:
        """Create-or-skip every due date; returns the newly stored occurrences.

        When `existing` is None the store is asked for the series' due dates
        before anything is created.
        """
        if existing is None:
            existing = self._store.existing_due_dates(template.id)
        drafts = self.plan(template, due_dates, existing)
        created = [self._store.create(draft) for draft in drafts]
        if created:
            logger.info(
                "Template %s: created %d occurrences (%s .. %s)",
                template.id, len(created), created[0].due_date, created[-1].due_date,
            )
        return created
