import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from database.occurrence_dao import OccurrenceDAO
from database.template_dao import TemplateDAO
from models.occurrence import Occurrence
from models.recurring_template import RecurringTemplate
from models.series_filter import SeriesFilter
from services import occurrence_generator
from services.series_materializer import SeriesMaterializer
from services.series_mutation import SeriesMutationCoordinator, available_scopes
from utils.constants import (
    DAY_POLICY_LABELS, DEFAULT_HORIZON_MONTHS, DOCUMENT_KINDS, FREQUENCY_LABELS,
    FREQUENCY_PERIODS, MAX_SCHEDULED_RECORDS, DayPolicy, Frequency, Scope,
)
from utils.currency import document_totals, format_currency
from utils.date_helpers import (
    add_months, default_horizon, end_of_year, format_date, parse_date, today,
)
from utils.errors import InvalidTemplate, TemplateNotFound

logger = logging.getLogger(__name__)

_SCHEDULE_FIELDS = ("frequency", "day_policy", "specific_day", "start_date", "end_date")
_PAYLOAD_FIELDS = ("client_id", "concept", "description", "base_amount",
                   "vat_rate", "withholding_rate")
_EDITABLE_TEMPLATE_FIELDS = {"name", "kind", *_SCHEDULE_FIELDS, *_PAYLOAD_FIELDS}


def frequency_label(frequency) -> str:
    return FREQUENCY_LABELS[Frequency(frequency)]


def day_policy_label(day_policy, specific_day: int | None = None) -> str:
    policy = DayPolicy(day_policy)
    if policy is DayPolicy.SPECIFIC_DAY:
        return f"Día {specific_day or '?'}"
    return DAY_POLICY_LABELS[policy]


def describe_schedule(frequency, day_policy, specific_day: int | None = None) -> str:
    """Spanish summary, e.g. 'último día laboral de cada mes'."""
    return (
        f"{day_policy_label(day_policy, specific_day).lower()} "
        f"de {FREQUENCY_PERIODS[Frequency(frequency)]}"
    )


def preview_horizon(template) -> date:
    """End date when present, otherwise one year from the start."""
    end = parse_date(template.end_date)
    if end:
        return end
    start = parse_date(template.start_date)
    if start is None:
        raise InvalidTemplate("La fecha de inicio es requerida")
    return default_horizon(start)


def validate_schedule(template, horizon_end=None) -> list[date]:
    """Check a schedule and return its dates; raises InvalidTemplate."""
    if not parse_date(template.start_date):
        raise InvalidTemplate("La fecha de inicio es requerida")
    end = parse_date(template.end_date)
    if template.end_date and end is None:
        raise InvalidTemplate("La fecha de fin no es válida")
    if end and end < parse_date(template.start_date):
        raise InvalidTemplate("La fecha de fin debe ser posterior a la fecha de inicio")
    if template.day_policy == DayPolicy.SPECIFIC_DAY.value:
        day = template.specific_day
        if not isinstance(day, int) or not 1 <= day <= 31:
            raise InvalidTemplate("El día específico debe ser un número entre 1 y 31")

    horizon = horizon_end or preview_horizon(template)
    dates = list(occurrence_generator.generate(template, horizon))
    if len(dates) > MAX_SCHEDULED_RECORDS:
        raise InvalidTemplate(
            f"Se generarían demasiados registros ({len(dates)}). "
            "Por favor, limita el rango de fechas."
        )
    if not dates:
        raise InvalidTemplate("No se generaría ningún registro con esta configuración")
    return dates


@dataclass
class SchedulePreview:
    total: int
    dates: list[str] = field(default_factory=list)
    frequency_label: str = ""
    day_policy_label: str = ""
    description: str = ""
    amount_label: str = ""


class TemplateService:
    def __init__(self, template_dao: TemplateDAO, occurrence_dao: OccurrenceDAO,
                 horizon_months: int = DEFAULT_HORIZON_MONTHS):
        self._dao = template_dao
        self._store = occurrence_dao
        self._materializer = SeriesMaterializer(occurrence_dao)
        self._coordinator = SeriesMutationCoordinator(occurrence_dao)
        self._horizon_months = horizon_months

    # ── Templates ────────────────────────────────────────────────────────────

    def get_all(self, owner_id: int | None = None) -> list[RecurringTemplate]:
        return self._dao.get_all(owner_id)

    def get_active(self) -> list[RecurringTemplate]:
        return self._dao.get_active()

    def get_by_id(self, template_id: int) -> RecurringTemplate | None:
        return self._dao.get_by_id(template_id)

    def _require(self, template_id: int) -> RecurringTemplate:
        template = self._dao.load(template_id)
        if template is None:
            raise TemplateNotFound(f"Template {template_id} not found")
        return template

    def create(
        self,
        owner_id: int,
        name: str,
        kind: str,
        frequency: str,
        day_policy: str,
        start_date: str,
        specific_day: int | None = None,
        end_date: str | None = None,
        description: str = "",
        client_id: int | None = None,
        concept: str = "",
        base_amount: float = 0.0,
        vat_rate: float = 21.0,
        withholding_rate: float = 0.0,
    ) -> RecurringTemplate:
        fields = dict(
            owner_id=owner_id, name=name, kind=kind, frequency=frequency,
            day_policy=day_policy, start_date=start_date, specific_day=specific_day,
            end_date=end_date or None, description=description, client_id=client_id,
            concept=concept, base_amount=base_amount, vat_rate=vat_rate,
            withholding_rate=withholding_rate,
        )
        self._validate(fields)
        template = self._dao.create(**fields)
        logger.info("Created template %s (%s)", template.id, template.name)
        return template

    def update(self, template_id: int, **changes) -> RecurringTemplate:
        """Explicit template edit. Occurrences already generated are not touched."""
        _check_changes(changes)
        current = self._require(template_id)
        self._validate(_merged_fields(current, changes))
        return self._dao.update(template_id, **changes)

    def set_active(self, template_id: int, is_active: bool):
        self._dao.set_active(template_id, is_active)

    def delete(self, template_id: int, delete_records: bool = False) -> dict:
        """Delete a template.

        Linked occurrences are detached and kept, unless delete_records is set,
        in which case they are deleted with the template.
        """
        self._require(template_id)
        deleted = detached = 0
        if delete_records:
            deleted = self._store.delete_many(_series(template_id))
        else:
            detached = self._store.detach_series(template_id)
        self._dao.delete(template_id)
        logger.info("Deleted template %s (%d records deleted, %d detached)",
                    template_id, deleted, detached)
        return {"deleted_records": deleted, "detached_records": detached,
                "records_kept": not delete_records}

    def linked_count(self, template_id: int) -> int:
        self._require(template_id)
        return self._store.count_by_series(template_id)

    # ── Schedule ─────────────────────────────────────────────────────────────

    def preview(self, template, horizon_end=None) -> SchedulePreview:
        dates = validate_schedule(template, horizon_end)
        return SchedulePreview(
            total=len(dates),
            dates=[format_date(d) for d in dates],
            frequency_label=frequency_label(template.frequency),
            day_policy_label=day_policy_label(template.day_policy, template.specific_day),
            description=describe_schedule(
                template.frequency, template.day_policy, template.specific_day),
            amount_label=format_currency(document_totals(
                template.base_amount, template.vat_rate, template.withholding_rate)["total"]),
        )

    def preview_count(self, template, horizon_end=None) -> int:
        return occurrence_generator.preview_count(
            template, horizon_end or preview_horizon(template))

    def generate(self, template, horizon_end) -> list[date]:
        return list(occurrence_generator.generate(template, horizon_end))

    def materialize(self, template_id: int, horizon_end) -> list[Occurrence]:
        """Create the occurrences due up to horizon_end and after the watermark."""
        template = self._require(template_id)
        watermark = parse_date(template.last_generated)
        due_dates = [
            d for d in occurrence_generator.generate(template, horizon_end)
            if watermark is None or d > watermark
        ]
        return self._materialize_dates(template, due_dates)

    def materialize_due(self, reference_date: date | None = None) -> list[Occurrence]:
        """Periodic job: bring every active template up to the horizon."""
        ref = reference_date or today()
        horizon = add_months(ref, self._horizon_months)
        created: list[Occurrence] = []
        for template in self._dao.get_active():
            try:
                created.extend(self.materialize(template.id, horizon))
            except InvalidTemplate:
                logger.warning("Skipping invalid template %s", template.id, exc_info=True)
        return created

    def extend_to_year(self, template_id: int, year: int) -> list[Occurrence]:
        """Create the occurrences of one calendar year not generated before.

        Dates up to the watermark are skipped, so records the user deleted
        or detached from the series are not created twice.
        """
        template = self._require(template_id)
        start_of_year = date(year, 1, 1)
        end = parse_date(template.end_date)
        if end and end < start_of_year:
            return []
        watermark = parse_date(template.last_generated)
        due_dates = [
            d for d in occurrence_generator.generate(template, end_of_year(year))
            if d >= start_of_year and (watermark is None or d > watermark)
        ]
        return self._materialize_dates(template, due_dates)

    def regenerate(self, template_id: int, horizon_end=None, **changes) -> dict:
        """Replace the whole series with one built from the new schedule.

        Every check runs before the old series is deleted, and the swap is
        a single transaction.
        """
        _check_changes(changes)
        current = self._require(template_id)
        self._validate(_merged_fields(current, changes))
        draft = RecurringTemplate(**{**current.__dict__, **changes})
        horizon = horizon_end or preview_horizon(draft)
        validate_schedule(draft, horizon)

        with self._dao.transaction():
            deleted = self._store.delete_many(_series(template_id))
            self._dao.update(template_id, **changes)
            self._dao.update_generation(template_id, None, 0)
            created = self.materialize(template_id, horizon)
        logger.info("Template %s regenerated: %d deleted, %d created",
                    template_id, deleted, len(created))
        return {
            "deleted_count": deleted,
            "created_count": len(created),
            "new_dates": [o.due_date for o in created],
        }

    def _materialize_dates(self, template: RecurringTemplate, due_dates: list[date]) -> list[Occurrence]:
        existing = self._store.existing_due_dates(template.id)
        created = self._materializer.materialize(template, due_dates, existing)
        if created:
            watermark = max(
                filter(None, (parse_date(template.last_generated),
                              parse_date(created[-1].due_date)))
            )
            self._dao.update_generation(
                template.id, format_date(watermark), template.total_generated + len(created))
        return created

    # ── Occurrences ──────────────────────────────────────────────────────────

    def available_scopes(self, occurrence_id: int) -> list[Scope]:
        occurrence = self._store.get_by_id(occurrence_id)
        if occurrence is None:
            return []
        return available_scopes(occurrence)

    def edit_occurrence(self, occurrence_id: int, patch: dict, scope=Scope.ONLY_THIS):
        """Scoped edit. Series-wide edits also become the template's new payload.

        A payload the template rejects rolls the record edits back.
        """
        payload = {k: v for k, v in patch.items() if k in _PAYLOAD_FIELDS}
        with self._dao.transaction():
            result = self._coordinator.edit(occurrence_id, patch, scope)
            series_id = result.occurrence.series_id
            if payload and result.scope is not Scope.ONLY_THIS and self._dao.get_by_id(series_id):
                self.update(series_id, **payload)
        return result

    def delete_occurrence(self, occurrence_id: int, scope=Scope.ONLY_THIS):
        """Scoped delete.

        THIS_AND_FUTURE ends the template the day before the cutoff;
        WHOLE_SERIES removes the template once no linked record is left.
        """
        result = self._coordinator.delete(occurrence_id, scope)
        series_id = result.occurrence.series_id
        template = self._dao.get_by_id(series_id) if series_id else None
        if template is None or result.scope is Scope.ONLY_THIS:
            return result

        if result.scope is Scope.THIS_AND_FUTURE:
            new_end = result.filter.on_or_after - timedelta(days=1)
            if new_end < parse_date(template.start_date):
                self._dao.set_active(template.id, False)
            else:
                self._dao.update(template.id, end_date=format_date(new_end))
        elif self._store.count_by_series(template.id) == 0:
            self._dao.delete(template.id)
            logger.info("Template %s deleted with its whole series", template.id)
        return result

    # ── Validation ───────────────────────────────────────────────────────────

    def _validate(self, fields: dict):
        if not (fields.get("name") or "").strip():
            raise InvalidTemplate("Name cannot be empty.")
        if fields.get("kind") not in DOCUMENT_KINDS:
            raise InvalidTemplate("Kind must be invoice or expense.")
        if (fields.get("base_amount") or 0) < 0:
            raise InvalidTemplate("Base amount cannot be negative.")
        for key in ("vat_rate", "withholding_rate"):
            if not 0 <= (fields.get(key) or 0) <= 100:
                raise InvalidTemplate(f"{key} must be between 0 and 100.")
        template = RecurringTemplate(id=None, **fields)
        # Bad frequency or policy values are reported by the generator.
        validate_schedule(template)


def _check_changes(changes: dict):
    unknown = set(changes) - _EDITABLE_TEMPLATE_FIELDS
    if unknown:
        raise ValueError(f"Unknown template fields: {sorted(unknown)}")


def _merged_fields(current: RecurringTemplate, changes: dict) -> dict:
    merged = {key: getattr(current, key) for key in (
        "owner_id", "name", "kind", *_SCHEDULE_FIELDS, *_PAYLOAD_FIELDS)}
    merged.update(changes)
    return merged


def _series(series_id: int) -> SeriesFilter:
    return SeriesFilter(series_id=series_id)
