import sqlite3
from datetime import date

import pytest

from services.template_service import (
    TemplateService, day_policy_label, describe_schedule, frequency_label,
)
from utils.constants import Scope
from utils.errors import InvalidTemplate, TemplateNotFound


def _create(service, **overrides):
    fields = dict(
        owner_id=1,
        name="Alquiler oficina",
        kind="expense",
        frequency="MONTHLY",
        day_policy="FIRST_CALENDAR_DAY",
        start_date="2026-01-01",
        concept="Alquiler",
        base_amount=800.0,
        vat_rate=21.0,
        withholding_rate=19.0,
    )
    fields.update(overrides)
    return service.create(**fields)


# ── Validation ───────────────────────────────────────────────────────────────

@pytest.mark.parametrize("overrides", [
    {"name": "  "},
    {"kind": "receipt"},
    {"base_amount": -1.0},
    {"vat_rate": 150.0},
    {"frequency": "WEEKLY"},
    {"day_policy": "SPECIFIC_DAY"},
    {"day_policy": "SPECIFIC_DAY", "specific_day": 32},
    {"end_date": "2025-06-01"},
    {"start_date": ""},
])
def test_create_rejects_invalid_templates(service, overrides):
    with pytest.raises(InvalidTemplate):
        _create(service, **overrides)


def test_create_rejects_schedules_over_the_safety_limit(service):
    with pytest.raises(InvalidTemplate, match="demasiados"):
        _create(service, end_date="2037-01-01")


def test_create_rejects_schedules_without_dates(service):
    with pytest.raises(InvalidTemplate, match="ningún registro"):
        _create(service, start_date="2026-01-20", end_date="2026-01-31")


def test_specific_day_ignored_for_other_policies(service):
    template = _create(service, specific_day=99)
    assert template.id is not None


# ── Preview ──────────────────────────────────────────────────────────────────

def test_preview_open_ended_uses_one_year(service, make_template):
    preview = service.preview(make_template())
    assert preview.total == 12
    assert preview.dates[0] == "2026-01-01"
    assert preview.dates[-1] == "2026-12-01"
    assert preview.frequency_label == "Mensual"
    assert preview.day_policy_label == "Primer día"
    assert preview.description == "primer día de cada mes"


def test_preview_with_end_date(service, make_template):
    preview = service.preview(make_template(frequency="QUARTERLY", end_date="2027-12-31"))
    assert preview.total == 8


def test_preview_count_zero_when_nothing_fits(service, make_template):
    t = make_template(start_date="2026-01-20", end_date="2026-01-31")
    assert service.preview_count(t) == 0
    with pytest.raises(InvalidTemplate):
        service.preview(t)


def test_preview_count_without_start_date(service, make_template):
    with pytest.raises(InvalidTemplate, match="fecha de inicio"):
        service.preview_count(make_template(start_date=None))


def test_preview_amount_label(service, make_template):
    # 1000 + 21% VAT - 15% IRPF
    assert service.preview(make_template()).amount_label == "1.060,00 €"


def test_labels():
    assert frequency_label("SEMIANNUAL") == "Semestral"
    assert day_policy_label("SPECIFIC_DAY", 15) == "Día 15"
    assert describe_schedule("QUARTERLY", "SPECIFIC_DAY", 15) == "día 15 de cada trimestre"
    assert describe_schedule("MONTHLY", "LAST_BUSINESS_DAY") == "último día laboral de cada mes"


# ── Materialization ──────────────────────────────────────────────────────────

def test_materialize_moves_watermark(service, template_dao):
    template = _create(service)
    created = service.materialize(template.id, "2026-12-31")
    assert len(created) == 12
    stored = template_dao.get_by_id(template.id)
    assert stored.last_generated == "2026-12-01"
    assert stored.total_generated == 12


def test_materialize_twice_creates_nothing_new(service):
    template = _create(service)
    service.materialize(template.id, "2026-12-31")
    assert service.materialize(template.id, "2026-12-31") == []


def test_deleted_occurrence_is_not_recreated(service, occurrence_dao):
    template = _create(service)
    occs = service.materialize(template.id, "2026-12-31")
    service.delete_occurrence(occs[2].id, Scope.ONLY_THIS)
    assert service.materialize(template.id, "2026-12-31") == []
    assert occurrence_dao.count_by_series(template.id) == 11


def test_materialize_extends_past_watermark(service):
    template = _create(service)
    service.materialize(template.id, "2026-12-31")
    more = service.materialize(template.id, "2027-03-31")
    assert [o.due_date for o in more] == ["2027-01-01", "2027-02-01", "2027-03-01"]


def test_materialize_due_runs_active_templates(service):
    active = _create(service)
    paused = _create(service, name="Pausada")
    service.set_active(paused.id, False)

    created = service.materialize_due(date(2026, 1, 1))
    assert len(created) == 13
    assert {o.series_id for o in created} == {active.id}


def test_materialize_due_respects_configured_horizon(template_dao, occurrence_dao):
    service = TemplateService(template_dao, occurrence_dao, horizon_months=2)
    _create(service)
    assert len(service.materialize_due(date(2026, 1, 1))) == 3


def test_extend_to_year(service):
    template = _create(service)
    service.materialize(template.id, "2026-12-31")
    created = service.extend_to_year(template.id, 2027)
    assert len(created) == 12
    assert all(o.due_date.startswith("2027-") for o in created)
    assert service.extend_to_year(template.id, 2027) == []


def test_extend_to_year_skips_detached_and_deleted_dates(monthly_series, service,
                                                         occurrence_dao):
    template, occs = monthly_series
    march = next(o for o in occs if o.due_date == "2026-03-01")
    service.edit_occurrence(march.id, {"concept": "Marzo con descuento"}, Scope.ONLY_THIS)
    service.delete_occurrence(occs[6].id, Scope.ONLY_THIS)

    assert service.extend_to_year(template.id, 2026) == []
    march_docs = [o for o in occurrence_dao.get_all() if o.due_date == "2026-03-01"]
    assert len(march_docs) == 1
    assert occurrence_dao.count_by_series(template.id) == 10


def test_extend_to_year_after_end_date(service):
    template = _create(service, end_date="2026-06-30")
    assert service.extend_to_year(template.id, 2027) == []


def test_regenerate_replaces_series(service, template_dao, occurrence_dao):
    template = _create(service)
    service.materialize(template.id, "2026-12-31")

    result = service.regenerate(template.id, frequency="QUARTERLY", base_amount=900.0)
    assert result["deleted_count"] == 12
    assert result["created_count"] == 4
    assert result["new_dates"] == ["2026-01-01", "2026-04-01", "2026-07-01", "2026-10-01"]
    assert all(o.base_amount == 900.0 for o in occurrence_dao.get_by_series(template.id))
    stored = template_dao.get_by_id(template.id)
    assert stored.frequency == "QUARTERLY"
    assert stored.total_generated == 4


def test_regenerate_rejects_invalid_schedule_without_deleting(service, occurrence_dao):
    template = _create(service)
    service.materialize(template.id, "2026-12-31")
    with pytest.raises(InvalidTemplate):
        service.regenerate(template.id, day_policy="SPECIFIC_DAY", specific_day=None)
    assert occurrence_dao.count_by_series(template.id) == 12


def test_regenerate_checks_stored_schedule_before_deleting(monthly_series, service,
                                                           template_dao, occurrence_dao):
    template, _ = monthly_series
    # Fits the given horizon, but the saved end date would exceed the safety limit.
    with pytest.raises(InvalidTemplate, match="demasiados"):
        service.regenerate(template.id, horizon_end="2026-12-31", end_date="2040-12-31")
    assert occurrence_dao.count_by_series(template.id) == 12
    assert template_dao.get_by_id(template.id).end_date is None


def test_regenerate_rolls_back_when_creation_fails(monthly_series, service, template_dao,
                                                   occurrence_dao, monkeypatch):
    template, _ = monthly_series

    def broken_create(occurrence):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(occurrence_dao, "create", broken_create)
    with pytest.raises(sqlite3.OperationalError):
        service.regenerate(template.id, frequency="QUARTERLY")

    stored = template_dao.get_by_id(template.id)
    assert stored.frequency == "MONTHLY"
    assert stored.total_generated == 12
    assert occurrence_dao.count_by_series(template.id) == 12


def test_update_does_not_touch_generated_occurrences(service, occurrence_dao):
    template = _create(service)
    service.materialize(template.id, "2026-12-31")
    service.update(template.id, base_amount=2000.0)
    assert all(o.base_amount == 800.0 for o in occurrence_dao.get_by_series(template.id))


def test_update_unknown_field(service):
    template = _create(service)
    with pytest.raises(ValueError):
        service.update(template.id, colour="red")


# ── Deletion ─────────────────────────────────────────────────────────────────

def test_delete_template_keeps_records_detached(service, template_dao, occurrence_dao):
    template = _create(service)
    service.materialize(template.id, "2026-12-31")
    result = service.delete(template.id)
    assert result == {"deleted_records": 0, "detached_records": 12, "records_kept": True}
    assert template_dao.get_by_id(template.id) is None
    records = occurrence_dao.get_all()
    assert len(records) == 12
    assert all(o.series_id is None for o in records)


def test_delete_template_with_records(service, occurrence_dao):
    template = _create(service)
    service.materialize(template.id, "2026-12-31")
    result = service.delete(template.id, delete_records=True)
    assert result["deleted_records"] == 12
    assert occurrence_dao.get_all() == []


def test_delete_missing_template(service):
    with pytest.raises(TemplateNotFound):
        service.delete(404)


def test_linked_count(service):
    template = _create(service)
    service.materialize(template.id, "2026-06-30")
    assert service.linked_count(template.id) == 6


# ── Scoped edits and deletes ─────────────────────────────────────────────────

def test_series_edit_becomes_template_payload(service, template_dao):
    template = _create(service)
    occs = service.materialize(template.id, "2026-12-31")
    service.edit_occurrence(occs[0].id, {"base_amount": 1200.0}, Scope.WHOLE_SERIES)
    assert template_dao.get_by_id(template.id).base_amount == 1200.0

    later = service.materialize(template.id, "2027-02-28")
    assert [o.base_amount for o in later] == [1200.0, 1200.0]


def test_series_edit_with_invalid_payload_changes_nothing(service, template_dao, occurrence_dao):
    template = _create(service)
    occs = service.materialize(template.id, "2026-12-31")
    with pytest.raises(InvalidTemplate):
        service.edit_occurrence(occs[0].id, {"base_amount": -5.0}, Scope.WHOLE_SERIES)
    with pytest.raises(InvalidTemplate):
        service.edit_occurrence(occs[4].id, {"vat_rate": 150.0}, Scope.THIS_AND_FUTURE)

    assert template_dao.get_by_id(template.id).base_amount == 800.0
    assert template_dao.get_by_id(template.id).vat_rate == 21.0
    records = occurrence_dao.get_by_series(template.id)
    assert all(o.base_amount == 800.0 and o.vat_rate == 21.0 for o in records)


def test_single_edit_leaves_template_alone(service, template_dao):
    template = _create(service)
    occs = service.materialize(template.id, "2026-12-31")
    service.edit_occurrence(occs[0].id, {"base_amount": 1.0}, Scope.ONLY_THIS)
    assert template_dao.get_by_id(template.id).base_amount == 800.0


def test_delete_this_and_future_ends_template(service, template_dao):
    template = _create(service)
    occs = service.materialize(template.id, "2026-12-31")
    service.delete_occurrence(occs[5].id, Scope.THIS_AND_FUTURE)
    assert template_dao.get_by_id(template.id).end_date == "2026-05-31"
    assert service.materialize(template.id, "2027-12-31") == []


def test_delete_this_and_future_from_first_deactivates(service, template_dao):
    template = _create(service)
    occs = service.materialize(template.id, "2026-12-31")
    service.delete_occurrence(occs[0].id, Scope.THIS_AND_FUTURE)
    assert template_dao.get_by_id(template.id).is_active is False


def test_delete_whole_series_removes_template(service, template_dao):
    template = _create(service)
    occs = service.materialize(template.id, "2026-12-31")
    result = service.delete_occurrence(occs[3].id, Scope.WHOLE_SERIES)
    assert result.affected == 12
    assert template_dao.get_by_id(template.id) is None


def test_solo_esta_factura_end_to_end(service, occurrence_dao, make_template):
    draft = make_template(id=None)
    assert service.preview_count(draft) == 12

    template = _create(service, kind="invoice", name="Cuota mensual")
    occs = service.materialize(template.id, "2026-12-31")
    march = next(o for o in occs if o.due_date == "2026-03-01")
    assert service.available_scopes(march.id) == [
        Scope.ONLY_THIS, Scope.THIS_AND_FUTURE, Scope.WHOLE_SERIES]

    service.edit_occurrence(march.id, {"concept": "Marzo con descuento"}, Scope.ONLY_THIS)

    reopened = occurrence_dao.get_by_id(march.id)
    assert reopened.series_id is None
    assert reopened.concept == "Marzo con descuento"
    assert service.available_scopes(march.id) == [Scope.ONLY_THIS]
    assert occurrence_dao.count_by_series(template.id) == 11
