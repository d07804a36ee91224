# tests/conftest.py
import pytest

from database.db_manager import DatabaseManager
from database.occurrence_dao import OccurrenceDAO
from database.template_dao import TemplateDAO
from models.recurring_template import RecurringTemplate
from services.template_service import TemplateService


@pytest.fixture
def db():
    manager = DatabaseManager(":memory:")
    manager.initialize()
    yield manager
    manager.close()


@pytest.fixture
def template_dao(db):
    return TemplateDAO(db)


@pytest.fixture
def occurrence_dao(db):
    return OccurrenceDAO(db)


@pytest.fixture
def service(template_dao, occurrence_dao):
    return TemplateService(template_dao, occurrence_dao)


@pytest.fixture
def make_template():
    """Build an unsaved template; keyword arguments override the defaults."""
    def _build(**overrides):
        fields = dict(
            id=1,
            owner_id=1,
            name="Asesoría mensual",
            kind="invoice",
            frequency="MONTHLY",
            day_policy="FIRST_CALENDAR_DAY",
            start_date="2026-01-01",
            client_id=7,
            concept="Servicios de asesoría",
            base_amount=1000.0,
            vat_rate=21.0,
            withholding_rate=15.0,
        )
        fields.update(overrides)
        return RecurringTemplate(**fields)
    return _build


@pytest.fixture
def monthly_series(service):
    """A stored MONTHLY template with its twelve 2026 occurrences."""
    template = service.create(
        owner_id=1,
        name="Asesoría mensual",
        kind="invoice",
        frequency="MONTHLY",
        day_policy="FIRST_CALENDAR_DAY",
        start_date="2026-01-01",
        client_id=7,
        concept="Servicios de asesoría",
        base_amount=1000.0,
        vat_rate=21.0,
        withholding_rate=15.0,
    )
    occurrences = service.materialize(template.id, "2026-12-31")
    return template, occurrences
