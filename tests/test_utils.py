import json
import logging
from datetime import date

import pytest

from utils import app_config
from utils.currency import document_totals, format_currency, round_cents, tax_amount
from utils.date_helpers import (
    add_months, default_horizon, is_business_day, parse_date, shift_month,
)
from utils.logging_conf import JSONFormatter, configure_logging


def test_round_cents_half_up():
    assert round_cents(2.675) == 2.68
    assert round_cents(0.125) == 0.13
    assert round_cents(None) == 0.0


def test_tax_amount_and_totals():
    assert tax_amount(333.33, 21) == 70.0
    assert document_totals(100.0, 21.0, 15.0) == {
        "vat_amount": 21.0, "withholding_amount": 15.0, "total": 106.0,
    }


def test_format_currency():
    assert format_currency(1234.5) == "1.234,50 €"


def test_parse_date():
    assert parse_date("2026-03-01") == date(2026, 3, 1)
    assert parse_date(date(2026, 3, 1)) == date(2026, 3, 1)
    assert parse_date("01/03/2026") is None
    assert parse_date(None) is None
    assert parse_date(20260301) is None


def test_month_arithmetic():
    assert shift_month(2026, 11, 3) == (2027, 2)
    assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
    assert default_horizon(date(2026, 1, 1)) == date(2026, 12, 31)
    assert default_horizon(date(2026, 3, 15)) == date(2027, 3, 14)


def test_is_business_day():
    assert is_business_day(date(2026, 1, 2))        # Friday
    assert not is_business_day(date(2026, 1, 3))    # Saturday


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.setattr(app_config, "CONFIG_DIR", tmp_path)
    monkeypatch.setattr(app_config, "CONFIG_FILE", tmp_path / "config.json")
    return tmp_path / "config.json"


def test_config_defaults_when_missing(config_file):
    assert app_config.load_config() == {}
    assert app_config.get_horizon_months() == 12
    assert app_config.get_log_level() == "INFO"
    assert app_config.get_db_folder() is None


def test_config_corrupt_file(config_file):
    config_file.write_text("{not json", encoding="utf-8")
    assert app_config.load_config() == {}


def test_config_round_trip(config_file):
    app_config.save_config({"db_folder": "/data/facturas", "horizon_months": 24, "log_level": "debug"})
    assert json.loads(config_file.read_text(encoding="utf-8"))["db_folder"] == "/data/facturas"
    assert app_config.get_db_folder() == "/data/facturas"
    assert app_config.get_horizon_months() == 24
    assert app_config.get_log_level() == "DEBUG"
    assert not config_file.with_suffix(".tmp").exists()


def test_config_invalid_horizon(config_file):
    app_config.save_config({"horizon_months": "soon"})
    assert app_config.get_horizon_months() == 12


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("svc", logging.INFO, __file__, 1, "created %d", (3,), None)
    record.template_id = 9
    payload = json.loads(JSONFormatter().format(record))
    assert payload["message"] == "created 3"
    assert payload["level"] == "INFO"
    assert payload["template_id"] == 9


def test_configure_logging_installs_one_handler():
    root = configure_logging("debug")
    configure_logging("debug", structured=True)
    try:
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert root.level == logging.DEBUG
    finally:
        configure_logging(logging.WARNING)
