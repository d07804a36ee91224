"""Pre-DB bootstrap configuration. Zero imports from the rest of the app.

Stores preferences that must be known before opening the DB (db_folder,
generation horizon, log level). Config lives in
~/.facturas_recurrentes/config.json to avoid a bootstrapping problem.
"""
import json
import os
from pathlib import Path

CONFIG_DIR = Path.home() / ".facturas_recurrentes"
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULTS = {
    "db_folder": None,
    "horizon_months": 12,
    "log_level": "INFO",
}


def load_config() -> dict:
    """Returns {} on missing or corrupt file; never raises."""
    try:
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(config: dict) -> None:
    """Creates the config dir if needed; atomic write via .tmp + os.replace()."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    tmp = CONFIG_FILE.with_suffix(".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        os.replace(tmp, CONFIG_FILE)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def get_option(key: str):
    """Return the configured value for key, falling back to DEFAULTS."""
    return load_config().get(key, DEFAULTS.get(key))


def get_db_folder() -> str | None:
    return get_option("db_folder")


def get_horizon_months() -> int:
    """Months ahead the periodic job materializes; invalid values fall back to 12."""
    try:
        months = int(get_option("horizon_months"))
    except (TypeError, ValueError):
        return DEFAULTS["horizon_months"]
    return months if months > 0 else DEFAULTS["horizon_months"]


def get_log_level() -> str:
    return str(get_option("log_level") or DEFAULTS["log_level"]).upper()
