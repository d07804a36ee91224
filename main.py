import logging
import os
import sys

# Ensure project root is on sys.path when run directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from database.db_manager import DatabaseManager
from database.occurrence_dao import OccurrenceDAO
from database.template_dao import TemplateDAO

from services.template_service import TemplateService

from utils.app_config import get_db_folder, get_horizon_months, get_log_level
from utils.constants import APP_NAME
from utils.date_helpers import format_date, today
from utils.logging_conf import configure_logging

logger = logging.getLogger(APP_NAME)


def main():
    # ── Bootstrap: read pre-DB config ─────────────────────────────────────────
    configure_logging(get_log_level())
    db_folder = get_db_folder()

    # ── Database ─────────────────────────────────────────────────────────────
    db = DatabaseManager.open(db_folder=db_folder)

    # ── DAOs ─────────────────────────────────────────────────────────────────
    template_dao = TemplateDAO(db)
    occurrence_dao = OccurrenceDAO(db)

    # ── Services ─────────────────────────────────────────────────────────────
    horizon_months = int(db.get_setting("horizon_months", str(get_horizon_months())))
    template_svc = TemplateService(template_dao, occurrence_dao, horizon_months=horizon_months)

    # ── Materialize due recurring documents ──────────────────────────────────
    try:
        created = template_svc.materialize_due()
    finally:
        db.close()

    logger.info("%s: %d documents generated as of %s",
                APP_NAME, len(created), format_date(today()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
