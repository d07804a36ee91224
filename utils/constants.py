from enum import Enum

APP_NAME = "Facturas Recurrentes"
DB_FILE = "recurrentes.db"

DATE_FORMAT = "%Y-%m-%d"

DEFAULT_HORIZON_MONTHS = 12
MAX_SCHEDULED_RECORDS = 120


class Frequency(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    SEMIANNUAL = "SEMIANNUAL"
    ANNUAL = "ANNUAL"


class DayPolicy(str, Enum):
    SPECIFIC_DAY = "SPECIFIC_DAY"
    FIRST_CALENDAR_DAY = "FIRST_CALENDAR_DAY"
    FIRST_BUSINESS_DAY = "FIRST_BUSINESS_DAY"
    LAST_CALENDAR_DAY = "LAST_CALENDAR_DAY"
    LAST_BUSINESS_DAY = "LAST_BUSINESS_DAY"


class Scope(str, Enum):
    ONLY_THIS = "ONLY_THIS"
    THIS_AND_FUTURE = "THIS_AND_FUTURE"
    WHOLE_SERIES = "WHOLE_SERIES"


MONTH_STEPS = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.SEMIANNUAL: 6,
    Frequency.ANNUAL: 12,
}

DOCUMENT_KINDS = ["invoice", "expense"]
DOCUMENT_STATUSES = ["PENDIENTE", "PAGADA", "ANULADA"]
DEFAULT_STATUS = "PENDIENTE"

# Fields a user may patch on a generated occurrence.
EDITABLE_FIELDS = {
    "client_id", "concept", "description", "base_amount",
    "vat_rate", "withholding_rate", "status", "due_date",
}
# due_date only makes sense on a single record.
SERIES_EDITABLE_FIELDS = EDITABLE_FIELDS - {"due_date"}
AMOUNT_FIELDS = {"base_amount", "vat_rate", "withholding_rate"}

FREQUENCY_LABELS = {
    Frequency.MONTHLY: "Mensual",
    Frequency.QUARTERLY: "Trimestral",
    Frequency.SEMIANNUAL: "Semestral",
    Frequency.ANNUAL: "Anual",
}

FREQUENCY_PERIODS = {
    Frequency.MONTHLY: "cada mes",
    Frequency.QUARTERLY: "cada trimestre",
    Frequency.SEMIANNUAL: "cada semestre",
    Frequency.ANNUAL: "cada año",
}

DAY_POLICY_LABELS = {
    DayPolicy.LAST_BUSINESS_DAY: "Último día laboral",
    DayPolicy.FIRST_BUSINESS_DAY: "Primer día laboral",
    DayPolicy.LAST_CALENDAR_DAY: "Último día",
    DayPolicy.FIRST_CALENDAR_DAY: "Primer día",
}
