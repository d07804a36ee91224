from dataclasses import dataclass
from typing import Optional


@dataclass
class RecurringTemplate:
    id: int
    owner_id: int
    name: str
    kind: str                   # 'invoice' | 'expense'
    frequency: str              # Frequency value
    day_policy: str             # DayPolicy value
    start_date: str             # 'YYYY-MM-DD'
    description: str = ""
    client_id: Optional[int] = None
    concept: str = ""
    base_amount: float = 0.0
    vat_rate: float = 21.0
    withholding_rate: float = 0.0
    specific_day: Optional[int] = None   # 1-31, only with SPECIFIC_DAY
    end_date: Optional[str] = None       # None = open-ended
    is_active: bool = True
    last_generated: Optional[str] = None
    total_generated: int = 0
    created_at: str = ""
    updated_at: str = ""

    def payload(self) -> dict:
        """Financial fields copied onto every generated occurrence."""
        return {
            "client_id": self.client_id,
            "concept": self.concept,
            "description": self.description,
            "base_amount": self.base_amount,
            "vat_rate": self.vat_rate,
            "withholding_rate": self.withholding_rate,
        }
