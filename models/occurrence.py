from dataclasses import dataclass
from typing import Optional


@dataclass
class Occurrence:
    id: int
    owner_id: int
    kind: str               # 'invoice' | 'expense'
    due_date: str           # 'YYYY-MM-DD'
    series_id: Optional[int] = None   # None = detached / standalone
    client_id: Optional[int] = None
    concept: str = ""
    description: str = ""
    base_amount: float = 0.0
    vat_rate: float = 0.0
    vat_amount: float = 0.0
    withholding_rate: float = 0.0
    withholding_amount: float = 0.0
    total: float = 0.0
    status: str = "PENDIENTE"
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_detached(self) -> bool:
        return self.series_id is None
