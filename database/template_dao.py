import logging
from typing import Optional

from database.db_manager import DatabaseManager
from models.recurring_template import RecurringTemplate

logger = logging.getLogger(__name__)

_COLUMNS = (
    "owner_id", "name", "description", "kind", "client_id", "concept",
    "base_amount", "vat_rate", "withholding_rate", "frequency", "day_policy",
    "specific_day", "start_date", "end_date",
)


class TemplateDAO:
    def __init__(self, db: DatabaseManager):
        self._db = db

    def transaction(self):
        return self._db.transaction()

    def _row_to_model(self, row) -> RecurringTemplate:
        return RecurringTemplate(
            id=row["id"],
            owner_id=row["owner_id"],
            name=row["name"],
            description=row["description"],
            kind=row["kind"],
            client_id=row["client_id"],
            concept=row["concept"],
            base_amount=row["base_amount"],
            vat_rate=row["vat_rate"],
            withholding_rate=row["withholding_rate"],
            frequency=row["frequency"],
            day_policy=row["day_policy"],
            specific_day=row["specific_day"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            is_active=bool(row["is_active"]),
            last_generated=row["last_generated"],
            total_generated=row["total_generated"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get_all(self, owner_id: int | None = None) -> list[RecurringTemplate]:
        conn = self._db.get_connection()
        if owner_id is None:
            rows = conn.execute(
                "SELECT * FROM recurring_templates ORDER BY created_at DESC, id DESC"
            ).fetchall()
        else:
            rows = conn.execute(
                """SELECT * FROM recurring_templates WHERE owner_id = ?
                   ORDER BY created_at DESC, id DESC""",
                (owner_id,),
            ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_active(self) -> list[RecurringTemplate]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM recurring_templates WHERE is_active = 1 ORDER BY id"
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_by_id(self, template_id: int) -> Optional[RecurringTemplate]:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM recurring_templates WHERE id = ?", (template_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    # Template repository contract
    load = get_by_id

    def create(self, **fields) -> RecurringTemplate:
        values = {key: fields.get(key) for key in _COLUMNS}
        conn = self._db.get_connection()
        cursor = conn.execute(
            f"""INSERT INTO recurring_templates ({", ".join(_COLUMNS)})
                VALUES ({", ".join("?" * len(_COLUMNS))})""",
            tuple(values[key] for key in _COLUMNS),
        )
        self._db.commit()
        logger.debug("Created template %s", cursor.lastrowid)
        return self.get_by_id(cursor.lastrowid)

    def update(self, template_id: int, **fields) -> RecurringTemplate:
        """Update the given columns only; unknown keys raise ValueError."""
        unknown = set(fields) - set(_COLUMNS) - {"is_active"}
        if unknown:
            raise ValueError(f"Unknown template fields: {sorted(unknown)}")
        if fields:
            if "is_active" in fields:
                fields["is_active"] = 1 if fields["is_active"] else 0
            assignments = ", ".join(f"{key}=?" for key in fields)
            conn = self._db.get_connection()
            conn.execute(
                f"""UPDATE recurring_templates
                    SET {assignments}, updated_at=datetime('now')
                    WHERE id=?""",
                (*fields.values(), template_id),
            )
            self._db.commit()
        return self.get_by_id(template_id)

    def set_active(self, template_id: int, is_active: bool):
        conn = self._db.get_connection()
        conn.execute(
            "UPDATE recurring_templates SET is_active = ? WHERE id = ?",
            (1 if is_active else 0, template_id),
        )
        self._db.commit()

    def update_generation(self, template_id: int, last_generated: str | None, total_generated: int):
        """Move the generation watermark and counter after materializing."""
        conn = self._db.get_connection()
        conn.execute(
            """UPDATE recurring_templates
               SET last_generated = ?, total_generated = ?, updated_at = datetime('now')
               WHERE id = ?""",
            (last_generated, total_generated, template_id),
        )
        self._db.commit()

    def delete(self, template_id: int):
        conn = self._db.get_connection()
        conn.execute("DELETE FROM recurring_templates WHERE id = ?", (template_id,))
        self._db.commit()
