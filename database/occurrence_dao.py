import logging
from datetime import date
from typing import Optional

from database.db_manager import DatabaseManager
from models.occurrence import Occurrence
from models.series_filter import SeriesFilter
from utils.constants import AMOUNT_FIELDS, DOCUMENT_STATUSES, EDITABLE_FIELDS
from utils.currency import document_totals
from utils.date_helpers import format_date, parse_date

logger = logging.getLogger(__name__)

_INSERT_COLUMNS = (
    "owner_id", "kind", "series_id", "due_date", "client_id", "concept",
    "description", "base_amount", "vat_rate", "vat_amount",
    "withholding_rate", "withholding_amount", "total", "status",
)
_PATCHABLE = EDITABLE_FIELDS | {"series_id"}


class OccurrenceDAO:
    """sqlite document store for generated invoices and expenses."""

    # update_many / delete_many run inside a single DatabaseManager.transaction().
    supports_atomic_batch = True

    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> Occurrence:
        return Occurrence(
            id=row["id"],
            owner_id=row["owner_id"],
            kind=row["kind"],
            series_id=row["series_id"],
            due_date=row["due_date"],
            client_id=row["client_id"],
            concept=row["concept"],
            description=row["description"],
            base_amount=row["base_amount"],
            vat_rate=row["vat_rate"],
            vat_amount=row["vat_amount"],
            withholding_rate=row["withholding_rate"],
            withholding_amount=row["withholding_amount"],
            total=row["total"],
            status=row["status"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _where(self, flt: SeriesFilter) -> tuple[str, list]:
        if flt.occurrence_id is not None:
            return "id = ?", [flt.occurrence_id]
        if flt.series_id is None:
            raise ValueError("A series filter needs an occurrence id or a series id.")
        sql, params = "series_id = ?", [flt.series_id]
        if flt.on_or_after is not None:
            sql += " AND due_date >= ?"
            params.append(format_date(flt.on_or_after))
        return sql, params

    def get_by_id(self, occurrence_id: int) -> Optional[Occurrence]:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM occurrences WHERE id = ?", (occurrence_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def get_by_series(self, series_id: int) -> list[Occurrence]:
        return self.get_matching(SeriesFilter(series_id=series_id))

    def get_matching(self, flt: SeriesFilter) -> list[Occurrence]:
        """Occurrences selected by the filter, ascending by due date."""
        where, params = self._where(flt)
        conn = self._db.get_connection()
        rows = conn.execute(
            f"SELECT * FROM occurrences WHERE {where} ORDER BY due_date ASC, id ASC",
            params,
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_all(self, owner_id: int | None = None) -> list[Occurrence]:
        conn = self._db.get_connection()
        sql, params = "SELECT * FROM occurrences", []
        if owner_id is not None:
            sql += " WHERE owner_id = ?"
            params.append(owner_id)
        rows = conn.execute(sql + " ORDER BY due_date ASC, id ASC", params).fetchall()
        return [self._row_to_model(r) for r in rows]

    def existing_due_dates(self, series_id: int) -> set[date]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT due_date FROM occurrences WHERE series_id = ?", (series_id,)
        ).fetchall()
        return {parse_date(r["due_date"]) for r in rows}

    def count_by_series(self, series_id: int) -> int:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM occurrences WHERE series_id = ?", (series_id,)
        ).fetchone()
        return row["n"]

    def create(self, occurrence: Occurrence) -> Occurrence:
        conn = self._db.get_connection()
        cursor = conn.execute(
            f"""INSERT INTO occurrences ({", ".join(_INSERT_COLUMNS)})
                VALUES ({", ".join("?" * len(_INSERT_COLUMNS))})""",
            tuple(getattr(occurrence, col) for col in _INSERT_COLUMNS),
        )
        self._db.commit()
        return self.get_by_id(cursor.lastrowid)

    def _apply_patch(self, conn, current: Occurrence, patch: dict):
        values = dict(patch)
        if AMOUNT_FIELDS & set(values):
            values.update(document_totals(
                values.get("base_amount", current.base_amount),
                values.get("vat_rate", current.vat_rate),
                values.get("withholding_rate", current.withholding_rate),
            ))
        if "due_date" in values:
            values["due_date"] = format_date(parse_date(values["due_date"]))
        assignments = ", ".join(f"{key}=?" for key in values)
        conn.execute(
            f"UPDATE occurrences SET {assignments}, updated_at=datetime('now') WHERE id=?",
            (*values.values(), current.id),
        )

    def _check_patch(self, patch: dict):
        unknown = set(patch) - _PATCHABLE
        if unknown:
            raise ValueError(f"Fields not editable: {sorted(unknown)}")
        if "status" in patch and patch["status"] not in DOCUMENT_STATUSES:
            raise ValueError(f"Unknown status: {patch['status']!r}")

    def update(self, occurrence_id: int, patch: dict) -> Optional[Occurrence]:
        """Patch one record; VAT, withholding and total are recomputed."""
        self._check_patch(patch)
        current = self.get_by_id(occurrence_id)
        if current is None:
            return None
        conn = self._db.get_connection()
        with self._db.transaction():
            self._apply_patch(conn, current, patch)
        return self.get_by_id(occurrence_id)

    def update_many(self, flt: SeriesFilter, patch: dict) -> int:
        self._check_patch(patch)
        targets = self.get_matching(flt)
        conn = self._db.get_connection()
        with self._db.transaction():
            for occurrence in targets:
                self._apply_patch(conn, occurrence, patch)
        logger.debug("Updated %d occurrences for %s", len(targets), flt)
        return len(targets)

    def delete(self, occurrence_id: int):
        conn = self._db.get_connection()
        conn.execute("DELETE FROM occurrences WHERE id = ?", (occurrence_id,))
        self._db.commit()

    def delete_many(self, flt: SeriesFilter) -> int:
        where, params = self._where(flt)
        conn = self._db.get_connection()
        with self._db.transaction():
            cursor = conn.execute(f"DELETE FROM occurrences WHERE {where}", params)
        logger.debug("Deleted %d occurrences for %s", cursor.rowcount, flt)
        return cursor.rowcount

    def detach_series(self, series_id: int) -> int:
        """Unlink every occurrence of a series, keeping the records."""
        conn = self._db.get_connection()
        with self._db.transaction():
            cursor = conn.execute(
                """UPDATE occurrences SET series_id = NULL, updated_at = datetime('now')
                   WHERE series_id = ?""",
                (series_id,),
            )
        return cursor.rowcount
