"""Edit and delete semantics for occurrences that belong to a series.

A record is either linked to its series (series_id set) or detached. An
ONLY_THIS edit detaches the record; THIS_AND_FUTURE touches the series from
the record's resolved due date onwards; WHOLE_SERIES touches every linked
record regardless of date. Detached records accept ONLY_THIS alone.
"""
import logging
from dataclasses import dataclass

from models.occurrence import Occurrence
from models.series_filter import SeriesFilter
from utils.constants import SERIES_EDITABLE_FIELDS, Scope
from utils.date_helpers import parse_date
from utils.errors import InvalidScopeForRecord, OccurrenceNotFound, PartialBatchFailure

logger = logging.getLogger(__name__)


def _coerce_scope(scope) -> Scope:
    try:
        return Scope(scope)
    except ValueError:
        raise ValueError(f"Unknown scope: {scope!r}") from None


def available_scopes(occurrence: Occurrence) -> list[Scope]:
    """Scopes the edit/delete prompt should offer for this record."""
    if occurrence.is_detached:
        return [Scope.ONLY_THIS]
    return [Scope.ONLY_THIS, Scope.THIS_AND_FUTURE, Scope.WHOLE_SERIES]


def resolve_scope(occurrence: Occurrence, scope) -> SeriesFilter:
    """Filter of the records an edit/delete with `scope` will touch.

    The cutoff of THIS_AND_FUTURE is the record's resolved due date.
    """
    scope = _coerce_scope(scope)
    if scope is Scope.ONLY_THIS:
        return SeriesFilter(occurrence_id=occurrence.id)
    if occurrence.is_detached:
        raise InvalidScopeForRecord(occurrence.id, scope.value)
    if scope is Scope.THIS_AND_FUTURE:
        return SeriesFilter(
            series_id=occurrence.series_id,
            on_or_after=parse_date(occurrence.due_date),
        )
    return SeriesFilter(series_id=occurrence.series_id)


@dataclass
class MutationResult:
    scope: Scope
    filter: SeriesFilter
    affected: int
    occurrence: Occurrence      # the record the user acted on, as it was loaded


class SeriesMutationCoordinator:
    """Applies scoped edits and deletes through a document store.

    Stores exposing `supports_atomic_batch = True` receive one
    `update_many` / `delete_many` call. Other stores are driven record by
    record (`get_matching`, `update`, `delete`) in ascending due-date order.
    """

    def __init__(self, store):
        self._store = store

    def _load(self, occurrence_id: int) -> Occurrence:
        occurrence = self._store.get_by_id(occurrence_id)
        if occurrence is None:
            raise OccurrenceNotFound(f"Occurrence {occurrence_id} not found")
        return occurrence

    def edit(self, occurrence_id: int, patch: dict, scope) -> MutationResult:
        occurrence = self._load(occurrence_id)
        flt = resolve_scope(occurrence, scope)
        scope = _coerce_scope(scope)

        if flt.is_single:
            # The record leaves its series so later series-wide changes skip it.
            self._store.update(occurrence.id, {**patch, "series_id": None})
            logger.info("Occurrence %s edited alone and detached", occurrence.id)
            return MutationResult(scope, flt, 1, occurrence)

        not_allowed = set(patch) - SERIES_EDITABLE_FIELDS
        if not_allowed:
            raise ValueError(
                f"Fields cannot be edited across a series: {sorted(not_allowed)}"
            )
        affected = self._apply_batch(
            flt,
            lambda: self._store.update_many(flt, patch),
            lambda rec: self._store.update(rec.id, patch),
        )
        logger.info("Series %s: %s edit touched %d occurrences",
                    occurrence.series_id, scope.value, affected)
        return MutationResult(scope, flt, affected, occurrence)

    def delete(self, occurrence_id: int, scope) -> MutationResult:
        occurrence = self._load(occurrence_id)
        flt = resolve_scope(occurrence, scope)
        scope = _coerce_scope(scope)

        if flt.is_single:
            self._store.delete(occurrence.id)
            logger.info("Occurrence %s deleted alone", occurrence.id)
            return MutationResult(scope, flt, 1, occurrence)

        affected = self._apply_batch(
            flt,
            lambda: self._store.delete_many(flt),
            lambda rec: self._store.delete(rec.id),
        )
        logger.info("Series %s: %s delete removed %d occurrences",
                    occurrence.series_id, scope.value, affected)
        return MutationResult(scope, flt, affected, occurrence)

    def _apply_batch(self, flt: SeriesFilter, atomic_op, record_op) -> int:
        if getattr(self._store, "supports_atomic_batch", False):
            return atomic_op()

        targets = sorted(
            self._store.get_matching(flt), key=lambda rec: parse_date(rec.due_date)
        )
        done = 0
        for record in targets:
            try:
                record_op(record)
            except Exception as exc:
                if done == 0:
                    raise
                logger.error("Batch on %s stopped at occurrence %s (%d/%d done)",
                             flt, record.id, done, len(targets))
                raise PartialBatchFailure(done, len(targets)) from exc
            done += 1
        return done
