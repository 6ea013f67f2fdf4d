"""SQLAlchemy-backed record store over the raw_data table."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from incident_dedup.models.base import MergeStatusEnum
from incident_dedup.models.raw_incident import RawIncident
from incident_dedup.modules.record_store import (
    DEFAULT_SORT,
    IncidentQuery,
    RecordNotFoundError,
    StoreConflictError,
    StoreError,
    check_transition,
)
from incident_dedup.schemas.incident import IncidentRecord

logger = logging.getLogger(__name__)

_WRITABLE_COLUMNS: frozenset[str] = frozenset(
    c for c in RawIncident.__table__.columns.keys() if c not in ("id", "created_at")
)


def _to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _column_value(name: str, value: Any) -> Any:
    if isinstance(value, datetime):
        return _to_naive_utc(value)
    if name == "merge_status":
        if value is None:
            return None
        status = MergeStatusEnum(value)
        # NULL is the stored form of "unmerged"
        return None if status == MergeStatusEnum.UNMERGED else status
    return value


class SqlRecordStore:
    """Record store on a SQLAlchemy session; one commit per patch.

    Page tokens are stringified row offsets.
    """

    def __init__(self, db: Session):
        self.db = db

    def query(
        self,
        filter: IncidentQuery,
        sort: tuple[str, str] = DEFAULT_SORT,
        page_size: int = 100,
        page_token: str | None = None,
    ) -> tuple[list[IncidentRecord], str | None]:
        try:
            offset = int(page_token) if page_token else 0
        except ValueError:
            raise StoreError(f"Invalid page token {page_token!r}")

        field, direction = sort
        if field not in RawIncident.__table__.columns.keys():
            raise StoreError(f"Cannot sort on unknown field {field!r}")
        column = getattr(RawIncident, field)
        order = column.desc() if direction.lower() == "desc" else column.asc()

        try:
            q = self.db.query(RawIncident)
            if filter.occurred_after is not None:
                q = q.filter(RawIncident.date > _to_naive_utc(filter.occurred_after))
            if filter.unmerged_only or filter.merge_status == MergeStatusEnum.UNMERGED:
                q = q.filter(RawIncident.merge_status.is_(None))
            elif filter.merge_status is not None:
                q = q.filter(RawIncident.merge_status == filter.merge_status)
            rows = q.order_by(order, RawIncident.id.asc()).offset(offset).limit(page_size + 1).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"raw_data query failed: {exc}") from exc

        next_token = str(offset + page_size) if len(rows) > page_size else None
        records = [IncidentRecord.model_validate(row) for row in rows[:page_size]]
        return records, next_token

    def get(self, record_id: str) -> IncidentRecord | None:
        try:
            row = self.db.get(RawIncident, record_id)
        except SQLAlchemyError as exc:
            raise StoreError(f"raw_data lookup of {record_id} failed: {exc}") from exc
        return IncidentRecord.model_validate(row) if row is not None else None

    def patch(
        self,
        record_id: str,
        fields: dict[str, Any],
        expected_status: MergeStatusEnum | None = None,
    ) -> None:
        """Partial update; with ``expected_status`` only if the status still matches.

        Raises:
            RecordNotFoundError: no such record.
            StoreConflictError: the record's merge status is no longer ``expected_status``.
            InvalidTransitionError: the patch would move merge status backwards.
            StoreError: unknown field or database failure.
        """
        unknown = set(fields) - _WRITABLE_COLUMNS
        if unknown:
            raise StoreError(f"Unknown raw_data fields: {', '.join(sorted(unknown))}")

        try:
            row = self.db.get(RawIncident, record_id)
            if row is None:
                raise RecordNotFoundError(f"Record {record_id} not found")
            current = MergeStatusEnum(row.merge_status) if row.merge_status else MergeStatusEnum.UNMERGED
            check_transition(record_id, current, fields)

            q = self.db.query(RawIncident).filter(RawIncident.id == record_id)
            if expected_status is not None:
                if expected_status == MergeStatusEnum.UNMERGED:
                    q = q.filter(RawIncident.merge_status.is_(None))
                else:
                    q = q.filter(RawIncident.merge_status == expected_status)

            values = {name: _column_value(name, value) for name, value in fields.items()}
            updated = q.update(values, synchronize_session="fetch")
            if updated == 0:
                self.db.rollback()
                if expected_status is None:
                    raise RecordNotFoundError(f"Record {record_id} not found")
                raise StoreConflictError(
                    f"Record {record_id} is {current.value}, expected {expected_status.value}"
                )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreError(f"raw_data update of {record_id} failed: {exc}") from exc

        logger.debug("Patched %s: %s", record_id, sorted(fields))

    def close(self) -> None:
        self.db.close()
