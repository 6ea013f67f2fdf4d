"""Record store contract shared by the SQL and Airtable adapters.

The engine only ever needs three operations: a filtered, sorted, paged query
over the candidate window, a partial update, and a lookup by id for chain
following. Adapters translate their own failures into StoreError so callers
never see driver or HTTP exceptions.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Protocol, runtime_checkable

from pydantic import BaseModel

from incident_dedup.models.base import MergeStatusEnum, is_allowed_transition
from incident_dedup.schemas.incident import IncidentRecord

logger = logging.getLogger(__name__)

# Sort order: (field, direction) with direction "asc" or "desc"
DEFAULT_SORT: tuple[str, str] = ("date", "desc")


class ConfigurationError(Exception):
    """Missing or invalid store credentials / settings."""


class StoreError(Exception):
    """Any failure talking to the record store."""


class RecordNotFoundError(StoreError):
    pass


class StoreConflictError(StoreError):
    """Conditional write lost: the record's merge status changed underneath us."""


class InvalidTransitionError(StoreError):
    """Patch would move merge_status backwards."""


class IncidentQuery(BaseModel):
    occurred_after: Optional[datetime] = None
    unmerged_only: bool = True
    # Only records in this merge state; used with unmerged_only=False
    merge_status: Optional[MergeStatusEnum] = None


@runtime_checkable
class RecordStore(Protocol):
    def query(
        self,
        filter: IncidentQuery,
        sort: tuple[str, str] = DEFAULT_SORT,
        page_size: int = 100,
        page_token: str | None = None,
    ) -> tuple[list[IncidentRecord], str | None]:
        ...

    def patch(
        self,
        record_id: str,
        fields: dict[str, Any],
        expected_status: MergeStatusEnum | None = None,
    ) -> None:
        ...

    def get(self, record_id: str) -> IncidentRecord | None:
        ...

    def close(self) -> None:
        ...


def check_transition(record_id: str, current: MergeStatusEnum, fields: dict[str, Any]) -> None:
    """Raise InvalidTransitionError if ``fields`` moves merge_status backwards."""
    if "merge_status" not in fields:
        return
    new = fields["merge_status"]
    new = MergeStatusEnum(new) if new is not None else MergeStatusEnum.UNMERGED
    if not is_allowed_transition(current, new):
        raise InvalidTransitionError(
            f"Record {record_id}: merge_status {current.value} -> {new.value} not allowed"
        )


def build_record_store(settings) -> RecordStore:
    """Construct the store adapter selected by ``settings.RECORD_STORE``.

    Raises:
        ConfigurationError: unknown backend or missing Airtable credentials.
    """
    backend = (settings.RECORD_STORE or "").strip().lower()

    if backend == "sql":
        from incident_dedup.database import SessionLocal
        from incident_dedup.modules.sql_store import SqlRecordStore

        return SqlRecordStore(SessionLocal())

    if backend == "airtable":
        missing = [
            name for name in ("AIRTABLE_API_KEY", "AIRTABLE_BASE_ID")
            if not getattr(settings, name)
        ]
        if missing:
            raise ConfigurationError(f"Missing Airtable configuration: {', '.join(missing)}")
        from incident_dedup.modules.airtable_store import AirtableRecordStore

        return AirtableRecordStore(
            api_key=settings.AIRTABLE_API_KEY,
            base_id=settings.AIRTABLE_BASE_ID,
            table=settings.AIRTABLE_TABLE,
            api_url=settings.AIRTABLE_API_URL,
            timeout=settings.AIRTABLE_TIMEOUT,
        )

    raise ConfigurationError(f"Unknown RECORD_STORE {settings.RECORD_STORE!r} (expected 'sql' or 'airtable')")
