"""Airtable REST adapter for the raw_data table.

Airtable returns at most 100 records per page and hands back an opaque
``offset`` string for the next one, which is used directly as the page token.
Link fields (``merged_into``, ``related_records``, ``linked_incident``) are
lists of record ids on the wire and single ids / plain lists in the engine.

Airtable has no conditional update, so ``expected_status`` is checked with a
read immediately before the patch. That narrows the race between two runs
without closing it.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from incident_dedup.models.base import MergeStatusEnum
from incident_dedup.modules.record_store import (
    DEFAULT_SORT,
    IncidentQuery,
    RecordNotFoundError,
    StoreConflictError,
    StoreError,
    check_transition,
)
from incident_dedup.schemas.incident import IncidentRecord
from incident_dedup.utils.http_retry import retry_request

logger = logging.getLogger(__name__)

AIRTABLE_MAX_PAGE_SIZE = 100

# Single-record link fields: one id in the engine, [id] in Airtable
_SINGLE_LINK_FIELDS: frozenset[str] = frozenset({"merged_into", "linked_incident"})
# Multi-value text fields stored as newline-separated long text
_MULTILINE_FIELDS: frozenset[str] = frozenset({"response_actions", "authorities_notified"})


def build_filter_formula(query: IncidentQuery) -> str | None:
    """Airtable filterByFormula for the candidate window."""
    clauses: list[str] = []
    if query.occurred_after is not None:
        after = query.occurred_after.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")
        clauses.append(f"IS_AFTER({{date}}, '{after}')")
    if query.unmerged_only or query.merge_status == MergeStatusEnum.UNMERGED:
        clauses.append("OR(NOT({merge_status}), {merge_status}='')")
    elif query.merge_status is not None:
        clauses.append(f"{{merge_status}}='{query.merge_status.value}'")
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return f"AND({', '.join(clauses)})"


def record_from_airtable(payload: dict) -> IncidentRecord:
    """Build an IncidentRecord from an Airtable ``{"id", "fields", "createdTime"}`` object."""
    fields = dict(payload.get("fields") or {})
    fields["id"] = payload["id"]
    for name in _MULTILINE_FIELDS:
        # One entry per line; entries may themselves contain commas
        if isinstance(fields.get(name), str):
            fields[name] = fields[name].splitlines()
    if not fields.get("created_at"):
        fields["created_at"] = payload.get("createdTime")
    return IncidentRecord.model_validate(fields)


def encode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Engine field values -> Airtable cell values."""
    encoded: dict[str, Any] = {}
    for name, value in fields.items():
        if isinstance(value, datetime):
            value = value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")
        elif name == "merge_status":
            value = None if value in (None, MergeStatusEnum.UNMERGED) else MergeStatusEnum(value).value
        elif isinstance(value, Enum):
            value = value.value
        elif name in _SINGLE_LINK_FIELDS:
            value = [value] if value else []
        elif name in _MULTILINE_FIELDS:
            value = "\n".join(value) if value else None
        encoded[name] = value
    return encoded


class AirtableRecordStore:
    def __init__(
        self,
        api_key: str,
        base_id: str,
        table: str = "raw_data",
        api_url: str = "https://api.airtable.com/v0",
        timeout: float = 30.0,
        client: httpx.Client | None = None,
        retry_delays: list[float] | None = None,
    ):
        self.client = client or httpx.Client(timeout=timeout)
        self.table_url = f"{api_url.rstrip('/')}/{base_id}/{quote(table)}"
        self.retry_delays = retry_delays
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, url: str, **kwargs: Any) -> dict:
        try:
            resp = retry_request(
                self.client, method, url,
                headers=self._headers, delays=self.retry_delays, **kwargs,
            )
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 404:
                raise RecordNotFoundError(f"{method} {url}: not found") from exc
            raise StoreError(f"Airtable {method} failed with HTTP {status}: {exc.response.text[:200]}") from exc
        except httpx.HTTPError as exc:
            raise StoreError(f"Airtable {method} failed: {exc}") from exc
        try:
            return resp.json()
        except ValueError as exc:
            raise StoreError(f"Airtable returned invalid JSON for {method}") from exc

    def query(
        self,
        filter: IncidentQuery,
        sort: tuple[str, str] = DEFAULT_SORT,
        page_size: int = 100,
        page_token: str | None = None,
    ) -> tuple[list[IncidentRecord], str | None]:
        field, direction = sort
        params: dict[str, Any] = {
            "pageSize": min(page_size, AIRTABLE_MAX_PAGE_SIZE),
            "sort[0][field]": field,
            "sort[0][direction]": direction,
        }
        formula = build_filter_formula(filter)
        if formula:
            params["filterByFormula"] = formula
        if page_token:
            params["offset"] = page_token

        payload = self._request("GET", self.table_url, params=params)

        records: list[IncidentRecord] = []
        for item in payload.get("records", []):
            try:
                records.append(record_from_airtable(item))
            except (ValidationError, KeyError) as exc:
                logger.warning("Skipping malformed Airtable record %s: %s", item.get("id"), exc)
        return records, payload.get("offset")

    def get(self, record_id: str) -> IncidentRecord | None:
        try:
            payload = self._request("GET", f"{self.table_url}/{record_id}")
        except RecordNotFoundError:
            return None
        try:
            return record_from_airtable(payload)
        except (ValidationError, KeyError) as exc:
            raise StoreError(f"Airtable record {record_id} is malformed: {exc}") from exc

    def patch(
        self,
        record_id: str,
        fields: dict[str, Any],
        expected_status: MergeStatusEnum | None = None,
    ) -> None:
        current = self.get(record_id)
        if current is None:
            raise RecordNotFoundError(f"Record {record_id} not found")
        if expected_status is not None and current.merge_status != expected_status:
            raise StoreConflictError(
                f"Record {record_id} is {current.merge_status.value}, expected {expected_status.value}"
            )
        check_transition(record_id, current.merge_status, fields)

        self._request(
            "PATCH", f"{self.table_url}/{record_id}",
            json={"fields": encode_fields(fields), "typecast": True},
        )
        logger.debug("Patched Airtable record %s: %s", record_id, sorted(fields))

    def close(self) -> None:
        self.client.close()
