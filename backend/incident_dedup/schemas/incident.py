"""Pydantic schema for an incident candidate record, independent of the store behind it."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from incident_dedup.models.base import MergeStatusEnum
from incident_dedup.modules.normalize import (
    blank_to_none,
    coerce_float,
    coerce_str_list,
    normalize_source,
    parse_timestamp_flexible,
)
from incident_dedup.utils.geo import is_valid_coordinate

logger = logging.getLogger(__name__)

TEXT_FIELDS: tuple[str, ...] = (
    "title", "description", "update_text", "location", "region",
    "vessel_name", "vessel_type", "vessel_flag", "vessel_imo", "vessel_status",
    "incident_type", "reference", "linked_incident",
    "merged_into", "processing_status", "processing_notes",
)
LIST_FIELDS: tuple[str, ...] = ("response_actions", "authorities_notified", "related_records")
DATETIME_FIELDS: tuple[str, ...] = ("date", "last_processed", "created_at")


class IncidentRecord(BaseModel):
    """One reporting centre's account of one incident.

    Absent values are always ``None`` (scalars) or ``[]`` (lists); blank strings
    never survive validation.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    source: str
    date: Optional[datetime] = None
    title: Optional[str] = None
    description: Optional[str] = None
    update_text: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location: Optional[str] = None
    region: Optional[str] = None
    vessel_name: Optional[str] = None
    vessel_type: Optional[str] = None
    vessel_flag: Optional[str] = None
    vessel_imo: Optional[str] = None
    vessel_status: Optional[str] = None
    incident_type: Optional[str] = None
    reference: Optional[str] = None
    linked_incident: Optional[str] = None
    response_actions: list[str] = Field(default_factory=list)
    authorities_notified: list[str] = Field(default_factory=list)
    related_records: list[str] = Field(default_factory=list)
    merge_status: MergeStatusEnum = MergeStatusEnum.UNMERGED
    merged_into: Optional[str] = None
    processing_status: Optional[str] = None
    processing_notes: Optional[str] = None
    last_processed: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_validator("source", mode="before")
    @classmethod
    def _normalize_source(cls, v: Any) -> Any:
        return normalize_source(v)

    @field_validator(*TEXT_FIELDS, mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        v = blank_to_none(v)
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        if isinstance(v, list):
            # Airtable link / lookup fields arrive as single-element lists
            return blank_to_none(v[0]) if v else None
        return v

    @field_validator(*DATETIME_FIELDS, mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Optional[datetime]:
        if blank_to_none(v) is None:
            return None
        parsed = parse_timestamp_flexible(v)
        if parsed is None:
            logger.debug("Unparseable timestamp %r treated as missing", v)
        return parsed

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _parse_coordinate(cls, v: Any) -> Optional[float]:
        return coerce_float(v)

    @field_validator(*LIST_FIELDS, mode="before")
    @classmethod
    def _parse_list(cls, v: Any) -> list[str]:
        return coerce_str_list(v)

    @field_validator("merge_status", mode="before")
    @classmethod
    def _parse_merge_status(cls, v: Any) -> Any:
        v = blank_to_none(v)
        if v is None:
            return MergeStatusEnum.UNMERGED
        if isinstance(v, str) and not isinstance(v, MergeStatusEnum):
            return MergeStatusEnum(v.lower())
        return v

    @model_validator(mode="after")
    def _drop_invalid_position(self) -> "IncidentRecord":
        # A half-present or out-of-range position is no position at all
        if not is_valid_coordinate(self.latitude, self.longitude):
            self.latitude = None
            self.longitude = None
        return self

    @property
    def has_position(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def is_unmerged(self) -> bool:
        return self.merge_status == MergeStatusEnum.UNMERGED

    def is_populated(self, field: str) -> bool:
        value = getattr(self, field)
        return value is not None and value != []
