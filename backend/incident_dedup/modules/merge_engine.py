"""Complementary merge of a secondary report into its primary.

merge_fields() never destroys primary data: it fills gaps, unions list fields
and appends the secondary's narrative under a source heading. The returned
dict holds only fields that would change, so applying it and merging again
yields an empty dict.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from incident_dedup.models.base import MergeStatusEnum
from incident_dedup.schemas.incident import IncidentRecord

logger = logging.getLogger(__name__)

# Scalar fields filled from the secondary only when empty on the primary
FILLABLE_FIELDS: tuple[str, ...] = (
    "date", "title", "location", "region",
    "vessel_name", "vessel_type", "vessel_flag", "vessel_imo", "vessel_status",
    "incident_type", "reference",
)

UNION_LIST_FIELDS: tuple[str, ...] = ("response_actions", "authorities_notified")

# Narrative field -> heading put in front of the secondary's text
NARRATIVE_HEADINGS: dict[str, str] = {
    "description": "Additional information from {source}",
    "update_text": "Update from {source}",
}

MERGED_PROCESSING_STATUS = "Merged"


def merge_fields(primary: IncidentRecord, secondary: IncidentRecord) -> dict[str, Any]:
    """Fields to write onto ``primary`` so it carries the secondary's data too."""
    fields: dict[str, Any] = {}

    for name in FILLABLE_FIELDS:
        if not primary.is_populated(name) and secondary.is_populated(name):
            fields[name] = getattr(secondary, name)

    if not primary.has_position and secondary.has_position:
        fields["latitude"] = secondary.latitude
        fields["longitude"] = secondary.longitude

    for name, heading in NARRATIVE_HEADINGS.items():
        merged = _append_narrative(
            getattr(primary, name), getattr(secondary, name), heading.format(source=secondary.source)
        )
        if merged is not None:
            fields[name] = merged

    for name in UNION_LIST_FIELDS:
        merged_list = _union(getattr(primary, name), getattr(secondary, name))
        if merged_list != getattr(primary, name):
            fields[name] = merged_list

    related = _union(primary.related_records, secondary.related_records + [secondary.id])
    related = [r for r in related if r != primary.id]
    if related != primary.related_records:
        fields["related_records"] = related

    linked = _merge_linked_incident(primary, secondary)
    if linked is not None:
        fields["linked_incident"] = linked

    return fields


def apply_fields(record: IncidentRecord, fields: dict[str, Any]) -> IncidentRecord:
    """Copy of ``record`` with ``fields`` applied."""
    return record.model_copy(update=fields)


def primary_patch(
    primary: IncidentRecord,
    secondary: IncidentRecord,
    merged_at: datetime,
) -> dict[str, Any]:
    """Full write-back for the surviving record: merged data plus bookkeeping."""
    fields = merge_fields(primary, secondary)
    fields["merge_status"] = MergeStatusEnum.MERGED
    fields["last_processed"] = merged_at
    notes = _append_note(
        primary.processing_notes,
        f"Merged with {secondary.source} record {secondary.id}",
    )
    if notes != primary.processing_notes:
        fields["processing_notes"] = notes
    return fields


def secondary_patch(
    primary: IncidentRecord,
    secondary: IncidentRecord,
    merged_at: datetime,
) -> dict[str, Any]:
    return {
        "merge_status": MergeStatusEnum.MERGED_INTO,
        "merged_into": primary.id,
        "processing_status": MERGED_PROCESSING_STATUS,
        "processing_notes": _append_note(
            secondary.processing_notes,
            f"Merged into {primary.source} record {primary.id}",
        ),
        "last_processed": merged_at,
    }


def _append_narrative(existing: str | None, addition: str | None, heading: str) -> str | None:
    """New narrative text, or None when nothing changes."""
    if not addition:
        return None
    if not existing:
        return addition
    if addition in existing:
        return None
    return f"{existing}\n\n[{heading}]\n{addition}"


def _union(first: list[str], second: list[str]) -> list[str]:
    result = list(first)
    for item in second:
        if item not in result:
            result.append(item)
    return result


def _merge_linked_incident(primary: IncidentRecord, secondary: IncidentRecord) -> str | None:
    if not secondary.linked_incident:
        return None
    if not primary.linked_incident:
        logger.info(
            "Primary %s takes incident link %s from secondary %s",
            primary.id, secondary.linked_incident, secondary.id,
        )
        return secondary.linked_incident
    if primary.linked_incident != secondary.linked_incident:
        logger.warning(
            "Records %s and %s are linked to different incidents (%s, %s); keeping %s — needs manual review",
            primary.id, secondary.id, primary.linked_incident, secondary.linked_incident,
            primary.linked_incident,
        )
    return None


def _append_note(existing: str | None, note: str) -> str:
    if not existing:
        return note
    if note in existing:
        return existing
    return f"{existing}\n{note}"
