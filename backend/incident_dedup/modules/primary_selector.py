"""Primary record selection for a matched pair of reports.

The surviving record should be the one needing the least future enrichment,
so richer data wins first; source authority and age only break ties. The
decision is a pure function of the two records and does not depend on
argument order, which keeps re-runs over the same data stable.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import NamedTuple

from incident_dedup.schemas.incident import IncidentRecord

logger = logging.getLogger(__name__)

# Fields whose presence makes a record a better canonical report
ENRICHMENT_FIELDS: tuple[str, ...] = (
    "title", "description", "update_text", "latitude", "longitude",
    "location", "region", "vessel_name", "vessel_type", "vessel_flag",
    "vessel_imo", "vessel_status", "incident_type", "reference",
    "response_actions", "authorities_notified",
)

# Typical completeness of each centre's reports; higher wins ties
SOURCE_PRIORITY: dict[str, int] = {
    "RECAAP": 5,
    "UKMTO": 4,
    "MDAT": 3,
    "ICC": 3,
    "CWD": 2,
}
_DEFAULT_SOURCE_PRIORITY = 1

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


class PrimarySelection(NamedTuple):
    primary: IncidentRecord
    secondary: IncidentRecord
    rule: str  # which tie-break decided: completeness / source_priority / created_at / record_id


def completeness_score(record: IncidentRecord) -> int:
    """Number of populated enrichment fields."""
    return sum(1 for field in ENRICHMENT_FIELDS if record.is_populated(field))


def get_source_priority(source: str | None) -> int:
    if not source:
        return 0
    return SOURCE_PRIORITY.get(source.upper(), _DEFAULT_SOURCE_PRIORITY)


def select_primary(a: IncidentRecord, b: IncidentRecord) -> PrimarySelection:
    """Decide which of two matched records survives.

    Tie-break order:
    1. more populated enrichment fields
    2. more authoritative source
    3. earlier created_at (records without one sort last)
    4. smaller record id
    """
    comp_a, comp_b = completeness_score(a), completeness_score(b)
    if comp_a != comp_b:
        selection = _ordered(a, b, comp_a > comp_b, "completeness")
    else:
        prio_a, prio_b = get_source_priority(a.source), get_source_priority(b.source)
        if prio_a != prio_b:
            selection = _ordered(a, b, prio_a > prio_b, "source_priority")
        else:
            created_a = a.created_at or _FAR_FUTURE
            created_b = b.created_at or _FAR_FUTURE
            if created_a != created_b:
                selection = _ordered(a, b, created_a < created_b, "created_at")
            else:
                selection = _ordered(a, b, a.id < b.id, "record_id")

    logger.info(
        "Primary %s (%s, completeness %d) over %s (%s, completeness %d) by %s",
        selection.primary.id, selection.primary.source, completeness_score(selection.primary),
        selection.secondary.id, selection.secondary.source, completeness_score(selection.secondary),
        selection.rule,
    )
    return selection


def _ordered(a: IncidentRecord, b: IncidentRecord, a_wins: bool, rule: str) -> PrimarySelection:
    if a_wins:
        return PrimarySelection(primary=a, secondary=b, rule=rule)
    return PrimarySelection(primary=b, secondary=a, rule=rule)
