"""Merge-chain resolution — find the record a report has effectively become."""
from __future__ import annotations

import logging

from incident_dedup.config import settings
from incident_dedup.models.base import MergeStatusEnum
from incident_dedup.modules.record_store import RecordStore, StoreError
from incident_dedup.schemas.incident import IncidentRecord

logger = logging.getLogger(__name__)


def resolve_primary(
    record_id: str,
    store: RecordStore,
    max_depth: int | None = None,
) -> IncidentRecord | None:
    """Walk merged_into pointers to the current effective primary.

    Follows at most ``max_depth`` hops and returns the first record whose
    status is not merged_into. A record that was never merged resolves to
    itself. Returns None, after logging, when the chain is too long, loops,
    points at a missing record, or the store cannot be read.
    """
    if max_depth is None:
        max_depth = settings.DEDUP_MAX_CHAIN_DEPTH

    seen: set[str] = set()
    current_id = record_id
    for _ in range(max_depth + 1):
        if current_id in seen:
            logger.error("Circular merge chain from %s detected at %s", record_id, current_id)
            return None
        seen.add(current_id)

        try:
            record = store.get(current_id)
        except StoreError as exc:
            logger.error("Could not read %s while resolving %s: %s", current_id, record_id, exc)
            return None

        if record is None:
            logger.error("Merge chain from %s points at missing record %s", record_id, current_id)
            return None
        if record.merge_status != MergeStatusEnum.MERGED_INTO:
            if current_id != record_id:
                logger.info("Record %s resolves to primary %s", record_id, current_id)
            return record
        if not record.merged_into:
            logger.error("Record %s is merged_into with no target", current_id)
            return None
        current_id = record.merged_into

    logger.error("Merge chain from %s exceeds %d hops", record_id, max_depth)
    return None
