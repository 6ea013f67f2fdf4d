from __future__ import annotations

import logging
from typing import Generator, Optional

from fastapi import APIRouter, Depends, Query

from incident_dedup.config import settings
from incident_dedup.modules.dedup_orchestrator import run_deduplication_pass
from incident_dedup.modules.record_store import RecordStore, build_record_store
from incident_dedup.schemas.dedup import RunOptions

logger = logging.getLogger(__name__)

router = APIRouter()


def get_record_store() -> Generator[RecordStore, None, None]:
    """Store for one request; raises ConfigurationError before any I/O."""
    store = build_record_store(settings)
    try:
        yield store
    finally:
        store.close()


@router.post("/deduplicate")
def deduplicate(
    dry_run: bool = Query(False, alias="dryRun"),
    confidence_threshold: Optional[float] = Query(None, alias="confidenceThreshold", ge=0.0, le=1.0),
    max_records: Optional[int] = Query(None, alias="maxRecords", gt=0, le=10_000),
    lookback_days: Optional[int] = Query(None, alias="lookbackDays", gt=0, le=365),
    store: RecordStore = Depends(get_record_store),
) -> dict:
    """Run one cross-source deduplication pass.

    Individual merge failures are itemised in ``results``; the response is
    still a success envelope.
    """
    overrides = {
        "confidence_threshold": confidence_threshold,
        "max_records": max_records,
        "lookback_days": lookback_days,
    }
    options = RunOptions(dry_run=dry_run, **{k: v for k, v in overrides.items() if v is not None})

    summary = run_deduplication_pass(store, options)

    body = summary.model_dump(by_alias=True, mode="json")
    results = body.pop("results")
    return {"success": True, "summary": body, "results": results}
