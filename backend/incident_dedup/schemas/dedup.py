"""Pydantic schemas for a deduplication pass: options in, summary out.

Serialised with camelCase aliases (``recordsAnalyzed``, ``primaryId``) for
the HTTP envelope; Python code uses the snake_case names.
"""
from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from incident_dedup.config import settings


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RunOptions(_CamelModel):
    dry_run: bool = False
    confidence_threshold: float = Field(
        default_factory=lambda: settings.DEDUP_CONFIDENCE_THRESHOLD, ge=0.0, le=1.0,
    )
    max_records: int = Field(default_factory=lambda: settings.DEDUP_MAX_RECORDS, gt=0)
    lookback_days: int = Field(default_factory=lambda: settings.DEDUP_LOOKBACK_DAYS, gt=0)


class ProposedMerge(_CamelModel):
    """A match reported but not executed.

    Either a dry run, below the merge threshold, or backed by neither a
    position comparison nor a vessel match.
    """

    record1_id: str
    record2_id: str
    source1: str
    source2: str
    score: float
    confidence: Literal["high", "medium"]
    reason: Literal["dry_run", "below_threshold", "uncorroborated"]


class MergeOutcome(_CamelModel):
    """An attempted merge. ``primary_id``/``secondary_id`` are unset when chain resolution failed.

    ``partial`` marks a merge whose secondary was claimed but whose primary
    write failed; the next live pass completes it.
    """

    success: bool
    record1_id: str
    record2_id: str
    primary_id: Optional[str] = None
    secondary_id: Optional[str] = None
    score: float
    rule: Optional[str] = None
    error: Optional[str] = None
    partial: bool = False


class RunSummary(_CamelModel):
    records_analyzed: int = 0
    source_count: int = 0
    candidate_pairs_scored: int = 0
    potential_matches_found: int = 0
    high_confidence_matches: int = 0
    medium_confidence_matches: int = 0
    merges_performed: int = 0
    merges_simulated: int = 0
    merges_skipped: int = 0
    merges_repaired: int = 0
    merges_failed: int = 0
    dry_run: bool = False
    results: list[Union[MergeOutcome, ProposedMerge]] = Field(default_factory=list)

