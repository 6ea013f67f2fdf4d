"""Batch deduplication pass over the recent unmerged incident reports.

One pass:
  0. (live runs) finish merges left half-applied by an earlier pass: a
     secondary already points at its primary but the primary never absorbed it
  1. fetch unmerged reports dated inside the lookback window (newest first, paged)
  2. group them by reporting source
  3. score every cross-source pair; same-source pairs are never compared
  4. keep medium/high confidence matches and rank them by score
  5. walk the ranking greedily: a report takes part in at most one merge per
     pass; matches at or above the confidence threshold that are backed by a
     position or vessel comparison are merged (unless dry run), the rest are
     reported as proposals

A failed fetch aborts the pass. A failed merge is itemised in the results and
the pass moves on to the next match.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterator, NamedTuple

from incident_dedup.config import settings
from incident_dedup.models.base import MergeStatusEnum
from incident_dedup.modules.chain_resolver import resolve_primary
from incident_dedup.modules.merge_engine import primary_patch, secondary_patch
from incident_dedup.modules.primary_selector import select_primary
from incident_dedup.modules.record_store import DEFAULT_SORT, IncidentQuery, RecordStore, StoreError
from incident_dedup.modules.scoring_config import ScoringConfig, get_scoring_config
from incident_dedup.modules.similarity import SimilarityScore, score_pair
from incident_dedup.schemas.dedup import MergeOutcome, ProposedMerge, RunOptions, RunSummary
from incident_dedup.schemas.incident import IncidentRecord

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Candidate records could not be retrieved; the whole pass is abandoned."""


class ScoredMatch(NamedTuple):
    record1: IncidentRecord
    record2: IncidentRecord
    score: SimilarityScore
    confidence: str  # "high" | "medium"

    @property
    def total(self) -> float:
        return self.score.total


# ---------------------------------------------------------------------------
# Fetch / partition / pair
# ---------------------------------------------------------------------------

def fetch_candidates(
    store: RecordStore,
    options: RunOptions,
    now: datetime,
    page_size: int | None = None,
    max_pages: int | None = None,
) -> list[IncidentRecord]:
    """Unmerged reports from the lookback window, newest first, at most max_records."""
    query = IncidentQuery(
        occurred_after=now - timedelta(days=options.lookback_days),
        unmerged_only=True,
    )
    logger.info("Fetching unmerged reports since %s", query.occurred_after.isoformat())
    records = _fetch_pages(store, query, "candidate", options.max_records, page_size, max_pages)
    logger.info("Fetched %d candidate records", len(records))
    return records


def _fetch_pages(
    store: RecordStore,
    query: IncidentQuery,
    what: str,
    limit: int | None = None,
    page_size: int | None = None,
    max_pages: int | None = None,
) -> list[IncidentRecord]:
    page_size = page_size or settings.DEDUP_PAGE_SIZE
    max_pages = max_pages or settings.DEDUP_MAX_PAGES

    records: list[IncidentRecord] = []
    token: str | None = None
    for page in range(max_pages):
        try:
            batch, token = store.query(query, sort=DEFAULT_SORT, page_size=page_size, page_token=token)
        except StoreError as exc:
            raise FetchError(f"Failed to fetch {what} records (page {page + 1}): {exc}") from exc

        records.extend(batch)
        if limit is not None and len(records) >= limit:
            records = records[:limit]
            break
        if not token:
            break
    else:
        if token:
            logger.warning("Stopped fetching %s records after %d pages with more pending", what, max_pages)
    return records


def partition_by_source(records: list[IncidentRecord]) -> dict[str, list[IncidentRecord]]:
    groups: dict[str, list[IncidentRecord]] = {}
    for record in records:
        groups.setdefault(record.source, []).append(record)
    return groups


def cross_source_pairs(
    groups: dict[str, list[IncidentRecord]],
) -> Iterator[tuple[IncidentRecord, IncidentRecord]]:
    """Every (a, b) with a and b from different sources, each unordered pair once."""
    sources = list(groups)
    for i, source_a in enumerate(sources):
        for source_b in sources[i + 1:]:
            for a in groups[source_a]:
                if not a.is_unmerged:
                    continue
                for b in groups[source_b]:
                    if not b.is_unmerged:
                        continue
                    yield a, b


# ---------------------------------------------------------------------------
# Score / rank
# ---------------------------------------------------------------------------

def find_matches(
    groups: dict[str, list[IncidentRecord]],
    config: ScoringConfig,
    summary: RunSummary,
    high: float | None = None,
    medium: float | None = None,
) -> list[ScoredMatch]:
    """Score all cross-source pairs, keep medium+ matches, best first.

    Updates the pair and confidence counters on ``summary``.
    """
    high = settings.DEDUP_HIGH_CONFIDENCE if high is None else high
    medium = settings.DEDUP_MEDIUM_CONFIDENCE if medium is None else medium

    matches: list[ScoredMatch] = []
    for a, b in cross_source_pairs(groups):
        try:
            score = score_pair(a, b, config)
        except (ValueError, TypeError) as exc:
            logger.warning("Skipping pair %s/%s: %s", a.id, b.id, exc)
            continue

        # Outside the time or distance window: not a candidate at all
        if score.total == 0:
            continue
        summary.candidate_pairs_scored += 1

        if score.total >= high:
            confidence = "high"
            summary.high_confidence_matches += 1
        elif score.total >= medium:
            confidence = "medium"
            summary.medium_confidence_matches += 1
        else:
            continue
        matches.append(ScoredMatch(a, b, score, confidence))

    matches.sort(key=lambda m: (-m.total, *sorted((m.record1.id, m.record2.id))))
    summary.potential_matches_found = len(matches)
    return matches


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------

def execute_merge(
    store: RecordStore,
    match: ScoredMatch,
    merged_at: datetime,
) -> MergeOutcome | None:
    """Merge one matched pair through the store. None when the merge is unnecessary."""
    rec1, rec2 = match.record1, match.record2

    # Either side may have been merged since it was fetched
    effective1 = resolve_primary(rec1.id, store)
    effective2 = resolve_primary(rec2.id, store)
    if effective1 is None or effective2 is None:
        unresolved = rec1.id if effective1 is None else rec2.id
        return MergeOutcome(
            success=False, record1_id=rec1.id, record2_id=rec2.id, score=round(match.total, 4),
            error=f"Could not resolve effective primary of {unresolved}",
        )

    if effective1.id == effective2.id:
        logger.info("%s and %s already share primary %s", rec1.id, rec2.id, effective1.id)
        return None
    if effective1.linked_incident and effective1.linked_incident == effective2.linked_incident:
        logger.info(
            "%s and %s already linked to incident %s, skipping merge",
            effective1.id, effective2.id, effective1.linked_incident,
        )
        return None

    primary, secondary, rule = select_primary(effective1, effective2)
    secondary_fields = secondary_patch(primary, secondary, merged_at)
    primary_fields = primary_patch(primary, secondary, merged_at)

    try:
        # Secondary first: the conditional write is what claims the record
        store.patch(secondary.id, secondary_fields, expected_status=secondary.merge_status)
    except StoreError as exc:
        logger.error("Merge of %s into %s failed: %s", secondary.id, primary.id, exc)
        return MergeOutcome(
            success=False, record1_id=rec1.id, record2_id=rec2.id,
            primary_id=primary.id, secondary_id=secondary.id,
            score=round(match.total, 4), rule=rule, error=str(exc),
        )

    try:
        store.patch(primary.id, primary_fields)
    except StoreError as exc:
        # Secondary already points at primary; reconcile_partial_merges finishes it
        logger.error(
            "Secondary %s claimed but primary %s not updated, left for repair: %s",
            secondary.id, primary.id, exc,
        )
        return MergeOutcome(
            success=False, partial=True, record1_id=rec1.id, record2_id=rec2.id,
            primary_id=primary.id, secondary_id=secondary.id,
            score=round(match.total, 4), rule=rule, error=str(exc),
        )

    logger.info(
        "Merged %s (%s) into %s (%s), score %.3f",
        secondary.id, secondary.source, primary.id, primary.source, match.total,
    )
    return MergeOutcome(
        success=True, record1_id=rec1.id, record2_id=rec2.id,
        primary_id=primary.id, secondary_id=secondary.id,
        score=round(match.total, 4), rule=rule,
    )


def reconcile_partial_merges(
    store: RecordStore,
    options: RunOptions,
    now: datetime,
) -> int:
    """Complete merges whose secondary was claimed but whose primary was never updated.

    Scans merged_into records from the lookback window and patches any
    primary whose related_records lacks the secondary. Returns the number of
    primaries repaired.

    Raises:
        FetchError: the merged_into records could not be read.
    """
    query = IncidentQuery(
        occurred_after=now - timedelta(days=options.lookback_days),
        unmerged_only=False,
        merge_status=MergeStatusEnum.MERGED_INTO,
    )
    secondaries = _fetch_pages(store, query, "merged_into")

    repaired = 0
    for secondary in secondaries:
        if secondary.merge_status != MergeStatusEnum.MERGED_INTO or not secondary.merged_into:
            continue
        primary = resolve_primary(secondary.merged_into, store)
        if primary is None:
            logger.warning("Cannot repair %s: primary %s unresolvable", secondary.id, secondary.merged_into)
            continue
        if primary.id == secondary.id or secondary.id in primary.related_records:
            continue

        try:
            store.patch(primary.id, primary_patch(primary, secondary, now), expected_status=primary.merge_status)
        except StoreError as exc:
            logger.error("Repair of %s into %s failed: %s", secondary.id, primary.id, exc)
            continue
        logger.info("Repaired half-applied merge of %s into %s", secondary.id, primary.id)
        repaired += 1

    if repaired:
        logger.info("Repaired %d half-applied merges", repaired)
    return repaired


# ---------------------------------------------------------------------------
# Pass
# ---------------------------------------------------------------------------

def run_deduplication_pass(
    store: RecordStore,
    options: RunOptions | None = None,
    config: ScoringConfig | None = None,
    now: datetime | None = None,
) -> RunSummary:
    """Run one batch pass and return its summary.

    Raises:
        FetchError: the candidate records could not be read.
    """
    options = options or RunOptions()
    config = config or get_scoring_config()
    now = now or datetime.now(timezone.utc)

    logger.info(
        "Deduplication pass: dry_run=%s threshold=%.2f max_records=%d lookback=%dd",
        options.dry_run, options.confidence_threshold, options.max_records, options.lookback_days,
    )

    repaired = 0 if options.dry_run else reconcile_partial_merges(store, options, now)

    records = fetch_candidates(store, options, now)
    groups = partition_by_source(records)
    summary = RunSummary(
        records_analyzed=len(records),
        source_count=len(groups),
        dry_run=options.dry_run,
        merges_repaired=repaired,
    )

    matches = find_matches(groups, config, summary)

    # Per-pass ownership of reports; never shared between passes
    consumed: set[str] = set()
    for match in matches:
        id1, id2 = match.record1.id, match.record2.id
        if id1 in consumed or id2 in consumed:
            continue
        consumed.update((id1, id2))

        if match.total < options.confidence_threshold:
            reason = "below_threshold"
        elif not match.score.dimensions.is_corroborated:
            # Time and wording alone never merge records
            reason = "uncorroborated"
        elif options.dry_run:
            reason = "dry_run"
        else:
            reason = None

        if reason is not None:
            summary.results.append(ProposedMerge(
                record1_id=id1, record2_id=id2,
                source1=match.record1.source, source2=match.record2.source,
                score=round(match.total, 4), confidence=match.confidence, reason=reason,
            ))
            if reason == "dry_run":
                summary.merges_simulated += 1
            continue

        outcome = execute_merge(store, match, now)
        if outcome is None:
            summary.merges_skipped += 1
            continue
        if outcome.primary_id:
            consumed.update((outcome.primary_id, outcome.secondary_id))
        summary.results.append(outcome)
        if outcome.success:
            summary.merges_performed += 1
        else:
            summary.merges_failed += 1

    logger.info(
        "Deduplication pass complete: %d records, %d sources, %d pairs scored, "
        "%d matches (%d high, %d medium), %d merged, %d simulated, %d failed, %d repaired",
        summary.records_analyzed, summary.source_count, summary.candidate_pairs_scored,
        summary.potential_matches_found, summary.high_confidence_matches,
        summary.medium_confidence_matches, summary.merges_performed,
        summary.merges_simulated, summary.merges_failed, summary.merges_repaired,
    )
    return summary
