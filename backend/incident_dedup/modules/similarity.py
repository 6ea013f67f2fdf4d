"""Cross-source incident similarity scoring.

Two centres reporting the same boarding will log it a few hours apart, at
positions a few miles apart, usually naming the same ship. The scorer turns
each of those observations into a [0, 1] sub-score and combines the ones
that can actually be computed for a pair:

  temporal  — linear decay over the time difference (always counted)
  spatial   — linear decay over great-circle distance (only with positions)
  vessel    — IMO equality, else fuzzy name match plus type corroboration
  textual   — incident-type synonymy or title/description token overlap

Weights are renormalised over the computed dimensions so a report without a
position is not penalised for information it never had. Time and wording
alone are weak evidence, so a pair with neither a position comparison nor a
positive vessel match is capped below the high-confidence band. A total of
exactly 0 means the pair is structurally incomparable (outside the time or
distance window) and must not be counted by the caller.

Every sub-score is symmetric, so ``score_pair(a, b) == score_pair(b, a)``.
"""
from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel

from incident_dedup.modules.normalize import hours_between, text_tokens
from incident_dedup.modules.scoring_config import ScoringConfig, get_scoring_config
from incident_dedup.schemas.incident import IncidentRecord
from incident_dedup.utils.geo import haversine_nm
from incident_dedup.utils.vessel_identity import (
    imo_checksum_ok,
    normalize_imo,
    vessel_name_similarity,
    vessel_types_match,
)

logger = logging.getLogger(__name__)


class DimensionScores(BaseModel):
    temporal: Optional[float] = None
    spatial: Optional[float] = None
    vessel: Optional[float] = None
    textual: Optional[float] = None

    @property
    def is_corroborated(self) -> bool:
        """A position comparison or a positive vessel match backs the pair."""
        return self.spatial is not None or bool(self.vessel)


class SimilarityScore(BaseModel):
    total: float
    dimensions: DimensionScores = DimensionScores()
    reason: Optional[str] = None
    hours_apart: Optional[float] = None
    distance_nm: Optional[float] = None

    @property
    def is_incomparable(self) -> bool:
        return self.total == 0


# ---------------------------------------------------------------------------
# Dimensions
# ---------------------------------------------------------------------------

def temporal_score(hours_apart: float | None, cfg: ScoringConfig) -> float:
    """1.0 at zero difference, 0.0 at or beyond the cutoff; 0.0 when unknown."""
    if hours_apart is None:
        return 0.0
    return max(0.0, 1.0 - hours_apart / cfg.temporal.cutoff_hours)


def spatial_score(distance_nm: float, cfg: ScoringConfig) -> float:
    return max(0.0, 1.0 - distance_nm / cfg.spatial.cutoff_nm)


def vessel_score(a: IncidentRecord, b: IncidentRecord, cfg: ScoringConfig) -> float | None:
    """Vessel identity sub-score, or None when the pair cannot be compared.

    IMO numbers are globally unique: equal IMOs are near-conclusive and two
    different valid IMOs rule the same hull out regardless of names.
    """
    imo_a = normalize_imo(a.vessel_imo)
    imo_b = normalize_imo(b.vessel_imo)
    if imo_a and imo_b:
        if imo_a == imo_b:
            return cfg.vessel.imo_match if imo_checksum_ok(imo_a) else cfg.vessel.unverified_imo_match
        if imo_checksum_ok(imo_a) and imo_checksum_ok(imo_b):
            return 0.0
        # A failed check digit means a mistyped number; let the names decide
        if not a.vessel_name or not b.vessel_name:
            return 0.0

    if not a.vessel_name or not b.vessel_name:
        return None

    score = cfg.vessel.name_weight * vessel_name_similarity(a.vessel_name, b.vessel_name)
    if vessel_types_match(a.vessel_type, b.vessel_type):
        score += cfg.vessel.type_bonus
    return min(1.0, score)


def incident_type_similarity(type1: str | None, type2: str | None, cfg: ScoringConfig) -> float:
    """1.0 for the same category, a partial score for synonyms, else shared-word ratio."""
    if not type1 or not type2:
        return 0.0
    t1 = type1.strip().upper()
    t2 = type2.strip().upper()
    if t1 == t2:
        return 1.0
    for group in cfg.textual.incident_type_groups:
        members = {g.strip().upper() for g in group}
        if t1 in members and t2 in members:
            return cfg.textual.related_type_score

    words1 = set(t1.split())
    words2 = set(t2.split())
    return len(words1 & words2) / max(len(words1), len(words2))


def token_overlap(tokens_a: set[str], tokens_b: set[str], min_tokens: int = 1) -> float:
    """Overlap coefficient |A ∩ B| / max(min(|A|, |B|), min_tokens).

    Tolerates a terse title on one side and a long narrative on the other,
    where Jaccard would punish the length difference. ``min_tokens`` keeps a
    one- or two-word title from scoring 1.0 on a single shared word.
    """
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / max(min(len(tokens_a), len(tokens_b)), min_tokens)


def textual_score(a: IncidentRecord, b: IncidentRecord, cfg: ScoringConfig) -> float | None:
    candidates: list[float] = []

    if a.incident_type and b.incident_type:
        candidates.append(incident_type_similarity(a.incident_type, b.incident_type, cfg))

    tokens_a = text_tokens(a.title, a.description)
    tokens_b = text_tokens(b.title, b.description)
    if tokens_a and tokens_b:
        candidates.append(token_overlap(tokens_a, tokens_b, cfg.textual.min_tokens))

    return max(candidates) if candidates else None


# ---------------------------------------------------------------------------
# Combination
# ---------------------------------------------------------------------------

def score_pair(
    a: IncidentRecord,
    b: IncidentRecord,
    config: ScoringConfig | None = None,
) -> SimilarityScore:
    """Weighted similarity of two reports from different sources.

    Raises:
        ValueError: both records come from the same source.
    """
    cfg = config or get_scoring_config()
    if a.source == b.source:
        raise ValueError(f"Refusing to score two {a.source} reports against each other")

    hours_apart = hours_between(a.date, b.date) if a.date and b.date else None
    if hours_apart is not None and hours_apart > cfg.temporal.cutoff_hours:
        return SimilarityScore(
            total=0.0, reason="time difference too large", hours_apart=round(hours_apart, 2),
        )

    distance_nm = None
    spatial = None
    if a.has_position and b.has_position:
        distance_nm = haversine_nm(a.latitude, a.longitude, b.latitude, b.longitude)
        if distance_nm > cfg.spatial.cutoff_nm:
            return SimilarityScore(
                total=0.0, reason="spatial distance too large",
                hours_apart=round(hours_apart, 2) if hours_apart is not None else None,
                distance_nm=round(distance_nm, 2),
            )
        spatial = spatial_score(distance_nm, cfg)

    dims = DimensionScores(
        temporal=temporal_score(hours_apart, cfg),
        spatial=spatial,
        vessel=vessel_score(a, b, cfg),
        textual=textual_score(a, b, cfg),
    )

    weighted = 0.0
    weight_sum = 0.0
    for name in ("temporal", "spatial", "vessel", "textual"):
        value = getattr(dims, name)
        if value is None:
            continue
        weight = getattr(cfg.weights, name)
        weighted += weight * value
        weight_sum += weight

    if weight_sum <= 0:
        return SimilarityScore(total=0.0, dimensions=dims, reason="no comparable dimensions")

    total = weighted / weight_sum
    reason = None
    if not dims.is_corroborated and total > cfg.evidence.uncorroborated_cap:
        total = cfg.evidence.uncorroborated_cap
        reason = "no position or vessel evidence"

    logger.debug(
        "Similarity %s/%s: total=%.4f temporal=%s spatial=%s vessel=%s textual=%s",
        a.id, b.id, total, dims.temporal, dims.spatial, dims.vessel, dims.textual,
    )
    return SimilarityScore(
        total=total,
        dimensions=dims,
        reason=reason,
        hours_apart=round(hours_apart, 2) if hours_apart is not None else None,
        distance_nm=round(distance_nm, 2) if distance_nm is not None else None,
    )
