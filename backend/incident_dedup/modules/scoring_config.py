"""Tunable similarity constants, loaded from config/dedup_scoring.yaml.

The weights and cutoffs are hand-tuned, not derived; keeping them in YAML
lets operators adjust them without a code change. Every value has a default,
so a missing file or section degrades to the built-in tuning with a warning.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator

from incident_dedup.config import settings

logger = logging.getLogger(__name__)

# config/ is at repo root (one level above backend/)
_REPO_CONFIG_DIR = Path(__file__).resolve().parents[3] / "config"


class DimensionWeights(BaseModel):
    temporal: float = Field(0.30, ge=0)
    spatial: float = Field(0.30, ge=0)
    vessel: float = Field(0.30, ge=0)
    textual: float = Field(0.10, ge=0)

    @model_validator(mode="after")
    def _not_all_zero(self) -> "DimensionWeights":
        if self.temporal + self.spatial + self.vessel + self.textual <= 0:
            raise ValueError("At least one similarity weight must be positive")
        return self


class TemporalConfig(BaseModel):
    cutoff_hours: float = Field(48.0, gt=0)


class SpatialConfig(BaseModel):
    cutoff_nm: float = Field(50.0, gt=0)


class VesselConfig(BaseModel):
    imo_match: float = Field(1.0, ge=0, le=1)
    # Equal IMOs that fail the check digit: likely the same transcription of a bad number
    unverified_imo_match: float = Field(0.9, ge=0, le=1)
    name_weight: float = Field(0.85, ge=0, le=1)
    type_bonus: float = Field(0.15, ge=0, le=1)


class TextualConfig(BaseModel):
    related_type_score: float = Field(0.8, ge=0, le=1)
    # Overlap denominator floor: one shared word out of a one-word title is not a match
    min_tokens: int = Field(3, ge=1)
    incident_type_groups: list[list[str]] = Field(default_factory=lambda: [
        ["Robbery", "Robbery/Theft", "Theft", "Armed Robbery"],
        ["Boarding", "Attempted Boarding", "Boarded"],
        ["Suspicious Approach", "Approach", "Suspicious Activity", "Suspicious Vessel"],
        ["Piracy", "Hijack", "Hijacking", "Kidnapping"],
        ["Attack", "Armed Attack", "Missile Attack", "Drone Attack", "UAV Attack", "USV Attack"],
        ["Threat", "Missile Threat", "Piracy Threat", "Warning"],
    ])


class EvidenceConfig(BaseModel):
    # Ceiling for pairs with neither a position comparison nor a vessel match
    uncorroborated_cap: float = Field(0.75, ge=0, le=1)


class ScoringConfig(BaseModel):
    weights: DimensionWeights = Field(default_factory=DimensionWeights)
    temporal: TemporalConfig = Field(default_factory=TemporalConfig)
    spatial: SpatialConfig = Field(default_factory=SpatialConfig)
    vessel: VesselConfig = Field(default_factory=VesselConfig)
    textual: TextualConfig = Field(default_factory=TextualConfig)
    evidence: EvidenceConfig = Field(default_factory=EvidenceConfig)


def _resolve_config_path(path: str | Path) -> Path | None:
    candidate = Path(path)
    if candidate.exists():
        return candidate
    fallback = _REPO_CONFIG_DIR / candidate.name
    if fallback.exists():
        return fallback
    return None


def load_scoring_config(path: str | Path | None = None) -> ScoringConfig:
    """Read and validate the scoring YAML; defaults for anything not present."""
    config_path = _resolve_config_path(path or settings.DEDUP_SCORING_CONFIG)
    if config_path is None:
        logger.warning("Scoring config %s not found — using built-in defaults", path or settings.DEDUP_SCORING_CONFIG)
        return ScoringConfig()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    for section in ("weights", "temporal", "spatial", "vessel", "textual", "evidence"):
        if section not in raw:
            logger.warning("Missing config section '%s' in %s — using defaults", section, config_path.name)

    return ScoringConfig.model_validate(raw)


@lru_cache(maxsize=1)
def get_scoring_config() -> ScoringConfig:
    return load_scoring_config()
