"""Shared declarative base and enums for all models."""
from __future__ import annotations

import enum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class MergeStatusEnum(str, enum.Enum):
    UNMERGED = "unmerged"
    MERGED = "merged"            # primary that has absorbed at least one report
    MERGED_INTO = "merged_into"  # secondary, points at its primary


# Allowed status moves. A primary may later be absorbed by another primary,
# which is how multi-hop merge chains form; nothing ever returns to UNMERGED.
_ALLOWED_TRANSITIONS: dict[MergeStatusEnum, frozenset[MergeStatusEnum]] = {
    MergeStatusEnum.UNMERGED: frozenset({
        MergeStatusEnum.UNMERGED, MergeStatusEnum.MERGED, MergeStatusEnum.MERGED_INTO,
    }),
    MergeStatusEnum.MERGED: frozenset({MergeStatusEnum.MERGED, MergeStatusEnum.MERGED_INTO}),
    MergeStatusEnum.MERGED_INTO: frozenset({MergeStatusEnum.MERGED_INTO}),
}


def is_allowed_transition(current: MergeStatusEnum, new: MergeStatusEnum) -> bool:
    return new in _ALLOWED_TRANSITIONS[current]
