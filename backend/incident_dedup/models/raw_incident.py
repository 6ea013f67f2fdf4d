"""RawIncident — one reporting centre's account of an incident (raw_data table)."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String, Float, DateTime, Text, JSON, ForeignKey, CheckConstraint,
    Enum as SAEnum, func,
)
from sqlalchemy.orm import Mapped, mapped_column
from incident_dedup.models.base import Base, MergeStatusEnum


def _new_record_id() -> str:
    return f"rec{uuid.uuid4().hex[:14]}"


class RawIncident(Base):
    __tablename__ = "raw_data"
    __table_args__ = (
        CheckConstraint("id != merged_into", name="ck_no_self_merge"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_record_id)
    source: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    # All timestamps are stored as naive UTC
    date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    title: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    update_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    # Vessel details
    vessel_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    vessel_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    vessel_flag: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    vessel_imo: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    vessel_status: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    incident_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    linked_incident: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    # List-valued fields
    response_actions: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    authorities_notified: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    related_records: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    # Merge state: NULL means unmerged (matches the "merge_status is empty" filter)
    merge_status: Mapped[Optional[str]] = mapped_column(
        SAEnum(MergeStatusEnum), nullable=True, index=True
    )
    merged_into: Mapped[Optional[str]] = mapped_column(
        String(32), ForeignKey("raw_data.id"), nullable=True, index=True
    )
    processing_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    processing_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_processed: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
