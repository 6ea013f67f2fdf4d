"""Tests for the complementary merge engine and its write-back patches."""
import logging
from datetime import datetime, timezone

from incident_dedup.models.base import MergeStatusEnum
from incident_dedup.modules.merge_engine import (
    apply_fields,
    merge_fields,
    primary_patch,
    secondary_patch,
)

MERGED_AT = datetime(2026, 3, 16, 8, 30, tzinfo=timezone.utc)


class TestMergeFields:
    def test_complementary_vessel_fields(self, make_record):
        """Primary has the name, secondary the flag → both end up on the primary."""
        primary = make_record("rec1", "RECAAP", vessel_name="OCEAN STAR")
        secondary = make_record("rec2", "UKMTO", vessel_flag="Panama")
        fields = merge_fields(primary, secondary)
        assert fields["vessel_flag"] == "Panama"
        assert "vessel_name" not in fields

        merged = apply_fields(primary, fields)
        assert merged.vessel_name == "OCEAN STAR"
        assert merged.vessel_flag == "Panama"

    def test_never_overwrites_primary_values(self, make_record):
        primary = make_record("rec1", "RECAAP", vessel_name="OCEAN STAR", incident_type="Boarding")
        secondary = make_record("rec2", "UKMTO", vessel_name="OCEAN STARR", incident_type="Robbery")
        fields = merge_fields(primary, secondary)
        assert "vessel_name" not in fields
        assert "incident_type" not in fields

    def test_coordinates_filled_as_pair(self, make_record):
        primary = make_record("rec1", "RECAAP")
        secondary = make_record("rec2", "UKMTO", latitude=1.2, longitude=103.8)
        fields = merge_fields(primary, secondary)
        assert (fields["latitude"], fields["longitude"]) == (1.2, 103.8)

    def test_coordinates_kept_when_primary_has_position(self, make_record):
        primary = make_record("rec1", "RECAAP", latitude=1.0, longitude=103.0)
        secondary = make_record("rec2", "UKMTO", latitude=1.2, longitude=103.8)
        fields = merge_fields(primary, secondary)
        assert "latitude" not in fields and "longitude" not in fields

    def test_list_fields_unioned_primary_first(self, make_record):
        primary = make_record("rec1", "RECAAP", response_actions=["Alarm raised", "Crew mustered"])
        secondary = make_record("rec2", "UKMTO", response_actions=["Crew mustered", "Citadel"])
        fields = merge_fields(primary, secondary)
        assert fields["response_actions"] == ["Alarm raised", "Crew mustered", "Citadel"]

    def test_unchanged_list_omitted(self, make_record):
        primary = make_record("rec1", "RECAAP", authorities_notified=["MRCC"])
        secondary = make_record("rec2", "UKMTO", authorities_notified=["MRCC"])
        assert "authorities_notified" not in merge_fields(primary, secondary)

    def test_related_records_gain_secondary_id(self, make_record):
        primary = make_record("rec1", "RECAAP", related_records=["rec9"])
        secondary = make_record("rec2", "UKMTO", related_records=["rec1", "rec7"])
        fields = merge_fields(primary, secondary)
        assert fields["related_records"] == ["rec9", "rec7", "rec2"]

    def test_description_appended_under_source_heading(self, make_record):
        primary = make_record("rec1", "RECAAP", description="Four robbers boarded.")
        secondary = make_record("rec2", "UKMTO", description="Crew retreated to citadel.")
        fields = merge_fields(primary, secondary)
        assert fields["description"] == (
            "Four robbers boarded.\n\n[Additional information from UKMTO]\nCrew retreated to citadel."
        )

    def test_update_text_heading(self, make_record):
        primary = make_record("rec1", "RECAAP", update_text="Vessel resumed passage.")
        secondary = make_record("rec2", "MDAT", update_text="Navy escort arrived.")
        assert "[Update from MDAT]" in merge_fields(primary, secondary)["update_text"]

    def test_description_already_contained_is_not_repeated(self, make_record):
        primary = make_record("rec1", "RECAAP", description="Boarded at anchor. Nothing stolen.")
        secondary = make_record("rec2", "UKMTO", description="Nothing stolen.")
        assert "description" not in merge_fields(primary, secondary)

    def test_empty_primary_description_takes_secondary_verbatim(self, make_record):
        primary = make_record("rec1", "RECAAP")
        secondary = make_record("rec2", "UKMTO", description="Crew retreated to citadel.")
        assert merge_fields(primary, secondary)["description"] == "Crew retreated to citadel."

    def test_idempotent(self, make_record):
        primary = make_record(
            "rec1", "RECAAP", vessel_name="OCEAN STAR", description="Boarded.",
            response_actions=["Alarm raised"],
        )
        secondary = make_record(
            "rec2", "UKMTO", vessel_flag="Panama", latitude=1.2, longitude=103.8,
            description="Robbers escaped in a skiff.", update_text="Investigation ongoing.",
            response_actions=["Citadel"], authorities_notified=["Singapore VTIS"],
            linked_incident="recINC1",
        )
        once = apply_fields(primary, merge_fields(primary, secondary))
        assert merge_fields(once, secondary) == {}
        twice = apply_fields(once, merge_fields(once, secondary))
        assert twice == once

    def test_linked_incident_taken_when_primary_has_none(self, make_record):
        primary = make_record("rec1", "RECAAP")
        secondary = make_record("rec2", "UKMTO", linked_incident=["recINC1"])
        assert merge_fields(primary, secondary)["linked_incident"] == "recINC1"

    def test_conflicting_linked_incidents_keep_primary(self, make_record, caplog):
        primary = make_record("rec1", "RECAAP", linked_incident="recINC1")
        secondary = make_record("rec2", "UKMTO", linked_incident="recINC2")
        with caplog.at_level(logging.WARNING):
            fields = merge_fields(primary, secondary)
        assert "linked_incident" not in fields
        assert "different incidents" in caplog.text


class TestPatches:
    def test_primary_patch(self, make_record):
        primary = make_record("rec1", "RECAAP")
        secondary = make_record("rec2", "UKMTO", vessel_flag="Panama")
        patch = primary_patch(primary, secondary, MERGED_AT)
        assert patch["merge_status"] == MergeStatusEnum.MERGED
        assert patch["last_processed"] == MERGED_AT
        assert patch["vessel_flag"] == "Panama"
        assert patch["processing_notes"] == "Merged with UKMTO record rec2"

    def test_primary_note_appended_once(self, make_record):
        primary = make_record("rec1", "RECAAP", processing_notes="Collected\nMerged with UKMTO record rec2")
        secondary = make_record("rec2", "UKMTO")
        assert "processing_notes" not in primary_patch(primary, secondary, MERGED_AT)

    def test_secondary_patch(self, make_record):
        primary = make_record("rec1", "RECAAP")
        secondary = make_record("rec2", "UKMTO", processing_notes="Collected")
        patch = secondary_patch(primary, secondary, MERGED_AT)
        assert patch == {
            "merge_status": MergeStatusEnum.MERGED_INTO,
            "merged_into": "rec1",
            "processing_status": "Merged",
            "processing_notes": "Collected\nMerged into RECAAP record rec1",
            "last_processed": MERGED_AT,
        }
