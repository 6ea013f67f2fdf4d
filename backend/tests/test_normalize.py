"""Tests for field normalisation and IncidentRecord validation.

Covers:
- timestamp formats published by the reporting centres
- blank strings, coordinates and list-valued fields
- text tokens used by the textual dimension
- IncidentRecord coercion of raw store values
"""
from datetime import datetime, timedelta, timezone

import pytest

from incident_dedup.models.base import MergeStatusEnum, is_allowed_transition
from incident_dedup.modules.normalize import (
    blank_to_none,
    coerce_float,
    coerce_str_list,
    hours_between,
    normalize_source,
    parse_timestamp_flexible,
    text_tokens,
)
from incident_dedup.schemas.incident import IncidentRecord

UTC = timezone.utc


class TestParseTimestamp:
    @pytest.mark.parametrize("raw,expected", [
        ("2026-03-15T12:00:00Z", datetime(2026, 3, 15, 12, 0, tzinfo=UTC)),
        ("2026-03-15T12:00:00.000Z", datetime(2026, 3, 15, 12, 0, tzinfo=UTC)),
        ("2026-03-15T14:00:00+02:00", datetime(2026, 3, 15, 12, 0, tzinfo=UTC)),
        ("2026-03-15", datetime(2026, 3, 15, tzinfo=UTC)),
        ("15/03/2026 12:00", datetime(2026, 3, 15, 12, 0, tzinfo=UTC)),
        ("15 Mar 2026", datetime(2026, 3, 15, tzinfo=UTC)),
        (1773576000, datetime(2026, 3, 15, 12, 0, tzinfo=UTC)),
    ])
    def test_formats(self, raw, expected):
        assert parse_timestamp_flexible(raw) == expected

    def test_naive_datetime_becomes_utc(self):
        parsed = parse_timestamp_flexible(datetime(2026, 3, 15, 12, 0))
        assert parsed.tzinfo is not None
        assert parsed == datetime(2026, 3, 15, 12, 0, tzinfo=UTC)

    @pytest.mark.parametrize("raw", ["", "   ", "yesterday", None, True, 42])
    def test_unparseable_is_none(self, raw):
        assert parse_timestamp_flexible(raw) is None

    def test_hours_between_is_absolute(self):
        a = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)
        assert hours_between(a, a + timedelta(hours=3)) == 3.0
        assert hours_between(a + timedelta(hours=3), a) == 3.0


class TestScalars:
    def test_blank_to_none(self):
        assert blank_to_none("  ") is None
        assert blank_to_none(" Aden ") == "Aden"
        assert blank_to_none(0) == 0

    @pytest.mark.parametrize("raw,expected", [
        ("1.25", 1.25), (3, 3.0), ("", None), ("n/a", None), (None, None),
        (float("nan"), None), (False, None),
    ])
    def test_coerce_float(self, raw, expected):
        assert coerce_float(raw) == expected

    def test_coerce_str_list(self):
        assert coerce_str_list("Alarm raised, Crew mustered\nAlarm raised") == [
            "Alarm raised", "Crew mustered",
        ]
        assert coerce_str_list(["a", None, " ", "b"]) == ["a", "b"]
        assert coerce_str_list(None) == []

    def test_normalize_source(self):
        assert normalize_source(" recaap ") == "RECAAP"
        assert normalize_source("") is None


class TestTextTokens:
    def test_stopwords_and_short_tokens_dropped(self):
        assert text_tokens("The vessel was boarded at anchor") == {"boarded", "anchor"}

    def test_transliterated(self):
        assert "cote" in text_tokens("Côte d'Ivoire anchorage")

    def test_multiple_texts_and_none(self):
        assert text_tokens("Robbery", None, "Lagos") == {"robbery", "lagos"}


class TestIncidentRecord:
    def test_blank_strings_become_none(self):
        record = IncidentRecord.model_validate({"id": "recA", "source": "ukmto", "title": "  ", "region": ""})
        assert record.source == "UKMTO"
        assert record.title is None
        assert record.region is None

    def test_link_lists_unwrapped(self):
        record = IncidentRecord.model_validate({
            "id": "recA", "source": "MDAT", "merged_into": ["recB"], "linked_incident": ["recI1"],
            "related_records": ["recB", "recC"],
        })
        assert record.merged_into == "recB"
        assert record.linked_incident == "recI1"
        assert record.related_records == ["recB", "recC"]

    def test_numeric_imo_becomes_string(self):
        record = IncidentRecord.model_validate({"id": "recA", "source": "MDAT", "vessel_imo": 9074729})
        assert record.vessel_imo == "9074729"

    @pytest.mark.parametrize("lat,lon", [(0, 0), ("", 103.8), (95.0, 10.0), ("abc", "def")])
    def test_invalid_position_dropped(self, lat, lon):
        record = IncidentRecord.model_validate({"id": "recA", "source": "MDAT", "latitude": lat, "longitude": lon})
        assert record.latitude is None
        assert record.longitude is None
        assert not record.has_position

    def test_string_coordinates_parsed(self):
        record = IncidentRecord.model_validate({"id": "recA", "source": "MDAT", "latitude": "1.2", "longitude": "103.8"})
        assert record.has_position
        assert record.latitude == 1.2

    @pytest.mark.parametrize("raw,expected", [
        (None, MergeStatusEnum.UNMERGED),
        ("", MergeStatusEnum.UNMERGED),
        ("MERGED", MergeStatusEnum.MERGED),
        ("merged_into", MergeStatusEnum.MERGED_INTO),
    ])
    def test_merge_status_parsed(self, raw, expected):
        record = IncidentRecord.model_validate({"id": "recA", "source": "MDAT", "merge_status": raw})
        assert record.merge_status == expected
        assert record.is_unmerged is (expected == MergeStatusEnum.UNMERGED)

    def test_unparseable_date_is_missing(self):
        record = IncidentRecord.model_validate({"id": "recA", "source": "MDAT", "date": "sometime"})
        assert record.date is None

    def test_is_populated(self):
        record = IncidentRecord.model_validate({"id": "recA", "source": "MDAT", "title": "Boarding"})
        assert record.is_populated("title")
        assert not record.is_populated("description")
        assert not record.is_populated("response_actions")


class TestTransitions:
    @pytest.mark.parametrize("current,new,allowed", [
        (MergeStatusEnum.UNMERGED, MergeStatusEnum.MERGED, True),
        (MergeStatusEnum.UNMERGED, MergeStatusEnum.MERGED_INTO, True),
        (MergeStatusEnum.MERGED, MergeStatusEnum.MERGED_INTO, True),
        (MergeStatusEnum.MERGED, MergeStatusEnum.UNMERGED, False),
        (MergeStatusEnum.MERGED_INTO, MergeStatusEnum.MERGED, False),
        (MergeStatusEnum.MERGED_INTO, MergeStatusEnum.UNMERGED, False),
    ])
    def test_transition_table(self, current, new, allowed):
        assert is_allowed_transition(current, new) is allowed
