"""Tests for IMO normalisation and vessel name / type comparison."""
import pytest

from incident_dedup.utils.geo import haversine_nm, is_valid_coordinate
from incident_dedup.utils.vessel_identity import (
    imo_checksum_ok,
    normalize_imo,
    normalize_vessel_name,
    vessel_name_similarity,
    vessel_types_match,
)


class TestNormalizeImo:
    @pytest.mark.parametrize("raw,expected", [
        ("9074729", "9074729"),
        ("IMO 9074729", "9074729"),
        ("imo: 9 074 729", "9074729"),
        (9074729, "9074729"),
    ])
    def test_extracts_digits(self, raw, expected):
        assert normalize_imo(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", "12345", "unknown"])
    def test_missing_returns_none(self, raw):
        assert normalize_imo(raw) is None

    @pytest.mark.parametrize("imo,ok", [
        ("9074729", True),
        ("9321483", True),
        ("9074728", False),
        ("9234567", False),
        ("123", False),
        ("907472X", False),
    ])
    def test_check_digit(self, imo, ok):
        assert imo_checksum_ok(imo) is ok


class TestVesselNames:
    @pytest.mark.parametrize("raw,expected", [
        ("M/V Ocean Star", "OCEAN STAR"),
        ("MT OCEAN-STAR", "OCEAN STAR"),
        ("  ocean   star ", "OCEAN STAR"),
        ("Océan Star", "OCEAN STAR"),
        (None, ""),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_vessel_name(raw) == expected

    def test_exact_after_normalisation(self):
        assert vessel_name_similarity("M/T GULF STAR", "Gulf Star") == 1.0

    def test_containment(self):
        assert vessel_name_similarity("GULF STAR", "GULF STAR I") == 0.9

    def test_fuzzy_typo_scores_high(self):
        assert vessel_name_similarity("OCEAN PIONEER", "OCEAN PIONER") > 0.9

    def test_unrelated_scores_low(self):
        assert vessel_name_similarity("OCEAN PIONEER", "DELTA GRACE") < 0.5

    def test_missing_name_scores_zero(self):
        assert vessel_name_similarity(None, "DELTA GRACE") == 0.0

    def test_similarity_symmetric(self):
        assert vessel_name_similarity("ATLANTIC HOPE", "ATLANTIK HOPE") == \
            vessel_name_similarity("ATLANTIK HOPE", "ATLANTIC HOPE")


class TestVesselTypes:
    def test_same_family(self):
        assert vessel_types_match("Chemical Tanker", "Tanker")
        assert vessel_types_match("Bulk Carrier", "bulker")

    def test_different_family(self):
        assert not vessel_types_match("Container Ship", "Tanker")

    @pytest.mark.parametrize("type1,type2", [
        ("Ore Carrier", "Core Drilling Vessel"),
        ("Oil Tanker", "Soil Survey Vessel"),
        ("Tug", "Tugboat Tender"),
    ])
    def test_keywords_match_whole_words_only(self, type1, type2):
        assert not vessel_types_match(type1, type2)

    def test_multiword_keyword(self):
        assert vessel_types_match("Ro-Ro", "General Cargo")

    def test_missing(self):
        assert not vessel_types_match(None, "Tanker")


class TestGeo:
    def test_one_degree_latitude_is_60nm(self):
        assert haversine_nm(0.0, 10.0, 1.0, 10.0) == pytest.approx(60.04, abs=0.1)

    def test_zero_distance(self):
        assert haversine_nm(1.2, 103.8, 1.2, 103.8) == 0.0

    @pytest.mark.parametrize("lat,lon,ok", [
        (1.2, 103.8, True),
        (0.0, 0.0, False),
        (91.0, 10.0, False),
        (10.0, -181.0, False),
        (None, 10.0, False),
        (float("nan"), 10.0, False),
        (True, 10.0, False),
    ])
    def test_is_valid_coordinate(self, lat, lon, ok):
        assert is_valid_coordinate(lat, lon) is ok
