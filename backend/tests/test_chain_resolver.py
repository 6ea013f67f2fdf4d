"""Tests for merge-chain resolution: bounded hops, cycles, dangling pointers."""
from unittest.mock import MagicMock

import pytest

from incident_dedup.models.base import MergeStatusEnum
from incident_dedup.models.raw_incident import RawIncident
from incident_dedup.modules.chain_resolver import resolve_primary
from incident_dedup.modules.record_store import StoreError


def _chain_store(make_record, hops: int) -> MagicMock:
    """rec0 → rec1 → … → rec{hops}, the last one a live primary."""
    records = {
        f"rec{i}": make_record(f"rec{i}", "UKMTO", merge_status="merged_into", merged_into=f"rec{i + 1}")
        for i in range(hops)
    }
    records[f"rec{hops}"] = make_record(f"rec{hops}", "RECAAP", merge_status="merged")
    store = MagicMock()
    store.get.side_effect = records.get
    return store


class TestResolvePrimary:
    def test_unmerged_record_resolves_to_itself(self, make_record):
        store = _chain_store(make_record, 0)
        assert resolve_primary("rec0", store).id == "rec0"

    def test_single_hop(self, make_record):
        store = _chain_store(make_record, 1)
        assert resolve_primary("rec0", store, max_depth=5).id == "rec1"

    @pytest.mark.parametrize("hops", [2, 3, 4, 5])
    def test_chains_up_to_bound_resolve(self, make_record, hops):
        store = _chain_store(make_record, hops)
        assert resolve_primary("rec0", store, max_depth=5).id == f"rec{hops}"

    def test_chain_beyond_bound_returns_none(self, make_record):
        store = _chain_store(make_record, 6)
        assert resolve_primary("rec0", store, max_depth=5) is None
        assert store.get.call_count == 6

    def test_cycle_returns_none(self, make_record):
        records = {
            "recA": make_record("recA", "UKMTO", merge_status="merged_into", merged_into="recB"),
            "recB": make_record("recB", "MDAT", merge_status="merged_into", merged_into="recA"),
        }
        store = MagicMock()
        store.get.side_effect = records.get
        assert resolve_primary("recA", store, max_depth=5) is None
        assert store.get.call_count == 2

    def test_dangling_pointer_returns_none(self, make_record):
        store = MagicMock()
        store.get.side_effect = {
            "recA": make_record("recA", "UKMTO", merge_status="merged_into", merged_into="recGone"),
        }.get
        assert resolve_primary("recA", store) is None

    def test_merged_into_without_target_returns_none(self, make_record):
        store = MagicMock()
        store.get.return_value = make_record("recA", "UKMTO", merge_status="merged_into")
        assert resolve_primary("recA", store) is None

    def test_store_error_returns_none(self):
        store = MagicMock()
        store.get.side_effect = StoreError("connection reset")
        assert resolve_primary("recA", store) is None


class TestResolveAgainstSqlStore:
    def _add(self, db, **kwargs):
        db.add(RawIncident(**kwargs))
        db.flush()

    def test_secondary_resolves_to_its_primary(self, db, sql_store):
        """C merged_into D → resolving C yields D, never C."""
        self._add(db, id="recD", source="RECAAP", merge_status=MergeStatusEnum.MERGED)
        self._add(db, id="recC", source="UKMTO", merge_status=MergeStatusEnum.MERGED_INTO, merged_into="recD")
        db.commit()

        primary = resolve_primary("recC", sql_store)
        assert primary.id == "recD"
        assert primary.merge_status == MergeStatusEnum.MERGED

    def test_two_hop_chain(self, db, sql_store):
        self._add(db, id="recF", source="ICC", merge_status=MergeStatusEnum.MERGED)
        self._add(db, id="recD", source="RECAAP", merge_status=MergeStatusEnum.MERGED_INTO, merged_into="recF")
        self._add(db, id="recC", source="UKMTO", merge_status=MergeStatusEnum.MERGED_INTO, merged_into="recD")
        db.commit()

        assert resolve_primary("recC", sql_store).id == "recF"

    def test_missing_record(self, sql_store):
        assert resolve_primary("recNope", sql_store) is None
