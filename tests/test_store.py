"""
RecordStore tests: loading, indexes, snapshot swap, failed loads.
"""
import numpy as np
import pytest

from ipdr.data.errors import EmptyInput, NotFound
from ipdr.data.normalize import canonicalize
from ipdr.data.schemas import CanonicalField as F, FilterPredicate, Record
from ipdr.data.store import NO_TIME, RecordStore, build_dataset

from conftest import SCENARIO_ROWS, SESSION_HEADERS


class TestBuildDataset:

    def test_value_index_buckets_ascending(self, session_dataset):
        assert session_dataset.ids_for(F.SOURCE_IP, "10.0.0.5") == [0, 1]
        assert session_dataset.ids_for(F.CELL_ID, "cell-b") == [2, 4]
        assert session_dataset.ids_for(F.IMEI, "000") == []

    def test_distinct_values(self, session_dataset):
        assert session_dataset.distinct_values(F.MSISDN) == 3

    def test_time_index_sorted_and_skips_unparsed(self, session_dataset):
        ti = session_dataset.time_index[F.START_TIME]
        assert len(ti) == 4
        assert np.all(np.diff(ti.stamps) >= 0)
        assert 3 not in ti.ids.tolist()
        assert session_dataset.time_columns[F.START_TIME][3] == NO_TIME

    def test_stamps_for_drops_missing(self, session_dataset):
        assert session_dataset.stamps_for(F.START_TIME, [0, 3]).size == 1
        assert session_dataset.stamps_for(F.START_TIME, []).size == 0

    def test_ids_must_be_sequential(self):
        with pytest.raises(ValueError):
            build_dataset([Record(id=1)])

    def test_fields_present(self, session_dataset):
        present = session_dataset.fields_present()
        assert present[:2] == ["msisdn", "called_msisdn"]
        assert present[-1] == "Operator Note"


class TestRecordStore:

    def test_starts_empty(self):
        store = RecordStore()
        assert not store.is_loaded
        assert store.row_count() == 0
        assert list(store.all()) == []

    def test_ingest(self, session_store):
        assert session_store.is_loaded
        assert session_store.row_count() == 5
        assert session_store.snapshot().source == "sessions.csv"

    def test_get(self, session_store):
        assert session_store.get(2).fields[F.CELL_ID] == "CELL-B"

    @pytest.mark.parametrize("bad_id", [-1, 5, 99])
    def test_get_unknown_id(self, session_store, bad_id):
        with pytest.raises(NotFound):
            session_store.get(bad_id)

    def test_all_is_restartable(self, session_store):
        first = [r.id for r in session_store.all()]
        second = [r.id for r in session_store.all()]
        assert first == second == [0, 1, 2, 3, 4]

    def test_load_replaces_dataset(self, session_store):
        records, report = canonicalize(SCENARIO_ROWS)
        session_store.load(records, report, source="scenario.csv")
        assert session_store.row_count() == 2
        assert session_store.evaluate(FilterPredicate.where(cell_id="CELL-A")) == []

    def test_failed_load_keeps_previous_dataset(self, session_store):
        before = session_store.evaluate(FilterPredicate.where(source_ip="10.0.0.5"))
        snapshot = session_store.snapshot()

        with pytest.raises(EmptyInput):
            session_store.ingest([], SESSION_HEADERS)
        with pytest.raises(ValueError):
            session_store.load([Record(id=7)])

        assert session_store.snapshot() is snapshot
        assert session_store.evaluate(FilterPredicate.where(source_ip="10.0.0.5")) == before

    def test_snapshot_survives_reload(self, session_store):
        old = session_store.snapshot()
        session_store.ingest(SCENARIO_ROWS)
        assert len(old) == 5
        assert old.get(4).fields[F.CELL_ID] == "CELL-B"

    def test_convenience_aggregates_default_to_all_records(self, session_store):
        assert session_store.summarize().total_records == 5
        assert sum(b.count for b in session_store.timeline(bucket_width="1D")) == 4
        assert len(session_store.build_graph().nodes) > 0
