"""
RecordStore — In-memory dataset of canonical records plus its indexes.

One live Dataset at a time. A load builds the new Dataset and all of its
indexes off to the side, then swaps the reference; readers take a snapshot
and never see a half-built index.
"""
from __future__ import annotations

import datetime as dt
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ipdr.config import INDEXED_FIELDS, TIMESTAMP_FIELDS
from ipdr.data.errors import EmptyInput, NotFound
from ipdr.data.normalize import canonicalize, clean_text
from ipdr.data.schemas import CanonicalField, FilterPredicate, LoadReport, Record

INDEXED = tuple(CanonicalField(f) for f in INDEXED_FIELDS)
TIME_INDEXED = tuple(CanonicalField(f) for f in TIMESTAMP_FIELDS)

# Marks "no parseable timestamp" in per-id time columns; never leaves this module
NO_TIME = np.iinfo(np.int64).min


def index_key(value: Any) -> str:
    """Key used by value indexes and exact-match comparisons."""
    if isinstance(value, dt.datetime):
        return value.isoformat().casefold()
    return clean_text(value).casefold()


def to_ns(value: dt.datetime) -> int:
    return pd.Timestamp(value).value


def to_ns_array(values: Sequence[dt.datetime]) -> np.ndarray:
    if not len(values):
        return np.empty(0, dtype=np.int64)
    return pd.DatetimeIndex(pd.to_datetime(values, utc=True)).as_unit("ns").asi8


def from_ns(value: int) -> dt.datetime:
    return pd.Timestamp(int(value), tz="UTC").to_pydatetime()


@dataclass(frozen=True)
class TimeIndex:
    """Record ids sorted by timestamp, for inclusive range lookups."""
    stamps: np.ndarray      # int64 epoch ns, ascending
    ids: np.ndarray         # int64, aligned with stamps

    def __len__(self) -> int:
        return len(self.ids)

    def between(self, low_ns: Optional[int] = None, high_ns: Optional[int] = None) -> np.ndarray:
        lo = 0 if low_ns is None else int(np.searchsorted(self.stamps, low_ns, side="left"))
        hi = len(self.stamps) if high_ns is None else int(np.searchsorted(self.stamps, high_ns, side="right"))
        return self.ids[lo:hi]


@dataclass(frozen=True)
class Dataset:
    records: tuple[Record, ...] = ()
    value_index: Mapping[CanonicalField, Mapping[str, list[int]]] = field(default_factory=dict)
    time_index: Mapping[CanonicalField, TimeIndex] = field(default_factory=dict)
    time_columns: Mapping[CanonicalField, np.ndarray] = field(default_factory=dict)
    report: LoadReport = field(default_factory=LoadReport)
    source: Optional[str] = None
    loaded_at: Optional[dt.datetime] = None

    def __len__(self) -> int:
        return len(self.records)

    def get(self, record_id: int) -> Record:
        if not isinstance(record_id, (int, np.integer)) or not 0 <= record_id < len(self.records):
            raise NotFound(f"No record with id {record_id}")
        return self.records[record_id]

    def all_ids(self) -> range:
        return range(len(self.records))

    def is_indexed(self, fld: Any) -> bool:
        return fld in self.value_index

    def ids_for(self, fld: CanonicalField, value: Any) -> list[int]:
        """Ascending ids whose `fld` equals `value` (index key comparison)."""
        return self.value_index.get(fld, {}).get(index_key(value), [])

    def distinct_values(self, fld: CanonicalField) -> int:
        return len(self.value_index.get(fld, {}))

    def stamps_for(self, fld: CanonicalField, ids: Iterable[int]) -> np.ndarray:
        """Epoch-ns timestamps of `fld` for the given ids, unparseable ones dropped."""
        column = self.time_columns.get(fld)
        if column is None:
            return np.empty(0, dtype=np.int64)
        if isinstance(ids, np.ndarray):
            idx = ids.astype(np.int64)
        else:
            idx = np.fromiter(ids, dtype=np.int64)
        if idx.size == 0:
            return np.empty(0, dtype=np.int64)
        stamps = column[idx]
        return stamps[stamps != NO_TIME]

    def fields_present(self) -> list[str]:
        """Canonical fields with at least one value, then pass-through headers."""
        mapped = {
            target for h, target in self.report.header_map.items()
            if h not in self.report.unmapped and h not in self.report.duplicates
        }
        canonical = [f.value for f in CanonicalField if f.value in mapped]
        return canonical + self.report.unmapped + self.report.duplicates


def build_dataset(
    records: Sequence[Record],
    report: LoadReport | None = None,
    source: str | None = None,
) -> Dataset:
    """Single pass over the records filling every index."""
    n = len(records)
    buckets: dict[CanonicalField, dict[str, list[int]]] = {f: defaultdict(list) for f in INDEXED}
    time_ids: dict[CanonicalField, list[int]] = {f: [] for f in TIME_INDEXED}
    time_vals: dict[CanonicalField, list[dt.datetime]] = {f: [] for f in TIME_INDEXED}

    for expected, rec in enumerate(records):
        if rec.id != expected:
            raise ValueError(f"Record ids must run 0..n-1 in order; got {rec.id} at position {expected}")
        for fld in INDEXED:
            value = rec.fields.get(fld)
            if value is not None:
                buckets[fld][index_key(value)].append(rec.id)
        for fld in TIME_INDEXED:
            ts = rec.timestamp(fld)
            if ts is not None:
                time_ids[fld].append(rec.id)
                time_vals[fld].append(ts)

    time_index: dict[CanonicalField, TimeIndex] = {}
    time_columns: dict[CanonicalField, np.ndarray] = {}
    for fld in TIME_INDEXED:
        ids = np.asarray(time_ids[fld], dtype=np.int64)
        stamps = to_ns_array(time_vals[fld])
        column = np.full(n, NO_TIME, dtype=np.int64)
        column[ids] = stamps
        order = np.argsort(stamps, kind="stable")  # ties keep id order
        time_index[fld] = TimeIndex(stamps=stamps[order], ids=ids[order])
        time_columns[fld] = column

    return Dataset(
        records=tuple(records),
        value_index={f: dict(b) for f, b in buckets.items()},
        time_index=time_index,
        time_columns=time_columns,
        report=report or LoadReport(row_count=n),
        source=source,
        loaded_at=dt.datetime.now(dt.timezone.utc),
    )


class RecordStore:
    """Holds the live Dataset; every read works against one snapshot."""

    def __init__(self) -> None:
        self._dataset = Dataset()
        self._swap_lock = threading.Lock()
        self._loaded = False

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(
        self,
        records: Sequence[Record],
        report: LoadReport | None = None,
        source: str | None = None,
    ) -> Dataset:
        """Index `records` and make them the live Dataset.

        On any failure the previous Dataset stays live.
        """
        if not records:
            raise EmptyInput("No records to load")
        print(f"Indexing {len(records):,} records...")
        dataset = build_dataset(records, report, source)
        with self._swap_lock:
            self._dataset = dataset
            self._loaded = True
        print(f"  Loaded {len(dataset):,} records"
              f"{f' from {source}' if source else ''} "
              f"({len(dataset.time_index[CanonicalField.START_TIME]):,} with start_time)")
        return dataset

    def ingest(
        self,
        rows: Sequence[Mapping[str, Any]],
        headers: Sequence[str] | None = None,
        source: str | None = None,
    ) -> Dataset:
        """Canonicalize raw rows then load them."""
        records, report = canonicalize(rows, headers)
        if report.unmapped:
            print(f"  Unmapped headers kept as-is: {', '.join(report.unmapped)}")
        for name, count in report.unparseable.items():
            print(f"  {count:,} unparseable {name} value(s) kept as raw text")
        return self.load(records, report, source)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def snapshot(self) -> Dataset:
        return self._dataset

    def get(self, record_id: int) -> Record:
        return self._dataset.get(record_id)

    def all(self) -> Iterator[Record]:
        """Fresh traversal of the live Dataset in id order."""
        return iter(self._dataset.records)

    def row_count(self) -> int:
        return len(self._dataset)

    def fields_present(self) -> list[str]:
        return self._dataset.fields_present()

    # ------------------------------------------------------------------
    # Queries (each runs against a single snapshot)
    # ------------------------------------------------------------------

    def evaluate(self, predicate: FilterPredicate | None = None) -> list[int]:
        from ipdr.data.query import evaluate
        return evaluate(self.snapshot(), predicate or FilterPredicate())

    def summarize(self, ids: Iterable[int] | None = None):
        from ipdr.analytics.summary import summarize
        dataset = self.snapshot()
        return summarize(dataset, dataset.all_ids() if ids is None else ids)

    def timeline(self, ids: Iterable[int] | None = None, bucket_width: Any = None):
        from ipdr.analytics.summary import timeline
        dataset = self.snapshot()
        return timeline(dataset, dataset.all_ids() if ids is None else ids, bucket_width)

    def build_graph(self, ids: Iterable[int] | None = None):
        from ipdr.analytics.graph import build_graph
        dataset = self.snapshot()
        return build_graph(dataset, dataset.all_ids() if ids is None else ids)
