"""
Summary statistics and timeline buckets over a record subset.

All functions are pure folds from (Dataset, ids) to an immutable result, so
they work the same for the full dataset and for any filtered subset.
"""
from __future__ import annotations

import datetime as dt
from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterable, Optional

import numpy as np
import pandas as pd

from ipdr.config import DEFAULT_BUCKET, DEFAULT_TOP_N, MAX_TIMELINE_BUCKETS
from ipdr.analytics.common import iso_utc
from ipdr.data.errors import NotFound
from ipdr.data.normalize import clean_text
from ipdr.data.query import resolve_field
from ipdr.data.schemas import CanonicalField, Record
from ipdr.data.store import Dataset, from_ns, index_key

F = CanonicalField


def _records(dataset: Dataset, ids: Iterable[int]) -> list[Record]:
    records = dataset.records
    out = []
    for i in dict.fromkeys(ids):
        if not 0 <= i < len(records):
            raise NotFound(f"No record with id {i}")
        out.append(records[i])
    return out


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Summary:
    total_records: int
    unique_msisdns: int
    unique_ips: int
    unique_imeis: int
    first_seen: Optional[dt.datetime]
    last_seen: Optional[dt.datetime]
    data_up_total: float = 0
    data_down_total: float = 0

    def to_dict(self) -> dict:
        return {
            "total_records": self.total_records,
            "unique_msisdns": self.unique_msisdns,
            "unique_ips": self.unique_ips,
            "unique_imeis": self.unique_imeis,
            "date_range": {
                "from": iso_utc(self.first_seen) or "N/A",
                "to": iso_utc(self.last_seen) or "N/A",
            },
            "data_up_total": self.data_up_total,
            "data_down_total": self.data_down_total,
        }


def _volume(rec: Record, fld: CanonicalField) -> float:
    value = rec.fields.get(fld)
    if value is None or fld in rec.unparsed:
        return 0
    return value


def summarize(dataset: Dataset, ids: Iterable[int]) -> Summary:
    """Counts, distinct entities and start_time extent for the given ids."""
    recs = _records(dataset, ids)
    msisdns: set[str] = set()
    ips: set[str] = set()
    imeis: set[str] = set()
    up = down = 0
    for rec in recs:
        f = rec.fields
        if F.MSISDN in f:
            msisdns.add(index_key(f[F.MSISDN]))
        if F.SOURCE_IP in f:
            ips.add(index_key(f[F.SOURCE_IP]))
        if F.IMEI in f:
            imeis.add(index_key(f[F.IMEI]))
        up += _volume(rec, F.DATA_UP)
        down += _volume(rec, F.DATA_DOWN)

    stamps = dataset.stamps_for(F.START_TIME, [r.id for r in recs])
    return Summary(
        total_records=len(recs),
        unique_msisdns=len(msisdns),
        unique_ips=len(ips),
        unique_imeis=len(imeis),
        first_seen=from_ns(stamps.min()) if stamps.size else None,
        last_seen=from_ns(stamps.max()) if stamps.size else None,
        data_up_total=up,
        data_down_total=down,
    )


# ---------------------------------------------------------------------------
# Timeline
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TimelineBucket:
    start: dt.datetime
    count: int

    def to_dict(self) -> dict:
        return {"start": iso_utc(self.start), "count": self.count}


def bucket_width_ns(width: Any = None) -> int:
    """Bucket width in ns from a timedelta, an offset string ("15min") or seconds."""
    if width is None:
        width = DEFAULT_BUCKET
    if isinstance(width, bool):
        raise ValueError(f"Invalid bucket width: {width!r}")
    if isinstance(width, str):
        try:
            width = float(width)
        except ValueError:
            pass
    try:
        if isinstance(width, (int, float, np.integer, np.floating)):
            ns = int(round(float(width) * 1_000_000_000))
        else:
            ns = pd.Timedelta(width).value
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid bucket width: {width!r}") from e
    if ns <= 0:
        raise ValueError(f"Bucket width must be positive, got {width!r}")
    return ns


def timeline(dataset: Dataset, ids: Iterable[int], bucket_width: Any = None) -> list[TimelineBucket]:
    """Contiguous fixed-width start_time buckets, empty ones included.

    Buckets are aligned to the epoch. Records without a parseable start_time
    are not counted.
    """
    width = bucket_width_ns(bucket_width)
    recs = _records(dataset, ids)
    stamps = dataset.stamps_for(F.START_TIME, [r.id for r in recs])
    if stamps.size == 0:
        return []

    origin = (int(stamps.min()) // width) * width
    n_buckets = (int(stamps.max()) - origin) // width + 1
    if n_buckets > MAX_TIMELINE_BUCKETS:
        raise ValueError(
            f"Bucket width too small: {n_buckets:,} buckets (max {MAX_TIMELINE_BUCKETS:,})"
        )
    counts = np.bincount((stamps - origin) // width, minlength=n_buckets)
    return [
        TimelineBucket(start=from_ns(origin + i * width), count=int(c))
        for i, c in enumerate(counts)
    ]


# ---------------------------------------------------------------------------
# Top values
# ---------------------------------------------------------------------------

def _display(value: Any) -> str:
    if isinstance(value, dt.datetime):
        return iso_utc(value)
    return clean_text(value)


def top_values(
    dataset: Dataset,
    ids: Iterable[int],
    field: str,
    limit: int = DEFAULT_TOP_N,
) -> list[dict]:
    """Most frequent values of a field (ties broken by value).

    Values are grouped by index key; each group shows its first-seen text.
    """
    fld = resolve_field(field, dataset.report)
    counts: Counter[str] = Counter()
    labels: dict[str, str] = {}
    for rec in _records(dataset, ids):
        if isinstance(fld, CanonicalField):
            value = rec.fields.get(fld)
        else:
            value = rec.extra.get(fld)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        key = index_key(value)
        labels.setdefault(key, _display(value))
        counts[key] += 1
    ranked = sorted(counts.items(), key=lambda item: (-item[1], labels[item[0]]))
    return [{"value": labels[k], "count": c} for k, c in ranked[:max(1, limit)]]
