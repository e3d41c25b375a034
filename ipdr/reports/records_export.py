"""
Records Export — Summary, Records, Timeline and Links sheets for a record subset.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pandas as pd

from ipdr.config import DISPLAY_ORDER, EXCEL_MAX_ROWS, EXPORT_BUCKETS, NUMERIC_FIELDS, TIMESTAMP_FIELDS
from ipdr.analytics.common import sanitize_for_json
from ipdr.analytics.graph import build_graph
from ipdr.analytics.summary import summarize, timeline, top_values
from ipdr.data.schemas import Record
from ipdr.data.store import Dataset
from ipdr.excel.writer import Column, ExcelWriter


TIMELINE_COLS = [
    Column("start", "datetime", "Bucket Start (UTC)"),
    Column("count", "number", "Records"),
]

LINK_COLS = [
    Column("source", "text", "Entity A"),
    Column("target", "text", "Entity B"),
    Column("weight", "number", "Shared Records"),
    Column("records", "text", "Record IDs"),
]

TOP_COLS = [
    Column("value", "text", "Value"),
    Column("count", "number", "Records"),
]

TOP_FIELDS = [("msisdn", "Top Numbers"), ("source_ip", "Top Source IPs"), ("cell_id", "Top Cells")]

COLUMN_LABELS = {
    "msisdn": "MSISDN",
    "called_msisdn": "Called MSISDN",
    "imei": "IMEI",
    "imsi": "IMSI",
    "source_ip": "Source IP",
    "source_port": "Src Port",
    "destination_ip": "Destination IP",
    "destination_port": "Dst Port",
    "protocol": "Protocol",
    "start_time": "Start (UTC)",
    "end_time": "End (UTC)",
    "data_up": "Bytes Up",
    "data_down": "Bytes Down",
    "cell_id": "Cell ID",
}


def _column_type(name: str) -> str:
    if name in TIMESTAMP_FIELDS:
        return "datetime"
    if name in ("data_up", "data_down"):
        return "bytes"
    if name in NUMERIC_FIELDS:
        return "number"
    return "text"


def record_columns(records: list[Record]) -> list[Column]:
    """Canonical columns in display order, then pass-through headers as first seen."""
    canonical = set()
    extras: dict[str, None] = {}
    for rec in records:
        canonical.update(f.value for f in rec.fields)
        for key in rec.extra:
            extras.setdefault(key, None)

    cols = [Column("#id", "number", "ID")]
    for name in DISPLAY_ORDER:
        if name in canonical:
            col_type = _column_type(name)
            cols.append(Column(name, col_type, COLUMN_LABELS.get(name, name)))
    cols.extend(Column(f"extra:{key}", "text", key) for key in extras)
    return cols


def _record_row(rec: Record) -> dict:
    row = {"#id": rec.id}
    for fld, value in rec.fields.items():
        row[fld.value] = value
    for key, value in rec.extra.items():
        row[f"extra:{key}"] = value
    return row


def _export_timeline(dataset: Dataset, ids: list[int]) -> tuple[str, list]:
    """Hourly buckets, widened to daily/weekly when the span is too long."""
    error = None
    for width in EXPORT_BUCKETS:
        try:
            return width, timeline(dataset, ids, width)
        except ValueError as e:
            error = e
    raise error


def generate_json(dataset: Dataset, ids: Iterable[int] | None = None) -> dict:
    ids = list(dataset.all_ids() if ids is None else ids)
    summary = summarize(dataset, ids)
    width, buckets = _export_timeline(dataset, ids)
    graph = build_graph(dataset, ids)

    return sanitize_for_json({
        "summary": summary.to_dict(),
        "bucket_width": width,
        "timeline": [b.to_dict() for b in buckets],
        "top": {name: top_values(dataset, ids, name) for name, _ in TOP_FIELDS},
        "graph": {"nodes": len(graph.nodes), "edges": len(graph.edges)},
    })


def build_workbook(
    dataset: Dataset,
    ids: Iterable[int] | None = None,
    label: str = "All records",
) -> ExcelWriter:
    ids = sorted(set(dataset.all_ids() if ids is None else ids))
    summary = summarize(dataset, ids)
    width, buckets = _export_timeline(dataset, ids)
    graph = build_graph(dataset, ids)
    records = [dataset.records[i] for i in ids[:EXCEL_MAX_ROWS]]
    ew = ExcelWriter()

    # Summary
    ws = ew.add_sheet("Summary")
    source = dataset.source or "upload"
    ew.write_title(ws, "IPDR EXPLORER",
                   f"{source}  |  {label}  |  Generated {pd.Timestamp.now():%B %d, %Y %H:%M}")

    row = ew.write_section(ws, 5, "RECORDS")
    row = ew.write_kpi_row(ws, row, [
        (summary.total_records, "RECORDS", "number"),
        (summary.unique_msisdns, "UNIQUE NUMBERS", "number"),
        (summary.unique_ips, "UNIQUE IPS", "number"),
        (summary.unique_imeis, "UNIQUE DEVICES", "number"),
    ])

    row = ew.write_section(ws, row, "ACTIVITY WINDOW")
    row = ew.write_kpi_row(ws, row, [
        (summary.first_seen or "N/A", "FIRST SEEN (UTC)", "datetime" if summary.first_seen else "text"),
        (summary.last_seen or "N/A", "LAST SEEN (UTC)", "datetime" if summary.last_seen else "text"),
        (summary.data_up_total, "BYTES UP", "number"),
        (summary.data_down_total, "BYTES DOWN", "number"),
    ])

    for name, title in TOP_FIELDS:
        top = top_values(dataset, ids, name)
        if not top:
            continue
        row = ew.write_section(ws, row, title.upper())
        row = ew.write_table(ws, row, TOP_COLS, top, freeze=False) + 1

    # Records
    ws_r = ew.add_sheet("Records")
    if len(ids) > EXCEL_MAX_ROWS:
        print(f"  Records sheet truncated to {EXCEL_MAX_ROWS:,} of {len(ids):,} rows")
    ew.write_table(
        ws_r, 1, record_columns(records), (_record_row(r) for r in records),
        highlight_fn=lambda _idx, r: "warning" if records[_idx].unparsed else None,
    )

    # Timeline
    ws_t = ew.add_sheet("Timeline")
    ew.write_title(ws_t, "ACTIVITY TIMELINE", f"Bucket width {width}  |  start_time, UTC", span=4)
    ew.write_table(ws_t, 4, TIMELINE_COLS, ({"start": b.start, "count": b.count} for b in buckets))

    # Links
    ws_l = ew.add_sheet("Links")
    link_rows = [
        {**e.to_dict(), "records": ", ".join(str(r) for r in e.records)}
        for e in sorted(graph.edges, key=lambda e: -e.weight)
    ]
    ew.write_table(ws_l, 1, LINK_COLS, link_rows)

    return ew


def generate_excel(
    dataset: Dataset,
    output_path: str | Path,
    ids: Iterable[int] | None = None,
    label: str = "All records",
) -> Path:
    return build_workbook(dataset, ids, label).save(output_path)


def excel_bytes(
    dataset: Dataset,
    ids: Iterable[int] | None = None,
    label: str = "All records",
) -> bytes:
    return build_workbook(dataset, ids, label).to_bytes()
