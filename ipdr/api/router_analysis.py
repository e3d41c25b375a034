"""
Analysis endpoints: filter, summary, timeline, link graph, top values, report and Excel export.

Every endpoint takes a filter body, evaluates it once against a single
dataset snapshot and runs the aggregate over the matching ids.
"""
from __future__ import annotations

import re

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, Response

from ipdr.config import DEFAULT_BUCKET
from ipdr.analytics.common import sanitize_for_json
from ipdr.analytics.graph import build_graph
from ipdr.analytics.summary import summarize, timeline, top_values
from ipdr.data.errors import InvalidPredicate, NotFound
from ipdr.data.query import evaluate
from ipdr.data.store import Dataset, RecordStore
from ipdr.api.dependencies import get_store
from ipdr.api.response_models import FilterRequest, FilterResponse, TimelineRequest, TopRequest
from ipdr.reports import records_export

router = APIRouter(prefix="/api", tags=["analysis"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _safe_json(data) -> JSONResponse:
    """Return a JSONResponse with numpy/datetime/NaN values cleaned."""
    return JSONResponse(content=sanitize_for_json(data))


def _select(store: RecordStore, req: FilterRequest) -> tuple[Dataset, list[int]]:
    dataset = store.snapshot()
    try:
        return dataset, evaluate(dataset, req.to_predicate())
    except InvalidPredicate as e:
        raise HTTPException(400, str(e))


@router.post("/filter", response_model=FilterResponse)
def filter_records(req: FilterRequest, store: RecordStore = Depends(get_store)):
    _, ids = _select(store, req)
    return FilterResponse(count=len(ids), ids=ids, filter=req.to_predicate().label)


@router.post("/summary")
def summary(req: FilterRequest, store: RecordStore = Depends(get_store)):
    dataset, ids = _select(store, req)
    return _safe_json(summarize(dataset, ids).to_dict())


@router.post("/timeline")
def activity_timeline(req: TimelineRequest, store: RecordStore = Depends(get_store)):
    dataset, ids = _select(store, req)
    try:
        buckets = timeline(dataset, ids, req.bucket)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return _safe_json({
        "bucket": req.bucket or DEFAULT_BUCKET,
        "total": sum(b.count for b in buckets),
        "buckets": [b.to_dict() for b in buckets],
    })


@router.post("/graph")
def link_graph(req: FilterRequest, store: RecordStore = Depends(get_store)):
    dataset, ids = _select(store, req)
    return _safe_json(build_graph(dataset, ids).to_dict())


@router.post("/top")
def top(req: TopRequest, store: RecordStore = Depends(get_store)):
    dataset, ids = _select(store, req)
    try:
        values = top_values(dataset, ids, req.field, req.limit)
    except InvalidPredicate as e:
        raise HTTPException(400, str(e))
    return _safe_json({"field": req.field, "values": values})


@router.post("/report")
def report_json(req: FilterRequest, store: RecordStore = Depends(get_store)):
    dataset, ids = _select(store, req)
    try:
        data = records_export.generate_json(dataset, ids)
    except (ValueError, NotFound) as e:
        raise HTTPException(400, str(e))
    return _safe_json({"filter": req.to_predicate().label, **data})


@router.post("/export")
def export_excel(req: FilterRequest, store: RecordStore = Depends(get_store)):
    dataset, ids = _select(store, req)
    try:
        content = records_export.excel_bytes(dataset, ids, req.to_predicate().label)
    except (ValueError, NotFound) as e:
        raise HTTPException(400, str(e))
    stem = re.sub(r"[^\w\-]+", "_", (dataset.source or "ipdr").rsplit(".", 1)[0])
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{stem}_export.xlsx"'},
    )
