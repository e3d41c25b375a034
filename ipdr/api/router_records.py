"""
Record browsing endpoints: paged listing and lookup by id.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from ipdr.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ipdr.analytics.common import sanitize_for_json
from ipdr.data.errors import NotFound
from ipdr.data.store import RecordStore
from ipdr.api.dependencies import get_store
from ipdr.api.response_models import RecordPage

router = APIRouter(prefix="/api/records", tags=["records"])


@router.get("", response_model=RecordPage)
def list_records(
    offset: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    store: RecordStore = Depends(get_store),
):
    dataset = store.snapshot()
    page = dataset.records[offset:offset + limit]
    return RecordPage(
        total=len(dataset),
        offset=offset,
        limit=limit,
        records=[sanitize_for_json(r.to_dict()) for r in page],
    )


@router.get("/{record_id}")
def get_record(record_id: int, store: RecordStore = Depends(get_store)):
    try:
        rec = store.get(record_id)
    except NotFound as e:
        raise HTTPException(404, str(e))
    return sanitize_for_json({**rec.to_dict(), "unparsed": sorted(f.value for f in rec.unparsed)})
