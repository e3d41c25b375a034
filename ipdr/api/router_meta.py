"""
Meta endpoints: health, field vocabulary.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ipdr.analytics.common import iso_utc
from ipdr.data.schemas import CanonicalField
from ipdr.data.store import RecordStore
from ipdr.api.dependencies import get_store_or_empty
from ipdr.api.response_models import HealthResponse, FieldsResponse

router = APIRouter(prefix="/api", tags=["meta"])


@router.get("/health", response_model=HealthResponse)
def health(store: RecordStore = Depends(get_store_or_empty)):
    dataset = store.snapshot()
    return HealthResponse(
        status="ok",
        loaded=store.is_loaded,
        records=len(dataset),
        source=dataset.source,
        loaded_at=iso_utc(dataset.loaded_at),
    )


@router.get("/fields", response_model=FieldsResponse)
def list_fields(store: RecordStore = Depends(get_store_or_empty)):
    dataset = store.snapshot()
    return FieldsResponse(
        canonical=[f.value for f in CanonicalField],
        present=dataset.fields_present(),
        header_map=dict(dataset.report.header_map),
    )
