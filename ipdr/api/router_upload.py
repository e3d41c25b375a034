"""
Upload endpoint: tokenize, canonicalize and index one IPDR/CDR file.

The whole pipeline runs in the threadpool so requests against the previous
dataset keep being served while a large file is indexed.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from fastapi.concurrency import run_in_threadpool

from ipdr.config import MAX_UPLOAD_BYTES
from ipdr.analytics.common import sanitize_for_json
from ipdr.analytics.summary import summarize
from ipdr.data.errors import EmptyInput, TokenizeError
from ipdr.data.loader import read_upload
from ipdr.data.store import Dataset, RecordStore
from ipdr.api.dependencies import get_store_or_empty
from ipdr.api.response_models import UploadResponse

router = APIRouter(prefix="/api", tags=["upload"])


def _ingest(store: RecordStore, filename: str, content: bytes) -> Dataset:
    rows, headers = read_upload(filename, content)
    return store.ingest(rows, headers, source=filename)


@router.post("/upload", response_model=UploadResponse)
async def upload_records(
    file: UploadFile = File(...),
    store: RecordStore = Depends(get_store_or_empty),
):
    """Replace the live dataset with the records of one uploaded file."""
    if not file.filename:
        raise HTTPException(400, "Missing filename")

    content = await file.read()
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(413, f"File too large ({len(content):,} bytes, max {MAX_UPLOAD_BYTES:,})")

    print(f"Upload: {file.filename} ({len(content):,} bytes)")
    try:
        dataset = await run_in_threadpool(_ingest, store, file.filename, content)
    except (EmptyInput, TokenizeError) as e:
        print(f"  Upload rejected: {e}")
        raise HTTPException(400, str(e))

    analysis = summarize(dataset, dataset.all_ids())
    return UploadResponse(
        message=f"File processed successfully: {len(dataset):,} records",
        filename=file.filename,
        records=len(dataset),
        report=dataset.report.to_dict(),
        analysis=sanitize_for_json(analysis.to_dict()),
    )
