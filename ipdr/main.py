"""
IPDR Explorer — FastAPI app factory with optional startup load.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ipdr.data.errors import IpdrError
from ipdr.data.loader import read_path
from ipdr.data.store import RecordStore
from ipdr.api.dependencies import set_store
from ipdr.api.router_meta import router as meta_router
from ipdr.api.router_upload import router as upload_router
from ipdr.api.router_records import router as records_router
from ipdr.api.router_analysis import router as analysis_router


def _preload(store: RecordStore, path: Path) -> None:
    print(f"  IPDR_DATA_FILE = {path}")
    if not path.exists():
        print("  File not found, starting empty")
        return
    try:
        rows, headers = read_path(path)
        store.ingest(rows, headers, source=path.name)
    except IpdrError as e:
        print(f"  Could not load {path.name}: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the store, indexing IPDR_DATA_FILE when set."""
    from ipdr.config import PRELOAD_FILE

    store = RecordStore()
    if PRELOAD_FILE:
        _preload(store, Path(PRELOAD_FILE).expanduser())
    set_store(store)

    if store.is_loaded:
        print(f"\nIPDR Explorer ready — {store.row_count():,} records\n")
    else:
        print("\nIPDR Explorer ready — no data yet. Upload a CSV/XLSX to /api/upload.\n")
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title="IPDR Explorer API",
        description="IPDR/CDR record analysis — filtering, summaries, timelines, link graphs",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(meta_router)
    app.include_router(upload_router)
    app.include_router(records_router)
    app.include_router(analysis_router)

    return app


app = create_app()
