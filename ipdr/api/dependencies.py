"""
FastAPI dependencies — RecordStore singleton, filter body parsing.
"""
from __future__ import annotations

from fastapi import HTTPException

from ipdr.data.store import RecordStore

# ---------------------------------------------------------------------------
# Global store singleton (set during startup)
# ---------------------------------------------------------------------------
_store: RecordStore | None = None


def set_store(store: RecordStore) -> None:
    global _store
    _store = store


def get_store() -> RecordStore:
    if _store is None or not _store.is_loaded:
        raise HTTPException(503, "No records loaded yet")
    return _store


def get_store_or_empty() -> RecordStore:
    """Return the store even if it has no data (for health/upload endpoints)."""
    if _store is None:
        raise HTTPException(503, "Server not initialized yet")
    return _store
