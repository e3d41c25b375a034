"""Shared fixtures: small IPDR datasets and a loaded RecordStore."""
import pytest

from ipdr.data.normalize import canonicalize
from ipdr.data.store import RecordStore, build_dataset


SCENARIO_ROWS = [
    {"caller_msisdn": "919876500001", "src_ip": "10.0.0.5", "Timestamp": "2024-01-01T10:00:00Z"},
    {"caller_msisdn": "919876500002", "src_ip": "10.0.0.5", "Timestamp": "2024-01-01T10:05:00Z"},
]

SESSION_HEADERS = [
    "Calling Number", "Called Number", "IMEI", "Source IP", "Dest IP",
    "Session Start", "Session End", "Uplink Volume", "Downlink Volume",
    "Cell ID", "Operator Note",
]

SESSION_ROWS = [
    ["919800000001", "919800000009", "356938035643809", "10.0.0.5", "142.250.1.1",
     "2024-01-01 08:15:00", "2024-01-01 08:20:00", "1,200", "54000", "CELL-A", "first"],
    ["919800000001", "", "356938035643809", "10.0.0.5", "31.13.64.1",
     "2024-01-01 09:40:00", "2024-01-01 09:41:00", "300", "900", "CELL-A", ""],
    ["919800000002", "919800000001", "490154203237518", "10.0.0.7", "142.250.1.1",
     "2024-01-01 12:00:00", "", "2500", "not-a-number", "CELL-B", "roaming"],
    ["919800000003", "", "", "10.0.0.9", "",
     "garbage-time", "", "", "", "CELL-C", ""],
    ["919800000002", "", "490154203237518", "10.0.0.7", "142.250.1.1",
     "2024-01-02 00:30:00", "2024-01-02 00:45:00", "10", "20", "CELL-B", ""],
]


def as_dicts(headers, rows):
    return [dict(zip(headers, row)) for row in rows]


@pytest.fixture
def scenario_rows():
    return [dict(r) for r in SCENARIO_ROWS]


@pytest.fixture
def session_rows():
    return as_dicts(SESSION_HEADERS, SESSION_ROWS)


@pytest.fixture
def scenario_dataset(scenario_rows):
    records, report = canonicalize(scenario_rows)
    return build_dataset(records, report, source="scenario.csv")


@pytest.fixture
def session_dataset(session_rows):
    records, report = canonicalize(session_rows, SESSION_HEADERS)
    return build_dataset(records, report, source="sessions.csv")


@pytest.fixture
def session_store(session_rows):
    store = RecordStore()
    store.ingest(session_rows, SESSION_HEADERS, source="sessions.csv")
    return store
