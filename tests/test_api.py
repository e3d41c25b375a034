"""
HTTP API tests (FastAPI TestClient).
"""
import gzip

import pytest
from fastapi.testclient import TestClient

from ipdr.api.dependencies import set_store
from ipdr.main import create_app

SCENARIO_CSV = (
    b"caller_msisdn,src_ip,Timestamp\n"
    b"919876500001,10.0.0.5,2024-01-01T10:00:00Z\n"
    b"919876500002,10.0.0.5,2024-01-01T10:05:00Z\n"
)


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr("ipdr.config.PRELOAD_FILE", None)
    with TestClient(create_app()) as c:
        yield c
    set_store(None)


def upload(client, content=SCENARIO_CSV, filename="scenario.csv"):
    return client.post("/api/upload", files={"file": (filename, content, "text/csv")})


@pytest.fixture
def loaded(client):
    assert upload(client).status_code == 200
    return client


class TestMeta:

    def test_health_before_upload(self, client):
        r = client.get("/api/health")
        assert r.status_code == 200
        assert r.json()["loaded"] is False
        assert r.json()["records"] == 0

    def test_fields(self, loaded):
        body = loaded.get("/api/fields").json()
        assert "msisdn" in body["canonical"]
        assert body["present"] == ["msisdn", "source_ip", "start_time"]
        assert body["header_map"]["src_ip"] == "source_ip"

    def test_503_until_loaded(self, client):
        assert client.get("/api/records").status_code == 503
        assert client.post("/api/filter", json={}).status_code == 503


class TestUpload:

    def test_upload_scenario(self, client):
        r = upload(client)
        assert r.status_code == 200
        body = r.json()
        assert body["records"] == 2
        assert body["filename"] == "scenario.csv"
        assert body["analysis"]["unique_msisdns"] == 2
        assert body["report"]["header_map"]["caller_msisdn"] == "msisdn"

    def test_gzipped_upload(self, client):
        r = upload(client, gzip.compress(SCENARIO_CSV), "scenario.csv.gz")
        assert r.status_code == 200
        assert r.json()["records"] == 2

    def test_empty_upload_rejected_keeps_data(self, loaded):
        r = upload(loaded, b"", "empty.csv")
        assert r.status_code == 400
        assert loaded.get("/api/health").json()["records"] == 2

    def test_unsupported_type_rejected(self, loaded):
        assert upload(loaded, b"whatever", "notes.pdf").status_code == 400
        assert loaded.get("/api/health").json()["source"] == "scenario.csv"

    def test_too_large(self, client, monkeypatch):
        import ipdr.api.router_upload as router_upload
        monkeypatch.setattr(router_upload, "MAX_UPLOAD_BYTES", 10)
        assert upload(client).status_code == 413


class TestRecords:

    def test_page(self, loaded):
        body = loaded.get("/api/records", params={"offset": 1, "limit": 5}).json()
        assert body["total"] == 2
        assert [r["id"] for r in body["records"]] == [1]

    def test_page_limit_capped(self, loaded):
        assert loaded.get("/api/records", params={"limit": 100_000}).status_code == 422

    def test_get_record(self, loaded):
        body = loaded.get("/api/records/0").json()
        assert body["msisdn"] == "919876500001"
        assert body["start_time"] == "2024-01-01T10:00:00Z"
        assert body["unparsed"] == []

    def test_get_unknown_record(self, loaded):
        assert loaded.get("/api/records/9").status_code == 404


class TestAnalysis:

    def test_filter(self, loaded):
        body = loaded.post("/api/filter", json={
            "constraints": [{"field": "source_ip", "op": "eq", "value": "10.0.0.5"}],
        }).json()
        assert body["ids"] == [0, 1]
        assert body["count"] == 2

    def test_filter_empty_body_matches_all(self, loaded):
        assert loaded.post("/api/filter", json={}).json()["ids"] == [0, 1]

    def test_inverted_range_is_400_and_data_kept(self, loaded):
        r = loaded.post("/api/filter", json={
            "constraints": [{"field": "start_time", "op": "range",
                             "low": "2024-02-01", "high": "2024-01-01"}],
        })
        assert r.status_code == 400
        assert loaded.post("/api/filter", json={}).json()["count"] == 2

    def test_unknown_op_is_422(self, loaded):
        r = loaded.post("/api/filter", json={"constraints": [{"field": "msisdn", "op": "like", "value": "1"}]})
        assert r.status_code == 422

    def test_summary(self, loaded):
        body = loaded.post("/api/summary", json={
            "constraints": [{"field": "msisdn", "value": "919876500002"}],
        }).json()
        assert body["total_records"] == 1
        assert body["date_range"]["from"] == "2024-01-01T10:05:00Z"

    def test_timeline(self, loaded):
        body = loaded.post("/api/timeline", json={"bucket": "5min"}).json()
        assert body["total"] == 2
        assert [b["count"] for b in body["buckets"]] == [1, 1]

    def test_timeline_bad_bucket(self, loaded):
        assert loaded.post("/api/timeline", json={"bucket": "never"}).status_code == 400

    def test_graph(self, loaded):
        body = loaded.post("/api/graph", json={}).json()
        assert {n["id"] for n in body["nodes"]} == {
            "msisdn:919876500001", "msisdn:919876500002", "ip:10.0.0.5",
        }
        assert sorted(e["weight"] for e in body["edges"]) == [1, 1]

    def test_top(self, loaded):
        body = loaded.post("/api/top", json={"field": "src_ip", "limit": 3}).json()
        assert body["values"] == [{"value": "10.0.0.5", "count": 2}]

    def test_export(self, loaded):
        r = loaded.post("/api/export", json={})
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("application/vnd.openxmlformats")
        assert r.content[:2] == b"PK"
        assert "scenario_export.xlsx" in r.headers["content-disposition"]

    def test_report(self, loaded):
        body = loaded.post("/api/report", json={
            "constraints": [{"field": "source_ip", "value": "10.0.0.5"}],
        }).json()
        assert body["summary"]["total_records"] == 2
        assert body["bucket_width"] == "1h"
        assert body["graph"] == {"nodes": 3, "edges": 2}
        assert body["filter"] == "source_ip = 10.0.0.5"
