"""
HTTP API tests (FastAPI TestClient, SQLite store, fake providers).
"""

import json

import pytest
from fastapi.testclient import TestClient

from leadcrm import config
from leadcrm.api.app import create_app
from leadcrm.api.deps import Services
from leadcrm.api.routes_pipeline import clamp_cap
from leadcrm.models import Candidate
from tests.conftest import FakeSearchProvider, RecordingSupervisor


@pytest.fixture
def supervisor():
    return RecordingSupervisor()


@pytest.fixture
def provider():
    return FakeSearchProvider([[Candidate(name="Anna Berg", company="Kanzlei Berg", website="https://kanzlei-berg.de")]])


@pytest.fixture
def services(store, orchestrator, supervisor, catalog, provider):
    return Services(
        store=store,
        orchestrator=orchestrator,
        supervisor=supervisor,
        catalog=catalog,
        search_provider=provider,
        bulk_token="secret",
        sleep=lambda s: None,
    )


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as c:
        yield c


def ndjson(resp):
    return [json.loads(line) for line in resp.text.splitlines() if line.strip()]


@pytest.mark.integration
class TestSearchEndpoint:

    def test_missing_segment(self, client):
        resp = client.post("/api/automations/search", json={})

        assert resp.status_code == 400
        assert resp.json() == {"error": "segment required"}

    def test_unknown_segment(self, client, provider):
        resp = client.post("/api/automations/search", json={"segment": "astronauten"})

        assert resp.status_code == 400
        assert "astronauten" in resp.json()["error"]
        assert provider.prompts == []

    def test_stream_with_aliases(self, client, supervisor, store):
        resp = client.post("/api/automations/search", json={"vertical": "coaches_berater", "maxLeads": 1})

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/x-ndjson")
        assert resp.headers["cache-control"] == "no-cache"
        events = ndjson(resp)
        assert events == [
            {
                "type": "profile",
                "name": "Anna Berg",
                "company": "Kanzlei Berg",
                "website": "https://kanzlei-berg.de",
                "imported": True,
                "duplicate": False,
            },
            {"type": "summary", "total": 1, "imported_count": 1, "duplicate_count": 0, "error_count": 0},
        ]
        stored = store.search_contacts("anna")[0]
        assert supervisor.spawned == [(stored["id"], "Anna Berg")]

    def test_cap_clamped(self):
        assert clamp_cap(None) == config.DISCOVERY_DEFAULT_CAP
        assert clamp_cap(0) == 1
        assert clamp_cap(10_000) == config.DISCOVERY_MAX_CAP


@pytest.mark.integration
class TestAutomationEndpoints:

    def test_validation(self, client):
        assert client.post("/api/automations/run", json={"automation": "email"}).json() == {
            "error": "automation and leadIds required"
        }
        resp = client.post("/api/automations/run", json={"automation": "fax", "leadIds": ["x"]})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid automation type"}

    def test_email_stream(self, client, store, fake_email_writer):
        c = store.insert_contact({"name": "Anna Berg"})

        resp = client.post("/api/automations/run", json={"automation": "email", "leadIds": [c["id"], 42]})

        assert resp.status_code == 200
        lines = ndjson(resp)
        assert lines[0]["success"] is True
        assert lines[0]["emailGenerated"] is True
        assert lines[1] == {"leadId": "42", "leadName": None, "success": False, "error": "Lead not found"}
        assert len(fake_email_writer.calls) == 1


@pytest.mark.integration
class TestEnrichEndpoint:

    def test_missing_lead_id(self, client):
        resp = client.post("/api/enrich", json={})

        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_unknown_lead(self, client):
        resp = client.post("/api/enrich", json={"leadId": "nope"})

        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "Lead not found"}

    def test_enrich_returns_result_and_draft(self, client, store):
        c = store.insert_contact({"name": "Anna Berg", "company": "Kanzlei Berg"})

        resp = client.post("/api/enrich", json={"leadId": c["id"]})

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["enrichment"]["status"] == "complete"
        assert body["email"]["subject"] == "Hallo Anna Berg"
        assert store.get_contact(c["id"])["email"] == "anna@kanzlei-berg.de"

    def test_pipeline_failure_is_500(self, client, store, orchestrator, monkeypatch):
        c = store.insert_contact({"name": "Anna Berg"})

        def broken(contact_id, force=False):
            raise RuntimeError("db down")

        monkeypatch.setattr(orchestrator, "run_pipeline", broken)

        resp = client.post("/api/enrich", json={"leadId": c["id"]})

        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "db down"}


@pytest.mark.integration
class TestBulkEndpoint:

    def test_wrong_token(self, client):
        resp = client.post("/api/run-enrichment-all", json={"token": "guess"})

        assert resp.status_code == 401
        assert resp.json() == {"error": "unauthorized"}

    def test_sweep(self, client, store):
        store.insert_contact({"name": "Anna Berg", "website": "https://kanzlei-berg.de"})

        resp = client.post("/api/run-enrichment-all", json={"token": "secret"})

        assert resp.status_code == 200
        assert resp.json()["total"] == 1
        assert resp.json()["email_rate"] == "100%"


@pytest.mark.integration
class TestContactEndpoints:

    def test_crud_and_stage(self, client):
        created = client.post("/api/contacts", json={"name": "Eva Klein", "company": "Klein Coaching"})
        assert created.status_code == 201
        cid = created.json()["id"]
        assert created.json()["source"] == "manual"

        patched = client.patch(f"/api/contacts/{cid}", json={"email": "eva@klein-coaching.de"})
        assert patched.json()["email"] == "eva@klein-coaching.de"
        assert patched.json()["company"] == "Klein Coaching"

        staged = client.post(f"/api/contacts/{cid}/stage", json={"stage": "contacted"})
        assert staged.json()["stage"] == "contacted"

        kinds = [a["kind"] for a in client.get(f"/api/contacts/{cid}/activities").json()["activities"]]
        assert kinds == ["stage_change", "note"]

        assert client.delete(f"/api/contacts/{cid}").json() == {"success": True}
        assert client.get(f"/api/contacts/{cid}").status_code == 404

    def test_invalid_stage_and_missing_name(self, client):
        assert client.post("/api/contacts", json={"company": "X"}).status_code == 400
        bad = client.post("/api/contacts", json={"name": "A", "stage": "maybe"})
        assert bad.status_code == 400
        assert "error" in bad.json()

    def test_patch_unknown_contact(self, client):
        resp = client.patch("/api/contacts/missing", json={"company": "X"})

        assert resp.status_code == 404
        assert resp.json() == {"error": "Lead not found"}

    def test_manual_activity_and_edit(self, client, store):
        c = store.insert_contact({"name": "Anna"})

        logged = client.post(f"/api/contacts/{c['id']}/activities", json={"kind": "call", "subject": "Erstgespräch"})
        assert logged.status_code == 201
        assert store.get_contact(c["id"])["last_contacted_at"] is not None

        locked = client.patch(f"/api/activities/{logged.json()['id']}", json={"body": "Rückruf Montag"})
        assert locked.status_code == 409
        assert locked.json() == {"error": "call activities cannot be edited"}

        draft = store.insert_activity(c["id"], "email_draft", subject="Alt", body="Text")
        edited = client.patch(f"/api/activities/{draft['id']}", json={"body": "Neuer Text"})
        assert edited.status_code == 200
        assert edited.json()["id"] == draft["id"]
        assert edited.json()["body"] == "Neuer Text"
        assert edited.json()["subject"] == "Alt"

        pipeline_kind = client.post(f"/api/contacts/{c['id']}/activities", json={"kind": "enrichment"})
        assert pipeline_kind.status_code == 400

    def test_enrichment_activity_is_read_only(self, client, store):
        c = store.insert_contact({"name": "Anna Berg", "company": "Kanzlei Berg"})
        client.post("/api/enrich", json={"leadId": c["id"]})
        act = store.latest_activity(c["id"], "enrichment")

        resp = client.patch(f"/api/activities/{act['id']}", json={"subject": "tampered"})

        assert resp.status_code == 409
        after = store.latest_activity(c["id"], "enrichment")
        assert after["subject"] == "Lead enriched (complete)"
        assert after["updated_at"] is None

    def test_follow_ups(self, client, store):
        c = store.insert_contact({"name": "Anna", "stage": "contacted"})
        client.post(f"/api/contacts/{c['id']}/follow-up", json={"next_follow_up_at": "2020-01-01T09:00:00+00:00"})

        overdue = client.get("/api/follow-ups", params={"window": "overdue"}).json()
        assert [x["name"] for x in overdue["contacts"]] == ["Anna"]
        assert client.get("/api/follow-ups", params={"window": "someday"}).status_code == 400


@pytest.mark.integration
def test_health(client):
    body = client.get("/health").json()

    assert body["status"] == "ok"
    assert body["service"] == "leadcrm"
