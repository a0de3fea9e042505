"""HTTP API tests — health, audit, templates, overrides, signatures."""

from __future__ import annotations

import inspect

from sigaudit.errors import DirectoryClientError, MailboxClientError
from sigaudit.routers import overrides, templates
from sigaudit.schemas.profile import MailboxSignature


# ─── Health ──────────────────────────────────────────────────────────────────

class TestHealth:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["app_name"] == "Signature Audit"
        assert data["directory_configured"] is False

    def test_ready_checks_record_store(self, client):
        data = client.get("/health/ready").json()
        services = {s["service"]: s["status"] for s in data["services"]}
        assert services["record_store"] == "healthy"
        assert services["directory"] == "not_configured"
        assert data["status"] == "healthy"

    def test_live(self, client):
        assert client.get("/health/live").json() == {"status": "alive"}


# ─── Audit ───────────────────────────────────────────────────────────────────

class TestAuditEndpoints:

    def test_run(self, client, mailbox, ada):
        mailbox.signatures[ada.mail] = MailboxSignature(html="<p>legacy</p>")
        resp = client.post("/api/audit/run")
        assert resp.status_code == 200
        data = resp.json()
        statuses = {r["user"]["id"]: r["status"] for r in data["results"]}
        assert statuses == {"u-ada": "Match", "u-grace": "Incomplete"}
        summary = data["summary"]
        assert summary["total_users"] == 2
        assert summary["compliant_users"] == 1
        assert summary["profile_complete_count"] == 1
        assert summary["profile_compliance_percentage"] == 50.0

    def test_run_empty_directory(self, client, directory):
        directory.users = {}
        summary = client.post("/api/audit/run").json()["summary"]
        assert summary["total_users"] == 0
        assert summary["profile_compliance_percentage"] == 0.0

    def test_run_cancelled_on_shutdown(self, client, app):
        app.state.cancel_event.set()
        assert client.post("/api/audit/run").status_code == 503

    def test_directory_failure_is_bad_gateway(self, client, directory):
        async def _fail():
            raise DirectoryClientError("Failed to list users: 503")

        directory.list_users = _fail
        resp = client.post("/api/audit/run")
        assert resp.status_code == 502
        assert "Failed to list users" in resp.json()["detail"]

    def test_single_user(self, client):
        data = client.get("/api/audit/users/u-ada").json()
        assert data["status"] == "ReadyToDeploy"
        assert data["expected_html"].startswith("<table")

    def test_single_user_by_email(self, client):
        assert client.get("/api/audit/users/grace@example.org").json()["user"]["id"] == "u-grace"

    def test_unknown_user_is_error_result(self, client):
        data = client.get("/api/audit/users/ghost").json()
        assert data["status"] == "Error"
        assert data["user"]["display_name"] == "Unknown User"


# ─── Templates ───────────────────────────────────────────────────────────────

_DESIGN = {
    "name": "Emergency Dept",
    "primary_color": "#C00000",
    "fields": [
        {"field_id": "name", "display_label": "Name", "sort_order": 1, "bold": True},
        {"field_id": "email", "display_label": "Email", "sort_order": 2, "prefix": "E: "},
    ],
    "disclaimer_text": "Confidential",
}


class TestTemplateEndpoints:

    def test_default(self, client):
        data = client.get("/api/templates/default").json()
        assert data["is_default"] is True
        assert len(data["fields"]) == 8

    def test_put_creates_and_reconciles(self, client):
        resp = client.put("/api/templates/ed-1", json=_DESIGN)
        assert resp.status_code == 200
        assert resp.json()["is_default"] is False
        loaded = client.get("/api/templates/ed-1").json()
        assert loaded["primary_color"] == "#C00000"
        field_ids = {f["field_id"].lower() for f in loaded["fields"]}
        assert {"name", "email", "dectphone", "workingdays"} <= field_ids

    def test_list_ordered_by_name(self, client):
        client.get("/api/templates/default")
        client.put("/api/templates/ed-1", json=_DESIGN)
        names = [t["name"] for t in client.get("/api/templates").json()]
        assert names == ["Default Template", "Emergency Dept"]

    def test_put_validation(self, client):
        assert client.put("/api/templates/x", json={"name": ""}).status_code == 422

    def test_get_unknown(self, client):
        assert client.get("/api/templates/missing").status_code == 404

    def test_delete_default_conflict(self, client):
        default_id = client.get("/api/templates/default").json()["id"]
        resp = client.delete(f"/api/templates/{default_id}")
        assert resp.status_code == 409
        assert client.get(f"/api/templates/{default_id}").status_code == 200

    def test_delete_saved_design(self, client):
        client.put("/api/templates/ed-1", json=_DESIGN)
        assert client.delete("/api/templates/ed-1").status_code == 204
        assert client.delete("/api/templates/ed-1").status_code == 404

    def test_set_default(self, client):
        old_id = client.get("/api/templates/default").json()["id"]
        client.put("/api/templates/ed-1", json=_DESIGN)
        assert client.post("/api/templates/ed-1/default").json()["is_default"] is True
        assert client.get("/api/templates/default").json()["id"] == "ed-1"
        assert client.delete(f"/api/templates/{old_id}").status_code == 204

    def test_set_default_unknown(self, client):
        assert client.post("/api/templates/missing/default").status_code == 404


class TestStoreRoutesRunInThreadpool:

    def test_template_and_override_handlers_are_sync(self):
        for router in (templates.router, overrides.router):
            for route in router.routes:
                assert not inspect.iscoroutinefunction(route.endpoint), route.path


# ─── Overrides ───────────────────────────────────────────────────────────────

class TestOverrideEndpoints:

    def test_put_and_get(self, client):
        resp = client.put(
            "/api/overrides/u-ada",
            json={"pronouns": "  she / her ", "override_job_title": "Lead", "hidden_fields": ["MobilePhone"]},
        )
        assert resp.status_code == 200
        data = client.get("/api/overrides/u-ada").json()
        assert data["pronouns"] == "She/Her"
        assert data["override_job_title"] == "Lead"
        assert data["hidden_fields"] == ["mobilephone"]

    def test_get_missing(self, client):
        assert client.get("/api/overrides/u-ada").status_code == 404

    def test_list(self, client):
        client.put("/api/overrides/u-grace", json={"working_days": "Mon-Wed"})
        client.put("/api/overrides/u-ada", json={})
        assert [r["user_id"] for r in client.get("/api/overrides").json()] == ["u-ada", "u-grace"]

    def test_delete(self, client):
        client.put("/api/overrides/u-ada", json={"pronouns": "she/her"})
        assert client.delete("/api/overrides/u-ada").status_code == 204
        assert client.delete("/api/overrides/u-ada").status_code == 404

    def test_overrides_reach_audit(self, client):
        client.put("/api/overrides/u-ada", json={"override_job_title": "Nurse Unit Manager"})
        data = client.get("/api/audit/users/u-ada").json()
        assert "Nurse Unit Manager" in data["expected_html"]


# ─── Signatures ──────────────────────────────────────────────────────────────

class TestSignatureEndpoints:

    def test_preview(self, client):
        data = client.post("/api/signatures/u-ada/preview").json()
        assert "Ada Lovelace" in data["html"]
        assert data["text"].startswith("Ada Lovelace")

    def test_preview_unknown_user(self, client):
        assert client.post("/api/signatures/ghost/preview").status_code == 404

    def test_preview_unknown_template(self, client):
        assert client.post("/api/signatures/u-ada/preview", params={"template_id": "nope"}).status_code == 404

    def test_deploy_history_rollback(self, client, mailbox):
        first = client.post("/api/signatures/u-ada/deploy", json={"deployed_by": "admin@example.org"}).json()
        assert first["success"] is True
        entry_id = first["history_entry"]["id"]

        client.put("/api/overrides/u-ada", json={"pronouns": "she/her"})
        client.post("/api/signatures/u-ada/deploy")
        assert "(She/Her)" in mailbox.writes[-1][1]

        rolled = client.post(f"/api/signatures/u-ada/rollback/{entry_id}").json()
        assert rolled["success"] is True
        assert "(She/Her)" not in mailbox.writes[-1][1]

        history = client.get("/api/signatures/u-ada/history").json()
        assert len(history) == 3
        assert history[0]["note"].endswith(f"({entry_id})")
        assert history[-1]["deployed_by"] == "admin@example.org"

    def test_history_capped(self, client, settings):
        for _ in range(settings.history_limit + 2):
            client.post("/api/signatures/u-ada/deploy")
        assert len(client.get("/api/signatures/u-ada/history").json()) == settings.history_limit

    def test_history_and_rollback_by_email(self, client):
        entry_id = client.post("/api/signatures/ada@example.org/deploy").json()["history_entry"]["id"]

        history = client.get("/api/signatures/ada@example.org/history").json()
        assert [e["id"] for e in history] == [entry_id]

        rolled = client.post(f"/api/signatures/ada@example.org/rollback/{entry_id}")
        assert rolled.status_code == 200
        assert rolled.json()["user_id"] == "u-ada"

    def test_history_unknown_user(self, client):
        assert client.get("/api/signatures/ghost/history").status_code == 404

    def test_rollback_unknown_entry(self, client):
        assert client.post("/api/signatures/u-ada/rollback/missing").status_code == 404

    def test_deploy_mailbox_unreachable(self, client, mailbox, ada):
        mailbox.errors[ada.mail] = MailboxClientError("connection refused")
        assert client.post("/api/signatures/u-ada/deploy").status_code == 502

    def test_compare_missing(self, client):
        data = client.post("/api/signatures/compare", json={"expected_html": "<p>x</p>"}).json()
        assert data["status"] == "Missing"
        assert data["discrepancies"][0]["field"] == "Signature"

    def test_compare_outdated(self, client):
        data = client.post(
            "/api/signatures/compare",
            json={"expected_html": "<p>Ada</p>", "observed_html": "<p>Ada</p><p>Old line</p>"},
        ).json()
        assert data["status"] == "Outdated"

    def test_compare_inconsistent(self, client):
        data = client.post(
            "/api/signatures/compare",
            json={"expected_html": "<p>ada@example.org</p>", "observed_html": "<p>ada@old.example.org</p>"},
        ).json()
        assert data["status"] == "Inconsistent"

    def test_compare_match(self, client):
        data = client.post(
            "/api/signatures/compare",
            json={"expected_html": "<p>Ada</p>", "observed_html": "  <P>ada</P> "},
        ).json()
        assert data["status"] == "Match"
        assert data["discrepancies"] == []


# ─── Users ───────────────────────────────────────────────────────────────────

class TestUserEndpoints:

    def test_list(self, client):
        resp = client.get("/api/users")
        assert resp.status_code == 200
        assert [u["id"] for u in resp.json()] == ["u-ada", "u-grace"]

    def test_get_by_email(self, client):
        assert client.get("/api/users/grace@example.org").json()["id"] == "u-grace"

    def test_get_unknown(self, client):
        assert client.get("/api/users/ghost").status_code == 404

    def test_patch_updates_directory(self, client, directory):
        resp = client.patch("/api/users/u-grace", json={"job_title": "Charge Nurse", "mobile_phone": ""})
        assert resp.status_code == 200
        assert resp.json()["job_title"] == "Charge Nurse"
        assert directory.updates == [("u-grace", {"job_title": "Charge Nurse"})]

    def test_patch_completes_profile_for_audit(self, client):
        assert client.get("/api/audit/users/u-grace").json()["status"] == "Incomplete"
        client.patch("/api/users/u-grace", json={"job_title": "Charge Nurse"})
        assert client.get("/api/audit/users/u-grace").json()["status"] != "Incomplete"

    def test_patch_unknown_user(self, client):
        assert client.patch("/api/users/ghost", json={"job_title": "x"}).status_code == 404

    def test_patch_directory_failure(self, client, directory):
        directory.update_error = DirectoryClientError("Failed to update user u-ada: 403 Forbidden")
        resp = client.patch("/api/users/u-ada", json={"department": "Research"})
        assert resp.status_code == 502
        assert "403" in resp.json()["detail"]

    def test_patch_validation(self, client):
        assert client.patch("/api/users/u-ada", json={"job_title": "x" * 200}).status_code == 422
