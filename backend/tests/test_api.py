import json
import uuid

from visaforge.core.config import settings
from visaforge.db.models import Task, VisaApp
from visaforge.services import entitlement_service

from conftest import H1B_INPUTS, make_token


# ---------------------------------------------------------------------------
# Auth and envelope
# ---------------------------------------------------------------------------

def test_requires_bearer_token(client):
    res = client.get("/api/v1/cases/latest")
    assert res.status_code == 401
    assert res.json() == {"error": "Not authenticated"}


def test_expired_token(client, user):
    token = make_token(user.id, expires_in=-60)
    res = client.get("/api/v1/cases/latest", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401
    assert res.json() == {"error": "Token expired"}


def test_first_request_mirrors_the_auth_user(client, db):
    new_id = uuid.uuid4()
    token = make_token(new_id, email="fresh@example.com")

    res = client.get("/api/v1/cases/latest", headers={"Authorization": f"Bearer {token}"})

    assert res.status_code == 200
    assert res.json() == {"data": None}


def test_correlation_id_is_echoed(client):
    res = client.get("/api/v1/health", headers={"X-Correlation-ID": "req-42"})
    assert res.status_code == 200
    assert res.headers["X-Correlation-ID"] == "req-42"
    assert res.json()["status"] == "healthy"


def test_unrouted_paths_use_the_error_envelope(client):
    missing = client.get("/api/v1/no-such-route")
    assert missing.status_code == 404
    assert missing.json() == {"error": "Not Found"}

    wrong_method = client.delete("/api/v1/health")
    assert wrong_method.status_code == 405
    assert wrong_method.json() == {"error": "Method Not Allowed"}


def test_unknown_case_is_404(client, auth_headers):
    res = client.get(f"/api/v1/cases/{uuid.uuid4()}", headers=auth_headers)
    assert res.status_code == 404
    assert "not found" in res.json()["error"]


# ---------------------------------------------------------------------------
# Quiz, case and evidence flow
# ---------------------------------------------------------------------------

def test_quiz_opens_case_and_seeds_tasks_once(client, db, auth_headers):
    body = {"visa_type": "H-1B", "answers": {"q1": "Yes", "q2": "Strong", "q3": "Yes"}}

    first = client.post("/api/v1/cases/quiz", json=body, headers=auth_headers).json()["data"]
    second = client.post("/api/v1/cases/quiz", json=body, headers=auth_headers).json()["data"]

    assert first["eligible"] is True
    assert first["visa_type"] == "H1B"
    assert second["visa_app_id"] == first["visa_app_id"]
    app_id = uuid.UUID(first["visa_app_id"])
    assert db.query(Task).filter(Task.visa_app_id == app_id).count() == 8

    tasks = client.get(f"/api/v1/tasks/{app_id}", headers=auth_headers).json()["data"]
    assert "Generate USCIS packet" in [t["title"] for t in tasks]


def test_case_summary_reports_progress(client, auth_headers, h1b_case):
    for evidence_id in ("lca", "soc-wage"):
        res = client.put(
            f"/api/v1/evidence/{h1b_case.id}/{evidence_id}", json={"complete": True}, headers=auth_headers
        )
        assert res.json()["saved"] is True

    data = client.get(f"/api/v1/cases/{h1b_case.id}", headers=auth_headers).json()["data"]

    assert data["progress"] == 40
    assert data["generation_ready"] is False
    assert data["case"]["progress"] == 40
    assert data["config"]["visaType"] == "H1B"


def test_evidence_upload_and_listing(client, auth_headers, h1b_case, storage):
    res = client.post(
        f"/api/v1/evidence/{h1b_case.id}/lca/files",
        files={"file": ("lca.pdf", b"%PDF-1.4 test", "application/pdf")},
        headers=auth_headers,
    )
    assert res.status_code == 200
    assert res.json()["data"]["name"] == "lca.pdf"

    listed = client.get(f"/api/v1/evidence/{h1b_case.id}", headers=auth_headers).json()["data"]
    assert listed[0]["evidence_id"] == "lca"
    assert listed[0]["files"][0]["url"].startswith("https://storage.test/evidence/")


def test_save_inputs(client, auth_headers, h1b_case):
    res = client.patch(
        f"/api/v1/cases/{h1b_case.id}/inputs",
        json={"inputs": {"employerName": "Acme"}, "affidavit_draft": "Draft"},
        headers=auth_headers,
    )
    assert res.status_code == 200
    assert res.json()["data"]["meta"]["inputs"] == {"employerName": "Acme"}


def test_task_status_patch(client, auth_headers, h1b_case):
    client.post("/api/v1/tasks/seed", json={"visa_app_id": str(h1b_case.id)}, headers=auth_headers)
    task = client.get(f"/api/v1/tasks/{h1b_case.id}", headers=auth_headers).json()["data"][0]

    done = client.patch(f"/api/v1/tasks/item/{task['id']}", json={"status": "done"}, headers=auth_headers)
    reopened = client.patch(f"/api/v1/tasks/item/{task['id']}", json={"status": "todo"}, headers=auth_headers)

    assert done.json()["data"]["status"] == "done"
    assert reopened.json()["data"]["status"] == "todo"


# ---------------------------------------------------------------------------
# Packet
# ---------------------------------------------------------------------------

def test_generate_packet_endpoint(client, auth_headers, h1b_case, complete_h1b_evidence, storage):
    payload = {"visa_app_id": str(h1b_case.id), "visa_type": "H1B", "inputs": H1B_INPUTS, "affidavit": ""}

    blocked = client.post("/api/v1/packets/generate", json=payload, headers=auth_headers)
    assert blocked.status_code == 400
    assert "Required evidence incomplete" in blocked.json()["error"]

    complete_h1b_evidence()
    res = client.post("/api/v1/packets/generate", json=payload, headers=auth_headers)
    assert res.status_code == 200
    assert str(h1b_case.id) in res.json()["url"]
    assert len(storage.puts) == 1


def test_generate_packet_missing_inputs_message(client, auth_headers, h1b_case, complete_h1b_evidence):
    complete_h1b_evidence()
    payload = {"visa_app_id": str(h1b_case.id), "visa_type": "H1B", "inputs": {}, "affidavit": ""}

    res = client.post("/api/v1/packets/generate", json=payload, headers=auth_headers)

    assert res.status_code == 400
    assert res.json()["error"] == (
        "Missing required inputs: employerName, socCode, wageLevel, petitionerName, beneficiaryName"
    )


# ---------------------------------------------------------------------------
# Interview, assistant
# ---------------------------------------------------------------------------

def test_interview_feedback_uses_a_credit(client, db, auth_headers, h1b_case, llm):
    entitlement_service.apply_purchase(db, h1b_case.id, entitlement_service.resolve_purchase({"tier": "complete"}))
    body = {"transcript": "We met at university.", "visa_app_id": str(h1b_case.id), "promptContext": "K-1"}

    first = client.post("/api/v1/interview/feedback", json=body, headers=auth_headers).json()
    second = client.post("/api/v1/interview/feedback", json=body, headers=auth_headers).json()

    assert first["feedback"] == llm.reply
    assert first["usedTranscript"] is True
    assert first["creditsRemaining"] == 0
    assert second["creditsRemaining"] == 0
    assert llm.calls[0]["temperature"] == 0.3
    assert "Context: K-1" in llm.calls[0]["messages"][1]["content"]


def test_interview_feedback_transcribes_audio(client, auth_headers, llm):
    res = client.post(
        "/api/v1/interview/feedback",
        files={"audio": ("answer.webm", b"\x1aE\xdf\xa3", "audio/webm")},
        data={"answers": json.dumps(["First answer"])},
        headers=auth_headers,
    )

    assert res.status_code == 200
    assert res.json()["usedTranscript"] is True
    assert res.json()["creditsRemaining"] is None
    assert llm.transcribed == [("answer.webm", b"\x1aE\xdf\xa3")]


def test_interview_feedback_needs_input(client, auth_headers):
    res = client.post("/api/v1/interview/feedback", json={}, headers=auth_headers)
    assert res.status_code == 400
    assert "No transcript or answers" in res.json()["error"]


def test_affidavit_draft_is_saved_to_case(client, db, auth_headers, h1b_case, llm):
    res = client.post(
        "/api/v1/assistant/affidavit",
        json={"visa_app_id": str(h1b_case.id), "inputs": {"petitionerName": "Sam"}, "notes": "Met in 2019"},
        headers=auth_headers,
    )

    assert res.status_code == 200
    assert res.json() == {"draft": llm.reply}
    db.refresh(h1b_case)
    assert h1b_case.meta["affidavitDraft"] == llm.reply
    assert "Filing path: H-1B Specialty Occupation" in llm.calls[0]["messages"][1]["content"]


def test_advisor_chat(client, auth_headers, llm):
    res = client.post(
        "/api/v1/assistant/chat",
        json={"messages": [{"role": "user", "content": "Tips for the interview?"}]},
        headers=auth_headers,
    )
    assert res.status_code == 200
    assert res.json() == {"reply": llm.reply, "sources": []}


def test_advisor_chat_rejects_empty_history(client, auth_headers):
    res = client.post("/api/v1/assistant/chat", json={"messages": []}, headers=auth_headers)
    assert res.status_code == 422
    assert "error" in res.json()


# ---------------------------------------------------------------------------
# Cron, contact
# ---------------------------------------------------------------------------

def test_cron_endpoint_requires_configured_token(client, monkeypatch):
    monkeypatch.setattr(settings, "CRON_TOKEN", "")
    res = client.post("/api/v1/reminders/run-due")
    assert res.status_code == 503


def test_cron_endpoint_rejects_wrong_token(client):
    res = client.post("/api/v1/reminders/run-due", headers={"X-Cron-Token": "nope"})
    assert res.status_code == 401


def test_cron_endpoint_runs_sweep(client):
    res = client.post("/api/v1/reminders/run-due", headers={"X-Cron-Token": settings.CRON_TOKEN})
    assert res.status_code == 200
    assert res.json() == {"sent": 0, "skipped": 0, "failed": 0}


def test_contact_routes_by_topic(client, sender):
    res = client.post(
        "/api/v1/contact",
        json={"name": "Dana", "email": "dana@example.com", "topic": "press", "message": "Interview request"},
    )

    assert res.status_code == 200
    assert res.json() == {"ok": True}
    message = sender.sent[0]
    assert message["to"] == "press@popimmigration.com"
    assert message["subject"] == "[Pop Contact] press - Dana"
    assert message["reply_to"] == "dana@example.com"


def test_contact_requires_email_and_message(client, sender):
    res = client.post("/api/v1/contact", json={"name": "Dana", "message": "Hello"})
    assert res.status_code == 400
    assert res.json() == {"error": "Email and message are required."}
    assert sender.sent == []


def test_contact_delivery_failure(client, sender):
    sender.fail_for.add("contact@popimmigration.com")
    res = client.post("/api/v1/contact", json={"email": "dana@example.com", "message": "Hi"})
    assert res.status_code == 502
    assert res.json()["error"].startswith("Failed to send email")


def test_case_row_is_owned(client, db, other_user, h1b_case):
    headers = {"Authorization": f"Bearer {make_token(other_user.id, other_user.email)}"}
    res = client.get(f"/api/v1/cases/{h1b_case.id}", headers=headers)
    assert res.status_code == 404
    assert db.query(VisaApp).count() == 1
