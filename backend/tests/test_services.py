import asyncio
import json

import httpx
import pytest

from visaforge.api.v1 import deps
from visaforge.core.config import settings
from visaforge.main import app as fastapi_app
from visaforge.services import background_jobs
from visaforge.services.contact_service import inbox_for
from visaforge.services.email_service import EmailService
from visaforge.services.llm_service import LLMService
from visaforge.services.translation_service import TranslationService
from visaforge.utils.exceptions import UpstreamError, ValidationError


# ---------------------------------------------------------------------------
# Translation vendor pass-through
# ---------------------------------------------------------------------------

@pytest.fixture
def vendor_key(monkeypatch):
    monkeypatch.setattr(settings, "TRANSLATION_API_KEY", "jk_test")


def test_translation_order_forwards_file(vendor_key):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = request.content
        return httpx.Response(202, json={"orderId": "ord_1", "status": "queued"})

    service = TranslationService(transport=httpx.MockTransport(handler))
    status, body = asyncio.run(service.order("acta.pdf", b"%PDF-1.4", "application/pdf", None))

    assert status == 202
    assert body == {"orderId": "ord_1", "status": "queued"}
    assert seen["auth"] == "Bearer jk_test"
    assert b'name="targetLang"' in seen["body"]
    assert b"\r\n\r\nen\r\n" in seen["body"]
    assert b'filename="acta.pdf"' in seen["body"]


def test_translation_passes_vendor_errors_through(vendor_key):
    service = TranslationService(transport=httpx.MockTransport(lambda r: httpx.Response(422, text="bad language")))
    status, body = asyncio.run(service.order("a.pdf", b"x", None, "xx"))
    assert status == 422
    assert body == {"error": "bad language"}


def test_translation_requires_key_and_file(monkeypatch, vendor_key):
    service = TranslationService(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
    with pytest.raises(ValidationError):
        asyncio.run(service.order(None, None))

    monkeypatch.setattr(settings, "TRANSLATION_API_KEY", "")
    with pytest.raises(UpstreamError) as exc:
        asyncio.run(service.order("a.pdf", b"x"))
    assert exc.value.status_code == 500


def test_translation_vendor_unreachable(vendor_key):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    service = TranslationService(transport=httpx.MockTransport(handler))
    with pytest.raises(UpstreamError) as exc:
        asyncio.run(service.order("a.pdf", b"x"))
    assert exc.value.status_code == 502


def test_translation_endpoint(client, auth_headers, vendor_key):
    transport = httpx.MockTransport(lambda r: httpx.Response(201, json={"orderId": "ord_9"}))
    fastapi_app.dependency_overrides[deps.get_translator] = lambda: TranslationService(transport=transport)

    res = client.post(
        "/api/v1/translate/order",
        files={"file": ("birth.pdf", b"%PDF", "application/pdf")},
        data={"targetLang": "en"},
        headers=auth_headers,
    )

    assert res.status_code == 201
    assert res.json() == {"orderId": "ord_9"}


def test_translation_endpoint_without_file(client, auth_headers, vendor_key):
    res = client.post("/api/v1/translate/order", data={"targetLang": "en"}, headers=auth_headers)
    assert res.status_code == 400
    assert res.json() == {"error": "Missing file"}


# ---------------------------------------------------------------------------
# Email, contact routing, LLM, scheduler
# ---------------------------------------------------------------------------

def test_dev_email_provider_only_logs():
    result = EmailService(provider="dev").send(["a@example.com", "b@example.com"], "Hi", "Body")
    assert result == {"provider": "dev", "target": "a@example.com,b@example.com"}


def test_unknown_email_provider():
    with pytest.raises(ValueError):
        EmailService(provider="carrier-pigeon").send("a@example.com", "Hi", "Body")


def test_contact_inboxes():
    assert inbox_for("Support") == "support@popimmigration.com"
    assert inbox_for("unknown") == "contact@popimmigration.com"
    assert inbox_for(None) == "contact@popimmigration.com"


def test_llm_without_key_is_a_server_error(monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
    with pytest.raises(UpstreamError) as exc:
        LLMService().complete([{"role": "user", "content": "hi"}])
    assert exc.value.status_code == 500


def test_llm_reads_first_choice():
    class _Completions:
        def create(self, **kwargs):
            self.kwargs = kwargs
            message = type("M", (), {"content": "  answer  "})()
            choice = type("C", (), {"message": message})()
            return type("R", (), {"choices": [choice]})()

    completions = _Completions()
    client = type("Client", (), {"chat": type("Chat", (), {"completions": completions})()})()

    assert LLMService(client=client).complete([{"role": "user", "content": "hi"}], temperature=0.1) == "answer"
    assert completions.kwargs["temperature"] == 0.1
    assert completions.kwargs["model"] == settings.OPENAI_MODEL


def test_scheduler_stays_off_unless_enabled(monkeypatch):
    monkeypatch.setattr(settings, "REMINDERS_ENABLE_SCHEDULED_SWEEP", False)
    background_jobs.start_scheduler()
    assert background_jobs._scheduler is None
    background_jobs.shutdown_scheduler()


def test_reminder_result_is_json_serialisable(db, sender):
    from visaforge.services.reminder_service import run_due_reminders

    assert json.loads(json.dumps(run_due_reminders(db, sender))) == {"sent": 0, "skipped": 0, "failed": 0}
