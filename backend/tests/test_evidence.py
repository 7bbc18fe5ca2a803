import pytest

from visaforge.db.models import EvidenceUpload, Task, TaskStatus, VisaApp
from visaforge.services import evidence_service, visa_config
from visaforge.utils.exceptions import PersistenceError

from conftest import FakeStorage

H1B = visa_config.get_config("H1B")
MARRIAGE = visa_config.get_config("Marriage-Green-Card")


# ---------------------------------------------------------------------------
# Progress / readiness rules
# ---------------------------------------------------------------------------

def test_progress_is_share_of_required_items_scaled_to_80():
    uploads = {
        "lca": {"complete": True},
        "soc-wage": {"complete": True},
        "degree-eval": {"complete": False},
        "client-letter": {"complete": True},  # recommended, ignored
    }
    assert evidence_service.compute_progress(H1B, uploads) == 40
    assert evidence_service.compute_progress(H1B, {}) == 0
    assert evidence_service.compute_progress(H1B, {k: {"complete": True} for k in H1B.generation_gates.required_evidence_ids}) == 80


def test_progress_rounds_to_nearest_integer():
    uploads = {
        "ids-passports": {"complete": True},
        "marriage-certificate": {"complete": True},
        "proof-bona-fide": {"complete": True},
    }
    assert evidence_service.compute_progress(MARRIAGE, uploads) == 60

    k1 = visa_config.get_config("K1-Fiance")
    assert evidence_service.compute_progress(k1, {"meeting-proof": {"complete": True}}) == 27


def test_only_literal_true_counts_as_complete():
    uploads = {"lca": {"complete": "true"}, "soc-wage": {"complete": 1}}
    assert evidence_service.compute_progress(H1B, uploads) == 0


def test_missing_evidence_keeps_gate_order():
    uploads = {"soc-wage": {"complete": True}}
    assert evidence_service.missing_evidence(H1B, uploads) == ["lca", "degree-eval", "employer-letter"]
    assert not evidence_service.is_generation_ready(H1B, uploads)

    ready = {k: {"complete": True} for k in H1B.generation_gates.required_evidence_ids}
    assert evidence_service.is_generation_ready(H1B, ready)


def test_rules_accept_orm_rows(db, user, h1b_case, complete_h1b_evidence):
    complete_h1b_evidence(("lca", "soc-wage"))
    rows = evidence_service.load_uploads(db, user.id, h1b_case.id)
    assert evidence_service.compute_progress(H1B, rows) == 40


# ---------------------------------------------------------------------------
# Upsert
# ---------------------------------------------------------------------------

def test_record_evidence_upserts_one_row(db, user, h1b_case):
    evidence_service.record_evidence(db, user.id, h1b_case.id, "lca", {"complete": True})
    row = evidence_service.record_evidence(db, user.id, h1b_case.id, "lca", {"notes": "certified copy"})

    rows = db.query(EvidenceUpload).filter_by(visa_app_id=h1b_case.id, evidence_id="lca").all()
    assert len(rows) == 1
    assert row.complete is True
    assert row.notes == "certified copy"


def test_record_evidence_refreshes_case_progress(db, user, h1b_case):
    evidence_service.record_evidence(db, user.id, h1b_case.id, "lca", {"complete": True})
    evidence_service.record_evidence(db, user.id, h1b_case.id, "soc-wage", {"complete": True})

    app = db.get(VisaApp, h1b_case.id)
    assert app.progress == 40


def test_non_english_answer_creates_one_translation_task(db, user, h1b_case):
    for _ in range(3):
        evidence_service.record_evidence(
            db, user.id, h1b_case.id, "degree-eval", {"in_english": False}, visa_type="H1B"
        )

    tasks = db.query(Task).filter_by(visa_app_id=h1b_case.id).all()
    assert len(tasks) == 1
    assert tasks[0].title == "Order translation: Degree Transcripts/Evaluations"
    assert tasks[0].status == TaskStatus.waiting
    assert tasks[0].evidence_id == "degree-eval"


@pytest.mark.parametrize(
    "evidence_id, update",
    [
        ("lca", {"in_english": False}),  # item does not need translation
        ("degree-eval", {"in_english": True}),
        ("degree-eval", {"notes": "language not chosen yet"}),
    ],
)
def test_no_translation_task_otherwise(db, user, h1b_case, evidence_id, update):
    evidence_service.record_evidence(db, user.id, h1b_case.id, evidence_id, update)
    assert db.query(Task).filter_by(visa_app_id=h1b_case.id).count() == 0


def test_record_evidence_swallows_store_failures(db, user, h1b_case, monkeypatch):
    def _broken(*args, **kwargs):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(evidence_service, "get_upload", _broken)
    assert evidence_service.record_evidence(db, user.id, h1b_case.id, "lca", {"complete": True}) is None
    assert db.query(EvidenceUpload).count() == 0


def test_translation_task_failure_does_not_lose_the_upload(db, user, h1b_case, monkeypatch):
    def _broken(*args, **kwargs):
        raise RuntimeError("tasks table locked")

    monkeypatch.setattr(evidence_service.task_service, "ensure_translation_task", _broken)
    row = evidence_service.record_evidence(db, user.id, h1b_case.id, "degree-eval", {"in_english": False})

    assert row is not None
    assert db.query(EvidenceUpload).filter_by(evidence_id="degree-eval").one().in_english is False


# ---------------------------------------------------------------------------
# Files and signed links
# ---------------------------------------------------------------------------

def test_attach_evidence_file(db, user, h1b_case, storage):
    entry = evidence_service.attach_evidence_file(
        db, user.id, h1b_case.id, "lca", "LCA approval (final).pdf", b"%PDF-1.4", "application/pdf",
        storage=storage,
    )

    assert entry["path"].startswith(f"{user.id}/{h1b_case.id}/lca/")
    assert entry["url"].startswith("https://storage.test/evidence/")
    assert storage.puts[0]["bucket"] == "evidence"

    row = evidence_service.get_upload(db, user.id, h1b_case.id, "lca")
    assert row.files == [entry]


def test_attach_evidence_file_fails_loudly_when_storage_is_down(db, user, h1b_case):
    with pytest.raises(PersistenceError) as exc:
        evidence_service.attach_evidence_file(
            db, user.id, h1b_case.id, "lca", "lca.pdf", b"x", storage=FakeStorage(fail_uploads=True)
        )
    assert "Upload failed" in exc.value.detail
    assert evidence_service.get_upload(db, user.id, h1b_case.id, "lca") is None


def test_listing_signs_only_files_without_a_link(db, user, h1b_case, storage):
    db.add(EvidenceUpload(
        user_id=user.id,
        visa_app_id=h1b_case.id,
        evidence_id="lca",
        files=[
            {"name": "a.pdf", "path": "p/a.pdf", "url": ""},
            {"name": "b.pdf", "path": "p/b.pdf", "url": "https://old.example/b"},
        ],
        complete=False,
    ))
    db.commit()

    rows = evidence_service.list_evidence_uploads(db, user.id, h1b_case.id, storage)
    files = rows[0].files
    assert files[0]["url"].startswith("https://storage.test/evidence/p/a.pdf")
    assert files[1]["url"] == "https://old.example/b"

    rows = evidence_service.refresh_evidence_signed_urls(db, user.id, h1b_case.id, storage)
    assert rows[0].files[1]["url"].startswith("https://storage.test/evidence/p/b.pdf")
