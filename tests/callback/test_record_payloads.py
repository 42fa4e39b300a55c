from intake.callback.payloads import build_record_payload, validate_record_payload
from intake.store.models import SubmissionRecord


def _record(kind="job_application", **fields):
    base = {"name": "Ivan Petrenko", "phone": "+380501234567"}
    base.update(fields)
    return SubmissionRecord(userId="u1", formKind=kind, fields=base, submittedAt=1_700_000_000_000)


def test_build_payload_shape():
    payload = build_record_payload(_record(email="ivan@example.com"))
    assert payload == {
        "formKind": "job_application",
        "userId": "u1",
        "submittedAt": "2023-11-14T22:13:20.000Z",
        "fields": {"name": "Ivan Petrenko", "phone": "+380501234567", "email": "ivan@example.com"},
    }


def test_valid_payload():
    assert validate_record_payload(build_record_payload(_record())) == (True, "ok")


def test_complaint_requires_message():
    ok, reason = validate_record_payload(build_record_payload(_record("complaint")))
    assert not ok and reason == "missing:fields.message"
    ok, _ = validate_record_payload(build_record_payload(_record("complaint", message="Nobody answers the hotline.")))
    assert ok


def test_non_canonical_phone_rejected():
    ok, reason = validate_record_payload(build_record_payload(_record(phone="0501234567")))
    assert not ok and reason == "format:fields.phone"


def test_bad_email_rejected():
    ok, reason = validate_record_payload(build_record_payload(_record(email="not-an-email")))
    assert not ok and reason == "format:fields.email"


def test_unknown_form_kind_rejected():
    ok, reason = validate_record_payload(build_record_payload(_record("none")))
    assert not ok and reason.startswith("unknown:formKind")


def test_missing_user_rejected():
    payload = build_record_payload(_record())
    payload["userId"] = ""
    assert validate_record_payload(payload) == (False, "missing:userId")
