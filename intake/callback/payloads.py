"""
Record payload contract
-----------------------
Wire shape POSTed to the sink:
  {formKind, userId, submittedAt (ISO-8601), fields: {name: value, ...}}

A record that fails `validate_record_payload` is never sent; the pipeline
treats it as a terminal rejection.
"""
from __future__ import annotations

import re
from typing import Any, Dict, Tuple

from intake.core.validators import validate_email
from intake.store.models import FormKind, SubmissionRecord
from intake.utils.time import iso_from_ms

REQUIRED_FIELDS = {
    FormKind.JOB_APPLICATION.value: ("name", "phone"),
    FormKind.COMPLAINT.value: ("name", "phone", "message"),
}

_CANONICAL_PHONE = re.compile(r"^\+380\d{9}$")


def build_record_payload(record: SubmissionRecord) -> Dict[str, Any]:
    return {
        "formKind": record.formKind,
        "userId": str(record.userId),
        "submittedAt": iso_from_ms(record.submittedAt),
        "fields": {k: v for k, v in record.fields.items() if v is not None},
    }


def validate_record_payload(payload: Dict[str, Any]) -> Tuple[bool, str]:
    """Returns (ok, reason)."""
    if not isinstance(payload, dict):
        return False, "payload_not_dict"
    if not str(payload.get("userId") or "").strip():
        return False, "missing:userId"

    kind = payload.get("formKind")
    if kind not in REQUIRED_FIELDS:
        return False, f"unknown:formKind:{kind}"

    fields = payload.get("fields")
    if not isinstance(fields, dict):
        return False, "type:fields"
    for name in REQUIRED_FIELDS[kind]:
        if not str(fields.get(name) or "").strip():
            return False, f"missing:fields.{name}"

    if not _CANONICAL_PHONE.match(str(fields.get("phone"))):
        return False, "format:fields.phone"
    if fields.get("email") and not validate_email(fields["email"]):
        return False, "format:fields.email"
    return True, "ok"
