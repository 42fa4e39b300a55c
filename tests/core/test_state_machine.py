import pytest

from intake.core.errors import OutcomeKind
from intake.core.forms import default_forms
from intake.core.state_machine import ConversationMachine
from intake.store.models import IDLE, SUBMITTING, Session, SubmissionResult


@pytest.fixture
def machine():
    return ConversationMachine(default_forms())


@pytest.fixture
def session():
    return Session(userId="u1")


def _fill(machine, session, *values):
    results = []
    for val in values:
        results.append(machine.step(session, "text", val))
    return results


def test_start_enters_first_field(machine, session):
    res = machine.step(session, "command", "/start")
    assert res.kind == OutcomeKind.STARTED
    assert res.action == "start"
    assert session.state == "awaiting_name"
    assert session.formKind == "job_application"
    assert session.fields == {}


def test_complaint_command_starts_complaint_flow(machine, session):
    machine.step(session, "command", "/complaint")
    assert session.formKind == "complaint"
    assert session.state == "awaiting_name"


def test_bot_suffixed_command_is_understood(machine, session):
    machine.step(session, "text", "/start@IntakeBot")
    assert session.state == "awaiting_name"


def test_valid_name_advances_and_resets_attempts(machine, session):
    machine.step(session, "command", "/start")
    machine.step(session, "text", "123")
    assert session.attemptCount == 1
    res = machine.step(session, "text", "Ivan Petrenko")
    assert res.kind == OutcomeKind.ADVANCED
    assert session.attemptCount == 0
    assert session.state == "awaiting_phone"
    assert session.fields == {"name": "Ivan Petrenko"}


def test_reprompt_shows_attempt_counter(machine, session):
    machine.step(session, "command", "/start")
    res = machine.step(session, "text", "x")
    assert res.kind == OutcomeKind.VALIDATION_FAILURE
    assert res.action == "validation_failed"
    assert session.state == "awaiting_name"
    assert "Attempt 1 of 3." in res.prompts[0].text


def test_third_invalid_name_exhausts_attempts(machine, session):
    machine.step(session, "command", "/start")
    r1, r2, r3 = _fill(machine, session, "1", "2", "3")
    assert r1.kind == OutcomeKind.VALIDATION_FAILURE
    assert r2.kind == OutcomeKind.VALIDATION_FAILURE
    assert r3.kind == OutcomeKind.ATTEMPTS_EXHAUSTED
    assert "Too many attempts" in r3.prompts[0].text
    assert session.state == IDLE
    assert session.fields == {}
    assert session.attemptCount == 0


def test_attempts_are_per_field(machine, session):
    machine.step(session, "command", "/start")
    _fill(machine, session, "1", "2", "Ivan Petrenko", "bad", "bad")
    assert session.state == "awaiting_phone"
    assert session.attemptCount == 2


def test_cancel_from_phone_clears_fields(machine, session):
    machine.step(session, "command", "/start")
    machine.step(session, "text", "Ivan Petrenko")
    assert session.state == "awaiting_phone"
    res = machine.step(session, "text", "/cancel")
    assert res.kind == OutcomeKind.CANCELLED
    assert res.previous_state == "awaiting_phone"
    assert session.state == IDLE
    assert session.fields == {}


@pytest.mark.parametrize("token", ["cancel", "CANCEL", "❌ Cancel", "/cancel"])
def test_cancel_tokens_take_precedence(machine, session, token):
    machine.step(session, "command", "/start")
    res = machine.step(session, "text", token)
    assert res.kind == OutcomeKind.CANCELLED
    assert session.attemptCount == 0


def test_phone_is_normalized_when_stored(machine, session):
    machine.step(session, "command", "/start")
    _fill(machine, session, "Ivan Petrenko", "050 123 45 67")
    assert session.fields["phone"] == "+380501234567"
    assert session.state == "awaiting_email"


def test_contact_event_accepted_at_phone_step(machine, session):
    machine.step(session, "command", "/start")
    machine.step(session, "text", "Ivan Petrenko")
    res = machine.step(session, "contact", "380501234567")
    assert res.kind == OutcomeKind.ADVANCED
    assert session.fields["phone"] == "+380501234567"


def test_contact_event_ignored_elsewhere(machine, session):
    machine.step(session, "command", "/start")
    res = machine.step(session, "contact", "380501234567")
    assert res.kind == OutcomeKind.IGNORED
    assert session.state == "awaiting_name"
    assert session.attemptCount == 0


def test_full_application_reaches_submitting(machine, session):
    machine.step(session, "command", "/start")
    results = _fill(machine, session, "Ivan Petrenko", "0501234567", "Ivan.P@Example.com", "Warehouse manager", "skip")
    last = results[-1]
    assert last.submit is True
    assert last.action == "submit_attempt"
    assert session.state == SUBMITTING
    assert list(session.fields) == ["name", "phone", "email", "vacancy"]
    assert session.fields["email"] == "ivan.p@example.com"


def test_optional_message_is_stored_when_given(machine, session):
    machine.step(session, "command", "/start")
    _fill(machine, session, "Ivan Petrenko", "0501234567", "ivan@example.com", "Driver", "I have 5 years of experience.")
    assert session.fields["message"] == "I have 5 years of experience."


def test_skip_only_applies_to_skippable_fields(machine, session):
    machine.step(session, "command", "/complaint")
    _fill(machine, session, "Ivan Petrenko", "0501234567")
    res = machine.step(session, "text", "skip")
    assert res.kind == OutcomeKind.VALIDATION_FAILURE
    assert session.state == "awaiting_message"


def test_restart_discards_progress(machine, session):
    machine.step(session, "command", "/start")
    _fill(machine, session, "Ivan Petrenko", "0501234567")
    res = machine.step(session, "command", "/complaint")
    assert res.kind == OutcomeKind.STARTED
    assert session.formKind == "complaint"
    assert session.fields == {}
    assert session.state == "awaiting_name"


def test_idle_text_gets_hint(machine, session):
    res = machine.step(session, "text", "hello")
    assert res.kind == OutcomeKind.IGNORED
    assert session.state == IDLE


def test_stale_submitting_state_recovers_to_idle(machine, session):
    session.formKind = "complaint"
    session.state = SUBMITTING
    session.fields = {"name": "Ivan Petrenko"}
    res = machine.step(session, "text", "hello?")
    assert res.kind == OutcomeKind.IGNORED
    assert session.state == IDLE
    assert session.fields == {}


def test_help_and_status_do_not_change_state(machine, session):
    machine.step(session, "command", "/start")
    machine.step(session, "text", "Ivan Petrenko")
    assert machine.step(session, "command", "/help").kind == OutcomeKind.HELP
    status = machine.step(session, "command", "/status")
    assert status.kind == OutcomeKind.STATUS
    assert "Step 2 of 5: phone" in status.prompts[0].text
    assert session.state == "awaiting_phone"


def _submitting(machine, session, form="/start"):
    machine.step(session, "command", form)
    if form == "/start":
        _fill(machine, session, "Ivan Petrenko", "0501234567", "ivan@example.com", "Driver", "skip")
    else:
        _fill(machine, session, "Ivan Petrenko", "0501234567", "Nobody answers the hotline at all.")
    assert session.state == SUBMITTING


def test_build_record_snapshots_fields(machine, session):
    _submitting(machine, session)
    record = machine.build_record(session, 1234)
    assert record.userId == "u1"
    assert record.formKind == "job_application"
    assert record.submittedAt == 1234
    session.fields["name"] = "changed"
    assert record.fields["name"] == "Ivan Petrenko"


def test_build_record_requires_submitting(machine, session):
    with pytest.raises(ValueError):
        machine.build_record(session, 1)


def test_application_success_resets_and_shows_id(machine, session):
    _submitting(machine, session)
    res = machine.finish_submission(session, SubmissionResult(success=True, externalId="42"))
    assert res.kind == OutcomeKind.SUBMITTED
    assert "42" in res.prompts[0].text
    assert session.state == IDLE and session.fields == {}


def test_application_failure_is_surfaced(machine, session):
    _submitting(machine, session)
    res = machine.finish_submission(session, SubmissionResult(success=False, error="boom"))
    assert res.kind == OutcomeKind.SUBMISSION_FAILED
    assert res.masked is False
    assert "went wrong" in res.prompts[0].text
    assert session.state == IDLE


def test_complaint_failure_is_masked_as_success(machine, session):
    _submitting(machine, session, form="/complaint")
    res = machine.finish_submission(session, SubmissionResult(success=False, error="boom"))
    assert res.kind == OutcomeKind.SUBMISSION_FAILED
    assert res.masked is True
    assert "received" in res.prompts[0].text
    assert session.state == IDLE and session.fields == {}


def test_markup_only_complaint_is_rejected(machine, session):
    machine.step(session, "command", "/complaint")
    _fill(machine, session, "Ivan Petrenko", "0501234567")

    res = machine.step(session, "text", "<><><><><>")

    assert res.kind == OutcomeKind.VALIDATION_FAILURE
    assert session.state == "awaiting_message"
    assert "message" not in session.fields


def test_value_is_rejected_when_sanitizing_shrinks_it_too_far(machine, session):
    machine.step(session, "command", "/start")
    _fill(machine, session, "Ivan Petrenko", "0501234567", "ivan@example.com")

    res = machine.step(session, "text", "<a>")

    assert res.kind == OutcomeKind.VALIDATION_FAILURE
    assert session.state == "awaiting_vacancy"


def test_contact_at_wrong_step_explains_itself(machine, session):
    machine.step(session, "command", "/start")
    res = machine.step(session, "contact", "380501234567")
    assert res.prompts[0].text.startswith("A contact is only needed at the phone step.")
    assert "full name" in res.prompts[0].text
