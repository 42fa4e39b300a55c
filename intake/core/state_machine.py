"""
Conversation state machine
--------------------------
States: idle, one awaiting_<field> per field of the active form, submitting.

`step()` is pure with respect to I/O: it mutates the given Session and returns
a StepResult describing what to say. When a step enters `submitting` the caller
runs the submission pipeline and then calls `finish_submission()`, which always
folds the session back to idle.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from intake.core import messages as m
from intake.core.errors import OutcomeKind
from intake.core.forms import FieldStep, FormDefinition
from intake.store.models import IDLE, SUBMITTING, FormKind, Session, SubmissionRecord, SubmissionResult

EVENT_TEXT = "text"
EVENT_CONTACT = "contact"
EVENT_COMMAND = "command"

# Risk-engine action recorded for each outcome
OUTCOME_ACTIONS = {
    OutcomeKind.STARTED: "start",
    OutcomeKind.ADVANCED: "field_accepted",
    OutcomeKind.VALIDATION_FAILURE: "validation_failed",
    OutcomeKind.ATTEMPTS_EXHAUSTED: "validation_failed",
    OutcomeKind.CANCELLED: "cancel",
    OutcomeKind.HELP: "help",
    OutcomeKind.STATUS: "status",
    OutcomeKind.IGNORED: "message",
}

_FORM_TITLES = {
    FormKind.JOB_APPLICATION.value: "job application",
    FormKind.COMPLAINT.value: "complaint",
}


@dataclass(frozen=True)
class Prompt:
    text: str
    # Keyboard rows; None removes any keyboard shown before
    choices: Optional[List[List[str]]] = None


@dataclass
class StepResult:
    kind: OutcomeKind
    prompts: List[Prompt] = field(default_factory=list)
    # True when this step entered `submitting`
    submit: bool = False
    previous_state: str = IDLE
    field_name: Optional[str] = None
    # Delivery failed but the user was shown success
    masked: bool = False

    @property
    def action(self) -> str:
        if self.submit:
            return "submit_attempt"
        return OUTCOME_ACTIONS.get(self.kind, "message")


def _keyboard(step: Optional[FieldStep]) -> List[List[str]]:
    if step is None:
        return [[m.CANCEL_BUTTON]]
    if step.kind == "phone":
        return [[m.SHARE_CONTACT_BUTTON], [m.CANCEL_BUTTON]]
    if step.skippable:
        return [[m.SKIP_BUTTON], [m.CANCEL_BUTTON]]
    return [[m.CANCEL_BUTTON]]


def field_prompt(step: FieldStep) -> Prompt:
    return Prompt(m.FIELD_PROMPTS.get(step.kind, m.FIELD_PROMPTS["text"]), _keyboard(step))


def _command_of(kind: str, text: str) -> Optional[str]:
    if kind != EVENT_COMMAND and not text.startswith("/"):
        return None
    word = text.split()[0].lower() if text else ""
    # "/start@SomeBot" -> "/start"
    return word.split("@", 1)[0] or None


def is_cancel(text: str) -> bool:
    return text.strip().lower() in m.CANCEL_TOKENS


class ConversationMachine:
    def __init__(self, forms: Dict[str, FormDefinition]):
        self.forms = dict(forms)
        self._start_commands = {
            m.START_COMMAND: FormKind.JOB_APPLICATION.value,
            m.COMPLAINT_COMMAND: FormKind.COMPLAINT.value,
        }

    def form_for(self, session: Session) -> Optional[FormDefinition]:
        return self.forms.get(session.formKind)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def step(self, session: Session, kind: str, payload: Optional[str]) -> StepResult:
        text = (payload or "").strip()
        prev = session.state

        # Cancel wins over everything, including validation
        if kind != EVENT_CONTACT and is_cancel(text):
            return self.cancel(session, m.CANCELLED, OutcomeKind.CANCELLED)

        command = _command_of(kind, text) if kind != EVENT_CONTACT else None
        if command in self._start_commands:
            return self.start(session, self._start_commands[command])
        if command == m.HELP_COMMAND:
            return StepResult(OutcomeKind.HELP, [Prompt(m.HELP_TEXT)], previous_state=prev)
        if command == m.STATUS_COMMAND:
            return StepResult(OutcomeKind.STATUS, [Prompt(self.describe(session))], previous_state=prev)

        form = self.form_for(session)
        step = form.step_for(session.state) if form else None
        if step is None:
            # idle, or a state left over from an interrupted submission
            if not session.is_idle:
                session.reset()
            return StepResult(OutcomeKind.IGNORED, [Prompt(m.IDLE_HINT)], previous_state=prev)

        if kind == EVENT_CONTACT and step.kind != "phone":
            hint = Prompt(f"{m.CONTACT_NOT_EXPECTED}\n\n{field_prompt(step).text}", _keyboard(step))
            return StepResult(OutcomeKind.IGNORED, [hint], previous_state=prev, field_name=step.name)

        if step.skippable and text.lower() in m.SKIP_TOKENS:
            return self._advance(session, form, step, None)

        if not step.validator(text):
            return self._reject(session, step)

        value = step.normalizer(text)
        # Normalizing may strip the value below what the field accepts (markup-only text)
        if not step.validator(value):
            return self._reject(session, step)

        return self._advance(session, form, step, value)

    def start(self, session: Session, form_kind: str) -> StepResult:
        """Begin a form. Any form in progress is discarded."""
        prev = session.state
        form = self.forms[form_kind]
        session.reset()
        session.formKind = form.kind.value
        session.state = form.first_state
        first = form.steps[0]
        welcome = m.WELCOME.get(form.kind.value, m.FIELD_PROMPTS["name"])
        return StepResult(
            OutcomeKind.STARTED,
            [Prompt(welcome, _keyboard(first))],
            previous_state=prev,
            field_name=first.name,
        )

    def cancel(self, session: Session, text: str, kind: OutcomeKind) -> StepResult:
        prev = session.state
        field_name = None
        form = self.form_for(session)
        if form and form.step_for(prev):
            field_name = form.step_for(prev).name
        session.reset()
        return StepResult(
            kind,
            [Prompt(f"{text}\n\n{m.RESTART_HINT}")],
            previous_state=prev,
            field_name=field_name,
        )

    def _reject(self, session: Session, step: FieldStep) -> StepResult:
        session.attemptCount += 1
        if session.attemptCount >= step.max_attempts:
            return self.cancel(session, m.ATTEMPTS_EXHAUSTED, OutcomeKind.ATTEMPTS_EXHAUSTED)

        error = m.FIELD_ERRORS.get(step.kind, m.FIELD_ERRORS["text"])
        counter = m.ATTEMPT_COUNTER.format(attempt=session.attemptCount, max_attempts=step.max_attempts)
        return StepResult(
            OutcomeKind.VALIDATION_FAILURE,
            [Prompt(f"{error}\n{counter}", _keyboard(step))],
            previous_state=session.state,
            field_name=step.name,
        )

    def _advance(self, session: Session, form: FormDefinition, step: FieldStep, value: Optional[str]) -> StepResult:
        prev = session.state
        if value is not None:
            session.fields[step.name] = value
        session.attemptCount = 0
        session.state = form.next_state(prev)

        if session.state == SUBMITTING:
            return StepResult(
                OutcomeKind.ADVANCED,
                [Prompt(m.SUBMITTING)],
                submit=True,
                previous_state=prev,
                field_name=step.name,
            )

        nxt = form.step_for(session.state)
        return StepResult(OutcomeKind.ADVANCED, [field_prompt(nxt)], previous_state=prev, field_name=step.name)

    # ------------------------------------------------------------------
    # Submission hand-off
    # ------------------------------------------------------------------
    def build_record(self, session: Session, submitted_at: int) -> SubmissionRecord:
        if session.state != SUBMITTING:
            raise ValueError(f"session {session.userId} is not submitting (state={session.state})")
        return SubmissionRecord(
            userId=session.userId,
            formKind=session.formKind,
            fields=dict(session.fields),
            submittedAt=int(submitted_at),
        )

    def finish_submission(self, session: Session, result: SubmissionResult) -> StepResult:
        """Pick the closing message and fold the session back to idle, whatever the outcome."""
        form = self.form_for(session)
        masked = False
        if result.success:
            kind = OutcomeKind.SUBMITTED
            text = self._success_text(session.formKind, result.externalId)
        elif form is not None and form.mask_delivery_failure:
            kind = OutcomeKind.SUBMISSION_FAILED
            masked = True
            text = self._success_text(session.formKind, None)
        else:
            kind = OutcomeKind.SUBMISSION_FAILED
            text = m.SUBMISSION_FAILED

        prev = session.state
        session.reset()
        return StepResult(kind, [Prompt(text)], previous_state=prev, masked=masked)

    @staticmethod
    def _success_text(form_kind: str, external_id: Optional[str]) -> str:
        if form_kind == FormKind.COMPLAINT.value:
            return m.COMPLAINT_SUCCESS
        return m.APPLICATION_SUCCESS.format(external_id=external_id or "-")

    def describe(self, session: Session) -> str:
        form = self.form_for(session)
        step = form.step_for(session.state) if form else None
        if step is None:
            return m.STATUS_IDLE
        position = [s.name for s in form.steps].index(step.name) + 1
        return m.STATUS_IN_PROGRESS.format(
            form=_FORM_TITLES.get(session.formKind, session.formKind),
            step=position,
            total=len(form.steps),
            field=step.name,
            filled=", ".join(session.fields.keys()) or "-",
        )
