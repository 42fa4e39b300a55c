"""
Form definitions
----------------
A form is a fixed, ordered list of field steps. Each step names the field,
the validator and normalizer it uses, how many failed tries it allows and the
state that follows it. The transition table is built and checked when the
definition is constructed, so an incomplete form fails at import time rather
than in the middle of a conversation.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Dict, Optional, Tuple

from intake.core import validators as v
from intake.settings import settings
from intake.store.models import IDLE, SUBMITTING, FormKind

AWAITING_PREFIX = "awaiting_"


def awaiting(field_name: str) -> str:
    return f"{AWAITING_PREFIX}{field_name}"


def field_of(state: str) -> Optional[str]:
    if state and state.startswith(AWAITING_PREFIX):
        return state[len(AWAITING_PREFIX):]
    return None


@dataclass(frozen=True)
class FieldStep:
    name: str
    validator: Callable[[str], bool]
    normalizer: Callable[[str], str]
    max_attempts: int = 3
    # Filled in by FormDefinition when left empty: next field, or submitting
    successor: str = ""
    # A skip token stores nothing and moves on without validation
    skippable: bool = False
    # Which prompt/hint texts to use for this field
    kind: str = "text"

    @property
    def state(self) -> str:
        return awaiting(self.name)


@dataclass(frozen=True)
class FormDefinition:
    kind: FormKind
    steps: Tuple[FieldStep, ...]
    # Show delivery failures to the user as success (sensitive reports)
    mask_delivery_failure: bool = False
    transitions: Dict[str, str] = field(default_factory=dict, init=False, compare=False)

    def __post_init__(self):
        if not self.steps:
            raise ValueError(f"form {self.kind.value} has no fields")

        names = [s.name for s in self.steps]
        if len(set(names)) != len(names):
            raise ValueError(f"form {self.kind.value} repeats a field name")

        resolved = []
        for idx, step in enumerate(self.steps):
            if not callable(step.validator) or not callable(step.normalizer):
                raise ValueError(f"field {step.name} lacks a validator or normalizer")
            if step.max_attempts < 1:
                raise ValueError(f"field {step.name} must allow at least one attempt")
            default_next = self.steps[idx + 1].state if idx + 1 < len(self.steps) else SUBMITTING
            resolved.append(step if step.successor else _with_successor(step, default_next))
        object.__setattr__(self, "steps", tuple(resolved))

        table = {s.state: s.successor for s in self.steps}
        known = set(table) | {SUBMITTING}
        for state, nxt in table.items():
            if nxt not in known:
                raise ValueError(f"{state} -> {nxt}: unknown successor in form {self.kind.value}")
            if nxt == state:
                raise ValueError(f"{state} loops onto itself in form {self.kind.value}")
        if SUBMITTING not in table.values():
            raise ValueError(f"form {self.kind.value} never reaches {SUBMITTING}")
        _check_reachable(self.steps[0].state, table, self.kind)

        self.transitions.update(table)

    @property
    def first_state(self) -> str:
        return self.steps[0].state

    @property
    def states(self) -> Tuple[str, ...]:
        return (IDLE,) + tuple(s.state for s in self.steps) + (SUBMITTING,)

    def step_for(self, state: str) -> Optional[FieldStep]:
        for s in self.steps:
            if s.state == state:
                return s
        return None

    def next_state(self, state: str) -> str:
        return self.transitions[state]


def _with_successor(step: FieldStep, successor: str) -> FieldStep:
    return FieldStep(
        name=step.name,
        validator=step.validator,
        normalizer=step.normalizer,
        max_attempts=step.max_attempts,
        successor=successor,
        skippable=step.skippable,
        kind=step.kind,
    )


def _check_reachable(start: str, table: Dict[str, str], kind: FormKind) -> None:
    seen = set()
    cur = start
    while cur != SUBMITTING:
        if cur in seen:
            raise ValueError(f"form {kind.value} has a cycle at {cur}")
        seen.add(cur)
        cur = table[cur]
    unreachable = set(table) - seen
    if unreachable:
        raise ValueError(f"form {kind.value} has unreachable fields: {sorted(unreachable)}")


def _name_step(max_attempts: int) -> FieldStep:
    return FieldStep("name", v.validate_name, v.normalize_name, max_attempts, kind="name")


def _phone_step(max_attempts: int) -> FieldStep:
    return FieldStep("phone", v.validate_phone, v.normalize_phone, max_attempts, kind="phone")


def build_application_form(max_attempts: int = 3) -> FormDefinition:
    return FormDefinition(
        kind=FormKind.JOB_APPLICATION,
        steps=(
            _name_step(max_attempts),
            _phone_step(max_attempts),
            FieldStep("email", v.validate_email, v.normalize_email, max_attempts, kind="email"),
            FieldStep(
                "vacancy",
                partial(v.validate_text, max_length=200, min_length=2),
                partial(v.sanitize_text, max_length=200),
                max_attempts,
                kind="vacancy",
            ),
            FieldStep(
                "message",
                partial(v.validate_text, max_length=1000),
                partial(v.sanitize_text, max_length=1000),
                max_attempts,
                skippable=True,
                kind="message",
            ),
        ),
        mask_delivery_failure=False,
    )


def build_complaint_form(max_attempts: int = 3, mask_delivery_failure: bool = True) -> FormDefinition:
    return FormDefinition(
        kind=FormKind.COMPLAINT,
        steps=(
            _name_step(max_attempts),
            _phone_step(max_attempts),
            FieldStep(
                "message",
                partial(v.validate_text, max_length=2000, min_length=10),
                partial(v.sanitize_text, max_length=2000),
                max_attempts,
                kind="complaint",
            ),
        ),
        mask_delivery_failure=mask_delivery_failure,
    )


def default_forms() -> Dict[str, FormDefinition]:
    return {
        FormKind.JOB_APPLICATION.value: build_application_form(settings.FIELD_MAX_ATTEMPTS),
        FormKind.COMPLAINT.value: build_complaint_form(
            settings.FIELD_MAX_ATTEMPTS, mask_delivery_failure=settings.MASK_COMPLAINT_FAILURES
        ),
    }
