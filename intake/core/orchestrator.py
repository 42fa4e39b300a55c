import time
from dataclasses import dataclass, field
from typing import List, Optional

from intake.callback.activity import notify_activity
from intake.callback.pipeline import SubmissionPipeline
from intake.core import messages as m
from intake.core.errors import BlockedUser, LockNotAcquired, OutcomeKind
from intake.core.forms import default_forms
from intake.core.risk import RiskEngine
from intake.core.state_machine import ConversationMachine, Prompt, StepResult
from intake.observability.logging import log
import intake.observability.metrics as metrics
from intake.settings import settings
from intake.store.session_repo import SessionStore
from intake.utils.lock import user_lock
from intake.utils.time import now_ms

# Outcomes worth an activity ping to the sink
_NOTIFY_OUTCOMES = {
    OutcomeKind.STARTED: "start",
    OutcomeKind.CANCELLED: "cancelled",
    OutcomeKind.ATTEMPTS_EXHAUSTED: "attempts_exhausted",
}


@dataclass
class EventReply:
    outcome: OutcomeKind
    prompts: List[Prompt] = field(default_factory=list)


class IntakeEngine:
    """
    Entry point for inbound chat events.

    inbound event -> risk gate -> per-user lock -> session -> state machine
    -> (on completion) submission pipeline -> session back to idle -> reply
    """

    def __init__(
        self,
        sessions: Optional[SessionStore] = None,
        risk: Optional[RiskEngine] = None,
        machine: Optional[ConversationMachine] = None,
        pipeline: Optional[SubmissionPipeline] = None,
    ):
        self.sessions = sessions or SessionStore()
        self.risk = risk or RiskEngine(self.sessions.redis)
        self.machine = machine or ConversationMachine(default_forms())
        self.pipeline = pipeline or SubmissionPipeline()

    def handle_event(self, user_id: str, kind: str, payload: Optional[str]) -> EventReply:
        start_time = time.time()
        try:
            reply = self._handle(str(user_id), kind, payload)
        except BlockedUser as e:
            log(event="event_refused_blocked", userId=e.user_id, reason=e.reason, remainingMinutes=e.remaining_minutes)
            reply = EventReply(OutcomeKind.BLOCKED_USER, [Prompt(m.BLOCKED.format(minutes=e.remaining_minutes))])
        except LockNotAcquired as e:
            # Earlier events of this user are still running; nothing was read or changed
            log(event="event_refused_busy", userId=str(user_id), kind=kind, errorType=type(e).__name__, error=str(e)[:200])
            reply = EventReply(OutcomeKind.BUSY, [Prompt(m.BUSY)])
        except Exception as e:
            log(
                event="internal_fault",
                userId=str(user_id),
                kind=kind,
                errorType=type(e).__name__,
                error=str(e)[:500],
            )
            reply = EventReply(OutcomeKind.INTERNAL_FAULT, [Prompt(m.INTERNAL_FAULT)])

        log(
            event="event_processed",
            userId=str(user_id),
            kind=kind,
            outcome=reply.outcome.value,
            total_latency_ms=int((time.time() - start_time) * 1000),
        )
        return reply

    def _gate(self, user_id: str) -> None:
        status = self.risk.check_block(user_id)
        if status.get("blocked"):
            raise BlockedUser(user_id, status.get("reason") or "", int(status.get("remainingMinutes") or 0))

    def _handle(self, user_id: str, kind: str, payload: Optional[str]) -> EventReply:
        self._gate(user_id)

        with user_lock(user_id, r=self.sessions.redis) as lock:
            session = self.sessions.get_or_create(user_id)
            form_kind = session.formKind
            result = self.machine.step(session, kind, payload)
            self.risk.record_action(user_id, result.action)
            self._log_step(user_id, session.formKind, session.state, result)

            prompts = list(result.prompts)
            outcome = result.kind
            if result.submit:
                # Persist `submitting` so an interrupted delivery is visible and recoverable
                self.sessions.save(session)
                final = self._submit(session, lock.refresh)
                prompts.extend(final.prompts)
                outcome = final.kind

            if lock.refresh():
                self.sessions.save(session)
            else:
                # The lease lapsed and a later event may own the session now
                log(event="user_lock_lost", userId=user_id, outcome=outcome.value)

        if result.kind in _NOTIFY_OUTCOMES:
            notice_kind = session.formKind if result.kind == OutcomeKind.STARTED else form_kind
            notify_activity(_NOTIFY_OUTCOMES[result.kind], user_id, {"formKind": notice_kind})

        self._apply_risk_policy(user_id)
        return EventReply(outcome, prompts)

    def _submit(self, session, keepalive) -> StepResult:
        form_kind = session.formKind
        record = self.machine.build_record(session, now_ms())
        sub = self.pipeline.submit(record, keepalive=keepalive)
        final = self.machine.finish_submission(session, sub)

        if final.masked:
            # The user sees success; keep the real outcome visible server-side
            log(event="submission_failure_masked", userId=session.userId, formKind=form_kind, error=sub.error)
            try:
                metrics.increment_masked_failure()
            except Exception as e:
                log(event="metrics_write_failed", metric="increment_masked_failure", error=str(e)[:200])

        log(
            event="submission_finished",
            userId=session.userId,
            formKind=form_kind,
            success=sub.success,
            masked=final.masked,
            externalId=sub.externalId,
        )
        notify_activity("submitted", session.userId, {"formKind": form_kind, "success": sub.success})
        return final

    def _apply_risk_policy(self, user_id: str) -> None:
        check = self.risk.check_suspicious_activity(user_id)
        threshold = int(settings.RISK_AUTO_BLOCK_SCORE or 0)
        if threshold > 0 and int(check.get("riskScore") or 0) >= threshold:
            reason = "auto:" + (",".join(check.get("indicators") or []) or f"score>={threshold}")
            self.risk.block_user(user_id, reason, settings.DEFAULT_BLOCK_MINUTES)

    @staticmethod
    def _log_step(user_id: str, form_kind: str, state: str, result: StepResult) -> None:
        log(
            event="state_transition",
            userId=user_id,
            formKind=form_kind,
            fromState=result.previous_state,
            toState=state,
            outcome=result.kind.value,
            field_name=result.field_name,
            action=result.action,
        )


_engine: Optional[IntakeEngine] = None


def get_engine() -> IntakeEngine:
    global _engine
    if _engine is None:
        _engine = IntakeEngine()
    return _engine


def set_engine(engine: Optional[IntakeEngine]) -> None:
    global _engine
    _engine = engine
