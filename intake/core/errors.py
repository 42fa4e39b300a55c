"""
Error taxonomy for the intake engine.

Expected bad input never raises: validators and the state machine report it
through `OutcomeKind`. Exceptions are reserved for delivery failures inside the
submission pipeline, refused events and infrastructure trouble.
"""
from enum import Enum


class OutcomeKind(str, Enum):
    STARTED = "started"
    ADVANCED = "advanced"
    VALIDATION_FAILURE = "validation_failure"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    CANCELLED = "cancelled"
    SUBMITTED = "submitted"
    SUBMISSION_FAILED = "submission_failed"
    BLOCKED_USER = "blocked_user"
    BUSY = "busy"
    INTERNAL_FAULT = "internal_fault"
    HELP = "help"
    STATUS = "status"
    IGNORED = "ignored"


class IntakeError(Exception):
    pass


class TransportFailure(IntakeError):
    """Timeout, connection error or 5xx from the sink. Retryable."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class RejectionFailure(IntakeError):
    """4xx or explicit rejection by the sink, or a record that fails the contract. Terminal."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class BlockedUser(IntakeError):
    def __init__(self, user_id: str, reason: str, remaining_minutes: int):
        super().__init__(f"user {user_id} blocked for {remaining_minutes} more minutes: {reason}")
        self.user_id = user_id
        self.reason = reason
        self.remaining_minutes = remaining_minutes


class LockNotAcquired(IntakeError, RuntimeError):
    pass


class UserBusy(LockNotAcquired):
    """Too many events of this user are already waiting for the lock."""
