from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

IDLE = "idle"
SUBMITTING = "submitting"


class FormKind(str, Enum):
    JOB_APPLICATION = "job_application"
    COMPLAINT = "complaint"
    NONE = "none"


@dataclass
class Session:
    # Core identifiers
    userId: str = ""
    formKind: str = FormKind.NONE.value

    # idle / awaiting_<field> / submitting
    state: str = IDLE
    # Collected values in collection order (dicts keep insertion order)
    fields: Dict[str, str] = field(default_factory=dict)
    # Failed tries on the field currently awaited
    attemptCount: int = 0

    # Epoch milliseconds
    createdAt: int = 0
    lastActivityAt: int = 0

    def __post_init__(self):
        # Tolerate enum members passed in by callers
        if isinstance(self.formKind, FormKind):
            self.formKind = self.formKind.value
        if self.state == IDLE and self.fields:
            self.fields = {}

    @property
    def is_idle(self) -> bool:
        return self.state == IDLE

    def reset(self) -> None:
        """Back to idle with nothing collected. Identity and timestamps survive."""
        self.state = IDLE
        self.formKind = FormKind.NONE.value
        self.fields = {}
        self.attemptCount = 0


@dataclass
class RiskProfile:
    userId: str = ""
    actionCounts: Dict[str, int] = field(default_factory=dict)
    firstSeenAt: int = 0
    lastSeenAt: int = 0

    blocked: bool = False
    blockReason: Optional[str] = None
    blockedAt: Optional[int] = None
    blockedUntil: Optional[int] = None

    @property
    def total_actions(self) -> int:
        return sum(int(v or 0) for v in self.actionCounts.values())

    def count(self, action: str) -> int:
        return int(self.actionCounts.get(action, 0) or 0)


@dataclass(frozen=True)
class SubmissionRecord:
    userId: str
    formKind: str
    fields: Dict[str, str]
    submittedAt: int


@dataclass(frozen=True)
class SubmissionResult:
    success: bool
    externalId: Optional[str] = None
    error: Optional[str] = None
