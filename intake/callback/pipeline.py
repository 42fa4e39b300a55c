"""
Submission pipeline
-------------------
Delivers one SubmissionRecord to the external sink:
  - transport failures (timeout, connection error, 5xx) are retried up to
    `max_attempts` total attempts, waiting attempt_index * base seconds
    between attempts (2s, 4s with the defaults);
  - rejections (4xx, success=false, invalid record) end the loop at once.

The loop runs inside the caller's thread, so the waits only hold up the user
whose record is being delivered. Callers only ever see a SubmissionResult.
"""
from __future__ import annotations

import time
from typing import Callable, List, Optional

from intake.callback.client import SinkClient
from intake.callback.payloads import build_record_payload, validate_record_payload
from intake.core.errors import RejectionFailure, TransportFailure
from intake.observability.logging import log
import intake.observability.metrics as metrics
from intake.settings import settings
from intake.store.models import SubmissionRecord, SubmissionResult


def backoff_schedule(max_attempts: int, base_sec: float) -> List[float]:
    """Waits between consecutive attempts: [1*base, 2*base, ...], one fewer than attempts."""
    return [float(base_sec) * i for i in range(1, max(1, int(max_attempts)))]


def _metric(fn: Callable, *args) -> None:
    # Counters are observability only; a Redis hiccup must not change the delivery outcome
    try:
        fn(*args)
    except Exception as e:
        log(event="metrics_write_failed", metric=getattr(fn, "__name__", "?"), error=str(e)[:200])


class SubmissionPipeline:
    def __init__(
        self,
        client: Optional[SinkClient] = None,
        max_attempts: Optional[int] = None,
        backoff_base_sec: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client or SinkClient()
        self.max_attempts = max(1, int(max_attempts or settings.SUBMIT_MAX_ATTEMPTS))
        base = settings.SUBMIT_BACKOFF_BASE_SEC if backoff_base_sec is None else backoff_base_sec
        self.delays = backoff_schedule(self.max_attempts, base)
        self.sleep = sleep

    def submit(self, record: SubmissionRecord, keepalive: Optional[Callable[[], object]] = None) -> SubmissionResult:
        """`keepalive` runs before every attempt and every backoff wait (the caller's lock lease)."""
        keepalive = keepalive or (lambda: None)
        payload = build_record_payload(record)
        ok, reason = validate_record_payload(payload)
        if not ok:
            log(event="submission_invalid_record", userId=record.userId, formKind=record.formKind, reason=reason)
            _metric(metrics.record_failed_submission, record.userId)
            return SubmissionResult(success=False, error=f"invalid_record:{reason}")

        start = time.monotonic()
        last_error = "unknown"
        for attempt in range(1, self.max_attempts + 1):
            keepalive()
            _metric(metrics.increment_delivery_attempt)
            log(event="submission_attempt", userId=record.userId, formKind=record.formKind, attempt=attempt)
            try:
                external_id = self.client.post_record(payload)
            except RejectionFailure as e:
                log(
                    event="submission_rejected",
                    userId=record.userId,
                    formKind=record.formKind,
                    attempt=attempt,
                    statusCode=e.status_code,
                    error=str(e),
                )
                _metric(metrics.record_failed_submission, record.userId)
                return SubmissionResult(success=False, error=str(e))
            except TransportFailure as e:
                last_error = str(e)
                if attempt < self.max_attempts:
                    delay = self.delays[attempt - 1]
                    log(
                        event="submission_retry_scheduled",
                        userId=record.userId,
                        attempt=attempt,
                        statusCode=e.status_code,
                        error=last_error,
                        backoffSec=delay,
                    )
                    keepalive()
                    self.sleep(delay)
                continue

            elapsed_ms = int((time.monotonic() - start) * 1000)
            _metric(metrics.increment_delivered)
            _metric(metrics.record_submission_latency, elapsed_ms)
            log(
                event="submission_delivered",
                userId=record.userId,
                formKind=record.formKind,
                attempt=attempt,
                externalId=external_id,
                elapsedMs=elapsed_ms,
            )
            return SubmissionResult(success=True, externalId=external_id)

        log(
            event="submission_retries_exhausted",
            userId=record.userId,
            formKind=record.formKind,
            attempts=self.max_attempts,
            lastError=last_error,
        )
        _metric(metrics.record_failed_submission, record.userId)
        return SubmissionResult(success=False, error=f"max_retries_exceeded:{last_error}")
