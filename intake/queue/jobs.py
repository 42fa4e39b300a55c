from typing import Any, Dict, Optional

from intake.callback.client import SinkClient
from intake.core.sweeper import sweep_inactive
from intake.observability.logging import log


def send_activity_notification_job(event_type: str, user_id: str, data: Optional[Dict[str, Any]] = None) -> bool:
    """
    Background job: best-effort activity ping to the sink.
    Failure is logged and never retried.
    """
    ok = SinkClient().notify_activity(event_type, user_id, data)
    if not ok:
        log(event="activity_notification_not_delivered", userId=user_id, type=event_type)
    return ok


def sweep_inactive_job() -> Dict[str, int]:
    try:
        return sweep_inactive()
    except Exception as e:
        log(event="sweep_job_exception", error=str(e))
        raise
