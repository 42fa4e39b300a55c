from typing import Any, Dict, Optional

from intake.observability.logging import log
from intake.settings import settings


def notify_activity(event_type: str, user_id: str, data: Optional[Dict[str, Any]] = None) -> None:
    """
    Fire-and-forget: enqueue an activity notification on RQ.
    Nothing here may affect the caller's outcome, so enqueue errors are only logged.
    """
    if not settings.ACTIVITY_NOTIFICATIONS_ENABLED:
        return

    # Lazy imports: jobs -> sweeper -> orchestrator-level modules
    from intake.queue.jobs import send_activity_notification_job
    from intake.queue.rq_conn import get_queue

    try:
        job = get_queue().enqueue(send_activity_notification_job, event_type, user_id, data or {})
        log(event="activity_notification_enqueued", userId=user_id, type=event_type, rq_job_id=getattr(job, "id", "") or "")
    except Exception as e:
        log(event="activity_notification_enqueue_failed", userId=user_id, type=event_type, error=str(e)[:200])
