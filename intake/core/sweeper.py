"""
Inactivity sweep
----------------
Evicts sessions and risk profiles whose last activity is older than the TTL.
Each user is handled under the same per-user lock the event path takes, so a
sweep never interleaves with an in-flight event of that user. Users whose lock
is busy are skipped until the next run.
"""
from typing import Dict, Optional

from intake.core.errors import LockNotAcquired
from intake.core.risk import RiskEngine
from intake.observability.logging import log
from intake.settings import settings
from intake.store.session_repo import SessionStore
from intake.utils.lock import user_lock
from intake.utils.time import now_ms


def sweep_inactive(
    sessions: Optional[SessionStore] = None,
    risk: Optional[RiskEngine] = None,
    ttl_sec: Optional[int] = None,
    lock_wait_sec: float = 0.0,
) -> Dict[str, int]:
    sessions = sessions or SessionStore()
    risk = risk or RiskEngine(sessions.redis)
    ttl_sec = int(ttl_sec if ttl_sec is not None else settings.SESSION_TTL_SEC)
    cutoff = now_ms() - ttl_sec * 1000

    user_ids = set(sessions.user_ids()) | set(risk.user_ids())
    stats = {"scanned": len(user_ids), "sessionsEvicted": 0, "profilesEvicted": 0, "skippedBusy": 0}

    for user_id in sorted(user_ids):
        try:
            with user_lock(user_id, r=sessions.redis, wait_sec=lock_wait_sec):
                if sessions.expire_if_inactive(user_id, cutoff):
                    stats["sessionsEvicted"] += 1
                if risk.expire_if_inactive(user_id, cutoff):
                    stats["profilesEvicted"] += 1
        except LockNotAcquired:
            stats["skippedBusy"] += 1

    log(event="sweep_completed", ttlSec=ttl_sec, **stats)
    return stats
