"""
Submission counters
-------------------
Redis-backed counters for the submission pipeline, read by /admin/submissions.
Masked complaint failures are counted separately so they stay visible to
operators even though the user was shown success.
"""
from __future__ import annotations
import time
from typing import List, Tuple
from intake.store.redis_conn import get_redis

K_SUB_ATT = "metrics:submit:delivery_attempts"   # INCR per HTTP attempt
K_SUB_OK = "metrics:submit:delivered"            # INCR
K_SUB_FAIL = "metrics:submit:failed"             # INCR (incl. masked)
K_SUB_MASKED = "metrics:submit:masked"           # INCR
K_SUB_LAT = "metrics:submit:latencies"           # LPUSH ms
K_SUB_FAIL_RECENT = "metrics:submit:failed_recent"  # LPUSH userId

_MAX_SAMPLES = 500

def _percentile(data: List[float], p: float) -> float:
    """Nearest-rank percentile on sorted data."""
    if not data:
        return 0.0
    d = sorted(data)
    k = max(1, int(round(p * len(d))))
    return float(d[k - 1])

def increment_delivery_attempt() -> None:
    get_redis().incr(K_SUB_ATT, 1)

def increment_delivered() -> None:
    get_redis().incr(K_SUB_OK, 1)

def record_submission_latency(ms: int) -> None:
    r = get_redis()
    r.lpush(K_SUB_LAT, int(ms))
    r.ltrim(K_SUB_LAT, 0, _MAX_SAMPLES - 1)

def record_failed_submission(user_id: str) -> None:
    r = get_redis()
    r.incr(K_SUB_FAIL, 1)
    if user_id:
        r.lpush(K_SUB_FAIL_RECENT, user_id)
        r.ltrim(K_SUB_FAIL_RECENT, 0, 49)  # keep last 50

def increment_masked_failure() -> None:
    get_redis().incr(K_SUB_MASKED, 1)

def _read_latencies() -> List[float]:
    raw = get_redis().lrange(K_SUB_LAT, 0, _MAX_SAMPLES - 1) or []
    out: List[float] = []
    for x in raw:
        try:
            out.append(float(x) / 1000.0)
        except (TypeError, ValueError):
            continue
    return out

def _p50_p95(latencies_s: List[float]) -> Tuple[float, float]:
    return _percentile(latencies_s, 0.50), _percentile(latencies_s, 0.95)

def get_submission_snapshot() -> dict:
    r = get_redis()
    attempts = int(r.get(K_SUB_ATT) or 0)
    delivered = int(r.get(K_SUB_OK) or 0)
    failed = int(r.get(K_SUB_FAIL) or 0)
    masked = int(r.get(K_SUB_MASKED) or 0)
    finished = delivered + failed
    p50, p95 = _p50_p95(_read_latencies())
    return {
        "delivery_attempts": attempts,
        "delivered": delivered,
        "failed": failed,
        "masked_failures": masked,
        "delivery_success_rate": round((delivered / finished) * 100.0, 3) if finished else 0.0,
        "p50_submission_latency": round(p50, 3),
        "p95_submission_latency": round(p95, 3),
        "recent_failed_users": list(r.lrange(K_SUB_FAIL_RECENT, 0, 19) or []),
        "snapshot_at": int(time.time()),
    }
