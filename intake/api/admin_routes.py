from fastapi import APIRouter, Depends, HTTPException, Query
from starlette.concurrency import run_in_threadpool

from intake.api.auth import require_admin
from intake.api.schemas import BlockRequest
from intake.core import reports
from intake.core.orchestrator import get_engine
from intake.core.sweeper import sweep_inactive
from intake.core.risk import risk_score
from intake.utils.time import now_ms
import intake.observability.metrics as metrics

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/users/{user_id}/block")
def block_user(user_id: str, body: BlockRequest, _=Depends(require_admin)):
    engine = get_engine()
    p = engine.risk.block_user(user_id, body.reason, body.durationMinutes)
    return {"userId": user_id, "blocked": p.blocked, "reason": p.blockReason, "blockedUntil": p.blockedUntil}


@router.delete("/users/{user_id}/block")
def unblock_user(user_id: str, _=Depends(require_admin)):
    engine = get_engine()
    return {"userId": user_id, "unblocked": engine.risk.unblock_user(user_id)}


@router.get("/users/{user_id}/risk")
def get_risk_profile(user_id: str, _=Depends(require_admin)):
    """Risk profile with derived score. Reading it also clears an expired block."""
    engine = get_engine()
    p = engine.risk.get_profile(user_id)
    if p is None:
        raise HTTPException(status_code=404, detail="No risk profile for this user")
    return {
        "userId": p.userId,
        "actionCounts": p.actionCounts,
        "firstSeenAt": p.firstSeenAt,
        "lastSeenAt": p.lastSeenAt,
        "blocked": p.blocked,
        "blockReason": p.blockReason,
        "blockedUntil": p.blockedUntil,
        "riskScore": risk_score(p, now_ms()),
    }


@router.get("/users/{user_id}")
def export_user(user_id: str, _=Depends(require_admin)):
    engine = get_engine()
    return reports.export_user(engine.sessions, engine.risk, user_id)


@router.get("/active")
def get_active_users(minutes: int = Query(default=60, gt=0), _=Depends(require_admin)):
    engine = get_engine()
    return {"minutes": minutes, "users": reports.active_users(engine.sessions, minutes)}


@router.get("/stats")
def get_stats(_=Depends(require_admin)):
    engine = get_engine()
    return reports.overall_stats(engine.sessions, engine.risk)


@router.get("/submissions")
def get_submissions(_=Depends(require_admin)):
    """Delivery counters, including complaint failures that users saw as success."""
    return metrics.get_submission_snapshot()


@router.post("/sweep")
async def run_sweep(_=Depends(require_admin)):
    engine = get_engine()
    return await run_in_threadpool(sweep_inactive, engine.sessions, engine.risk)
