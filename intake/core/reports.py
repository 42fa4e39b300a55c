"""Read-only views for the operator surface."""
from dataclasses import asdict
from typing import Any, Dict, List

from intake.core.risk import RiskEngine, risk_score
from intake.store.session_repo import SessionStore
from intake.utils.time import now_ms

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


def active_users(sessions: SessionStore, minutes: int = 60) -> List[Dict[str, Any]]:
    cutoff = now_ms() - int(minutes) * 60 * 1000
    out = []
    for user_id in sessions.user_ids():
        s = sessions.get(user_id)
        if s is None or int(s.lastActivityAt or 0) <= cutoff:
            continue
        out.append({"userId": user_id, "lastActivityAt": s.lastActivityAt, "state": s.state, "formKind": s.formKind})
    return sorted(out, key=lambda x: x["lastActivityAt"], reverse=True)


def overall_stats(sessions: SessionStore, risk: RiskEngine) -> Dict[str, Any]:
    now = now_ms()
    session_ids = set(sessions.user_ids())
    risk_ids = set(risk.user_ids())

    active_hour = 0
    active_day = 0
    in_progress = 0
    for user_id in session_ids:
        s = sessions.get(user_id)
        if s is None:
            continue
        age = now - int(s.lastActivityAt or 0)
        if age < HOUR_MS:
            active_hour += 1
        if age < DAY_MS:
            active_day += 1
        if not s.is_idle:
            in_progress += 1

    blocked = 0
    total_actions = 0
    for user_id in risk_ids:
        p = risk.get_profile(user_id)
        if p is None:
            continue
        if p.blocked:
            blocked += 1
        total_actions += p.total_actions

    return {
        "totalUsers": len(session_ids | risk_ids),
        "sessions": len(session_ids),
        "riskProfiles": len(risk_ids),
        "activeLastHour": active_hour,
        "activeLastDay": active_day,
        "formsInProgress": in_progress,
        "blockedUsers": blocked,
        "totalActions": total_actions,
    }


def export_user(sessions: SessionStore, risk: RiskEngine, user_id: str) -> Dict[str, Any]:
    s = sessions.get(user_id)
    p = risk.get_profile(user_id)
    return {
        "userId": user_id,
        "session": asdict(s) if s else None,
        "riskProfile": asdict(p) if p else None,
        "riskScore": risk_score(p, now_ms()),
        "block": risk.check_block(user_id),
        "suspicious": risk.check_suspicious_activity(user_id),
    }
