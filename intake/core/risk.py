"""
Risk engine
-----------
Per-user action counters, a 0-100 risk score and time-boxed blocks.

Storage (Redis, one pair of hashes per user):
  risk:<userId>          firstSeenAt, lastSeenAt, blocked, blockReason, blockedAt, blockedUntil
  risk:<userId>:actions  action name -> count

Counter updates are single atomic Redis commands, so concurrent events of
different users never contend and events of the same user never lose counts.
The score is informational; blocking is always an explicit `block_user` call.
An expired block is cleared by the first read that notices it.
"""
from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional

from intake.observability.logging import log
from intake.store.models import RiskProfile
from intake.store.redis_conn import get_redis
from intake.utils.time import minutes_between, now_ms, remaining_minutes

PREFIX = "risk:"
ACTIONS_SUFFIX = ":actions"

# Clears the block only if it is still the one we saw expire
_CLEAR_EXPIRED_BLOCK = """
if redis.call("hget", KEYS[1], "blockedUntil") == ARGV[1] then
    redis.call("hset", KEYS[1], "blocked", "0")
    redis.call("hdel", KEYS[1], "blockReason", "blockedAt", "blockedUntil")
    return 1
end
return 0
"""

# Score contributions
RATE_ELEVATED_PER_MIN = 5
RATE_HIGH_PER_MIN = 10
VALIDATION_FAILURE_RATIO = 0.5
CANCEL_RATIO = 0.3
START_LIMIT = 10
SUBMIT_ATTEMPT_LIMIT = 5
CANCEL_LIMIT = 10


def _profile_key(user_id: str) -> str:
    return f"{PREFIX}{user_id}"


def _actions_key(user_id: str) -> str:
    return f"{PREFIX}{user_id}{ACTIONS_SUFFIX}"


def _int_or_none(v: Any) -> Optional[int]:
    try:
        return int(v) if v not in (None, "") else None
    except (TypeError, ValueError):
        return None


def actions_per_minute(profile: RiskProfile, now: int) -> float:
    elapsed = minutes_between(profile.firstSeenAt, now)
    return profile.total_actions / max(elapsed, 1.0)


def risk_score(profile: Optional[RiskProfile], now: int) -> int:
    if profile is None:
        return 0
    total = profile.total_actions
    if total <= 0:
        return 0

    score = 0
    rate = actions_per_minute(profile, now)
    if rate > RATE_ELEVATED_PER_MIN:
        score += 30
    if rate > RATE_HIGH_PER_MIN:
        score += 40

    if profile.count("validation_failed") / total > VALIDATION_FAILURE_RATIO:
        score += 25
    if profile.count("cancel") / total > CANCEL_RATIO:
        score += 20

    if profile.count("start") > START_LIMIT:
        score += 15
    if profile.count("submit_attempt") > SUBMIT_ATTEMPT_LIMIT:
        score += 25

    return min(score, 100)


def suspicious_indicators(profile: RiskProfile, now: int) -> List[str]:
    indicators = []
    if actions_per_minute(profile, now) > RATE_HIGH_PER_MIN:
        indicators.append("high_frequency")
    if profile.count("submit_attempt") > SUBMIT_ATTEMPT_LIMIT:
        indicators.append("multiple_submit_attempts")
    if profile.count("cancel") > CANCEL_LIMIT:
        indicators.append("excessive_cancellations")
    return indicators


class RiskEngine:
    def __init__(self, redis=None):
        self._redis = redis

    @property
    def redis(self):
        if self._redis is None:
            self._redis = get_redis()
        return self._redis

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------
    def record_action(self, user_id: str, action: str) -> None:
        ts = now_ms()
        pipe = self.redis.pipeline()
        pipe.hsetnx(_profile_key(user_id), "firstSeenAt", ts)
        pipe.hset(_profile_key(user_id), "lastSeenAt", ts)
        pipe.hincrby(_actions_key(user_id), action, 1)
        pipe.execute()

    def get_profile(self, user_id: str) -> Optional[RiskProfile]:
        raw = self.redis.hgetall(_profile_key(user_id)) or {}
        counts = self.redis.hgetall(_actions_key(user_id)) or {}
        if not raw and not counts:
            return None

        profile = RiskProfile(
            userId=user_id,
            actionCounts={k: int(v) for k, v in counts.items()},
            firstSeenAt=_int_or_none(raw.get("firstSeenAt")) or 0,
            lastSeenAt=_int_or_none(raw.get("lastSeenAt")) or 0,
            blocked=str(raw.get("blocked", "0")) == "1",
            blockReason=raw.get("blockReason") or None,
            blockedAt=_int_or_none(raw.get("blockedAt")),
            blockedUntil=_int_or_none(raw.get("blockedUntil")),
        )

        if profile.blocked and (profile.blockedUntil is None or profile.blockedUntil <= now_ms()):
            self._clear_expired(profile, raw.get("blockedUntil") or "")
        return profile

    def _clear_expired(self, profile: RiskProfile, seen_until: str) -> None:
        cleared = self.redis.eval(_CLEAR_EXPIRED_BLOCK, 1, _profile_key(profile.userId), seen_until)
        reason = profile.blockReason
        profile.blocked = False
        profile.blockReason = None
        profile.blockedAt = None
        profile.blockedUntil = None
        if cleared:
            log(event="user_unblocked", userId=profile.userId, reason="timeout_expired", blockReason=reason)

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------
    def block_user(self, user_id: str, reason: str, duration_minutes: int) -> RiskProfile:
        if int(duration_minutes) <= 0:
            raise ValueError("duration_minutes must be positive")
        ts = now_ms()
        until = ts + int(duration_minutes) * 60 * 1000
        key = _profile_key(user_id)
        pipe = self.redis.pipeline()
        pipe.hsetnx(key, "firstSeenAt", ts)
        pipe.hsetnx(key, "lastSeenAt", ts)
        pipe.hset(
            key,
            mapping={
                "blocked": "1",
                "blockReason": reason or "unspecified",
                "blockedAt": ts,
                "blockedUntil": until,
            },
        )
        pipe.execute()
        log(event="user_blocked", userId=user_id, reason=reason, durationMinutes=int(duration_minutes), blockedUntil=until)
        return self.get_profile(user_id)

    def unblock_user(self, user_id: str) -> bool:
        key = _profile_key(user_id)
        was_blocked = str(self.redis.hget(key, "blocked") or "0") == "1"
        if not was_blocked:
            return False
        pipe = self.redis.pipeline()
        pipe.hset(key, "blocked", "0")
        pipe.hdel(key, "blockReason", "blockedAt", "blockedUntil")
        pipe.execute()
        log(event="user_unblocked", userId=user_id, reason="operator")
        return True

    def check_block(self, user_id: str) -> Dict[str, Any]:
        profile = self.get_profile(user_id)
        if profile is None or not profile.blocked:
            return {"blocked": False}
        return {
            "blocked": True,
            "reason": profile.blockReason,
            "blockedUntil": profile.blockedUntil,
            "remainingMinutes": remaining_minutes(profile.blockedUntil, now_ms()),
        }

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------
    def score(self, user_id: str) -> int:
        return risk_score(self.get_profile(user_id), now_ms())

    def check_suspicious_activity(self, user_id: str) -> Dict[str, Any]:
        profile = self.get_profile(user_id)
        if profile is None:
            return {"suspicious": False, "indicators": [], "riskScore": 0}

        now = now_ms()
        indicators = suspicious_indicators(profile, now)
        score = risk_score(profile, now)
        suspicious = bool(indicators)
        if suspicious:
            log(
                event="suspicious_activity_detected",
                userId=user_id,
                indicators=indicators,
                riskScore=score,
                actionCounts=dict(profile.actionCounts),
            )
        return {"suspicious": suspicious, "indicators": indicators, "riskScore": score}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def delete_profile(self, user_id: str) -> bool:
        return bool(self.redis.delete(_profile_key(user_id), _actions_key(user_id)))

    def user_ids(self) -> Iterator[str]:
        seen = set()
        for key in self.redis.scan_iter(match=f"{PREFIX}*"):
            user_id = key[len(PREFIX):]
            if user_id.endswith(ACTIONS_SUFFIX):
                user_id = user_id[: -len(ACTIONS_SUFFIX)]
            if user_id and user_id not in seen:
                seen.add(user_id)
                yield user_id

    def expire_if_inactive(self, user_id: str, cutoff_ms: int) -> bool:
        raw = self.redis.hgetall(_profile_key(user_id)) or {}
        last_seen = _int_or_none(raw.get("lastSeenAt")) or 0
        blocked_until = _int_or_none(raw.get("blockedUntil")) or 0
        if last_seen >= int(cutoff_ms):
            return False
        # An active block outlives inactivity
        if str(raw.get("blocked", "0")) == "1" and blocked_until > now_ms():
            return False
        self.delete_profile(user_id)
        log(event="risk_profile_expired", userId=user_id, lastSeenAt=last_seen)
        return True
