import inspect
import json
from typing import Iterator, Optional

from intake.observability.logging import log
from intake.store.models import Session
from intake.store.redis_conn import get_redis
from intake.utils.time import now_ms

PREFIX = "session:"


def _key(user_id: str) -> str:
    return f"{PREFIX}{user_id}"


def _filter_session_kwargs(data: dict) -> dict:
    """
    Drop unknown fields so Session(**kwargs) never explodes on records
    written by an older or newer build.
    """
    sig = inspect.signature(Session)
    allowed = set(sig.parameters.keys())
    return {k: v for k, v in data.items() if k in allowed}


class SessionStore:
    """
    One conversation session per user identity, kept in Redis as JSON.

    The store does not serialize access by itself: callers mutate a session
    only while holding `intake.utils.lock.user_lock` for that user.
    """

    def __init__(self, redis=None):
        self._redis = redis

    @property
    def redis(self):
        if self._redis is None:
            self._redis = get_redis()
        return self._redis

    def get(self, user_id: str) -> Optional[Session]:
        raw = self.redis.get(_key(user_id))
        if not raw:
            return None
        data = json.loads(raw)
        data = _filter_session_kwargs(data)
        data["userId"] = user_id
        return Session(**data)

    def get_or_create(self, user_id: str) -> Session:
        s = self.get(user_id)
        if s is not None:
            return s
        ts = now_ms()
        return Session(userId=user_id, createdAt=ts, lastActivityAt=ts)

    def save(self, session: Session, touch: bool = True) -> None:
        if touch:
            session.lastActivityAt = now_ms()
        if not session.createdAt:
            session.createdAt = session.lastActivityAt or now_ms()
        data = dict(session.__dict__)
        data["fields"] = dict(session.fields)
        self.redis.set(_key(session.userId), json.dumps(data, ensure_ascii=False))

    def delete(self, user_id: str) -> bool:
        return bool(self.redis.delete(_key(user_id)))

    def user_ids(self) -> Iterator[str]:
        for key in self.redis.scan_iter(match=f"{PREFIX}*"):
            user_id = key[len(PREFIX):]
            if user_id:
                yield user_id

    def expire_if_inactive(self, user_id: str, cutoff_ms: int) -> bool:
        """Delete the session when its last activity is older than `cutoff_ms`."""
        s = self.get(user_id)
        if s is None:
            return False
        if int(s.lastActivityAt or 0) >= int(cutoff_ms):
            return False
        self.delete(user_id)
        log(event="session_expired", userId=user_id, lastActivityAt=s.lastActivityAt, state=s.state)
        return True
