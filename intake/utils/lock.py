"""
Per-user FIFO lock
------------------
Single-writer access to everything keyed by one user, granted in arrival order.

  lock:user:<id>              list of waiter tokens; the head holds the lock
  lock:user:<id>:live:<tok>   lease of one waiter, refreshed while it waits or holds

A head whose lease lapsed (crashed worker) is popped by the next waiter.
The holder keeps its lease alive with `refresh()` during long work.
"""
from contextlib import contextmanager
import time
import uuid

from intake.core.errors import LockNotAcquired, UserBusy
from intake.observability.logging import log
from intake.settings import settings
from intake.store.redis_conn import get_redis

# Leave the queue: pop if we are the head, otherwise drop our ticket
_RELEASE_SCRIPT = """
if redis.call("lindex", KEYS[1], 0) == ARGV[1] then
    redis.call("lpop", KEYS[1])
else
    redis.call("lrem", KEYS[1], 0, ARGV[1])
end
redis.call("del", KEYS[2])
return 1
"""

# Pop a head whose lease is gone, only if it is still the head
_REAP_SCRIPT = """
if redis.call("lindex", KEYS[1], 0) == ARGV[1] and redis.call("exists", KEYS[2]) == 0 then
    redis.call("lpop", KEYS[1])
    return 1
end
return 0
"""


def lock_key(user_id: str) -> str:
    return f"lock:user:{user_id}"


def live_key(user_id: str, token: str) -> str:
    return f"{lock_key(user_id)}:live:{token}"


class UserLock:
    def __init__(self, r, user_id: str, token: str, ttl_ms: int):
        self.r = r
        self.user_id = user_id
        self.token = token
        self.ttl_ms = ttl_ms
        self.key = lock_key(user_id)
        self.live_key = live_key(user_id, token)

    def refresh(self) -> bool:
        """Extend the lease. False means the lease lapsed and the lock may be someone else's."""
        pipe = self.r.pipeline()
        pipe.pexpire(self.key, self.ttl_ms)
        pipe.pexpire(self.live_key, self.ttl_ms)
        pipe.lindex(self.key, 0)
        _, alive, head = pipe.execute()
        return bool(alive) and head == self.token

    def _leave(self) -> None:
        self.r.eval(_RELEASE_SCRIPT, 2, self.key, self.live_key, self.token)


def _join(r, lock: UserLock) -> int:
    pipe = r.pipeline()
    pipe.set(lock.live_key, "1", px=lock.ttl_ms)
    pipe.rpush(lock.key, lock.token)
    pipe.pexpire(lock.key, lock.ttl_ms)
    _, length, _ = pipe.execute()
    return int(length)


def _acquire(r, lock: UserLock, wait_sec: float, max_waiting: int, poll_sec: float) -> None:
    length = _join(r, lock)
    # Holder plus the waiters already queued ahead of us
    if length - 2 >= max_waiting:
        lock._leave()
        raise UserBusy(f"{length - 1} events already queued for user {lock.user_id}")

    deadline = time.monotonic() + wait_sec
    while True:
        head = r.lindex(lock.key, 0)
        if head == lock.token:
            return
        if head is None:
            # Queue key vanished under us; take a new place at the back
            _join(r, lock)
            continue
        if not r.exists(live_key(lock.user_id, head)):
            if r.eval(_REAP_SCRIPT, 2, lock.key, live_key(lock.user_id, head), head):
                log(event="user_lock_reaped", userId=lock.user_id)
            continue
        if time.monotonic() >= deadline:
            lock._leave()
            raise LockNotAcquired(f"Could not acquire lock for user {lock.user_id}")
        time.sleep(poll_sec)
        lock.refresh()


@contextmanager
def user_lock(
    user_id: str,
    r=None,
    ttl_ms: int = None,
    wait_sec: float = None,
    max_waiting: int = None,
    poll_sec: float = 0.05,
):
    """
    Waits up to `wait_sec` behind earlier events of the same user. At most
    `max_waiting` events queue behind the holder; a further one is refused at
    once with UserBusy so a flood from one user cannot tie up request workers.
    Yields a UserLock whose `refresh()` must be called during long work.
    """
    r = r if r is not None else get_redis()
    ttl_ms = int(ttl_ms or settings.USER_LOCK_TTL_MS)
    wait_sec = float(settings.USER_LOCK_WAIT_SEC if wait_sec is None else wait_sec)
    max_waiting = int(settings.USER_LOCK_MAX_WAITING if max_waiting is None else max_waiting)
    lock = UserLock(r, user_id, uuid.uuid4().hex, ttl_ms)

    _acquire(r, lock, wait_sec, max_waiting, poll_sec)
    try:
        yield lock
    finally:
        try:
            lock._leave()
        except Exception:
            pass
