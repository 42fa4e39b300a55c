import fnmatch
import threading

import pytest

from intake.core.risk import _CLEAR_EXPIRED_BLOCK
from intake.utils.lock import _REAP_SCRIPT, _RELEASE_SCRIPT


class FakePipeline:
    def __init__(self, r):
        self._r = r
        self._calls = []

    def __getattr__(self, name):
        fn = getattr(self._r, name)

        def queue(*args, **kwargs):
            self._calls.append((fn, args, kwargs))
            return self

        return queue

    def execute(self):
        with self._r.mu:
            out = [fn(*a, **kw) for fn, a, kw in self._calls]
        self._calls = []
        return out


class FakeRedis:
    """Just enough of redis.Redis (decode_responses=True) for the stores and the lock.

    Expiry is recorded but never fires; tests drop keys themselves to simulate a lapse.
    """

    def __init__(self):
        self.kv = {}
        self.hashes = {}
        self.lists = {}
        self.ttl_ms = {}
        self.mu = threading.RLock()

    # strings
    def get(self, key):
        return self.kv.get(key)

    def set(self, key, value, px=None, ex=None, nx=False):
        with self.mu:
            if nx and (key in self.kv):
                return None
            self.kv[key] = str(value)
            if px:
                self.ttl_ms[key] = int(px)
            return True

    def exists(self, *keys):
        return sum(1 for k in keys if k in self.kv or k in self.hashes or k in self.lists)

    def pexpire(self, key, ms):
        if not self.exists(key):
            return 0
        self.ttl_ms[key] = int(ms)
        return 1

    def incr(self, key, amount=1):
        self.kv[key] = str(int(self.kv.get(key, 0)) + amount)
        return int(self.kv[key])

    def delete(self, *keys):
        n = 0
        for k in keys:
            for store in (self.kv, self.hashes, self.lists):
                if k in store:
                    del store[k]
                    n += 1
        return n

    def scan_iter(self, match="*"):
        keys = set(self.kv) | set(self.hashes) | set(self.lists)
        return iter(sorted(k for k in keys if fnmatch.fnmatchcase(k, match)))

    # hashes
    def hget(self, key, field):
        return self.hashes.get(key, {}).get(field)

    def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    def hset(self, key, field=None, value=None, mapping=None):
        h = self.hashes.setdefault(key, {})
        if field is not None:
            h[field] = str(value)
        for k, v in (mapping or {}).items():
            h[k] = str(v)
        return 1

    def hsetnx(self, key, field, value):
        h = self.hashes.setdefault(key, {})
        if field in h:
            return 0
        h[field] = str(value)
        return 1

    def hdel(self, key, *fields):
        h = self.hashes.get(key, {})
        return sum(1 for f in fields if h.pop(f, None) is not None)

    def hincrby(self, key, field, amount=1):
        h = self.hashes.setdefault(key, {})
        h[field] = str(int(h.get(field, 0)) + amount)
        return int(h[field])

    # lists
    def lpush(self, key, *values):
        lst = self.lists.setdefault(key, [])
        for v in values:
            lst.insert(0, str(v))
        return len(lst)

    def ltrim(self, key, start, end):
        lst = self.lists.get(key, [])
        self.lists[key] = lst[start : end + 1]
        return True

    def rpush(self, key, *values):
        with self.mu:
            lst = self.lists.setdefault(key, [])
            lst.extend(str(v) for v in values)
            return len(lst)

    def lindex(self, key, index):
        lst = list(self.lists.get(key, []))
        return lst[index] if -len(lst) <= index < len(lst) else None

    def lpop(self, key):
        with self.mu:
            lst = self.lists.get(key)
            if not lst:
                return None
            value = lst.pop(0)
            if not lst:
                del self.lists[key]
            return value

    def lrem(self, key, count, value):
        with self.mu:
            lst = self.lists.get(key, [])
            before = len(lst)
            lst[:] = [v for v in lst if v != value]
            if key in self.lists and not lst:
                del self.lists[key]
            return before - len(lst)

    def lrange(self, key, start, end):
        return list(self.lists.get(key, [])[start : end + 1])

    # scripting: only the scripts the app uses
    def eval(self, script, numkeys, *args):
        keys, argv = args[:numkeys], args[numkeys:]
        with self.mu:
            if script == _CLEAR_EXPIRED_BLOCK:
                h = self.hashes.get(keys[0], {})
                if h.get("blockedUntil") == str(argv[0]):
                    h["blocked"] = "0"
                    for f in ("blockReason", "blockedAt", "blockedUntil"):
                        h.pop(f, None)
                    return 1
                return 0
            if script == _RELEASE_SCRIPT:
                if self.lindex(keys[0], 0) == argv[0]:
                    self.lpop(keys[0])
                else:
                    self.lrem(keys[0], 0, argv[0])
                self.delete(keys[1])
                return 1
            if script == _REAP_SCRIPT:
                if self.lindex(keys[0], 0) == argv[0] and not self.exists(keys[1]):
                    self.lpop(keys[0])
                    return 1
                return 0
        raise NotImplementedError(script)

    def pipeline(self):
        return FakePipeline(self)


@pytest.fixture
def fake_redis():
    return FakeRedis()


class Clock:
    def __init__(self, start_ms=1_700_000_000_000):
        self.ms = start_ms

    def __call__(self):
        return self.ms

    def advance(self, minutes=0, seconds=0):
        self.ms += int(minutes * 60_000 + seconds * 1000)


@pytest.fixture
def clock(monkeypatch):
    c = Clock()
    for mod in (
        "intake.core.risk",
        "intake.store.session_repo",
        "intake.core.sweeper",
        "intake.core.reports",
        "intake.core.orchestrator",
    ):
        monkeypatch.setattr(f"{mod}.now_ms", c)
    return c


@pytest.fixture(autouse=True)
def isolated_side_channels(monkeypatch, fake_redis):
    """Counters go to the in-memory Redis; activity pings stay off unless a test turns them on."""
    from intake.settings import settings

    monkeypatch.setattr("intake.observability.metrics.get_redis", lambda: fake_redis)
    monkeypatch.setattr(settings, "ACTIVITY_NOTIFICATIONS_ENABLED", False)
    return fake_redis
