import math
import time
from datetime import datetime, timezone


def now_ms() -> int:
    return int(time.time() * 1000)


def iso_from_ms(ms: int) -> str:
    """Epoch milliseconds -> ISO-8601 UTC string (trailing 'Z')."""
    dt = datetime.fromtimestamp(int(ms) / 1000.0, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def minutes_between(start_ms: int, end_ms: int) -> float:
    return max(0, int(end_ms) - int(start_ms)) / 60000.0


def remaining_minutes(until_ms: int, now: int) -> int:
    """Whole minutes left until `until_ms`, rounded up; never below 1 while still in the future."""
    left = int(until_ms) - int(now)
    if left <= 0:
        return 0
    return max(1, math.ceil(left / 60000.0))
