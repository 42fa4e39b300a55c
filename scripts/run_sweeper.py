#!/usr/bin/env python3
"""Evict inactive sessions and risk profiles every SWEEP_INTERVAL_SEC."""
import time

from intake.core.sweeper import sweep_inactive
from intake.observability.logging import log
from intake.settings import settings


def main() -> None:
    interval = max(1, int(settings.SWEEP_INTERVAL_SEC))
    log(event="sweeper_started", intervalSec=interval, ttlSec=settings.SESSION_TTL_SEC)
    while True:
        try:
            sweep_inactive()
        except Exception as e:
            # Keep the loop alive; the next run retries
            log(event="sweeper_run_failed", errorType=type(e).__name__, error=str(e)[:500])
        time.sleep(interval)


if __name__ == "__main__":
    main()
