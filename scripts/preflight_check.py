#!/usr/bin/env python3
import sys
import os
import traceback

print("Running preflight check...")
try:
    # Set dummy env vars to avoid KeyErrors during config load if any
    os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

    import intake.main
    print("Import intake.main: OK")

    from intake.core.forms import default_forms
    forms = default_forms()
    print(f"Form definitions: OK ({', '.join(sorted(forms))})")

    from intake.callback.client import SinkClient
    from intake.settings import settings
    if not settings.SINK_BASE_URL:
        print("[WARN] SINK_BASE_URL is not set; submissions will be rejected.")
    elif SinkClient().health_check():
        print("Sink health: OK")
    else:
        # The service still starts; submissions will fail until the sink is reachable.
        print("[WARN] Sink health check failed. Check SINK_BASE_URL and credentials.")

    print("Preflight check passed.")
    sys.exit(0)
except Exception as e:
    print(f"Preflight check FAILED: {e}")
    traceback.print_exc()
    sys.exit(1)
