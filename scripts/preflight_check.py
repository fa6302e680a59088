#!/usr/bin/env python3
import sys
import os

print("Running preflight import check...")
try:
    # Harmless defaults so config load never trips on a bare environment
    os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
    os.environ.setdefault("PAYMENTS_API_URL", "http://localhost:3001/api")

    import app.main
    print("Import app.main: OK")

    import app.core.finalize
    import app.core.session_window
    print("Import app.core controllers: OK")

    import app.payments.client
    print("Import app.payments.client: OK")

    print("Preflight check passed.")
    sys.exit(0)
except Exception as e:
    print(f"Preflight check FAILED: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)
