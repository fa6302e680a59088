"""
Capture Metrics Snapshot
------------------------
Lightweight Redis counters/timers for the payment-return flow and a single
snapshot function consumed by /admin/metrics. Readers tolerate missing keys
(first boot) and return zeroed fields so dashboards keep a stable shape.

Writers are called best-effort by the finalization controller; a Redis outage
must never change what the user sees.
"""
from __future__ import annotations
import time
from typing import List, Tuple
from app.store.redis_conn import get_redis
from app.settings import settings

K_CAP_ATT     = "metrics:capture:attempts"        # INCR
K_CAP_OK      = "metrics:capture:succeeded"       # INCR
K_CAP_DECLINE = "metrics:capture:declined"        # INCR (processor said no)
K_CAP_ERR     = "metrics:capture:errors"          # INCR (transport / unexpected)
K_CAP_MISSING = "metrics:capture:missing_token"   # INCR (no external call made)
K_CAP_LAT     = "metrics:capture:latencies"       # LPUSH ms

_MAX_SAMPLES = 500  # cap to bound percentile computation cost

def _percentile(data: List[float], p: float) -> float:
    """Deterministic percentile (nearest-rank on sorted data)."""
    if not data:
        return 0.0
    d = sorted(data)
    k = max(1, int(round(p * len(d))))
    return float(d[k - 1])

def _now_s() -> int:
    return int(time.time())

def increment_capture_attempt() -> None:
    r = get_redis()
    r.incr(K_CAP_ATT, 1)

def increment_capture_missing_token() -> None:
    r = get_redis()
    r.incr(K_CAP_MISSING, 1)

def record_capture_outcome(kind: str, ms: int) -> None:
    """kind: succeeded | declined | error"""
    key = {"succeeded": K_CAP_OK, "declined": K_CAP_DECLINE, "error": K_CAP_ERR}.get(kind)
    if key is None:
        raise ValueError(f"unknown capture outcome kind: {kind}")
    r = get_redis()
    r.incr(key, 1)
    try:
        ms = int(ms)
    except (TypeError, ValueError):
        return
    r.lpush(K_CAP_LAT, ms)
    r.ltrim(K_CAP_LAT, 0, _MAX_SAMPLES - 1)

def _read_latency_list(key: str) -> List[float]:
    r = get_redis()
    raw = r.lrange(key, 0, _MAX_SAMPLES - 1) or []
    out: List[float] = []
    for x in raw:
        try:
            v = float(x.decode("utf-8") if isinstance(x, (bytes, bytearray)) else x)
            out.append(v / 1000.0)  # seconds
        except (TypeError, ValueError):
            continue
    return out

def _p50_p95(latencies_s: List[float]) -> Tuple[float, float]:
    if not latencies_s:
        return 0.0, 0.0
    return _percentile(latencies_s, 0.50), _percentile(latencies_s, 0.95)

def get_capture_snapshot() -> dict:
    """
    Return a dict shaped for /admin/metrics consumers.
    Fields:
      - attempts, succeeded, declined, errors, missing_token
      - capture_success_rate (succeeded / attempts, percent)
      - p50_capture_latency, p95_capture_latency, target_capture_latency (seconds)
    """
    r = get_redis()

    attempts = int(r.get(K_CAP_ATT) or 0)
    succeeded = int(r.get(K_CAP_OK) or 0)
    declined = int(r.get(K_CAP_DECLINE) or 0)
    errors = int(r.get(K_CAP_ERR) or 0)
    missing = int(r.get(K_CAP_MISSING) or 0)

    rate = (succeeded / attempts) * 100.0 if attempts > 0 else 0.0
    p50, p95 = _p50_p95(_read_latency_list(K_CAP_LAT))

    return {
        "attempts": attempts,
        "succeeded": succeeded,
        "declined": declined,
        "errors": errors,
        "missing_token": missing,
        "capture_success_rate": round(rate, 3),
        "p50_capture_latency": round(p50, 3),
        "p95_capture_latency": round(p95, 3),
        "target_capture_latency": float(settings.TARGET_CAPTURE_P95_SEC),
        "snapshot_at": _now_s(),
    }
