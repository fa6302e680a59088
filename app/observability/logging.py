import json
import time
from app.settings import settings

# Order tokens and bearer tokens must never reach the log stream in clear
SENSITIVE_KEYS = {"orderToken", "token", "authorization", "authToken"}

def _redact_value(v):
    if isinstance(v, str) and len(v) > 0:
        return f"[REDACTED:{len(v)}chars]"
    if isinstance(v, dict):
        return {k: _redact_value(val) for k, val in v.items()}
    return v

def _redact_fields(fields: dict) -> dict:
    clean = {}
    for k, v in fields.items():
        if k in SENSITIVE_KEYS:
            clean[k] = _redact_value(v)
        elif isinstance(v, dict):
            clean[k] = _redact_fields(v)
        else:
            clean[k] = v
    return clean

def log(event: str, **fields):
    payload = {"ts": int(time.time()), "event": event}
    payload.update(_redact_fields(fields) if settings.ENABLE_SECRET_REDACTION else fields)
    print(json.dumps(payload, ensure_ascii=False))
