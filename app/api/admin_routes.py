from fastapi import APIRouter, Depends, HTTPException, Header
from app.settings import settings
import app.observability.metrics as metrics

router = APIRouter(prefix="/admin", tags=["admin"])

def require_admin(x_admin_key: str = Header(default="", alias="x-admin-key")):
    if not settings.ADMIN_RBAC_ENABLED:
        return
    # Secure default: if enabled but no key configured, reject all.
    if not settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Admin access disabled (no key configured)")
    if x_admin_key != settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Invalid admin key")

@router.get("/metrics")
def get_metrics(_=Depends(require_admin)):
    """Capture counters and latency percentiles backed by Redis."""
    return metrics.get_capture_snapshot()

@router.get("/config")
def get_public_config(_=Depends(require_admin)):
    """Effective non-secret settings, useful when a deploy behaves unexpectedly."""
    return {
        "PAYMENTS_API_URL": settings.PAYMENTS_API_URL,
        "CAPTURE_TIMEOUT_SEC": float(settings.CAPTURE_TIMEOUT_SEC),
        "BILLING_ROUTE": settings.BILLING_ROUTE,
        "DASHBOARD_ROUTE": settings.DASHBOARD_ROUTE,
        "CLOSE_FALLBACK_DELAY_MS": int(settings.CLOSE_FALLBACK_DELAY_MS),
        "METRICS_ENABLED": bool(settings.METRICS_ENABLED),
        "ENABLE_SECRET_REDACTION": bool(settings.ENABLE_SECRET_REDACTION),
    }
