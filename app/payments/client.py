"""
Capture client for the upstream payments API.

POST {PAYMENTS_API_URL}/payments/capture-payment/{orderToken}

Exactly one HTTP attempt per call. A capture settles money at the processor,
so this module never retries: a timeout may still have gone through upstream.
"""
import time
from typing import Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, StrictBool, ValidationError

from app.settings import settings
from app.payments.models import CaptureResult
from app.observability.logging import log

# Fallback used when the upstream rejects the call without an error string.
UPSTREAM_DECLINED_MESSAGE = "Failed to capture payment"

_client = httpx.Client(timeout=settings.CAPTURE_TIMEOUT_SEC)


class CaptureError(RuntimeError):
    """Transport failure or unparseable upstream response."""


class CaptureResponse(BaseModel):
    # Settles money: only a JSON boolean counts as a confirmed capture.
    success: StrictBool
    paymentId: Optional[str] = None
    error: Optional[str] = None


def _headers(auth_token: str = "") -> dict:
    h = {"Content-Type": "application/json"}
    if auth_token:
        h["Authorization"] = f"Bearer {auth_token}"
    return h


def _reason(raw_error) -> str:
    # Only a non-empty string is shown to the user; structured errors stay in the log.
    if isinstance(raw_error, str) and raw_error.strip():
        return raw_error
    return UPSTREAM_DECLINED_MESSAGE


def capture_url(order_token: str) -> str:
    base = settings.PAYMENTS_API_URL.rstrip("/")
    return f"{base}/payments/capture-payment/{quote(order_token, safe='')}"


def capture_payment(order_token: str, *, auth_token: str = "") -> CaptureResult:
    """
    Finalize a previously approved order.

    Returns a CaptureResult for every answer the upstream gives (2xx or not).
    Raises CaptureError when there is no usable answer at all.
    """
    if not order_token:
        raise ValueError("order_token is required")

    start = time.time()
    try:
        resp = _client.post(capture_url(order_token), headers=_headers(auth_token))
    except httpx.HTTPError as e:
        raise CaptureError(f"capture request failed: {type(e).__name__}: {e}") from e
    elapsed_ms = int((time.time() - start) * 1000)

    try:
        data = resp.json()
    except ValueError as e:
        raise CaptureError(f"capture response is not JSON (status={resp.status_code})") from e

    if not (200 <= resp.status_code < 300):
        raw_error = data.get("error") if isinstance(data, dict) else None
        log(
            event="capture_upstream_non2xx",
            statusCode=int(resp.status_code),
            elapsedMs=elapsed_ms,
            error=str(raw_error or "")[:300],
        )
        return CaptureResult(success=False, error=_reason(raw_error))

    try:
        parsed = CaptureResponse.model_validate(data)
    except ValidationError as e:
        raise CaptureError(f"capture response failed validation: {e.error_count()} error(s)") from e

    log(
        event="capture_upstream_2xx",
        statusCode=int(resp.status_code),
        elapsedMs=elapsed_ms,
        success=bool(parsed.success),
    )
    return CaptureResult(success=parsed.success, paymentId=parsed.paymentId, error=parsed.error)
