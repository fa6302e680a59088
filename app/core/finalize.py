"""
Payment-return finalization.

The processor redirects the browser back with ?token=<order token>. One page
load turns that token into exactly one capture call and a terminal outcome:

    processing --(no token)--------------> error
    processing --(capture ok)------------> success
    processing --(declined | raised)-----> error

INVARIANTS:
- The token is read once, synchronously, before anything async happens.
- At most one capture call per controller; zero when the token is missing.
- No automatic retry. A capture settles money; the processor's own
  idempotency is not relied upon.
"""
import time
from typing import Awaitable, Callable, Mapping, Optional

from starlette.concurrency import run_in_threadpool

from app.api.schemas import FinalizationView, NavAction
from app.core import state_machine as sm
from app.observability.logging import log
from app.payments.models import CAPTURE_FAILED_MESSAGE, CaptureResult, FinalizationOutcome
from app.settings import settings
import app.observability.metrics as metrics

PROCESSING_MESSAGE = "Capturing your PayPal payment..."
MISSING_TOKEN_MESSAGE = "Missing PayPal order token."
SUCCESS_MESSAGE = "Payment captured successfully. Your wallet will reflect the funds shortly."

CaptureFn = Callable[[str], Awaitable[CaptureResult]]


def read_order_token(query: Mapping[str, str]) -> Optional[str]:
    token = (query.get("token") or "").strip()
    return token or None


async def _metric(fn, *args) -> None:
    # Sync Redis client: keep its socket waits off the event loop.
    if not settings.METRICS_ENABLED:
        return
    try:
        await run_in_threadpool(fn, *args)
    except Exception as e:
        log(event="metrics_record_failed", metric=getattr(fn, "__name__", "?"), error=str(e)[:200])


class FinalizationController:
    def __init__(self, query: Mapping[str, str], capture: CaptureFn):
        self.order_token = read_order_token(query)
        self.state = sm.PROCESSING
        self.message = PROCESSING_MESSAGE
        self.is_capturing = False
        self._capture = capture
        self._fired = False

    @property
    def is_terminal(self) -> bool:
        return self.state in sm.TERMINAL_STATES

    @property
    def billing_enabled(self) -> bool:
        # Gated only while the capture is in flight.
        return not (self.is_capturing and self.state == sm.PROCESSING)

    @property
    def dashboard_enabled(self) -> bool:
        return True

    def _transition(self, target: str, message: str) -> None:
        if not sm.can_transition(self.state, target):
            raise RuntimeError(f"Illegal finalization transition {self.state} -> {target}")
        self.state = target
        self.message = message

    def hand_off(self) -> None:
        """
        The one capture call is made by someone else (the page script calling the
        finalize endpoint). This controller only reports it as in flight.
        """
        if self._fired:
            raise RuntimeError("Capture already fired for this controller")
        if not self.order_token:
            raise ValueError("Nothing to hand off without an order token")
        self._fired = True
        self.is_capturing = True

    async def run(self) -> str:
        """Fire the capture once. Later calls return the current state untouched."""
        if self._fired:
            return self.state
        self._fired = True

        if not self.order_token:
            log(event="capture_missing_token")
            self._transition(sm.ERROR, MISSING_TOKEN_MESSAGE)
            await _metric(metrics.increment_capture_missing_token)
            return self.state

        log(event="capture_start", orderToken=self.order_token)
        self.is_capturing = True
        await _metric(metrics.increment_capture_attempt)
        start = time.time()
        kind = "error"
        try:
            result = await self._capture(self.order_token)
            outcome = FinalizationOutcome.from_capture(result)
            kind = "succeeded" if outcome.succeeded else "declined"
        except Exception as e:
            log(
                event="capture_exception",
                orderToken=self.order_token,
                errorType=type(e).__name__,
                error=str(e)[:500],
            )
            # Never surface the raw error.
            outcome = FinalizationOutcome.failed(CAPTURE_FAILED_MESSAGE)
        finally:
            self.is_capturing = False
        elapsed_ms = int((time.time() - start) * 1000)

        if outcome.succeeded:
            log(event="capture_succeeded", orderToken=self.order_token, elapsedMs=elapsed_ms)
            self._transition(sm.SUCCESS, SUCCESS_MESSAGE)
        else:
            if kind == "declined":
                log(event="capture_declined", orderToken=self.order_token, elapsedMs=elapsed_ms, reason=outcome.reason)
            self._transition(sm.ERROR, outcome.reason)
        await _metric(metrics.record_capture_outcome, kind, elapsed_ms)
        return self.state

    def view(self) -> FinalizationView:
        heading, icon = sm.HEADINGS[self.state]
        return FinalizationView(
            status=self.state,
            heading=heading,
            icon=icon,
            message=self.message,
            isCapturing=self.is_capturing,
            actions=[
                NavAction(label="Back to Billing", href=settings.BILLING_ROUTE, enabled=self.billing_enabled),
                NavAction(label="Go to Dashboard", href=settings.DASHBOARD_ROUTE, enabled=self.dashboard_enabled),
            ],
        )
