from dataclasses import dataclass
from typing import Optional

# Shown whenever the processor declines without a reason or the call blows up.
CAPTURE_FAILED_MESSAGE = "Failed to capture PayPal payment."


@dataclass(frozen=True)
class CaptureResult:
    """Raw answer of the upstream capture endpoint."""
    success: bool
    paymentId: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class FinalizationOutcome:
    """
    Tagged result of one capture round trip.
    INVARIANT: reason is set iff succeeded is False.
    """
    succeeded: bool
    reason: Optional[str] = None

    def __post_init__(self):
        if self.succeeded and self.reason is not None:
            raise ValueError("a successful outcome carries no reason")
        if not self.succeeded and not self.reason:
            object.__setattr__(self, "reason", CAPTURE_FAILED_MESSAGE)

    @classmethod
    def ok(cls) -> "FinalizationOutcome":
        return cls(succeeded=True)

    @classmethod
    def failed(cls, reason: Optional[str] = None) -> "FinalizationOutcome":
        return cls(succeeded=False, reason=reason)

    @classmethod
    def from_capture(cls, result: CaptureResult) -> "FinalizationOutcome":
        if result.success:
            return cls.ok()
        return cls.failed(result.error)
