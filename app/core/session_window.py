"""
Detached SSH console window.

The console runs in its own browser window opened by the dashboard. This
controller owns only the window side of it: identity/label plumbing, the
document title while the view is mounted, reload, and the close sequence.
The live terminal (transport, reconnects, rendering) belongs to an external
collaborator that receives nothing but a TerminalMount.

Close sequence:
  1. ask the host to close the window;
  2. one check after CLOSE_FALLBACK_DELAY_MS;
  3. still open (window not opened by script) -> history back, once.
The check does nothing once the view is torn down.
"""
import asyncio
import re
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from typing import Any, Callable, ContextManager, Iterator, Optional, Protocol
from urllib.parse import quote, unquote

from app.api.schemas import ConsoleView, NavAction, TerminalMountView
from app.observability.logging import log
from app.settings import settings

CONSOLE_TITLE = "SSH Console"
MISSING_ID_MESSAGE = (
    "Instance ID unavailable. Close this window and relaunch the SSH console from the dashboard."
)

# A '%' not followed by two hex digits is a malformed escape.
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class WindowHost(Protocol):
    title: str

    @property
    def closed(self) -> bool: ...

    def close(self) -> None: ...

    def history_back(self) -> None: ...

    def reload(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Any: ...


def decode_label(value: Optional[str]) -> Optional[str]:
    """
    Strict percent-decoding of the display label.
    Malformed input is cosmetic only: it comes back unchanged.
    """
    if not value:
        return None
    try:
        if _BAD_ESCAPE.search(value):
            raise ValueError("malformed percent escape")
        return unquote(value, encoding="utf-8", errors="strict")
    except (ValueError, UnicodeDecodeError):
        return value


def console_title(label: Optional[str]) -> str:
    return f"{label} · {CONSOLE_TITLE}" if label else CONSOLE_TITLE


def console_url(instance_id: str, label: Optional[str] = None) -> str:
    """URL the dashboard opens the detached console on."""
    url = f"/vps/{quote(instance_id, safe='')}/console"
    if label:
        url += f"?label={quote(label, safe='')}"
    return url


@dataclass(frozen=True)
class SessionIdentity:
    instance_id: Optional[str]
    label: Optional[str] = None

    @classmethod
    def from_request(cls, instance_id: Optional[str], raw_label: Optional[str]) -> "SessionIdentity":
        return cls(instance_id=instance_id or None, label=decode_label(raw_label))

    @property
    def header_text(self) -> Optional[str]:
        return self.label or self.instance_id


@dataclass(frozen=True)
class TerminalMount:
    instance_id: str
    full_screen: bool = True
    fit_container: bool = True


TerminalFactory = Callable[[TerminalMount], ContextManager[Any]]


@contextmanager
def title_override(host: WindowHost, title: str) -> Iterator[str]:
    """Set the host title for the duration of the block, then put the old one back."""
    previous = host.title
    host.title = title
    try:
        yield previous
    finally:
        host.title = previous


class SessionWindowController:
    def __init__(
        self,
        host: WindowHost,
        identity: SessionIdentity,
        *,
        scheduler: Optional[Scheduler] = None,
        terminal: Optional[TerminalFactory] = None,
        fallback_delay_ms: Optional[int] = None,
    ):
        self.host = host
        self.identity = identity
        self.terminal_handle = None
        self.close_requested = False
        self.closed_confirmed = False
        self.fallback_fired = False
        self._scheduler = scheduler
        self._terminal = terminal
        self._delay_ms = settings.CLOSE_FALLBACK_DELAY_MS if fallback_delay_ms is None else int(fallback_delay_ms)
        self._stack: Optional[ExitStack] = None
        self._alive = False

    @property
    def is_functional(self) -> bool:
        return bool(self.identity.instance_id)

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def fallback_delay_ms(self) -> int:
        return self._delay_ms

    def mount(self) -> "SessionWindowController":
        if self._alive:
            return self
        stack = ExitStack()
        try:
            stack.enter_context(title_override(self.host, console_title(self.identity.label)))
            if self.is_functional and self._terminal is not None:
                mount = TerminalMount(instance_id=self.identity.instance_id)
                self.terminal_handle = stack.enter_context(self._terminal(mount))
        except BaseException:
            stack.close()
            raise
        self._stack = stack
        self._alive = True
        log(event="console_mount", instanceId=self.identity.instance_id, functional=self.is_functional)
        return self

    def unmount(self) -> None:
        if self._stack is None:
            return
        # Flip liveness first so a pending close check sees a dead view.
        self._alive = False
        stack, self._stack = self._stack, None
        self.terminal_handle = None
        stack.close()
        log(event="console_unmount", instanceId=self.identity.instance_id)

    def __enter__(self) -> "SessionWindowController":
        return self.mount()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unmount()

    def reload(self) -> None:
        """Hard reset: the whole view and its terminal session start over."""
        log(event="console_reload", instanceId=self.identity.instance_id)
        self.host.reload()

    def request_close(self) -> None:
        self.close_requested = True
        log(event="console_close_requested", instanceId=self.identity.instance_id)
        self.host.close()
        scheduler = self._scheduler or asyncio.get_running_loop()
        scheduler.call_later(self._delay_ms / 1000.0, self._close_fallback)

    def _close_fallback(self) -> None:
        if not self._alive:
            return
        if self.host.closed:
            self.closed_confirmed = True
            return
        self.fallback_fired = True
        log(event="console_close_fallback", instanceId=self.identity.instance_id, delayMs=self._delay_ms)
        self.host.history_back()

    def view(self) -> ConsoleView:
        actions = [NavAction(label="Close Window" if self.is_functional else "Close", href="", kind="close")]
        terminal = None
        if self.is_functional:
            actions.insert(0, NavAction(label="Reload", href="", kind="reload"))
            terminal = TerminalMountView(instanceId=self.identity.instance_id)
        return ConsoleView(
            functional=self.is_functional,
            title=self.host.title if self._alive else console_title(self.identity.label),
            header=self.identity.header_text,
            instanceId=self.identity.instance_id,
            label=self.identity.label,
            terminal=terminal,
            closeFallbackDelayMs=self._delay_ms,
            actions=actions,
        )
