import asyncio
import pytest
from contextlib import contextmanager

from app.core.session_window import (
    MISSING_ID_MESSAGE,
    SessionIdentity,
    SessionWindowController,
    TerminalMount,
    console_title,
    console_url,
    decode_label,
    title_override,
)


class FakeHost:
    def __init__(self, title="Dashboard", allow_close=True):
        self.title = title
        self.closed = False
        self.allow_close = allow_close
        self.close_calls = 0
        self.back_calls = 0
        self.reload_calls = 0

    def close(self):
        self.close_calls += 1
        if self.allow_close:
            self.closed = True

    def history_back(self):
        self.back_calls += 1

    def reload(self):
        self.reload_calls += 1


class FakeScheduler:
    """Manual clock: callbacks run only when advance() passes their due time."""

    def __init__(self):
        self.now = 0.0
        self.pending = []

    def call_later(self, delay, callback):
        self.pending.append((self.now + delay, callback))

    def advance(self, seconds):
        self.now += seconds
        due = [p for p in self.pending if p[0] <= self.now + 1e-9]
        self.pending = [p for p in self.pending if p[0] > self.now + 1e-9]
        for _, cb in due:
            cb()


class RecordingTerminal:
    def __init__(self):
        self.mounts = []
        self.detached = 0

    @contextmanager
    def __call__(self, mount):
        self.mounts.append(mount)
        try:
            yield "terminal-handle"
        finally:
            self.detached += 1


def _controller(host, instance_id="i-123", label=None, **kw):
    kw.setdefault("fallback_delay_ms", 150)
    return SessionWindowController(host, SessionIdentity.from_request(instance_id, label), **kw)


# --- label decoding ---------------------------------------------------------

@pytest.mark.parametrize("raw,expected", [
    ("Web-01", "Web-01"),
    ("Web%2001", "Web 01"),
    ("%CE%B1-node", "α-node"),
    ("a+b", "a+b"),
])
def test_decode_label_valid(raw, expected):
    assert decode_label(raw) == expected


@pytest.mark.parametrize("raw", ["%E0%A4%A", "100%", "%zz", "%FF", "web%2"])
def test_decode_label_malformed_returns_raw(raw):
    assert decode_label(raw) == raw


def test_decode_label_absent():
    assert decode_label(None) is None
    assert decode_label("") is None


def test_console_title():
    assert console_title("Web-01") == "Web-01 · SSH Console"
    assert console_title(None) == "SSH Console"


def test_console_url_encodes_label():
    assert console_url("i-123") == "/vps/i-123/console"
    assert console_url("i-123", "Web 01/α") == "/vps/i-123/console?label=Web%2001%2F%CE%B1"


def test_identity_header_falls_back_to_id():
    assert SessionIdentity.from_request("i-123", None).header_text == "i-123"
    assert SessionIdentity.from_request("i-123", "Web-01").header_text == "Web-01"
    assert SessionIdentity.from_request("i-123", "%E0%A4%A").header_text == "%E0%A4%A"
    assert SessionIdentity.from_request("", "Web-01").instance_id is None


# --- title lifecycle --------------------------------------------------------

def test_title_override_restores_on_error():
    host = FakeHost(title="Before")
    with pytest.raises(KeyError):
        with title_override(host, "During") as previous:
            assert previous == "Before"
            assert host.title == "During"
            raise KeyError("x")
    assert host.title == "Before"


def test_title_round_trip():
    host = FakeHost(title="Dashboard")
    c = _controller(host, label="Web-01")
    c.mount()
    assert host.title == "Web-01 · SSH Console"
    c.unmount()
    assert host.title == "Dashboard"


def test_title_without_label():
    host = FakeHost(title="Dashboard")
    with _controller(host):
        assert host.title == "SSH Console"
    assert host.title == "Dashboard"


def test_title_restored_when_body_raises():
    host = FakeHost(title="Dashboard")
    with pytest.raises(RuntimeError):
        with _controller(host, label="Web-01"):
            raise RuntimeError("render failed")
    assert host.title == "Dashboard"


def test_title_restored_when_terminal_attach_fails():
    host = FakeHost(title="Dashboard")

    def broken_terminal(mount):
        raise ConnectionError("terminal bundle missing")

    c = _controller(host, label="Web-01", terminal=broken_terminal)
    with pytest.raises(ConnectionError):
        c.mount()
    assert host.title == "Dashboard"
    assert c.alive is False


def test_title_applied_even_without_identifier():
    host = FakeHost(title="Dashboard")
    with _controller(host, instance_id=None, label="Web-01"):
        assert host.title == "Web-01 · SSH Console"
    assert host.title == "Dashboard"


def test_mount_is_idempotent():
    host = FakeHost(title="Dashboard")
    c = _controller(host, label="Web-01")
    c.mount()
    c.mount()
    c.unmount()
    assert host.title == "Dashboard"
    c.unmount()
    assert host.title == "Dashboard"


# --- terminal collaborator --------------------------------------------------

def test_terminal_receives_id_and_layout_hints():
    host = FakeHost()
    terminal = RecordingTerminal()
    c = _controller(host, terminal=terminal)
    with c:
        assert c.terminal_handle == "terminal-handle"
        assert terminal.mounts == [TerminalMount(instance_id="i-123", full_screen=True, fit_container=True)]
        assert terminal.detached == 0
    assert terminal.detached == 1
    assert c.terminal_handle is None


def test_missing_identifier_never_mounts_terminal():
    host = FakeHost()
    terminal = RecordingTerminal()
    c = _controller(host, instance_id=None, terminal=terminal)
    with c:
        view = c.view()
    assert terminal.mounts == []
    assert c.is_functional is False
    assert view.functional is False
    assert view.terminal is None
    assert [a.kind for a in view.actions] == ["close"]
    assert MISSING_ID_MESSAGE.startswith("Instance ID unavailable")


def test_functional_view():
    host = FakeHost()
    with _controller(host, label="Web-01", terminal=RecordingTerminal()) as c:
        view = c.view()
    assert view.functional is True
    assert view.title == "Web-01 · SSH Console"
    assert view.header == "Web-01"
    assert view.terminal.instanceId == "i-123"
    assert view.terminal.isFullScreen is True and view.terminal.fitContainer is True
    assert [a.kind for a in view.actions] == ["reload", "close"]
    assert view.closeFallbackDelayMs == 150


# --- reload & close -----------------------------------------------------------

def test_reload_is_explicit_hard_reset():
    host = FakeHost()
    c = _controller(host)
    c.mount()
    assert host.reload_calls == 0
    c.reload()
    assert host.reload_calls == 1


def test_close_allowed_no_fallback():
    host = FakeHost(allow_close=True)
    sched = FakeScheduler()
    c = _controller(host, scheduler=sched)
    c.mount()

    c.request_close()
    assert host.close_calls == 1
    assert c.close_requested is True
    sched.advance(0.15)
    assert host.back_calls == 0
    assert c.closed_confirmed is True
    assert c.fallback_fired is False


def test_close_refused_falls_back_once_after_delay():
    host = FakeHost(allow_close=False)
    sched = FakeScheduler()
    c = _controller(host, scheduler=sched)
    c.mount()

    c.request_close()
    sched.advance(0.149)
    assert host.back_calls == 0

    sched.advance(0.001)
    assert host.back_calls == 1
    assert c.fallback_fired is True

    sched.advance(10)
    assert host.back_calls == 1
    assert host.close_calls == 1  # never retried


def test_fallback_after_teardown_is_a_no_op():
    host = FakeHost(allow_close=False)
    sched = FakeScheduler()
    c = _controller(host, scheduler=sched)
    c.mount()
    c.request_close()
    c.unmount()

    sched.advance(1)
    assert host.back_calls == 0
    assert c.fallback_fired is False


def test_each_close_action_schedules_one_check():
    host = FakeHost(allow_close=False)
    sched = FakeScheduler()
    c = _controller(host, scheduler=sched)
    c.mount()
    c.request_close()
    assert len(sched.pending) == 1
    sched.advance(0.15)
    assert sched.pending == []
    assert host.back_calls == 1


def test_close_uses_running_loop_by_default():
    host = FakeHost(allow_close=False)

    async def scenario():
        c = _controller(host, fallback_delay_ms=10)
        c.mount()
        c.request_close()
        assert host.back_calls == 0
        await asyncio.sleep(0.05)
        return c

    c = asyncio.run(scenario())
    assert host.back_calls == 1
    assert c.fallback_fired is True
