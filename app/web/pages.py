"""Server-rendered pages. Presentation only: every decision comes from the view models."""
import html
import json
from typing import Optional

from app.api.schemas import ConsoleView, FinalizationView, NavAction
from app.core.state_machine import HEADINGS
from app.core.session_window import MISSING_ID_MESSAGE
from app.payments.models import CAPTURE_FAILED_MESSAGE
from app.settings import settings

_ICONS = {
    "spinner": "&#8635;",
    "check-circle": "&#10004;",
    "x-circle": "&#10006;",
    "warning": "&#9888;",
}

_STYLE = """
      body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif; margin: 0; background: #f4f7fb; color: #172532; }
      .center { display: flex; min-height: 100vh; align-items: center; justify-content: center; padding: 0 16px; }
      .card { max-width: 32rem; width: 100%; background: #fff; border: 1px solid #d8e2ec; border-radius: 12px; padding: 2rem; text-align: center; }
      .icon { font-size: 3rem; margin-bottom: 1rem; }
      .icon.success { color: #22c55e; } .icon.error { color: #dc2626; } .icon.processing { color: #172532; } .icon.cancel { color: #eab308; }
      .muted { color: #4c6073; }
      .actions { display: flex; gap: 12px; justify-content: center; flex-wrap: wrap; }
      .btn { padding: 0.5rem 1rem; border-radius: 6px; border: 1px solid #172532; background: #172532; color: #fff; text-decoration: none; cursor: pointer; font-size: 14px; }
      .btn.outline { background: #fff; color: #172532; }
      .btn.destructive { background: #dc2626; border-color: #dc2626; }
      .btn[aria-disabled="true"] { opacity: 0.5; pointer-events: none; }
"""


def _page(title: str, body: str, extra_style: str = "") -> str:
    return f"""<!doctype html>
<html>
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>{html.escape(title)}</title>
    <style>{_STYLE}{extra_style}
    </style>
  </head>
  <body>
{body}
  </body>
</html>"""


def _link(action: NavAction, css: str = "btn", elem_id: str = "") -> str:
    disabled = "" if action.enabled else ' aria-disabled="true" tabindex="-1"'
    ident = f' id="{elem_id}"' if elem_id else ""
    return f'<a class="{css}"{ident} href="{html.escape(action.href)}"{disabled}>{html.escape(action.label)}</a>'


def _js(value) -> str:
    # JSON literal safe to drop inside a <script> block.
    return json.dumps(value).replace("</", "<\\/")


# Browser side of the hand-off: one finalize call, then the terminal view.
# A failed call shows the generic failure and reopens the billing exit.
_FINALIZE_SCRIPT = """
    <script>
      const FINALIZE_URL = {url};
      const ICONS = {icons};
      const FAILED = {failed};
      let finalizeFired = false;
      function showOutcome(view) {{
        const icon = document.getElementById("finalize-icon");
        icon.className = "icon " + view.status;
        icon.innerHTML = ICONS[view.icon] || "";
        document.getElementById("finalize-heading").textContent = view.heading;
        document.getElementById("finalize-message").textContent = view.message;
        document.title = view.heading;
        for (const id of ["nav-billing", "nav-dashboard"]) {{
          const link = document.getElementById(id);
          link.removeAttribute("aria-disabled");
          link.removeAttribute("tabindex");
        }}
      }}
      function finalizePayment() {{
        if (finalizeFired) {{ return; }}
        finalizeFired = true;
        fetch(FINALIZE_URL, {{ credentials: "same-origin", headers: {{ Accept: "application/json" }} }})
          .then(function (resp) {{
            if (!resp.ok) {{ throw new Error("finalize failed: " + resp.status); }}
            return resp.json();
          }})
          .then(showOutcome)
          .catch(function () {{ showOutcome(FAILED); }});
      }}
      finalizePayment();
    </script>"""


def render_finalization_page(view: FinalizationView, finalize_url: Optional[str] = None) -> str:
    primary, secondary = view.actions
    script = ""
    if finalize_url:
        heading, icon = HEADINGS["error"]
        failed = {"status": "error", "heading": heading, "icon": icon, "message": CAPTURE_FAILED_MESSAGE}
        script = _FINALIZE_SCRIPT.format(url=_js(finalize_url), icons=_js(_ICONS), failed=_js(failed))
    body = f"""    <div class="center">
      <div class="card">
        <div id="finalize-icon" class="icon {view.status}">{_ICONS.get(view.icon, "")}</div>
        <h1 id="finalize-heading">{html.escape(view.heading)}</h1>
        <p id="finalize-message" class="muted">{html.escape(view.message)}</p>
        <div class="actions">
          {_link(primary, elem_id="nav-billing")}
          {_link(secondary, "btn outline", "nav-dashboard")}
        </div>
      </div>
    </div>{script}"""
    return _page(view.heading, body)


def render_cancel_page() -> str:
    body = f"""    <div class="center">
      <div class="card">
        <div class="icon cancel">{_ICONS["x-circle"]}</div>
        <h1>Payment Cancelled</h1>
        <p class="muted">The PayPal payment was cancelled. Your wallet balance has not changed. You can restart the process whenever you are ready.</p>
        <div class="actions">
          <a class="btn" href="{html.escape(settings.BILLING_ROUTE)}">Back to Billing</a>
          <a class="btn outline" href="{html.escape(settings.DASHBOARD_ROUTE)}">Go to Dashboard</a>
        </div>
      </div>
    </div>"""
    return _page("Payment Cancelled", body)


# Browser binding of the close sequence: close, one delayed check, history back.
_CLOSE_SCRIPT = """
    <script>
      const CLOSE_FALLBACK_DELAY_MS = {delay};
      function closeConsole() {{
        window.close();
        setTimeout(function () {{
          if (!window.closed) {{ window.history.back(); }}
        }}, CLOSE_FALLBACK_DELAY_MS);
      }}
    </script>"""


def render_console_page(view: ConsoleView) -> str:
    script = _CLOSE_SCRIPT.format(delay=json.dumps(int(view.closeFallbackDelayMs)))
    if not view.functional:
        body = f"""    <div class="center">
      <div>
        <p class="muted">{html.escape(MISSING_ID_MESSAGE)}</p>
        <button class="btn outline" type="button" onclick="closeConsole()">Close</button>
      </div>
    </div>{script}"""
        return _page(view.title, body)

    terminal = view.terminal
    extra = """
      .console { display: flex; flex-direction: column; height: 100vh; }
      header { display: flex; align-items: center; justify-content: space-between; gap: 16px; padding: 16px 24px; border-bottom: 1px solid #d8e2ec; background: #fff; }
      .eyebrow { font-size: 12px; text-transform: uppercase; letter-spacing: 0.05em; color: #4c6073; }
      main { flex: 1; min-height: 0; overflow: hidden; padding: 24px; }
      #ssh-terminal { height: 100%; }"""
    body = f"""    <div class="console">
      <header>
        <div>
          <div class="eyebrow">SSH Console</div>
          <div><strong>{html.escape(view.header or "")}</strong></div>
        </div>
        <div class="actions">
          <button class="btn outline" type="button" onclick="window.location.reload()">Reload</button>
          <button class="btn destructive" type="button" onclick="closeConsole()">Close Window</button>
        </div>
      </header>
      <main>
        <div id="ssh-terminal"
             data-instance-id="{html.escape(terminal.instanceId)}"
             data-full-screen="{str(terminal.isFullScreen).lower()}"
             data-fit-container="{str(terminal.fitContainer).lower()}"></div>
      </main>
    </div>{script}
    <script src="{html.escape(settings.TERMINAL_SCRIPT_URL)}"></script>"""
    return _page(view.title, body, extra)
