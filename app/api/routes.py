from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from starlette.concurrency import run_in_threadpool

from app.api.auth import forwarded_bearer
from app.api.schemas import ConsoleView, FinalizationView
from app.core.finalize import FinalizationController
from app.core.session_window import SessionIdentity, SessionWindowController, TerminalMount
from app.payments.client import capture_payment
from app.settings import settings
from app.web.pages import render_cancel_page, render_console_page, render_finalization_page

router = APIRouter()

NO_STORE = {"Cache-Control": "no-store"}
FINALIZE_PATH = "/api/billing/payment/finalize"


class PageDocument:
    """The document a server-rendered page will carry; only its title is ours to manage."""

    def __init__(self, title: str):
        self.title = title


class EmbeddedTerminal:
    """Hands the mount to the page; the terminal bundle takes it from there in the browser."""

    def __init__(self, mount: TerminalMount):
        self.mount = mount

    def __enter__(self) -> TerminalMount:
        return self.mount

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


def _finalization(request: Request, bearer: str) -> FinalizationController:
    async def capture(order_token: str):
        # Blocking httpx client; keep the event loop free while it runs.
        return await run_in_threadpool(capture_payment, order_token, auth_token=bearer)

    return FinalizationController(request.query_params, capture)


async def _finalize(request: Request, bearer: str) -> FinalizationView:
    controller = _finalization(request, bearer)
    await controller.run()
    return controller.view()


def _console(instance_id: Optional[str], label: Optional[str]) -> ConsoleView:
    controller = SessionWindowController(
        PageDocument(settings.APP_TITLE),
        SessionIdentity.from_request(instance_id, label),
        terminal=EmbeddedTerminal,
    )
    with controller:
        return controller.view()


# ---------------------------------------------------------------------------
# Payment return (processor redirects here with ?token=<order token>)
# ---------------------------------------------------------------------------
@router.get("/billing/payment/success", response_class=HTMLResponse)
async def payment_success_page(request: Request, bearer: str = Depends(forwarded_bearer)):
    controller = _finalization(request, bearer)
    if not controller.order_token:
        await controller.run()
        return HTMLResponse(render_finalization_page(controller.view()), headers=NO_STORE)

    # Served in Processing at once; the page script makes the one finalize call.
    controller.hand_off()
    finalize_url = f"{FINALIZE_PATH}?{urlencode({'token': controller.order_token})}"
    return HTMLResponse(render_finalization_page(controller.view(), finalize_url=finalize_url), headers=NO_STORE)


@router.get(FINALIZE_PATH, response_model=FinalizationView)
async def payment_finalize(request: Request, bearer: str = Depends(forwarded_bearer)):
    return await _finalize(request, bearer)


@router.get("/billing/payment/cancel", response_class=HTMLResponse)
def payment_cancel_page():
    return HTMLResponse(render_cancel_page())


# ---------------------------------------------------------------------------
# Detached SSH console window
# ---------------------------------------------------------------------------
@router.get("/vps/console", response_class=HTMLResponse)
def console_page_without_id(label: Optional[str] = None):
    return HTMLResponse(render_console_page(_console(None, label)), headers=NO_STORE)


@router.get("/vps/{instance_id}/console", response_class=HTMLResponse)
def console_page(instance_id: str, label: Optional[str] = None):
    return HTMLResponse(render_console_page(_console(instance_id, label)), headers=NO_STORE)


@router.get("/api/vps/{instance_id}/console", response_model=ConsoleView)
def console_view(instance_id: str, label: Optional[str] = None):
    return _console(instance_id, label)
