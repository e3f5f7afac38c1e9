"""
web/routes.py -- Jinja2 template routes for the Forkline web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same account store, same auth flow) but return HTML instead of JSON.

Routes:
  GET  /        -- home; shows the signed-in email when the cookie verifies
  GET  /login   -- login / sign-up form
  POST /login   -- validate the form, run the auth flow, redirect home on success
  POST /logout  -- clear cookie, redirect /login
  GET  /test    -- backing store smoke test
"""

import logging
from pathlib import Path

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from accounts.diagnostics import probe_restaurants
from auth.dependencies import try_get_claims
from auth.flow import AuthFlow, AuthForm, FlowState, form_errors
from auth.tokens import set_auth_cookie

logger = logging.getLogger("forkline.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

_FORM_DEFAULTS = {"email": "", "mode": "signup", "role": "customer"}


def _login_page(request: Request, values: dict, errors: dict | None = None, msg: str | None = None) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "login.html",
        {"values": values, "errors": errors or {}, "msg": msg},
    )


# ---------------------------------------------------------------------------
# GET / -- home
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def home(request: Request) -> HTMLResponse:
    claims = try_get_claims(request)
    return templates.TemplateResponse(
        request,
        "home.html",
        {"email": claims.get("email") if claims else None},
    )


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    """Render the login form with sign-up and customer preselected."""
    return _login_page(request, dict(_FORM_DEFAULTS))


@router.post("/login", response_class=HTMLResponse)
def login_post(
    request: Request,
    email: str = Form(default=""),
    password: str = Form(default=""),
    mode: str = Form(default="signup"),
    role: str = Form(default="customer"),
):
    """Handle the login form.

    Field errors re-render the form without calling anything external. A
    failed flow re-renders it with the flow's message and the submitted
    email/mode/role kept, so the user can fix and resubmit. The password is
    never echoed back.
    """
    values = {"email": email, "mode": mode, "role": role}
    try:
        form = AuthForm(email=email, password=password, mode=mode, role=role)
    except ValidationError as exc:
        return _login_page(request, values, errors=form_errors(exc))

    flow: AuthFlow = request.app.state.auth_flow
    outcome = flow.run(form)
    if outcome.state is not FlowState.done:
        return _login_page(request, values, msg=outcome.message)

    settings = request.app.state.settings
    resp = RedirectResponse(outcome.redirect_to or settings.home_path, status_code=303)
    set_auth_cookie(
        resp,
        outcome.session.access_token,
        expire_seconds=outcome.session.expires_in,
        secure=settings.secure_cookies,
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/logout")
def logout(request: Request) -> RedirectResponse:
    """Clear the access token cookie and redirect to the login page."""
    resp = RedirectResponse("/login", status_code=302)
    resp.delete_cookie("access_token")
    return resp


# ---------------------------------------------------------------------------
# GET /test -- backing store smoke test
# ---------------------------------------------------------------------------


@router.get("/test", response_class=HTMLResponse)
def diagnostic_page(request: Request) -> HTMLResponse:
    """One bounded read against the store; no retries, no caching."""
    msg = probe_restaurants(request.app.state.store, limit=request.app.state.settings.diagnostic_row_limit)
    if msg.startswith("Error:"):
        logger.warning("Diagnostic read failed: %s", msg)
    return templates.TemplateResponse(request, "diagnostic.html", {"msg": msg})
