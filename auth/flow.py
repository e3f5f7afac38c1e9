"""
auth/flow.py -- The login/signup flow, from submitted form to provisioned user.

State machine:

    idle -> submitting -> authenticated -> provisioning -> done
                 |              |               |
                 +--------------+---------------+--> failed

  submitting    -- sign_up or sign_in_with_password against the identity provider
  authenticated -- the provider returned a session with a user id and access token
  provisioning  -- POST /api/ensure-user with the session's id and email, the
                   chosen role, and the access token as bearer credential
  done          -- caller redirects to home
  failed        -- caller re-renders the form with `message`; the user may
                   resubmit. Nothing is retried automatically.

AuthFlow holds no per-user state between runs, so one instance (built in the
API lifespan) serves every request. Cancellation is not supported: a run
either finishes or fails.

Layer rule: no imports from api/, web/, or accounts/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Optional

import requests
from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ValidationError, field_validator

from auth.identity import AuthError, IdentityClient
from auth.models import AuthSession

logger = logging.getLogger("forkline.flow")

_TIMEOUT = 10

NO_SESSION_MESSAGE = "Logged in, but no session found."


# ---------------------------------------------------------------------------
# Form
# ---------------------------------------------------------------------------


class AuthForm(BaseModel):
    """Credentials and choices submitted on the login page."""

    email: str
    password: str
    mode: Literal["signup", "signin"] = "signup"
    role: Literal["customer", "staff"] = "customer"

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError:
            raise ValueError("Invalid email address") from None
        return value

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if len(value) < 6:
            raise ValueError("Min 6 characters")
        return value


def form_errors(exc: ValidationError) -> dict[str, str]:
    """Map a ValidationError to {field: first message} for inline display.

    Messages raised by our own validators are shown verbatim, without
    pydantic's "Value error, " prefix.
    """
    errors: dict[str, str] = {}
    for err in exc.errors():
        name = str(err["loc"][0]) if err["loc"] else "form"
        if name in errors:
            continue
        ctx_error = (err.get("ctx") or {}).get("error")
        errors[name] = str(ctx_error) if ctx_error is not None else err["msg"]
    return errors


# ---------------------------------------------------------------------------
# Provisioning call
# ---------------------------------------------------------------------------


class ProvisionError(Exception):
    """The provisioning endpoint could not be reached."""


@dataclass
class ProvisionResult:
    status_code: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class HttpProvisioner:
    """Calls POST /api/ensure-user on the configured API base URL.

    `session` is anything with a requests-style post(url, json=, headers=,
    timeout=) returning an object with status_code and text. Defaults to a
    pooled requests.Session for the process lifetime.
    """

    def __init__(self, base_url: str, session=None) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = session or requests.Session()

    def ensure_user(self, user_id: str, email: Optional[str], role: str, access_token: str) -> ProvisionResult:
        try:
            resp = self._http.post(
                f"{self.base_url}/api/ensure-user",
                json={"id": user_id, "email": email, "role": role},
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise ProvisionError(str(exc)) from exc
        return ProvisionResult(status_code=resp.status_code, text=resp.text)

    def close(self) -> None:
        close = getattr(self._http, "close", None)
        if close is not None:
            close()


# ---------------------------------------------------------------------------
# Flow
# ---------------------------------------------------------------------------


class FlowState(str, Enum):
    idle = "idle"
    submitting = "submitting"
    authenticated = "authenticated"
    provisioning = "provisioning"
    done = "done"
    failed = "failed"


@dataclass
class FlowOutcome:
    """Where a run ended, and what the caller needs to finish it.

    states lists every state entered, in order, starting with idle.
    """

    state: FlowState = FlowState.idle
    message: Optional[str] = None
    session: Optional[AuthSession] = None
    redirect_to: Optional[str] = None
    states: list[FlowState] = field(default_factory=lambda: [FlowState.idle])

    def enter(self, state: FlowState) -> None:
        self.state = state
        self.states.append(state)

    def fail(self, message: str) -> "FlowOutcome":
        self.message = message
        self.enter(FlowState.failed)
        return self


class AuthFlow:
    """Drives one login/signup attempt end to end."""

    def __init__(self, identity: IdentityClient, provisioner: HttpProvisioner, home_path: str = "/") -> None:
        self.identity = identity
        self.provisioner = provisioner
        self.home_path = home_path

    def run(self, form: AuthForm) -> FlowOutcome:
        outcome = FlowOutcome()

        outcome.enter(FlowState.submitting)
        try:
            if form.mode == "signup":
                session = self.identity.sign_up(form.email, form.password)
            else:
                session = self.identity.sign_in_with_password(form.email, form.password)
        except AuthError as exc:
            return outcome.fail(str(exc))

        if session is None or not session.user.id or not session.access_token:
            return outcome.fail(NO_SESSION_MESSAGE)
        outcome.session = session
        outcome.enter(FlowState.authenticated)

        outcome.enter(FlowState.provisioning)
        try:
            result = self.provisioner.ensure_user(
                session.user.id,
                session.user.email or form.email,
                form.role,
                session.access_token,
            )
        except ProvisionError as exc:
            logger.warning("Provisioning call for %s failed: %s", session.user.id, exc)
            return outcome.fail(f"Ensure user failed: {exc}")
        if not result.ok:
            logger.warning("Provisioning for %s returned %d", session.user.id, result.status_code)
            return outcome.fail(f"Ensure user failed: {result.text}")

        outcome.redirect_to = self.home_path
        outcome.enter(FlowState.done)
        return outcome
