"""
tests/test_auth_flow.py -- Unit tests for the login/signup flow in auth/flow.py.

The identity provider and the provisioning endpoint are MagicMock fakes, so
every branch of the state machine can be driven directly:
  - signup / signin dispatch
  - provider rejection, missing session, provisioning failure
  - the happy path ending in done with a redirect home
Plus AuthForm validation messages and HttpProvisioner's request shape.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests
from pydantic import ValidationError

from auth.flow import (
    NO_SESSION_MESSAGE,
    AuthFlow,
    AuthForm,
    FlowState,
    HttpProvisioner,
    ProvisionError,
    ProvisionResult,
    form_errors,
)
from auth.identity import AuthError
from auth.models import AuthSession, SessionUser


def _form(**overrides) -> AuthForm:
    values = {"email": "ana@example.com", "password": "hunter22", "mode": "signup", "role": "customer"}
    values.update(overrides)
    return AuthForm(**values)


def _session() -> AuthSession:
    return AuthSession(user=SessionUser(id="user-1", email="ana@example.com"), access_token="tok-123")


class TestAuthFlow:
    def test_signup_happy_path(self, identity, provisioner) -> None:
        identity.sign_up.return_value = _session()
        outcome = AuthFlow(identity, provisioner).run(_form(role="staff"))

        assert outcome.state is FlowState.done
        assert outcome.redirect_to == "/"
        assert outcome.message is None
        assert outcome.states == [
            FlowState.idle,
            FlowState.submitting,
            FlowState.authenticated,
            FlowState.provisioning,
            FlowState.done,
        ]
        identity.sign_up.assert_called_once_with("ana@example.com", "hunter22")
        identity.sign_in_with_password.assert_not_called()
        provisioner.ensure_user.assert_called_once_with("user-1", "ana@example.com", "staff", "tok-123")

    def test_signin_uses_password_grant(self, identity, provisioner) -> None:
        identity.sign_in_with_password.return_value = _session()
        outcome = AuthFlow(identity, provisioner, home_path="/menu").run(_form(mode="signin"))

        assert outcome.state is FlowState.done
        assert outcome.redirect_to == "/menu"
        identity.sign_in_with_password.assert_called_once_with("ana@example.com", "hunter22")
        identity.sign_up.assert_not_called()

    def test_provider_rejection_fails_without_provisioning(self, identity, provisioner) -> None:
        identity.sign_in_with_password.side_effect = AuthError("Invalid login credentials")
        outcome = AuthFlow(identity, provisioner).run(_form(mode="signin"))

        assert outcome.state is FlowState.failed
        assert outcome.message == "Invalid login credentials"
        assert outcome.states == [FlowState.idle, FlowState.submitting, FlowState.failed]
        provisioner.ensure_user.assert_not_called()

    def test_no_session_fails(self, identity, provisioner) -> None:
        identity.sign_up.return_value = None
        outcome = AuthFlow(identity, provisioner).run(_form())

        assert outcome.state is FlowState.failed
        assert outcome.message == NO_SESSION_MESSAGE
        provisioner.ensure_user.assert_not_called()

    def test_provisioning_non_success_fails_with_body(self, identity, provisioner) -> None:
        identity.sign_up.return_value = _session()
        provisioner.ensure_user.return_value = ProvisionResult(status_code=500, text='{"error":"disk I/O error"}')
        outcome = AuthFlow(identity, provisioner).run(_form())

        assert outcome.state is FlowState.failed
        assert outcome.message == 'Ensure user failed: {"error":"disk I/O error"}'
        assert FlowState.provisioning in outcome.states
        assert outcome.redirect_to is None

    def test_provisioning_unreachable_fails(self, identity, provisioner) -> None:
        identity.sign_up.return_value = _session()
        provisioner.ensure_user.side_effect = ProvisionError("Connection refused")
        outcome = AuthFlow(identity, provisioner).run(_form())

        assert outcome.state is FlowState.failed
        assert outcome.message == "Ensure user failed: Connection refused"

    def test_session_without_email_falls_back_to_form_email(self, identity, provisioner) -> None:
        identity.sign_up.return_value = AuthSession(user=SessionUser(id="user-1"), access_token="tok")
        AuthFlow(identity, provisioner).run(_form())
        provisioner.ensure_user.assert_called_once_with("user-1", "ana@example.com", "customer", "tok")


class TestAuthForm:
    def test_defaults(self) -> None:
        form = AuthForm(email="ana@example.com", password="hunter22")
        assert form.mode == "signup"
        assert form.role == "customer"

    def test_messages(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            AuthForm(email="nope", password="123", mode="signup", role="customer")
        errors = form_errors(exc_info.value)
        assert errors == {"email": "Invalid email address", "password": "Min 6 characters"}

    def test_unknown_role_is_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            AuthForm(email="ana@example.com", password="hunter22", role="admin")
        assert set(form_errors(exc_info.value)) == {"role"}


class TestHttpProvisioner:
    def test_posts_json_with_bearer(self) -> None:
        http = MagicMock()
        http.post.return_value = MagicMock(status_code=200, text='{"ok":true}')
        result = HttpProvisioner("http://api.local/", session=http).ensure_user("user-1", "a@example.com", "staff", "tok")

        assert result.ok
        http.post.assert_called_once()
        args, kwargs = http.post.call_args
        assert args[0] == "http://api.local/api/ensure-user"
        assert kwargs["json"] == {"id": "user-1", "email": "a@example.com", "role": "staff"}
        assert kwargs["headers"]["Authorization"] == "Bearer tok"

    def test_non_2xx_is_not_ok(self) -> None:
        http = MagicMock()
        http.post.return_value = MagicMock(status_code=400, text="bad")
        result = HttpProvisioner("http://api.local", session=http).ensure_user("u", "a@example.com", "customer", "t")
        assert not result.ok
        assert result.text == "bad"

    def test_transport_error_raises_provision_error(self) -> None:
        http = MagicMock()
        http.post.side_effect = requests.ConnectionError("Connection refused")
        with pytest.raises(ProvisionError, match="Connection refused"):
            HttpProvisioner("http://api.local", session=http).ensure_user("u", "a@example.com", "customer", "t")
