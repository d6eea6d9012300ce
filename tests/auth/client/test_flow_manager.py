"""Tests for authorization URL building and callback validation.

High-impact tests covering:
- Authorization URL generation with every required parameter
- Callback validation order: provider error, then state, then code
"""

from urllib.parse import parse_qs, urlparse

import pytest

from twist_cli.auth.client.models.errors import (
    AuthorizationError,
    MissingCodeError,
    StateValidationError,
)
from twist_cli.auth.client.models.flow import AuthorizationResponse
from twist_cli.auth.client.models.registration import ClientCredentials
from twist_cli.auth.client.models.security import PKCEParameters
from twist_cli.auth.client.models.settings import DEFAULT_SCOPES
from twist_cli.auth.client.services.flow import OAuth2FlowManager


class TestBuildAuthorizationUrl:
    """Test authorization URL generation."""

    def setup_method(self):
        # Arrange
        self.flow_manager = OAuth2FlowManager()
        self.client_credentials = ClientCredentials(client_id="c1", client_secret="s1")
        self.pkce_params = PKCEParameters(
            code_verifier="v" * 43, code_challenge="C", state="S"
        )

    def test_url_carries_all_parameters(self):
        # Act
        auth_url = self.flow_manager.build_authorization_url(
            self.client_credentials, self.pkce_params
        )

        # Assert
        parsed = urlparse(auth_url)
        query_params = parse_qs(parsed.query)

        assert parsed.scheme == "https"
        assert parsed.netloc == "twist.com"
        assert parsed.path == "/oauth/authorize"

        assert query_params["client_id"] == ["c1"]
        assert query_params["response_type"] == ["code"]
        assert query_params["redirect_uri"] == ["http://localhost:8766/callback"]
        assert query_params["state"] == ["S"]
        assert query_params["code_challenge"] == ["C"]
        assert query_params["code_challenge_method"] == ["S256"]
        assert query_params["scope"] == [" ".join(DEFAULT_SCOPES)]

    def test_url_never_contains_secrets(self):
        # Act
        auth_url = self.flow_manager.build_authorization_url(
            self.client_credentials, self.pkce_params
        )

        # Assert
        assert "v" * 43 not in auth_url
        assert "client_secret" not in auth_url

    def test_scope_covers_every_resource(self):
        scope = self.flow_manager.settings.scope.split(" ")

        for resource in (
            "user",
            "workspaces",
            "channels",
            "threads",
            "comments",
            "messages",
            "reactions",
            "search",
            "notifications",
        ):
            assert any(s.startswith(f"{resource}:") for s in scope)


class TestValidateCallback:
    """Test callback validation order."""

    def setup_method(self):
        # Arrange
        self.flow_manager = OAuth2FlowManager()

    def validate(self, **params):
        response = self.flow_manager.parse_callback_params(params)
        return self.flow_manager.validate_callback(response, "expected-state")

    def test_valid_callback_returns_code(self):
        assert self.validate(code="abc", state="expected-state") == "abc"

    def test_provider_error_wins_over_state_mismatch(self):
        with pytest.raises(AuthorizationError) as exc_info:
            self.validate(
                error="access_denied",
                error_description="User denied access",
                state="WRONG",
            )

        assert exc_info.value.error == "access_denied"
        assert exc_info.value.error_description == "User denied access"
        assert "User denied access" in str(exc_info.value)

    def test_provider_error_without_description_uses_error_code(self):
        with pytest.raises(AuthorizationError, match="access_denied"):
            self.validate(error="access_denied")

    @pytest.mark.parametrize("state", ["WRONG", "", None, "expected-state "])
    def test_state_mismatch_with_code(self, state):
        params = {"code": "abc"}
        if state is not None:
            params["state"] = state

        with pytest.raises(StateValidationError):
            self.validate(**params)

    @pytest.mark.parametrize("state", ["WRONG", "", None])
    def test_state_mismatch_without_code_is_not_missing_code(self, state):
        params = {} if state is None else {"state": state}

        with pytest.raises(StateValidationError):
            self.validate(**params)

    @pytest.mark.parametrize("code", [None, ""])
    def test_matching_state_without_code(self, code):
        params = {"state": "expected-state"}
        if code is not None:
            params["code"] = code

        with pytest.raises(MissingCodeError):
            self.validate(**params)

    def test_empty_error_parameter_is_ignored(self):
        assert self.validate(error="", code="abc", state="expected-state") == "abc"


class TestAuthorizationResponse:
    def test_error_predicate(self):
        assert AuthorizationResponse(error="access_denied").is_error()
        assert not AuthorizationResponse(error="").is_error()
