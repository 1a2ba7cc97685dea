"""
Tests for fleetdesk.auth module.

Covers:
- extract_tokens (bare body, envelope, missing tokens)
- refresh_tokens (success, denial, network failure, malformed body)
- auth CLI main (register, login, refresh output envelope)
"""

import json
from unittest.mock import patch

import pytest
import requests

from fleetdesk.auth import RefreshError, _DISPATCH, _build_parser, extract_tokens, main, refresh_tokens
from fleetdesk.storage import FileTokenStore, origin_of
from fleetdesk.types import TokenPair

from conftest import BASE_URL


# ── extract_tokens ──────────────────────────────────────────


class TestExtractTokens:

    def test_bare_body(self, access_token, refresh_token):
        body = {"access_token": access_token, "refresh_token": refresh_token}
        assert extract_tokens(body) == TokenPair(access_token, refresh_token)

    def test_envelope(self, mock_login_response, token_pair):
        assert extract_tokens(mock_login_response) == token_pair

    def test_missing_refresh(self, access_token):
        assert extract_tokens({"access_token": access_token}) is None

    def test_empty_values(self):
        assert extract_tokens({"access_token": "", "refresh_token": ""}) is None

    @pytest.mark.parametrize("body", [None, [], "token", 42])
    def test_non_dict(self, body):
        assert extract_tokens(body) is None


# ── refresh_tokens ──────────────────────────────────────────


class TestRefreshTokens:

    @patch("fleetdesk.auth.requests.post")
    def test_returns_new_pair(self, mock_post, refresh_token, new_token_pair,
                              mock_refresh_response, response):
        mock_post.return_value = response(200, mock_refresh_response)

        pair = refresh_tokens(BASE_URL, refresh_token, timeout=4)

        assert pair == new_token_pair
        args, kwargs = mock_post.call_args
        assert args[0] == f"{BASE_URL}/api/v1/auth/refresh"
        assert kwargs["json"] == {"refresh_token": refresh_token}
        assert kwargs["timeout"] == 4
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert "Authorization" not in kwargs["headers"]

    @patch("fleetdesk.auth.requests.post")
    def test_missing_token_skips_request(self, mock_post):
        with pytest.raises(RefreshError):
            refresh_tokens(BASE_URL, None)
        mock_post.assert_not_called()

    @patch("fleetdesk.auth.requests.post")
    def test_denied(self, mock_post, refresh_token, response):
        mock_post.return_value = response(401, {"message": "Token refresh failed"})

        with pytest.raises(RefreshError) as exc_info:
            refresh_tokens(BASE_URL, refresh_token)

        assert exc_info.value.status == 401

    @patch("fleetdesk.auth.requests.post")
    def test_network_failure(self, mock_post, refresh_token):
        mock_post.side_effect = requests.ConnectionError("refused")

        with pytest.raises(RefreshError):
            refresh_tokens(BASE_URL, refresh_token)

    @patch("fleetdesk.auth.requests.post")
    def test_body_without_tokens(self, mock_post, refresh_token, response):
        mock_post.return_value = response(200, {"success": True, "data": {}})

        with pytest.raises(RefreshError):
            refresh_tokens(BASE_URL, refresh_token)

    @patch("fleetdesk.auth.requests.post")
    def test_body_not_json(self, mock_post, refresh_token, response):
        mock_post.return_value = response(200, text="<html></html>")

        with pytest.raises(RefreshError):
            refresh_tokens(BASE_URL, refresh_token)


# ── CLI ─────────────────────────────────────────────────────


class TestAuthParser:

    def test_login_requires_email(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["login"])

    def test_register_role_id_is_int(self):
        args = _build_parser().parse_args([
            "register", "--username", "jdoe", "--email", "j@fleet.test",
            "--first-name", "Jane", "--last-name", "Doe", "--role-id", "2",
        ])
        assert args.role_id == 2
        assert args.password is None

    def test_all_commands_registered(self):
        assert set(_DISPATCH) == {
            "register", "login", "logout", "refresh", "profile", "validate", "change-password",
        }


@pytest.fixture
def cli_store(monkeypatch, tmp_path):
    token_dir = tmp_path / "tokens"
    monkeypatch.setenv("FLEETDESK_API_URL", BASE_URL)
    monkeypatch.setenv("FLEETDESK_TOKEN_DIR", str(token_dir))
    return FileTokenStore(token_dir, origin_of(BASE_URL))


class TestAuthMain:

    @patch("fleetdesk.client.requests.request")
    def test_login_persists_to_file(self, mock_request, capsys, cli_store, token_pair,
                                    mock_login_response, response):
        mock_request.return_value = response(200, mock_login_response)

        with patch("sys.argv", ["fleetdesk", "login", "--email", "a@b.com", "--password", "pw"]):
            main()

        output = json.loads(capsys.readouterr().out)
        assert output["success"] is True
        assert cli_store.load() == token_pair

    @patch("fleetdesk.auth.getpass.getpass", return_value="prompted")
    @patch("fleetdesk.client.requests.request")
    def test_login_prompts_for_password(self, mock_request, mock_getpass, cli_store,
                                        mock_login_response, response):
        mock_request.return_value = response(200, mock_login_response)

        with patch("sys.argv", ["fleetdesk", "login", "--email", "a@b.com"]):
            main()

        assert mock_request.call_args[1]["json"]["password"] == "prompted"

    @patch("fleetdesk.client.requests.request")
    def test_login_failure_exits(self, mock_request, cli_store, response):
        mock_request.return_value = response(401, {"message": "Authentication failed"})

        with patch("sys.argv", ["fleetdesk", "login", "--email", "a@b.com", "--password", "x"]):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 1
        assert cli_store.load() is None

    @patch("fleetdesk.client.requests.request")
    def test_logout(self, mock_request, capsys, cli_store, token_pair, response):
        cli_store.save(token_pair)
        mock_request.return_value = response(200, {"success": True, "message": "Logout successful"})

        with patch("sys.argv", ["fleetdesk", "logout"]):
            main()

        assert cli_store.load() is None
        assert json.loads(capsys.readouterr().out)["message"] == "Logout successful"

    @patch("fleetdesk.auth.requests.post")
    def test_refresh(self, mock_post, capsys, cli_store, token_pair, new_token_pair,
                     mock_refresh_response, response):
        cli_store.save(token_pair)
        mock_post.return_value = response(200, mock_refresh_response)

        with patch("sys.argv", ["fleetdesk", "refresh"]):
            main()

        assert cli_store.load() == new_token_pair
        assert json.loads(capsys.readouterr().out) == {"success": True, "message": "Token refreshed"}

    @patch("fleetdesk.auth.requests.post")
    def test_refresh_failure_prints_envelope(self, mock_post, capsys, cli_store, token_pair, response):
        cli_store.save(token_pair)
        mock_post.return_value = response(401, {"message": "Token refresh failed"})

        with patch("sys.argv", ["fleetdesk", "refresh"]):
            with pytest.raises(SystemExit):
                main()

        err = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert err["success"] is False
        assert err["error"] == {"code": "AUTH_REFRESH_FAILED", "message": "Session expired", "status": 401}
        assert cli_store.load() is None

    @patch("fleetdesk.auth.getpass.getpass", return_value="prompted")
    @patch("fleetdesk.client.requests.request")
    def test_register(self, mock_request, mock_getpass, capsys, cli_store, token_pair,
                      mock_login_response, response):
        mock_login_response["data"]["user"] = {"id": 7, "username": "jdoe", "email": "j@fleet.test"}
        mock_request.return_value = response(201, mock_login_response)
        argv = [
            "fleetdesk", "register", "--username", "jdoe", "--email", "j@fleet.test",
            "--first-name", "Jane", "--last-name", "Doe", "--role-id", "2",
        ]

        with patch("sys.argv", argv):
            main()

        output = json.loads(capsys.readouterr().out)
        assert output["data"]["username"] == "jdoe"
        assert mock_request.call_args[1]["json"]["password"] == "prompted"
        assert mock_request.call_args[1]["json"]["role_id"] == 2
        assert cli_store.load() == token_pair
    @patch("fleetdesk.auth.requests.post")
    def test_refresh_without_session_exits(self, mock_post, cli_store):
        with patch("sys.argv", ["fleetdesk", "refresh"]):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 1
        mock_post.assert_not_called()

    @patch("fleetdesk.client.requests.request")
    def test_profile(self, mock_request, capsys, cli_store, token_pair,
                     mock_profile_response, response):
        cli_store.save(token_pair)
        mock_request.return_value = response(200, mock_profile_response)

        with patch("sys.argv", ["fleetdesk", "profile"]):
            main()

        assert json.loads(capsys.readouterr().out)["data"]["username"] == "jane.doe"
