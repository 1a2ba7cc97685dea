"""
fleetdesk authentication
Credential wire helpers and the ``fleetdesk auth`` command line.
"""

import argparse
import getpass
import json
import logging
import sys
from typing import Any, Optional

import requests

from .types import (
    AUTH_REFRESH,
    AUTH_REFRESH_FAILED,
    DEFAULT_HEADERS,
    DEFAULT_TIMEOUT_SEC,
    ApiError,
    ApiResponse,
    TokenPair,
)

logger = logging.getLogger(__name__)


class RefreshError(Exception):
    """The refresh endpoint could not produce a new token pair."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


def extract_tokens(body: Any) -> Optional[TokenPair]:
    """Pull a token pair out of a login/refresh response body.

    Accepts both the bare ``{"access_token", "refresh_token"}`` shape and the
    backend's ``{"success", "message", "data": {...}}`` envelope.
    """
    if not isinstance(body, dict):
        return None
    if isinstance(body.get("data"), dict):
        body = body["data"]

    access = body.get("access_token")
    refresh = body.get("refresh_token")
    if access and refresh:
        return TokenPair(access_token=access, refresh_token=refresh)
    return None


def refresh_tokens(
    base_url: str,
    refresh_token: Optional[str],
    timeout: float = DEFAULT_TIMEOUT_SEC,
) -> TokenPair:
    """Exchange a refresh token for a new pair. Raises RefreshError."""
    if not refresh_token:
        raise RefreshError("No refresh token available")

    try:
        resp = requests.post(
            f"{base_url}{AUTH_REFRESH}",
            headers={**DEFAULT_HEADERS},
            json={"refresh_token": refresh_token},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise RefreshError(f"Refresh request failed: {exc}") from exc

    if not 200 <= resp.status_code < 300:
        raise RefreshError(
            f"Refresh endpoint answered HTTP {resp.status_code}",
            status=resp.status_code,
        )

    try:
        body = resp.json()
    except ValueError as exc:
        raise RefreshError("Refresh response is not JSON", status=resp.status_code) from exc

    pair = extract_tokens(body)
    if pair is None:
        raise RefreshError("Refresh response is missing tokens", status=resp.status_code)
    return pair


# ── CLI ───────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fleetdesk auth", description="fleetdesk session management")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("register")
    p.add_argument("--username", required=True)
    p.add_argument("--email", required=True)
    p.add_argument("--first-name", required=True)
    p.add_argument("--last-name", required=True)
    p.add_argument("--role-id", required=True, type=int)
    p.add_argument("--password", help="prompted for when omitted")

    p = sub.add_parser("login")
    p.add_argument("--email", required=True)
    p.add_argument("--password", help="prompted for when omitted")

    sub.add_parser("logout")
    sub.add_parser("refresh")
    sub.add_parser("profile")
    sub.add_parser("validate")

    p = sub.add_parser("change-password")
    p.add_argument("--current-password")
    p.add_argument("--new-password")

    return parser


def _refresh_now(client) -> ApiResponse:
    if client.refresh() is None:
        return ApiResponse.fail(ApiError(code=AUTH_REFRESH_FAILED, message="Session expired", status=401))
    return ApiResponse.ok(message="Token refreshed")


_DISPATCH = {
    "register": lambda c, a: c.register(
        a.username,
        a.email,
        a.password or getpass.getpass("Password: "),
        a.first_name,
        a.last_name,
        a.role_id,
    ).to_dict(),
    "login": lambda c, a: c.login(a.email, a.password or getpass.getpass("Password: ")).to_dict(),
    "logout": lambda c, _: c.logout().to_dict(),
    "refresh": lambda c, _: _refresh_now(c).to_dict(),
    "profile": lambda c, _: c.get_profile().to_dict(),
    "validate": lambda c, _: c.validate_token().to_dict(),
    "change-password": lambda c, a: c.change_password(
        a.current_password or getpass.getpass("Current password: "),
        a.new_password or getpass.getpass("New password: "),
    ).to_dict(),
}


def main() -> None:
    """CLI entry point: session commands, result printed as JSON."""
    from .client import ApiClient
    from .log import configure_logging
    from .settings import get_settings

    args = _build_parser().parse_args()
    settings = get_settings()
    configure_logging(settings.log_level)
    client = ApiClient.from_settings(settings)

    result = _DISPATCH[args.command](client, args)
    if not result.get("success"):
        print(json.dumps(result, ensure_ascii=False), file=sys.stderr)
        sys.exit(1)

    json.dump(result, sys.stdout, ensure_ascii=False, indent=2)
    print()
