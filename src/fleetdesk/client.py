"""
fleetdesk API client
Authenticated requests, session management, rental companies and vehicles.
"""

import argparse
import json
import logging
import sys
import threading
from typing import Any, Callable, Optional
from urllib.parse import quote

import requests

from .auth import RefreshError, extract_tokens, refresh_tokens
from .models import (
    CompanyForm,
    VehicleForm,
    company_form_to_payload,
    company_from_wire,
    profile_from_wire,
    vehicle_form_to_payload,
    vehicle_from_wire,
)
from .settings import Settings, get_settings
from .storage import TokenStore, build_token_store
from .types import (
    AUTH_CHANGE_PASSWORD,
    AUTH_LOGIN,
    AUTH_LOGOUT,
    AUTH_PROFILE,
    AUTH_REFRESH_FAILED,
    AUTH_REGISTER,
    AUTH_VALIDATE,
    COMPANIES,
    COMPANY_STATUSES,
    DEFAULT_HEADERS,
    DEFAULT_TIMEOUT_SEC,
    NETWORK_ERROR,
    SERVER_ERROR,
    UNKNOWN_ERROR,
    VEHICLE_STATUSES,
    VEHICLES,
    ApiError,
    ApiResponse,
    TokenPair,
)

logger = logging.getLogger(__name__)


class ApiClient:
    """fleetdesk API client with bearer tokens and one refresh-and-retry on 401.

    Every call resolves to an :class:`ApiResponse`; transport and server
    failures come back as ``success=False`` envelopes instead of exceptions.
    When a refresh fails the stored tokens are wiped and
    ``on_session_expired`` is invoked so the caller can send the user back
    to the login entry point.
    """

    def __init__(
        self,
        base_url: str,
        store: TokenStore,
        timeout: float = DEFAULT_TIMEOUT_SEC,
        on_session_expired: Optional[Callable[[], None]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._store = store
        self._on_session_expired = on_session_expired
        self._refresh_lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        on_session_expired: Optional[Callable[[], None]] = None,
    ) -> "ApiClient":
        settings = settings or get_settings()
        return cls(
            settings.api_url,
            build_token_store(settings),
            timeout=settings.request_timeout,
            on_session_expired=on_session_expired,
        )

    @property
    def store(self) -> TokenStore:
        return self._store

    @property
    def tokens(self) -> Optional[TokenPair]:
        return self._store.load()

    @property
    def is_authenticated(self) -> bool:
        return self._store.load() is not None

    def _headers(self, pair: Optional[TokenPair], extra: Optional[dict] = None) -> dict:
        headers = {**DEFAULT_HEADERS, **(extra or {})}
        if pair is not None:
            for key in [k for k in headers if k.lower() == "authorization"]:
                del headers[key]
            headers["Authorization"] = f"Bearer {pair.access_token}"
        return headers

    # ── Request pipeline ──────────────────────────────────

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        params: Optional[dict] = None,
        headers: Optional[dict] = None,
        auth: bool = True,
        retry_on_401: bool = True,
    ) -> ApiResponse:
        pair = self._store.load() if auth else None
        retried = False

        while True:
            outcome = self._dispatch(method, path, body, params, headers, pair)
            if isinstance(outcome, ApiResponse):
                return outcome

            if outcome.status_code == 401 and auth and retry_on_401 and not retried:
                retried = True
                logger.info(f"{method} {path} rejected with 401, refreshing session")
                pair = self._refresh(stale=pair)
                if pair is None:
                    return ApiResponse.fail(
                        ApiError(
                            code=AUTH_REFRESH_FAILED,
                            message="Session expired, please log in again",
                            status=401,
                        )
                    )
                continue

            return self._envelope(outcome)

    def _dispatch(
        self,
        method: str,
        path: str,
        body: Any,
        params: Optional[dict],
        headers: Optional[dict],
        pair: Optional[TokenPair],
    ):
        """Send one HTTP request. Returns the raw response or a failure envelope."""
        logger.debug(f"{method} {path}")
        try:
            return requests.request(
                method,
                f"{self.base_url}{path}",
                headers=self._headers(pair, headers),
                json=body,
                params=params,
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            logger.warning(f"{method} {path} got no response: {exc}")
            return ApiResponse.fail(ApiError(code=NETWORK_ERROR, message=f"No response from server: {exc}"))
        except (requests.RequestException, TypeError, ValueError) as exc:
            logger.warning(f"{method} {path} could not be sent: {exc}")
            return ApiResponse.fail(ApiError(code=UNKNOWN_ERROR, message=str(exc) or type(exc).__name__))

    def _envelope(self, resp: requests.Response) -> ApiResponse:
        status = resp.status_code
        if not 200 <= status < 300:
            error = _classify(resp)
            logger.debug(f"Request failed with {error.code} (HTTP {status})")
            return ApiResponse.fail(error)

        if not resp.content:
            return ApiResponse.ok(status=status)

        try:
            body = resp.json()
        except ValueError:
            return ApiResponse.fail(
                ApiError(code=UNKNOWN_ERROR, message="Response body is not valid JSON", status=status)
            )

        data, message = body, None
        if isinstance(body, dict):
            message = body.get("message")
            if "data" in body:
                data = body["data"]
        return ApiResponse.ok(data, status=status, message=message)

    # ── Token lifecycle ───────────────────────────────────

    def _refresh(self, stale: Optional[TokenPair]) -> Optional[TokenPair]:
        """Rotate the token pair once. Returns None when the session is gone.

        Concurrent callers are serialized; a caller whose token was already
        rotated by another thread gets the stored pair without a second
        round trip to the refresh endpoint.
        """
        with self._refresh_lock:
            current = self._store.load()
            if current is not None and (stale is None or current.access_token != stale.access_token):
                logger.debug("Token pair already rotated, reusing it")
                return current

            try:
                pair = refresh_tokens(
                    self.base_url,
                    current.refresh_token if current else None,
                    timeout=self.timeout,
                )
            except RefreshError as exc:
                logger.warning(f"Token refresh failed: {exc}")
                self._expire_session()
                return None

            self._store.save(pair)
            logger.info("Access token refreshed")
            return pair

    def _expire_session(self) -> None:
        self._store.clear()
        logger.warning("Session expired, stored tokens cleared")
        if self._on_session_expired is not None:
            self._on_session_expired()

    def refresh(self) -> Optional[TokenPair]:
        """Force a token rotation using the stored refresh token."""
        return self._refresh(stale=self._store.load())

    # ── Auth ──────────────────────────────────────────────

    def login(self, email: str, password: str) -> ApiResponse:
        result = self.request(
            "POST",
            AUTH_LOGIN,
            {"email": email, "password": password},
            auth=False,
            retry_on_401=False,
        )
        if not result.success:
            return result

        pair = extract_tokens(result.data)
        if pair is None:
            return ApiResponse.fail(
                ApiError(code=UNKNOWN_ERROR, message="Login response is missing tokens", status=result.status)
            )

        self._store.save(pair)
        logger.info("Logged in")
        return result

    def register(
        self,
        username: str,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role_id: int,
    ) -> ApiResponse:
        """Create an account. Tokens in the response are stored like a login; data is the new UserProfile."""
        result = self.request(
            "POST",
            AUTH_REGISTER,
            {
                "username": username,
                "email": email,
                "password": password,
                "first_name": first_name,
                "last_name": last_name,
                "role_id": role_id,
            },
            auth=False,
            retry_on_401=False,
        )
        if not result.success:
            return result

        pair = extract_tokens(result.data)
        if pair is not None:
            self._store.save(pair)
            logger.info("Registered and logged in")
        return result.map(lambda data: profile_from_wire(data["user"]))

    def logout(self) -> ApiResponse:
        """End the session. Local tokens are cleared even if the server call fails."""
        message = None
        if self._store.load() is not None:
            result = self.request("POST", AUTH_LOGOUT, retry_on_401=False)
            if result.success:
                message = result.message
            else:
                logger.warning(f"Logout request failed: {result.error.message}")
        self._store.clear()
        logger.info("Logged out")
        return ApiResponse.ok(message=message or "Logged out")

    def get_profile(self) -> ApiResponse:
        return self.request("GET", AUTH_PROFILE).map(profile_from_wire)

    def validate_token(self) -> ApiResponse:
        # A 401 here is the answer, not a reason to rotate tokens.
        return self.request("POST", AUTH_VALIDATE, retry_on_401=False)

    def change_password(self, current_password: str, new_password: str) -> ApiResponse:
        return self.request(
            "POST",
            AUTH_CHANGE_PASSWORD,
            {"current_password": current_password, "new_password": new_password},
        )

    # ── Companies ─────────────────────────────────────────

    def list_companies(self) -> ApiResponse:
        return self.request("GET", COMPANIES).map(_many(company_from_wire))

    def get_company(self, company_id: str) -> ApiResponse:
        return self.request("GET", f"{COMPANIES}/{_seg(company_id)}").map(company_from_wire)

    def search_companies(self, query: str) -> ApiResponse:
        return self.request("GET", f"{COMPANIES}/search", params={"q": query}).map(
            _many(company_from_wire)
        )

    def create_company(self, form: CompanyForm) -> ApiResponse:
        return self.request("POST", COMPANIES, company_form_to_payload(form)).map(company_from_wire)

    def update_company(self, company_id: str, form: CompanyForm) -> ApiResponse:
        return self.request(
            "PUT", f"{COMPANIES}/{_seg(company_id)}", company_form_to_payload(form)
        ).map(company_from_wire)

    def delete_company(self, company_id: str) -> ApiResponse:
        return self.request("DELETE", f"{COMPANIES}/{_seg(company_id)}")

    def update_partnership_status(self, company_id: str, status: str) -> ApiResponse:
        if status not in COMPANY_STATUSES:
            return _rejected(f"Invalid partnership status {status!r}, expected one of {COMPANY_STATUSES}")
        return self.request(
            "PATCH", f"{COMPANIES}/{_seg(company_id)}/status", {"status": status}
        ).map(company_from_wire)

    # ── Vehicles ──────────────────────────────────────────

    def list_vehicles(self) -> ApiResponse:
        return self.request("GET", VEHICLES).map(_many(vehicle_from_wire))

    def get_vehicle(self, vehicle_id: str) -> ApiResponse:
        return self.request("GET", f"{VEHICLES}/{_seg(vehicle_id)}").map(vehicle_from_wire)

    def search_vehicles(self, query: str) -> ApiResponse:
        return self.request("GET", f"{VEHICLES}/search", params={"q": query}).map(
            _many(vehicle_from_wire)
        )

    def list_company_vehicles(self, company_id: str) -> ApiResponse:
        return self.request("GET", f"{VEHICLES}/company/{_seg(company_id)}").map(
            _many(vehicle_from_wire)
        )

    def create_vehicle(self, form: VehicleForm, company_name: str, company_logo: str = "") -> ApiResponse:
        payload = vehicle_form_to_payload(form, company_name, company_logo)
        return self.request("POST", VEHICLES, payload).map(vehicle_from_wire)

    def update_vehicle(
        self, vehicle_id: str, form: VehicleForm, company_name: str, company_logo: str = ""
    ) -> ApiResponse:
        payload = vehicle_form_to_payload(form, company_name, company_logo)
        return self.request("PUT", f"{VEHICLES}/{_seg(vehicle_id)}", payload).map(vehicle_from_wire)

    def delete_vehicle(self, vehicle_id: str) -> ApiResponse:
        return self.request("DELETE", f"{VEHICLES}/{_seg(vehicle_id)}")

    def update_vehicle_status(self, vehicle_id: str, status: str) -> ApiResponse:
        if status not in VEHICLE_STATUSES:
            return _rejected(f"Invalid vehicle status {status!r}, expected one of {VEHICLE_STATUSES}")
        return self.request(
            "PATCH", f"{VEHICLES}/{_seg(vehicle_id)}/status", {"status": status}
        ).map(vehicle_from_wire)

    def update_vehicle_availability(
        self, vehicle_id: str, available: bool, available_from: Optional[str] = None
    ) -> ApiResponse:
        body: dict[str, object] = {"available": available}
        if available_from:
            body["availableFrom"] = available_from
        return self.request(
            "PATCH", f"{VEHICLES}/{_seg(vehicle_id)}/availability", body
        ).map(vehicle_from_wire)


# ── Response helpers ──────────────────────────────────────


def _classify(resp: requests.Response) -> ApiError:
    """Turn a non-2xx response into an ApiError."""
    status = resp.status_code
    code = SERVER_ERROR
    message = f"HTTP {status}: {resp.reason}" if resp.reason else f"HTTP {status}"
    details = None

    try:
        body = resp.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict):
            code = err.get("code") or code
            message = err.get("message") or body.get("message") or message
            details = err.get("details")
        else:
            code = body.get("code") or code
            message = body.get("message") or err or message
            details = body.get("details", body.get("data"))
            if details is None and err and body.get("message"):
                details = err
    else:
        text = (resp.text or "").strip()
        if "<!DOCTYPE html>" in text or "<html" in text:
            message = "API endpoint not found, check the API base URL"
        elif text:
            message = text

    return ApiError(code=str(code), message=str(message), details=details, status=status)


def _many(mapper: Callable[[dict], Any]) -> Callable[[list], list]:
    def convert(items):
        if not isinstance(items, list):
            raise TypeError(f"expected a list, got {type(items).__name__}")
        return [mapper(item) for item in items]
    return convert


def _seg(value: str) -> str:
    return quote(str(value), safe="")


def _rejected(message: str) -> ApiResponse:
    return ApiResponse.fail(ApiError(code=UNKNOWN_ERROR, message=message))


# ── CLI ───────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fleetdesk", description="fleetdesk API client")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("companies")
    p.add_argument("--search")

    p = sub.add_parser("company")
    p.add_argument("--id", required=True)

    p = sub.add_parser("create-company")
    p.add_argument("--file", required=True, help="JSON file with CompanyForm fields")

    p = sub.add_parser("update-company")
    p.add_argument("--id", required=True)
    p.add_argument("--file", required=True)

    p = sub.add_parser("delete-company")
    p.add_argument("--id", required=True)

    p = sub.add_parser("company-status")
    p.add_argument("--id", required=True)
    p.add_argument("--status", required=True, choices=COMPANY_STATUSES)

    p = sub.add_parser("vehicles")
    group = p.add_mutually_exclusive_group()
    group.add_argument("--search")
    group.add_argument("--company-id")

    p = sub.add_parser("vehicle")
    p.add_argument("--id", required=True)

    for name in ("create-vehicle", "update-vehicle"):
        p = sub.add_parser(name)
        if name == "update-vehicle":
            p.add_argument("--id", required=True)
        p.add_argument("--file", required=True, help="JSON file with VehicleForm fields")
        p.add_argument("--company-name", required=True)
        p.add_argument("--company-logo", default="")

    p = sub.add_parser("delete-vehicle")
    p.add_argument("--id", required=True)

    p = sub.add_parser("vehicle-status")
    p.add_argument("--id", required=True)
    p.add_argument("--status", required=True, choices=VEHICLE_STATUSES)

    p = sub.add_parser("vehicle-availability")
    p.add_argument("--id", required=True)
    flag = p.add_mutually_exclusive_group(required=True)
    flag.add_argument("--available", dest="available", action="store_true")
    flag.add_argument("--unavailable", dest="available", action="store_false")
    p.add_argument("--from", dest="available_from")

    return parser


def _load_form(path: str, form_cls):
    with open(path, encoding="utf-8") as fh:
        return form_cls(**json.load(fh))


def _list_vehicles(c: ApiClient, a) -> ApiResponse:
    if a.search:
        return c.search_vehicles(a.search)
    if a.company_id:
        return c.list_company_vehicles(a.company_id)
    return c.list_vehicles()


_DISPATCH = {
    "companies": lambda c, a: c.search_companies(a.search) if a.search else c.list_companies(),
    "company": lambda c, a: c.get_company(a.id),
    "create-company": lambda c, a: c.create_company(_load_form(a.file, CompanyForm)),
    "update-company": lambda c, a: c.update_company(a.id, _load_form(a.file, CompanyForm)),
    "delete-company": lambda c, a: c.delete_company(a.id),
    "company-status": lambda c, a: c.update_partnership_status(a.id, a.status),
    "vehicles": _list_vehicles,
    "vehicle": lambda c, a: c.get_vehicle(a.id),
    "create-vehicle": lambda c, a: c.create_vehicle(
        _load_form(a.file, VehicleForm), a.company_name, a.company_logo
    ),
    "update-vehicle": lambda c, a: c.update_vehicle(
        a.id, _load_form(a.file, VehicleForm), a.company_name, a.company_logo
    ),
    "delete-vehicle": lambda c, a: c.delete_vehicle(a.id),
    "vehicle-status": lambda c, a: c.update_vehicle_status(a.id, a.status),
    "vehicle-availability": lambda c, a: c.update_vehicle_availability(
        a.id, a.available, a.available_from
    ),
}


def _session_expired() -> None:
    print("[!] Session expired. Run: fleetdesk auth login --email EMAIL", file=sys.stderr)


def main() -> None:
    """CLI entry point for API operations."""
    from .log import configure_logging

    args = _build_parser().parse_args()
    settings = get_settings()
    configure_logging(settings.log_level)
    client = ApiClient.from_settings(settings, on_session_expired=_session_expired)

    handler = _DISPATCH.get(args.command)
    if not handler:
        print("Unknown command", file=sys.stderr)
        sys.exit(1)

    try:
        result = handler(client, args)
    except (OSError, ValueError, TypeError) as exc:
        print(json.dumps({"error": str(exc)}), file=sys.stderr)
        sys.exit(1)

    if not result.success:
        print(json.dumps({"error": result.error.to_dict()}, ensure_ascii=False), file=sys.stderr)
        sys.exit(1)

    json.dump(result.to_dict(), sys.stdout, ensure_ascii=False, indent=2)
    print()
