"""
Shared types for the fleetdesk client.
"""

import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

T = TypeVar("T")
U = TypeVar("U")

DEFAULT_API_URL = "http://localhost:8080"
DEFAULT_TIMEOUT_SEC = 10.0

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}

# ── Endpoints ─────────────────────────────────────────────

AUTH_REGISTER = "/api/v1/auth/register"
AUTH_LOGIN = "/api/v1/auth/login"
AUTH_REFRESH = "/api/v1/auth/refresh"
AUTH_LOGOUT = "/api/v1/auth/logout"
AUTH_PROFILE = "/api/v1/auth/profile"
AUTH_VALIDATE = "/api/v1/auth/validate"
AUTH_CHANGE_PASSWORD = "/api/v1/auth/change-password"

COMPANIES = "/api/vehicle-rental/companies"
VEHICLES = "/api/vehicles"

COMPANY_STATUSES = ("pending", "active", "inactive")
VEHICLE_STATUSES = ("available", "rented", "maintenance", "reserved", "unavailable")

# ── Error codes ───────────────────────────────────────────

SERVER_ERROR = "SERVER_ERROR"
NETWORK_ERROR = "NETWORK_ERROR"
UNKNOWN_ERROR = "UNKNOWN_ERROR"
AUTH_REFRESH_FAILED = "AUTH_REFRESH_FAILED"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str

    def to_dict(self) -> dict[str, str]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
        }


@dataclass(frozen=True)
class ApiError:
    code: str
    message: str
    details: Any = None
    status: Optional[int] = None

    def to_dict(self) -> dict:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            out["details"] = self.details
        if self.status is not None:
            out["status"] = self.status
        return out


@dataclass(frozen=True)
class ApiResponse(Generic[T]):
    """Uniform result of every client call. Branch on ``success``."""

    success: bool
    data: Optional[T] = None
    error: Optional[ApiError] = None
    status: Optional[int] = None
    message: Optional[str] = None

    @classmethod
    def ok(
        cls,
        data: Optional[T] = None,
        status: Optional[int] = None,
        message: Optional[str] = None,
    ) -> "ApiResponse[T]":
        return cls(success=True, data=data, status=status, message=message)

    @classmethod
    def fail(cls, error: ApiError) -> "ApiResponse[T]":
        return cls(success=False, error=error, status=error.status)

    def map(self, func: Callable[[T], U]) -> "ApiResponse[U]":
        """Transform ``data`` on success. A payload ``func`` cannot read becomes an UNKNOWN_ERROR."""
        if not self.success or self.data is None:
            return self  # type: ignore[return-value]
        try:
            data = func(self.data)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            return ApiResponse.fail(
                ApiError(
                    code=UNKNOWN_ERROR,
                    message=f"Unexpected response shape: {exc}",
                    status=self.status,
                )
            )
        return dataclasses.replace(self, data=data)  # type: ignore[arg-type]

    def to_dict(self) -> dict:
        out: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            out["data"] = _plain(self.data)
        if self.error is not None:
            out["error"] = self.error.to_dict()
        if self.status is not None:
            out["status"] = self.status
        if self.message:
            out["message"] = self.message
        return out


def _plain(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value
