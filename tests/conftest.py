"""
Shared fixtures for the fleetdesk test suite.
"""

import json
from unittest.mock import MagicMock

import pytest

from fleetdesk.client import ApiClient
from fleetdesk.settings import get_settings
from fleetdesk.storage import MemoryTokenStore
from fleetdesk.types import TokenPair

BASE_URL = "http://fleet.test"


# ── Token fixtures ───────────────────────────────────────────

@pytest.fixture
def access_token():
    return "eyJ0eXAiOiJKV1QiLCJhbGciOiJIUzI1NiJ9.access.test"


@pytest.fixture
def refresh_token():
    return "eyJ0eXAiOiJKV1QiLCJhbGciOiJIUzI1NiJ9.refresh.test"


@pytest.fixture
def token_pair(access_token, refresh_token):
    return TokenPair(
        access_token=access_token,
        refresh_token=refresh_token,
    )


@pytest.fixture
def new_access_token():
    return "eyJ0eXAiOiJKV1QiLCJhbGciOiJIUzI1NiJ9.access.new"


@pytest.fixture
def new_refresh_token():
    return "eyJ0eXAiOiJKV1QiLCJhbGciOiJIUzI1NiJ9.refresh.new"


@pytest.fixture
def new_token_pair(new_access_token, new_refresh_token):
    return TokenPair(new_access_token, new_refresh_token)


# ── Client fixtures ──────────────────────────────────────────

@pytest.fixture
def store(token_pair):
    return MemoryTokenStore(token_pair)


@pytest.fixture
def empty_store():
    return MemoryTokenStore()


@pytest.fixture
def on_expired():
    return MagicMock()


@pytest.fixture
def client(store, on_expired):
    return ApiClient(BASE_URL, store, on_session_expired=on_expired)


@pytest.fixture
def anon_client(empty_store, on_expired):
    return ApiClient(BASE_URL, empty_store, on_session_expired=on_expired)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    """Keep settings away from the developer's environment and home dir."""
    for var in (
        "FLEETDESK_API_URL",
        "API_URL",
        "FLEETDESK_TIMEOUT",
        "FLEETDESK_TOKEN_STORE",
        "FLEETDESK_TOKEN_DIR",
        "LOG_LEVEL",
        "XDG_CONFIG_HOME",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ── Mock response factories ──────────────────────────────────

def make_response(status=200, body=None, text=None, reason=None):
    """Build a MagicMock shaped like a requests.Response."""
    resp = MagicMock()
    resp.status_code = status
    resp.reason = reason if reason is not None else ("OK" if status < 400 else "Error")

    if body is not None:
        raw = json.dumps(body)
        resp.json.return_value = body
    else:
        raw = text or ""
        resp.json.side_effect = ValueError("No JSON object could be decoded")

    resp.text = raw
    resp.content = raw.encode()
    return resp


@pytest.fixture
def response():
    return make_response


@pytest.fixture
def mock_login_response(access_token, refresh_token):
    """Backend envelope returned by /api/v1/auth/login."""
    return {
        "success": True,
        "message": "Login successful",
        "data": {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "Bearer",
            "expires_at": "2026-10-19T12:00:00Z",
            "user": {"id": 1, "email": "a@b.com", "role": "manager"},
        },
    }


@pytest.fixture
def mock_refresh_response(new_access_token, new_refresh_token):
    return {
        "success": True,
        "message": "Token refreshed",
        "data": {
            "access_token": new_access_token,
            "refresh_token": new_refresh_token,
        },
    }


@pytest.fixture
def mock_profile_response():
    return {
        "success": True,
        "message": "Profile retrieved",
        "data": {
            "id": 7,
            "username": "jane.doe",
            "email": "jane@fleet.test",
            "first_name": "Jane",
            "last_name": "Doe",
            "role": "manager",
            "is_active": True,
            "created_at": "2024-01-15T10:30:00Z",
        },
    }


@pytest.fixture
def company_wire():
    return {
        "id": "c-1",
        "name": "Premium Fleet Rentals",
        "contactPerson": "John Anderson",
        "email": "contact@premiumfleet.test",
        "phone": "+1-555-0123",
        "address": {
            "street": "123 Business Avenue",
            "city": "New York",
            "state": "NY",
            "country": "USA",
            "postalCode": "10001",
        },
        "businessDetails": {
            "establishedYear": 2015,
            "businessLicense": "BL-12345678",
            "taxId": "12-3456789",
        },
        "fleetInfo": {
            "totalVehicles": 150,
            "vehicleTypes": ["SUVs", "Luxury Cars"],
            "specialties": ["Luxury Vehicles"],
        },
        "partnership": {
            "status": "active",
            "contractStart": "2024-01-01",
            "contractEnd": "2025-12-31",
            "commissionRate": 15.5,
        },
        "compliance": {"certifications": ["ISO 9001"]},
        "agreedToTerms": True,
        "createdAt": "2024-01-15T10:30:00Z",
        "updatedAt": "2024-01-15T10:30:00Z",
    }


@pytest.fixture
def vehicle_wire():
    return {
        "id": "v-1",
        "vehicleId": "VH-123456",
        "companyId": "c-1",
        "companyName": "Premium Fleet Rentals",
        "companyLogo": "PF",
        "vehicleInfo": {
            "make": "Toyota",
            "model": "Camry",
            "year": 2023,
            "category": "sedan",
            "plateNumber": "ABC-1234",
            "vin": "1HGBH41JXMN109186",
            "color": "White",
            "mileage": 15000,
        },
        "specifications": {
            "engine": "2.5L 4-Cylinder",
            "transmission": "automatic",
            "fuelType": "gasoline",
            "seats": 5,
            "doors": 4,
            "features": ["GPS", "Bluetooth"],
        },
        "rental": {
            "dailyRate": 45.0,
            "weeklyRate": 280.0,
            "monthlyRate": 1100.0,
            "deposit": 200.0,
            "currency": "USD",
            "available": True,
            "location": "New York",
            "minimumRentalDays": 1,
        },
        "status": "available",
        "lastMaintenance": "2024-01-01",
        "nextMaintenance": "2024-04-01",
        "rating": 4.7,
        "rentalCount": 12,
    }
