"""
Typed records for fleet resources and the mappings between them and the
backend's wire format.

Form records hold raw, string-valued input exactly as an operator typed it.
The ``*_to_payload`` functions turn them into the camelCase request bodies the
API expects; the ``*_from_wire`` functions turn API responses back into
frozen dataclasses.
"""

import math
import re
import time
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Optional

# ── Users ─────────────────────────────────────────────────


@dataclass(frozen=True)
class UserProfile:
    id: str
    username: str
    email: str
    first_name: str = ""
    last_name: str = ""
    role: str = ""
    is_active: bool = True
    created_at: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.username


def profile_from_wire(data: dict) -> UserProfile:
    role = data.get("role") or ""
    if isinstance(role, dict):
        role = role.get("name", "")
    return UserProfile(
        id=str(data.get("id", "")),
        username=data.get("username", ""),
        email=data.get("email", ""),
        first_name=data.get("first_name", ""),
        last_name=data.get("last_name", ""),
        role=role,
        is_active=bool(data.get("is_active", True)),
        created_at=data.get("created_at"),
    )


# ── Companies ─────────────────────────────────────────────


@dataclass(frozen=True)
class Address:
    street: str
    city: str
    country: str
    state: Optional[str] = None
    postal_code: Optional[str] = None


@dataclass(frozen=True)
class BusinessDetails:
    established_year: int
    business_license: str
    tax_id: str
    description: Optional[str] = None


@dataclass(frozen=True)
class FleetInfo:
    total_vehicles: int
    vehicle_types: tuple[str, ...] = ()
    specialties: tuple[str, ...] = ()


@dataclass(frozen=True)
class BankDetails:
    bank_name: Optional[str] = None
    bank_account: Optional[str] = None


@dataclass(frozen=True)
class Partnership:
    status: str
    contract_start: str
    contract_end: str
    commission_rate: float
    monthly_revenue: Optional[float] = None
    bank_details: Optional[BankDetails] = None


@dataclass(frozen=True)
class Insurance:
    provider: Optional[str] = None
    policy_number: Optional[str] = None
    expiry_date: Optional[str] = None


@dataclass(frozen=True)
class Compliance:
    certifications: tuple[str, ...] = ()
    insurance: Optional[Insurance] = None


@dataclass(frozen=True)
class Company:
    id: str
    name: str
    contact_person: str
    email: str
    phone: str
    address: Address
    business_details: BusinessDetails
    fleet_info: FleetInfo
    partnership: Partnership
    compliance: Compliance
    agreed_to_terms: bool = False
    website: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(frozen=True)
class CompanyForm:
    name: str = ""
    contact_person: str = ""
    email: str = ""
    phone: str = ""
    website: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    postal_code: str = ""
    established_year: str = ""
    business_license: str = ""
    tax_id: str = ""
    description: str = ""
    total_vehicles: str = ""
    vehicle_types: list[str] = field(default_factory=list)
    specialties: list[str] = field(default_factory=list)
    status: str = "pending"
    contract_start: str = ""
    contract_end: str = ""
    commission_rate: str = ""
    monthly_revenue: str = ""
    bank_name: str = ""
    bank_account: str = ""
    certifications: list[str] = field(default_factory=list)
    insurance_provider: str = ""
    insurance_policy: str = ""
    insurance_expiry: str = ""
    notes: str = ""
    agreed_to_terms: bool = False


def company_form_to_payload(form: CompanyForm) -> dict:
    """Build the create/update request body for a company form."""
    insurance = None
    if form.insurance_provider:
        insurance = _compact({
            "provider": _trim(form.insurance_provider),
            "policyNumber": _trim(form.insurance_policy) or None,
            "expiryDate": form.insurance_expiry or None,
        })

    monthly_revenue = _safe_float(form.monthly_revenue) if form.monthly_revenue else None

    return _compact({
        "name": _trim(form.name),
        "contactPerson": _trim(form.contact_person),
        "email": _trim(form.email),
        "phone": _trim(form.phone),
        "website": _trim(form.website) or None,
        "address": _compact({
            "street": _trim(form.address),
            "city": _trim(form.city),
            "state": _trim(form.state) or None,
            "country": _trim(form.country) or "USA",
            "postalCode": _trim(form.postal_code) or None,
        }),
        "businessDetails": _compact({
            "establishedYear": _safe_int(form.established_year),
            "businessLicense": _trim(form.business_license),
            "taxId": _trim(form.tax_id),
            "description": _trim(form.description) or None,
        }),
        "fleetInfo": {
            "totalVehicles": _safe_int(form.total_vehicles),
            "vehicleTypes": list(form.vehicle_types or []),
            "specialties": list(form.specialties or []),
        },
        "partnership": _compact({
            "status": form.status or "pending",
            "contractStart": form.contract_start or "",
            "contractEnd": form.contract_end or "",
            "commissionRate": _safe_float(form.commission_rate),
            "monthlyRevenue": monthly_revenue,
            "bankDetails": _compact({
                "bankName": _trim(form.bank_name) or None,
                "bankAccount": _trim(form.bank_account) or None,
            }),
        }),
        "compliance": _compact({
            "certifications": list(form.certifications or []),
            "insurance": insurance,
        }),
        "notes": _trim(form.notes) or None,
        "agreedToTerms": bool(form.agreed_to_terms),
    })


def company_from_wire(data: dict) -> Company:
    address = data.get("address") or {}
    business = data.get("businessDetails") or {}
    fleet = data.get("fleetInfo") or {}
    partnership = data.get("partnership") or {}
    bank = partnership.get("bankDetails")
    compliance = data.get("compliance") or {}
    insurance = compliance.get("insurance")

    return Company(
        id=str(data.get("id", "")),
        name=data.get("name", ""),
        contact_person=data.get("contactPerson", ""),
        email=data.get("email", ""),
        phone=data.get("phone", ""),
        website=data.get("website"),
        address=Address(
            street=address.get("street", ""),
            city=address.get("city", ""),
            country=address.get("country", ""),
            state=address.get("state"),
            postal_code=address.get("postalCode"),
        ),
        business_details=BusinessDetails(
            established_year=_safe_int(business.get("establishedYear")),
            business_license=business.get("businessLicense", ""),
            tax_id=business.get("taxId", ""),
            description=business.get("description"),
        ),
        fleet_info=FleetInfo(
            total_vehicles=_safe_int(fleet.get("totalVehicles")),
            vehicle_types=tuple(fleet.get("vehicleTypes") or ()),
            specialties=tuple(fleet.get("specialties") or ()),
        ),
        partnership=Partnership(
            status=partnership.get("status", "pending"),
            contract_start=partnership.get("contractStart", ""),
            contract_end=partnership.get("contractEnd", ""),
            commission_rate=_safe_float(partnership.get("commissionRate")),
            monthly_revenue=partnership.get("monthlyRevenue"),
            bank_details=BankDetails(
                bank_name=bank.get("bankName"),
                bank_account=bank.get("bankAccount"),
            ) if bank else None,
        ),
        compliance=Compliance(
            certifications=tuple(compliance.get("certifications") or ()),
            insurance=Insurance(
                provider=insurance.get("provider"),
                policy_number=insurance.get("policyNumber"),
                expiry_date=insurance.get("expiryDate"),
            ) if insurance else None,
        ),
        notes=data.get("notes"),
        agreed_to_terms=bool(data.get("agreedToTerms", False)),
        created_at=data.get("createdAt"),
        updated_at=data.get("updatedAt"),
    )


# ── Vehicles ──────────────────────────────────────────────

MAINTENANCE_INTERVAL_DAYS = 90


@dataclass(frozen=True)
class VehicleInfo:
    make: str
    model: str
    year: int
    category: str
    plate_number: str
    vin: str
    color: str
    mileage: int


@dataclass(frozen=True)
class Specifications:
    engine: str
    transmission: str
    fuel_type: str
    seats: int
    doors: int
    features: tuple[str, ...] = ()


@dataclass(frozen=True)
class RentalTerms:
    daily_rate: float
    weekly_rate: float
    monthly_rate: float
    deposit: float
    currency: str
    available: bool
    location: str
    minimum_rental_days: int
    available_from: Optional[str] = None


@dataclass(frozen=True)
class Vehicle:
    id: str
    vehicle_id: str
    company_id: str
    company_name: str
    vehicle_info: VehicleInfo
    specifications: Specifications
    rental: RentalTerms
    status: str
    company_logo: str = ""
    last_maintenance: Optional[str] = None
    next_maintenance: Optional[str] = None
    rating: float = 0.0
    rental_count: int = 0
    created_at: Optional[str] = None
    last_updated: Optional[str] = None


@dataclass(frozen=True)
class VehicleForm:
    company_id: str = ""
    make: str = ""
    model: str = ""
    year: str = ""
    category: str = "sedan"
    plate_number: str = ""
    vin: str = ""
    color: str = ""
    mileage: str = ""
    engine: str = ""
    transmission: str = "automatic"
    fuel_type: str = "gasoline"
    seats: str = ""
    doors: str = ""
    features: list[str] = field(default_factory=list)
    daily_rate: str = ""
    weekly_rate: str = ""
    monthly_rate: str = ""
    deposit: str = ""
    currency: str = "USD"
    available: bool = True
    available_from: str = ""
    location: str = ""
    minimum_rental_days: str = ""
    last_maintenance: str = ""
    next_maintenance: str = ""
    rating: str = ""


def vehicle_form_to_payload(
    form: VehicleForm,
    company_name: str,
    company_logo: str,
    now: Optional[float] = None,
) -> dict:
    """Build the create/update request body for a vehicle form.

    ``now`` is an epoch timestamp in seconds; it drives the generated
    ``vehicleId`` and the default maintenance dates.
    """
    now = time.time() if now is None else now
    today = date.fromtimestamp(now)
    millis = str(int(now * 1000))

    return _compact({
        "vehicleId": f"VH-{millis[-6:]}",
        "companyId": _trim(form.company_id),
        "companyName": _trim(company_name),
        "companyLogo": _trim(company_logo),
        "vehicleInfo": {
            "make": _trim(form.make),
            "model": _trim(form.model),
            "year": _safe_int(form.year),
            "category": form.category or "sedan",
            "plateNumber": _trim(form.plate_number),
            "vin": _trim(form.vin),
            "color": _trim(form.color),
            "mileage": _safe_int(form.mileage),
        },
        "specifications": {
            "engine": _trim(form.engine),
            "transmission": form.transmission or "automatic",
            "fuelType": form.fuel_type or "gasoline",
            "seats": _safe_int(form.seats),
            "doors": _safe_int(form.doors),
            "features": list(form.features or []),
        },
        "rental": _compact({
            "dailyRate": _safe_float(form.daily_rate),
            "weeklyRate": _safe_float(form.weekly_rate),
            "monthlyRate": _safe_float(form.monthly_rate),
            "deposit": _safe_float(form.deposit),
            "currency": _trim(form.currency) or "USD",
            "available": bool(form.available),
            "availableFrom": form.available_from or None,
            "location": _trim(form.location),
            "minimumRentalDays": _safe_int(form.minimum_rental_days),
        }),
        "status": "available",
        "lastMaintenance": form.last_maintenance or today.isoformat(),
        "nextMaintenance": form.next_maintenance
        or (today + timedelta(days=MAINTENANCE_INTERVAL_DAYS)).isoformat(),
        "rating": _safe_float(form.rating),
    })


def vehicle_from_wire(data: dict) -> Vehicle:
    info = data.get("vehicleInfo") or {}
    specs = data.get("specifications") or {}
    rental = data.get("rental") or {}

    return Vehicle(
        id=str(data.get("id", "")),
        vehicle_id=data.get("vehicleId", ""),
        company_id=str(data.get("companyId", "")),
        company_name=data.get("companyName", ""),
        company_logo=data.get("companyLogo", ""),
        vehicle_info=VehicleInfo(
            make=info.get("make", ""),
            model=info.get("model", ""),
            year=_safe_int(info.get("year")),
            category=info.get("category", "sedan"),
            plate_number=info.get("plateNumber", ""),
            vin=info.get("vin", ""),
            color=info.get("color", ""),
            mileage=_safe_int(info.get("mileage")),
        ),
        specifications=Specifications(
            engine=specs.get("engine", ""),
            transmission=specs.get("transmission", "automatic"),
            fuel_type=specs.get("fuelType", "gasoline"),
            seats=_safe_int(specs.get("seats")),
            doors=_safe_int(specs.get("doors")),
            features=tuple(specs.get("features") or ()),
        ),
        rental=RentalTerms(
            daily_rate=_safe_float(rental.get("dailyRate")),
            weekly_rate=_safe_float(rental.get("weeklyRate")),
            monthly_rate=_safe_float(rental.get("monthlyRate")),
            deposit=_safe_float(rental.get("deposit")),
            currency=rental.get("currency", "USD"),
            available=bool(rental.get("available", False)),
            location=rental.get("location", ""),
            minimum_rental_days=_safe_int(rental.get("minimumRentalDays")),
            available_from=rental.get("availableFrom"),
        ),
        status=data.get("status", "available"),
        last_maintenance=data.get("lastMaintenance"),
        next_maintenance=data.get("nextMaintenance"),
        rating=_safe_float(data.get("rating")),
        rental_count=_safe_int(data.get("rentalCount")),
        created_at=data.get("createdAt"),
        last_updated=data.get("lastUpdated"),
    )


# ── Helpers ───────────────────────────────────────────────

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def _trim(value: Optional[str]) -> str:
    return value.strip() if value else ""


def _safe_int(value: Any) -> int:
    """Parse the leading integer of ``value``; anything unparseable is 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if not isinstance(value, str):
        return 0
    match = _INT_PREFIX.match(value)
    return int(match.group(1)) if match else 0


def _safe_float(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return 0.0
    match = _FLOAT_PREFIX.match(value)
    return float(match.group(1)) if match else 0.0


def _compact(d: dict) -> dict:
    """Drop keys whose value is None."""
    return {k: v for k, v in d.items() if v is not None}
