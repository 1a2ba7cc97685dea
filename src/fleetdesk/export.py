"""
Export the companies and vehicles visible to the stored session to Markdown.

Usage:
  fleetdesk export [--output FILE] [--company-id ID] [--json-dump]

One section per rental company, one table row per vehicle. Vehicles whose
company is not visible are grouped under "Unassigned". Progress goes to stderr.
"""

import argparse
import dataclasses
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from .models import Company, Vehicle

STATUS_ORDER = ("available", "reserved", "rented", "maintenance", "unavailable")


class ExportError(Exception):
    """A listing call failed; carries the envelope's error."""

    def __init__(self, error):
        super().__init__(error.message)
        self.error = error


def fetch_fleet(client, company_id: Optional[str] = None) -> tuple[list[Company], list[Vehicle]]:
    """Fetch companies and vehicles. Raises ExportError on the first failed call."""
    if company_id:
        result = client.get_company(company_id)
        if not result.success:
            raise ExportError(result.error)
        companies = [result.data] if result.data is not None else []
    else:
        result = client.list_companies()
        if not result.success:
            raise ExportError(result.error)
        companies = result.data or []
    print(f"  Found {len(companies)} companies", file=sys.stderr)

    if company_id:
        result = client.list_company_vehicles(company_id)
    else:
        result = client.list_vehicles()
    if not result.success:
        raise ExportError(result.error)
    vehicles = result.data or []
    print(f"  Found {len(vehicles)} vehicles", file=sys.stderr)

    return companies, vehicles


def _status_rank(vehicle: Vehicle) -> int:
    try:
        return STATUS_ORDER.index(vehicle.status)
    except ValueError:
        return len(STATUS_ORDER)


def _cell(value) -> str:
    return str(value).replace("|", "\\|").replace("\n", " ")


def vehicle_row(vehicle: Vehicle) -> str:
    info = vehicle.vehicle_info
    rental = vehicle.rental
    cells = [
        vehicle.vehicle_id or vehicle.id,
        f"{info.year} {info.make} {info.model}".strip(),
        info.plate_number,
        vehicle.status,
        f"{rental.daily_rate:.2f} {rental.currency}",
        rental.location,
        vehicle.next_maintenance or "",
    ]
    return "| " + " | ".join(_cell(c) for c in cells) + " |"


def company_section(title: str, vehicles: list[Vehicle], company: Optional[Company] = None) -> str:
    lines = [f"## {title}", ""]

    if company is not None:
        lines.append(f"**Contact**: {company.contact_person} ({company.email}, {company.phone})")
        lines.append(f"**Partnership**: {company.partnership.status}, "
                     f"commission {company.partnership.commission_rate:g}%")
        lines.append("")

    if not vehicles:
        lines.append("*No vehicles registered.*")
        lines.append("")
        return "\n".join(lines)

    lines.append("| ID | Vehicle | Plate | Status | Daily rate | Location | Next maintenance |")
    lines.append("|---|---|---|---|---|---|---|")
    for vehicle in sorted(vehicles, key=lambda v: (_status_rank(v), v.vehicle_id)):
        lines.append(vehicle_row(vehicle))
    lines.append("")
    return "\n".join(lines)


def fleet_to_markdown(companies: list[Company], vehicles: list[Vehicle], now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    by_company: dict[str, list[Vehicle]] = {}
    for vehicle in vehicles:
        by_company.setdefault(vehicle.company_id, []).append(vehicle)

    lines = [
        "# Fleet export",
        "",
        f"**Companies**: {len(companies)}",
        f"**Vehicles**: {len(vehicles)}",
        f"**Exported at**: {now.strftime('%Y-%m-%d %H:%M:%S')}",
        "",
        "---",
        "",
    ]

    for company in sorted(companies, key=lambda c: c.name.lower()):
        lines.append(company_section(company.name, by_company.pop(company.id, []), company))

    leftovers = [v for group in by_company.values() for v in group]
    if leftovers:
        lines.append(company_section("Unassigned", leftovers))

    return "\n".join(lines)


def main() -> None:
    from .client import ApiClient, _session_expired
    from .log import configure_logging
    from .settings import get_settings

    parser = argparse.ArgumentParser(prog="fleetdesk export", description="Export the fleet to Markdown")
    parser.add_argument("--output", "-o", default="fleet_export.md", help="'-' writes to stdout")
    parser.add_argument("--company-id", help="Only export this company")
    parser.add_argument("--json-dump", action="store_true", help="Also save raw data as JSON")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level)
    client = ApiClient.from_settings(settings, on_session_expired=_session_expired)

    try:
        print("Fetching fleet...", file=sys.stderr)
        companies, vehicles = fetch_fleet(client, args.company_id)
    except ExportError as e:
        print(json.dumps({"error": e.error.to_dict()}), file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nExport interrupted.", file=sys.stderr)
        sys.exit(130)

    content = fleet_to_markdown(companies, vehicles)

    if args.output == "-":
        sys.stdout.write(content)
        return

    Path(args.output).write_text(content, encoding="utf-8")
    print(f"Exported {len(vehicles)} vehicles to {args.output}", file=sys.stderr)

    if args.json_dump:
        json_path = Path(args.output).with_suffix(".json")
        raw = {
            "companies": [dataclasses.asdict(c) for c in companies],
            "vehicles": [dataclasses.asdict(v) for v in vehicles],
        }
        json_path.write_text(json.dumps(raw, ensure_ascii=False, indent=2), encoding="utf-8")
        print(f"Raw JSON saved to: {json_path}", file=sys.stderr)
