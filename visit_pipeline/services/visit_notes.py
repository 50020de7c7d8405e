"""
Audit text and attachment extraction for quotations built from visits.
"""
import logging
from datetime import datetime
from typing import List, Optional

from visit_pipeline.models.visit import FieldVisit, Location

logger = logging.getLogger(__name__)


def extract_attachments(visit: FieldVisit) -> List[str]:
    """Every photo URL on the visit: check-in, check-out, gallery, checkout gallery."""
    attachments = []
    if visit.site_in_photo_url:
        attachments.append(visit.site_in_photo_url)
    if visit.site_out_photo_url:
        attachments.append(visit.site_out_photo_url)
    attachments.extend(photo.url for photo in visit.site_photos if photo.url)
    attachments.extend(photo.url for photo in visit.site_out_photos if photo.url)

    logger.debug(f"Extracted {len(attachments)} attachments from site visit {visit.id}")
    return attachments


def extract_customer_notes(visit: FieldVisit) -> str:
    notes = []
    if visit.notes:
        notes.append(visit.notes)
    if visit.outcome_notes:
        notes.append(f"Visit outcome: {visit.outcome_notes}")
    if visit.technical_data and visit.technical_data.description:
        notes.append(f"Technical notes: {visit.technical_data.description}")
    return " | ".join(notes)


def _or(value, fallback: str):
    return value if value else fallback


def _date(value: Optional[datetime]) -> Optional[str]:
    return value.date().isoformat() if value else None


def _coords(location: Location) -> str:
    return f"Lat {location.latitude}, Lng {location.longitude}"


def _customer_section(visit: FieldVisit) -> List[str]:
    customer = visit.customer
    lines = [
        "\n=== CUSTOMER INFORMATION ===",
        f"Customer Name: {_or(customer.name, 'Not provided')}",
        f"Mobile: {_or(customer.mobile, 'Not provided')}",
        f"Address: {_or(customer.address, 'Not provided')}",
        f"EB Service Number: {_or(customer.eb_service_number, 'Not provided')}",
        f"Property Type: {_or(customer.property_type, 'Not specified')}",
    ]
    if customer.location:
        lines.append(f"Customer Location: {_coords(customer.location)}")
    return lines


def _technical_section(visit: FieldVisit) -> List[str]:
    lines = ["\n=== TECHNICAL ASSESSMENT ==="]
    technical = visit.technical_data
    if not technical:
        lines.append("No technical assessment data recorded")
        return lines

    lines.append(f"Service Types: {', '.join(technical.service_types) or 'None specified'}")
    lines.append(f"Work Type: {_or(technical.work_type, 'Not specified')}")
    lines.append(f"Working Status: {_or(technical.working_status, 'Not assessed')}")
    if technical.team_members:
        lines.append(f"Team Members: {', '.join(technical.team_members)}")
    if technical.pending_remarks:
        lines.append(f"Pending Remarks: {technical.pending_remarks}")
    if technical.description:
        lines.append(f"Technical Description: {technical.description}")
    return lines


def _marketing_section(visit: FieldVisit) -> List[str]:
    lines = ["\n=== MARKETING PROJECT DETAILS ==="]
    marketing = visit.marketing_data
    if not marketing:
        lines.append("No marketing project data recorded")
        return lines

    lines.append(f"Update Requirements: {'Yes' if marketing.update_requirements else 'No'}")
    lines.append(f"Project Type: {_or(marketing.project_type, 'Not specified')}")

    config = marketing.on_grid_config
    if config:
        lines.append("--- On-Grid System Configuration ---")
        lines.append(f"Project Value: Rs.{config.project_value or 0:.0f}")
        lines.append(f"Inverter KW: {_or(config.inverter_kw, 'Not specified')}")
        lines.append(f"Panel Count: {_or(config.panel_count, 'Not specified')}")
        lines.append(f"Panel Watts: {_or(config.panel_watts, 'Not specified')}")
        lines.append(f"Inverter Phase: {_or(config.inverter_phase, 'Not specified')}")
        if config.solar_panel_make:
            lines.append(f"Solar Panel Makes: {', '.join(config.solar_panel_make)}")
        if config.inverter_make:
            lines.append(f"Inverter Makes: {', '.join(config.inverter_make)}")
        if config.structure_type:
            lines.append(f"Structure Type: {config.structure_type}")
        if config.civil_work_scope:
            lines.append(f"Civil Work Scope: {config.civil_work_scope}")
        if config.net_meter_scope:
            lines.append(f"Net Meter Scope: {config.net_meter_scope}")

    config = marketing.off_grid_config
    if config:
        lines.append("--- Off-Grid System Configuration ---")
        lines.append(f"Project Value: Rs.{config.project_value or 0:.0f}")
        lines.append(f"Inverter KW: {_or(config.inverter_kw, 'Not specified')}")
        lines.append(f"Battery Brand: {_or(config.battery_brand, 'Not specified')}")
        lines.append(f"Battery Type: {_or(config.battery_type, 'Not specified')}")
        lines.append(f"Battery AH: {_or(config.battery_ah, 'Not specified')}")
        lines.append(f"Battery Count: {_or(config.battery_count, 'Not specified')}")

    config = marketing.hybrid_config
    if config:
        lines.append("--- Hybrid System Configuration ---")
        lines.append(f"Project Value: Rs.{config.project_value or 0:.0f}")
        lines.append(f"Inverter KW: {_or(config.inverter_kw, 'Not specified')}")
        lines.append(
            f"Battery Configuration: {_or(config.battery_brand, 'Unknown')} "
            f"{config.battery_ah or ''}Ah Battery * {config.battery_count or 0} nos"
        )

    config = marketing.water_heater_config
    if config:
        lines.append("--- Water Heater Configuration ---")
        lines.append(f"Brand: {_or(config.brand, 'Not specified')}")
        lines.append(f"Capacity: {_or(config.litre, 'Not specified')} liters")
        lines.append(f"Floor Level: {_or(config.floor, 'Not specified')}")

    config = marketing.water_pump_config
    if config:
        lines.append("--- Water Pump Configuration ---")
        lines.append(f"HP Rating: {_or(config.hp, 'Not specified')}")
        lines.append(f"Drive Type: {_or(config.drive, 'Not specified')}")
        lines.append(f"Panel Count: {_or(config.panel_count, 'Not specified')}")

    return lines


def _admin_section(visit: FieldVisit) -> List[str]:
    lines = ["\n=== ADMINISTRATIVE DETAILS ==="]
    admin = visit.admin_data
    if not admin:
        lines.append("No administrative data recorded")
        return lines

    if admin.bank_process:
        lines.append(f"Bank Process: {_or(admin.bank_process.step, 'Not specified')}")
        if admin.bank_process.description:
            lines.append(f"Bank Process Details: {admin.bank_process.description}")
    if admin.eb_process:
        lines.append(f"EB Process: {_or(admin.eb_process.type, 'Not specified')}")
        if admin.eb_process.description:
            lines.append(f"EB Process Details: {admin.eb_process.description}")

    labelled = [
        ("Purchase Information", admin.purchase),
        ("Driving Information", admin.driving),
        ("Official Cash Transactions", admin.official_cash_transactions),
        ("Official Personal Work", admin.official_personal_work),
        ("Other Administrative Details", admin.others),
    ]
    lines.extend(f"{label}: {value}" for label, value in labelled if value)
    return lines


def _location_section(visit: FieldVisit) -> List[str]:
    lines = ["\n=== LOCATION INFORMATION ==="]
    for label, location in (("Check-in", visit.site_in_location), ("Check-out", visit.site_out_location)):
        if location:
            lines.append(f"{label} Location: {_coords(location)}")
            if location.address:
                lines.append(f"{label} Address: {location.address}")
        else:
            lines.append(f"No {label.lower()} location recorded")
    return lines


def _photo_section(visit: FieldVisit) -> List[str]:
    total = (
        len(visit.site_photos)
        + len(visit.site_out_photos)
        + (1 if visit.site_in_photo_url else 0)
        + (1 if visit.site_out_photo_url else 0)
    )
    lines = ["\n=== PHOTO DOCUMENTATION ===", f"Total Photos Captured: {total}"]
    if visit.site_in_photo_url:
        lines.append("- Check-in selfie captured")
    if visit.site_out_photo_url:
        lines.append("- Check-out selfie captured")
    if visit.site_photos:
        lines.append(f"- {len(visit.site_photos)} site photos captured")
    if visit.site_out_photos:
        lines.append(f"- {len(visit.site_out_photos)} checkout photos captured")
    return lines


def build_internal_notes(visit: FieldVisit, generated_at: Optional[datetime] = None) -> str:
    """
    Build the audit document attached to a quotation.

    Concatenates every populated section of the visit so reviewers can see
    what the field team recorded without opening the visit itself.
    """
    generated_at = generated_at or datetime.utcnow()

    sections = [
        "=== COMPREHENSIVE SITE VISIT DATA ===",
        f"Site Visit ID: {visit.id}",
        f"Visit Date: {_or(_date(visit.site_in_time), 'Unknown')}",
        f"Department: {_or(visit.department, 'Unknown')}",
        f"Purpose: {_or(visit.visit_purpose, 'Unknown')}",
        f"Status: {_or(visit.status, 'Unknown')}",
        f"Visit Outcome: {_or(visit.visit_outcome, 'Not specified')}",
    ]
    if visit.site_in_time and visit.site_out_time:
        minutes = int((visit.site_out_time - visit.site_in_time).total_seconds() // 60)
        sections.append(f"Visit Duration: {minutes // 60}h {minutes % 60}m")

    sections.extend(_customer_section(visit))
    sections.extend(_technical_section(visit))
    sections.extend(_marketing_section(visit))
    sections.extend(_admin_section(visit))
    sections.extend(_location_section(visit))
    sections.extend(_photo_section(visit))

    sections.append("\n=== VISIT NOTES & OUTCOMES ===")
    if visit.notes:
        sections.append(f"Visit Notes: {visit.notes}")
    if visit.outcome_notes:
        sections.append(f"Outcome Notes: {visit.outcome_notes}")
    if visit.scheduled_follow_up_date:
        sections.append(f"Scheduled Follow-up: {_date(visit.scheduled_follow_up_date)}")

    sections.append("\n=== END OF COMPREHENSIVE SITE VISIT DATA ===")
    sections.append(f"Mapped on: {generated_at.isoformat()}")

    return "\n".join(sections)
