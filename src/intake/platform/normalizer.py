"""
Platform event request normalizer.

Converts raw event request dicts from the platform into clean field dicts
that map directly onto IntakeRecord columns, and serializes a record back
into the flat body the platform's update endpoint expects. No DB access
here; sync_service handles persistence.

The platform's field naming has shifted between releases (for example
"estimatedSandwichCount" vs "sandwichCount", "eventAddress" vs "location"),
so each local field has an ordered list of platform keys in
FIELD_FALLBACKS. The first key holding a non-empty value wins. Keeping the
precedence in one table means it can be tested field by field.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from intake.workflow.records import to_naive_utc
from intake.workflow.status import to_local_status, to_remote_status

UNKNOWN_ORGANIZATION = "Unknown Organization"
UNKNOWN_CONTACT = "Unknown Contact"

# local IntakeRecord column -> platform keys, highest precedence first
FIELD_FALLBACKS: Dict[str, tuple] = {
    "organization_name": ("organizationName", "organization", "orgName"),
    "organization_category": ("organizationCategory", "category"),
    "department": ("department",),
    "contact_first_name": ("firstName", "contactFirstName"),
    "contact_last_name": ("lastName", "contactLastName"),
    "contact_name": ("contactName", "name"),
    "contact_email": ("email", "contactEmail"),
    "contact_phone": ("phone", "contactPhone", "phoneNumber"),
    "backup_contact_first_name": ("backupContactFirstName",),
    "backup_contact_last_name": ("backupContactLastName",),
    "backup_contact_email": ("backupContactEmail",),
    "backup_contact_phone": ("backupContactPhone",),
    "backup_contact_role": ("backupContactRole",),
    # The scheduled date is what the event will actually happen on; the
    # desired date is the requester's wish and only a fallback.
    "event_date": ("scheduledEventDate", "eventDate", "desiredEventDate"),
    "desired_event_date": ("desiredEventDate",),
    "scheduled_event_date": ("scheduledEventDate",),
    "date_flexible": ("dateFlexible",),
    "event_start_time": ("eventStartTime", "startTime"),
    "event_end_time": ("eventEndTime", "endTime"),
    "event_address": ("eventAddress", "address", "location"),
    "location": ("location", "eventAddress"),
    "latitude": ("latitude", "lat"),
    "longitude": ("longitude", "lng", "lon"),
    "attendee_count": ("attendeeCount", "estimatedAttendees"),
    "volunteer_count": ("volunteerCount", "volunteersNeeded"),
    "message": ("message", "notes"),
    "sandwich_count": ("estimatedSandwichCount", "sandwichCount"),
    "actual_sandwich_count": ("actualSandwichCount",),
    "has_refrigeration": ("hasRefrigeration",),
    "pickup_time_window": ("pickupTimeWindow",),
    "tsp_contact_assigned": ("tspContactAssigned",),
    "tsp_contact": ("tspContact",),
    "custom_tsp_contact": ("customTspContact",),
    "planning_notes": ("planningNotes",),
    "scheduling_notes": ("schedulingNotes",),
    "next_action": ("nextAction",),
    "contact_attempts": ("contactAttempts",),
}

_DATE_FIELDS = {"event_date", "desired_event_date", "scheduled_event_date"}
_INT_FIELDS = {
    "attendee_count",
    "volunteer_count",
    "sandwich_count",
    "actual_sandwich_count",
    "contact_attempts",
}
_BOOL_FIELDS = {"date_flexible", "has_refrigeration"}
_STR_FIELDS = {"latitude", "longitude"}


def first_present(raw: Dict[str, Any], keys: Iterable[str]) -> Any:
    """Return the value of the first key in `keys` that holds something.

    None and empty strings count as absent; 0 and False do not.
    """
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _parse_platform_datetime(value: Any) -> Optional[datetime]:
    """Parse ISO 8601 strings ("2024-06-20", "2024-06-20T15:00:00.000Z").

    Returns naive UTC like every other timestamp we store; unparseable
    values become None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        s = str(value).strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(s)
        except ValueError:
            return None
    return to_naive_utc(parsed)


def _to_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _to_bool(value: Any) -> Optional[bool]:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "y")
    return bool(value)


def extract_field(raw: Dict[str, Any], field: str) -> Any:
    """Extract and coerce one IntakeRecord column from a platform dict."""
    value = first_present(raw, FIELD_FALLBACKS[field])
    if field in _DATE_FIELDS:
        return _parse_platform_datetime(value)
    if field in _INT_FIELDS:
        return _to_int(value)
    if field in _BOOL_FIELDS:
        return _to_bool(value)
    if field in _STR_FIELDS and value is not None:
        return str(value)
    return value


def external_id_of(raw: Dict[str, Any]) -> Optional[str]:
    """Platform event request id as a string, or None if missing."""
    value = first_present(raw, ("id", "eventRequestId"))
    return str(value) if value is not None else None


def normalize_event_request(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize a platform event request into IntakeRecord field dict.

    Does not set external_event_id, owner_id or internal_notes; the
    reconciler owns those.

    Args:
        raw: One item from the platform's event request listing.

    Returns:
        Dict with keys matching IntakeRecord columns. Non-nullable
        columns always get a value.
    """
    fields = {name: extract_field(raw, name) for name in FIELD_FALLBACKS}

    if not fields["contact_name"]:
        full = " ".join(
            part for part in (fields["contact_first_name"], fields["contact_last_name"]) if part
        )
        fields["contact_name"] = full or UNKNOWN_CONTACT
    if not fields["organization_name"]:
        fields["organization_name"] = UNKNOWN_ORGANIZATION

    # Non-nullable columns with model defaults: drop None so defaults apply
    for name in ("attendee_count", "sandwich_count", "has_refrigeration"):
        if fields[name] is None:
            del fields[name]

    fields["status"] = to_local_status(raw.get("status"))
    return fields


def import_provenance_note(external_id: str, imported_at: datetime) -> str:
    """Marker written to internal_notes on records created by a pull."""
    return (
        f"Imported from platform (event request {external_id}) "
        f"on {imported_at.strftime('%Y-%m-%d %H:%M')} UTC"
    )


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def build_push_payload(record) -> Dict[str, Any]:
    """
    Serialize a local record into the platform update body.

    Status is always sent as "scheduled": a push is how a coordinator tells
    the platform the event has been booked. Keys use the platform's primary
    names (the first entry of each FIELD_FALLBACKS tuple).
    """
    event_date = record.scheduled_event_date or record.event_date
    return {
        "status": to_remote_status("Scheduled"),
        "organizationName": record.organization_name,
        "organizationCategory": record.organization_category,
        "department": record.department,
        "firstName": record.contact_first_name,
        "lastName": record.contact_last_name,
        "email": record.contact_email,
        "phone": record.contact_phone,
        "backupContactFirstName": record.backup_contact_first_name,
        "backupContactLastName": record.backup_contact_last_name,
        "backupContactEmail": record.backup_contact_email,
        "backupContactPhone": record.backup_contact_phone,
        "backupContactRole": record.backup_contact_role,
        "scheduledEventDate": _iso(event_date),
        "desiredEventDate": _iso(record.desired_event_date),
        "dateFlexible": record.date_flexible,
        "eventStartTime": record.event_start_time,
        "eventEndTime": record.event_end_time,
        "eventAddress": record.event_address or record.location,
        "latitude": record.latitude,
        "longitude": record.longitude,
        "estimatedSandwichCount": record.sandwich_count,
        "actualSandwichCount": record.actual_sandwich_count,
        "volunteerCount": record.volunteer_count,
        "hasRefrigeration": record.has_refrigeration,
        "pickupTimeWindow": record.pickup_time_window,
        "tspContactAssigned": record.tsp_contact_assigned,
        "tspContact": record.tsp_contact,
        "customTspContact": record.custom_tsp_contact,
        "planningNotes": record.planning_notes,
        "schedulingNotes": record.scheduling_notes,
        "nextAction": record.next_action,
        "contactAttempts": record.contact_attempts,
        "intakeNotes": record.internal_notes,
        "intakeFlags": list(record.flags or []),
    }
