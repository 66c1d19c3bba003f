"""
Intake record mutation path.

Both user edits (API routes) and platform imports (pull) create records
through here so flags and the follow-up task set are always derived the
same way.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from intake.models.intake import IntakeRecord
from intake.workflow.flags import compute_flags
from intake.workflow.tasks import regenerate_tasks

logger = logging.getLogger(__name__)

_READ_ONLY_FIELDS = {"id", "created_at", "updated_at", "flags"}


def to_naive_utc(value: datetime) -> datetime:
    """Offset-aware datetimes become naive UTC; naive ones are taken as UTC already."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _assignable(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {
        k: to_naive_utc(v) if isinstance(v, datetime) else v
        for k, v in fields.items()
        if k in IntakeRecord.model_fields and k not in _READ_ONLY_FIELDS
    }


def create_intake_record(
    session: Session,
    fields: Dict[str, Any],
    *,
    owner_id: Optional[int] = None,
) -> IntakeRecord:
    """Persist a new record and, if it has an event date, its task set.

    Commits. Raises sqlalchemy IntegrityError if external_event_id is
    already taken (the session is rolled back first).
    """
    values = _assignable(fields)
    if owner_id is not None:
        values["owner_id"] = owner_id
    record = IntakeRecord(**values)
    record.flags = compute_flags(record)
    session.add(record)
    try:
        session.flush()
    except IntegrityError:
        session.rollback()
        raise

    if record.event_date is not None:
        regenerate_tasks(session, record)

    session.commit()
    session.refresh(record)
    logger.info("Created intake record %s (%s)", record.id, record.organization_name)
    return record


def update_intake_record(
    session: Session,
    record_id: int,
    updates: Dict[str, Any],
) -> Optional[IntakeRecord]:
    """
    Apply a partial update. Returns None if the record doesn't exist.

    Tasks are regenerated only when the update sets event_date to a new
    non-null value; clearing the date leaves the existing tasks alone.
    """
    record = session.get(IntakeRecord, record_id)
    if record is None:
        return None

    values = _assignable(updates)
    new_event_date = values.get("event_date")
    date_changed = new_event_date is not None and new_event_date != record.event_date

    for key, value in values.items():
        setattr(record, key, value)
    record.flags = compute_flags(record)
    record.updated_at = datetime.utcnow()
    session.add(record)

    if date_changed:
        regenerate_tasks(session, record)
        logger.info("Event date changed for record %s; tasks regenerated", record.id)

    session.commit()
    session.refresh(record)
    return record
