"""
Follow-up task generation.

Every intake record with an event date carries exactly four tasks:

  Initial Follow-up        created_at + 2 days   follow_up
  Pre-Event Confirmation   event_date - 5 days   pre_event
  Final Reminder           event_date - 3 days   reminder
  Post-Event Follow-up     event_date + 1 day    post_event

No event date means no tasks at all, not even the initial follow-up.
Changing the event date throws the whole set away and rebuilds it;
completion state on the old tasks is not carried over.
"""
from datetime import datetime, timedelta
from typing import List, Optional

from sqlmodel import Session, select

from intake.models.intake import IntakeRecord, Task

# (title, anchor, day offset, type); anchor is "created" or "event"
TASK_RULES = (
    ("Initial Follow-up", "created", 2, "follow_up"),
    ("Pre-Event Confirmation", "event", -5, "pre_event"),
    ("Final Reminder", "event", -3, "reminder"),
    ("Post-Event Follow-up", "event", 1, "post_event"),
)


def compute_tasks(
    record_id: Optional[int],
    created_at: datetime,
    event_date: Optional[datetime],
) -> List[Task]:
    """
    Build the canonical task drafts for one record. Pure: nothing is persisted.

    Args:
        record_id: IntakeRecord.id the tasks belong to.
        created_at: When the record was created.
        event_date: Event date, or None.

    Returns:
        Four unsaved Task rows in rule order, or [] when event_date is None.
    """
    if event_date is None:
        return []

    anchors = {"created": created_at, "event": event_date}
    return [
        Task(
            intake_id=record_id,
            title=title,
            due_date=anchors[anchor] + timedelta(days=offset),
            completed=False,
            type=task_type,
        )
        for title, anchor, offset, task_type in TASK_RULES
    ]


def regenerate_tasks(session: Session, record: IntakeRecord) -> List[Task]:
    """Delete all tasks for `record` and insert a fresh canonical set.

    Does not commit; the caller owns the transaction.
    """
    existing = session.exec(select(Task).where(Task.intake_id == record.id)).all()
    for task in existing:
        session.delete(task)
    session.flush()

    fresh = compute_tasks(record.id, record.created_at, record.event_date)
    for task in fresh:
        session.add(task)
    return fresh
