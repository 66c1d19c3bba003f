"""Intake record and follow-up task models."""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, Relationship, SQLModel


class IntakeRecord(SQLModel, table=True):
    """
    One row per event-intake request.

    Records with external_event_id set were imported from the platform; that
    id is the only key used to match them against platform event requests.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Platform event request id (nullable: NULLs never collide on the unique index)
    external_event_id: Optional[str] = Field(default=None, unique=True, index=True)

    # Contact
    contact_name: str
    contact_first_name: Optional[str] = None
    contact_last_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    preferred_contact_method: Optional[str] = None  # "call", "text", "email"

    # Backup contact
    backup_contact_first_name: Optional[str] = None
    backup_contact_last_name: Optional[str] = None
    backup_contact_email: Optional[str] = None
    backup_contact_phone: Optional[str] = None
    backup_contact_role: Optional[str] = None

    # Organization
    organization_name: str
    organization_category: Optional[str] = None
    department: Optional[str] = None

    # Event
    event_date: Optional[datetime] = None
    desired_event_date: Optional[datetime] = None
    scheduled_event_date: Optional[datetime] = None
    date_flexible: Optional[bool] = None
    event_start_time: Optional[str] = None
    event_end_time: Optional[str] = None
    location: Optional[str] = None
    event_address: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    attendee_count: int = 0
    volunteer_count: Optional[int] = None
    message: Optional[str] = None

    # Sandwiches
    sandwich_count: int = 0
    actual_sandwich_count: Optional[int] = None
    sandwich_type: Optional[str] = None  # "turkey", "chicken", "pbj"
    dietary_restrictions: Optional[str] = None
    requires_refrigeration: bool = False

    # Logistics
    has_indoor_space: bool = True
    has_refrigeration: bool = False
    refrigeration_confirmed: bool = False
    pickup_time_window: Optional[str] = None
    next_day_pickup: bool = False
    delivery_instructions: Optional[str] = None

    # Status & assignment
    status: str = "New"  # see intake.workflow.status.LOCAL_STATUSES
    owner_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    tsp_contact_assigned: Optional[str] = None
    tsp_contact: Optional[str] = None
    custom_tsp_contact: Optional[str] = None

    # Notes & tracking
    planning_notes: Optional[str] = None
    scheduling_notes: Optional[str] = None
    next_action: Optional[str] = None
    contact_attempts: Optional[int] = None
    flags: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    internal_notes: Optional[str] = None

    tasks: List["Task"] = Relationship(back_populates="intake")


class Task(SQLModel, table=True):
    """A dated follow-up generated from an intake record's event date."""

    id: Optional[int] = Field(default=None, primary_key=True)
    intake_id: int = Field(foreign_key="intakerecord.id", index=True)
    title: str
    due_date: datetime
    completed: bool = False
    completed_at: Optional[datetime] = None
    type: str  # "follow_up", "pre_event", "reminder", "post_event"

    intake: Optional[IntakeRecord] = Relationship(back_populates="tasks")
