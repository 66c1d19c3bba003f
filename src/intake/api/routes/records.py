"""Intake record and task routes (the parts that drive task scheduling)."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from sqlmodel import Session, select

from intake.api.deps import get_current_user, get_sync_service
from intake.db.engine import get_session
from intake.models.intake import IntakeRecord, Task
from intake.models.user import User
from intake.platform.sync_service import PlatformSyncService
from intake.workflow.records import create_intake_record, update_intake_record
from intake.workflow.status import LOCAL_STATUSES

router = APIRouter()


class IntakeRecordCreate(BaseModel):
    organization_name: str
    contact_name: str
    contact_first_name: Optional[str] = None
    contact_last_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    preferred_contact_method: Optional[str] = None
    organization_category: Optional[str] = None
    department: Optional[str] = None
    event_date: Optional[datetime] = None
    desired_event_date: Optional[datetime] = None
    event_start_time: Optional[str] = None
    event_end_time: Optional[str] = None
    location: Optional[str] = None
    event_address: Optional[str] = None
    attendee_count: int = 0
    volunteer_count: Optional[int] = None
    message: Optional[str] = None
    sandwich_count: int = 0
    sandwich_type: Optional[str] = None
    dietary_restrictions: Optional[str] = None
    requires_refrigeration: bool = False
    has_indoor_space: bool = True
    has_refrigeration: bool = False
    pickup_time_window: Optional[str] = None
    next_day_pickup: bool = False
    delivery_instructions: Optional[str] = None
    planning_notes: Optional[str] = None
    internal_notes: Optional[str] = None


class IntakeRecordUpdate(BaseModel):
    """Partial update; only fields present in the request body are applied."""

    organization_name: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    event_date: Optional[datetime] = None
    scheduled_event_date: Optional[datetime] = None
    event_start_time: Optional[str] = None
    event_end_time: Optional[str] = None
    location: Optional[str] = None
    event_address: Optional[str] = None
    attendee_count: Optional[int] = None
    volunteer_count: Optional[int] = None
    sandwich_count: Optional[int] = None
    actual_sandwich_count: Optional[int] = None
    requires_refrigeration: Optional[bool] = None
    has_indoor_space: Optional[bool] = None
    has_refrigeration: Optional[bool] = None
    refrigeration_confirmed: Optional[bool] = None
    pickup_time_window: Optional[str] = None
    status: Optional[str] = None
    owner_id: Optional[int] = None
    planning_notes: Optional[str] = None
    scheduling_notes: Optional[str] = None
    next_action: Optional[str] = None
    internal_notes: Optional[str] = None


class TaskUpdate(BaseModel):
    completed: bool


@router.post("/records", response_model=IntakeRecord, status_code=201)
def create_record(
    body: IntakeRecordCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Create a record; tasks are generated when an event date is given."""
    return create_intake_record(session, body.model_dump(), owner_id=user.id)


@router.get("/records/{record_id}", response_model=IntakeRecord)
def get_record(record_id: int, session: Session = Depends(get_session)):
    record = session.get(IntakeRecord, record_id)
    if not record:
        raise HTTPException(status_code=404, detail="Record not found")
    return record


def _apply_record_update(session: Session, record_id: int, updates: dict):
    """Blocking DB half of update_record. Returns (record, status before the edit)."""
    existing = session.get(IntakeRecord, record_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Record not found")
    previous_status = existing.status
    return update_intake_record(session, record_id, updates), previous_status


@router.patch("/records/{record_id}", response_model=IntakeRecord)
async def update_record(
    record_id: int,
    body: IntakeRecordUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: PlatformSyncService = Depends(get_sync_service),
):
    """
    Apply a partial update.

    Moving a platform-sourced record into "In Process" also notifies the
    platform (best-effort; the edit is kept even if that fails).
    """
    updates = body.model_dump(exclude_unset=True)
    if "status" in updates and updates["status"] not in LOCAL_STATUSES:
        raise HTTPException(status_code=422, detail=f"Unknown status {updates['status']!r}")

    record, previous_status = await run_in_threadpool(
        _apply_record_update, session, record_id, updates
    )

    if record.status == "In Process" and previous_status != "In Process":
        await service.notify_in_process(record, user)
    return record


@router.get("/records/{record_id}/tasks", response_model=List[Task])
def list_tasks(record_id: int, session: Session = Depends(get_session)):
    return session.exec(
        select(Task).where(Task.intake_id == record_id).order_by(Task.due_date)
    ).all()


@router.patch("/tasks/{task_id}", response_model=Task)
def update_task(
    task_id: int,
    body: TaskUpdate,
    session: Session = Depends(get_session),
):
    task = session.get(Task, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    task.completed = body.completed
    task.completed_at = datetime.utcnow() if body.completed else None
    session.add(task)
    session.commit()
    session.refresh(task)
    return task
