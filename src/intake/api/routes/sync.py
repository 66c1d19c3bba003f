"""Platform sync trigger and audit log routes."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from intake.api.deps import get_current_user, get_sync_service
from intake.db.engine import get_session
from intake.models.user import User
from intake.platform.audit import list_recent_sync_logs
from intake.platform.errors import (
    ConfigurationError,
    Forbidden,
    NotFound,
    NotRemoteSourced,
    RemoteRejected,
    RemoteUnavailable,
    SyncError,
)
from intake.platform.sync_service import PlatformSyncService

router = APIRouter()

UNREACHABLE_MESSAGE = (
    "The platform is currently unreachable (it may be waking up). "
    "Please try again shortly."
)


class PullResponse(BaseModel):
    imported: int
    updated: int
    total: int
    message: str


class PushResponse(BaseModel):
    success: bool
    message: str


class SyncLogResponse(BaseModel):
    id: int
    synced_at: datetime
    direction: str
    record_count: int
    status: str
    error: Optional[str]


def to_http_error(exc: SyncError) -> HTTPException:
    """Map a sync error onto the status code and wording the UI shows."""
    if isinstance(exc, RemoteUnavailable):
        return HTTPException(status_code=503, detail=UNREACHABLE_MESSAGE)
    if isinstance(exc, RemoteRejected):
        return HTTPException(
            status_code=502,
            detail=f"The platform rejected the request (HTTP {exc.status_code})",
        )
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, NotRemoteSourced):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, Forbidden):
        return HTTPException(status_code=403, detail=str(exc))
    return HTTPException(status_code=500, detail="Sync failed")


@router.post("/pull", response_model=PullResponse)
async def pull(
    user: User = Depends(get_current_user),
    service: PlatformSyncService = Depends(get_sync_service),
):
    """Import / advance event requests assigned to the caller on the platform."""
    try:
        summary = await service.pull(user)
    except SyncError as exc:
        raise to_http_error(exc) from exc
    return PullResponse(
        imported=summary.imported,
        updated=summary.updated,
        total=summary.total,
        message=summary.message,
    )


@router.post("/push/{record_id}", response_model=PushResponse)
async def push(
    record_id: int,
    user: User = Depends(get_current_user),
    service: PlatformSyncService = Depends(get_sync_service),
):
    """Send a platform-sourced record back to the platform as scheduled."""
    try:
        result = await service.push(record_id, user)
    except SyncError as exc:
        raise to_http_error(exc) from exc
    return PushResponse(success=result.success, message=result.message)


@router.get("/logs", response_model=List[SyncLogResponse])
def sync_logs(limit: int = 10, session: Session = Depends(get_session)):
    """Recent sync attempts, newest first."""
    return list_recent_sync_logs(session, limit=limit)
