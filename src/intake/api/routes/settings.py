"""Platform account linking for the current user."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from intake.api.deps import get_current_user, get_sync_service
from intake.api.routes.sync import to_http_error
from intake.db.engine import get_session
from intake.models.user import User
from intake.platform.errors import SyncError
from intake.platform.sync_service import PlatformSyncService

router = APIRouter()


class PlatformLinkResponse(BaseModel):
    platform_user_id: Optional[str]


class PlatformLinkRequest(BaseModel):
    platform_user_id: Optional[str] = None


@router.post("/lookup-platform-id", response_model=PlatformLinkResponse)
async def lookup_platform_id(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: PlatformSyncService = Depends(get_sync_service),
):
    """Find the caller's platform account by email and link it."""
    try:
        platform_user_id = await service.lookup_platform_user_id(user.email)
    except SyncError as exc:
        raise to_http_error(exc) from exc
    if not platform_user_id:
        raise HTTPException(
            status_code=404,
            detail=f"No platform account found for {user.email}",
        )
    user.platform_user_id = platform_user_id
    session.add(user)
    session.commit()
    return PlatformLinkResponse(platform_user_id=platform_user_id)


@router.put("/platform-id", response_model=PlatformLinkResponse)
def set_platform_id(
    body: PlatformLinkRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Link (or with null, unlink) a platform user id entered by hand."""
    value = (body.platform_user_id or "").strip() or None
    user.platform_user_id = value
    session.add(user)
    session.commit()
    return PlatformLinkResponse(platform_user_id=value)
