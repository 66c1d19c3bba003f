"""Shared FastAPI dependencies."""
from typing import AsyncGenerator

from fastapi import Depends, Header, HTTPException
from sqlmodel import Session

from intake.config import get_settings
from intake.db.engine import get_engine, get_session
from intake.models.user import User
from intake.platform.sync_service import PlatformSyncService


def get_current_user(
    x_user_id: int = Header(...),
    session: Session = Depends(get_session),
) -> User:
    """Resolve the caller from the X-User-Id header.

    Authentication happens upstream (reverse proxy / session layer); this
    only maps the authenticated id to a local User row.
    """
    user = session.get(User, x_user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


async def get_sync_service() -> AsyncGenerator[PlatformSyncService, None]:
    service = PlatformSyncService(engine=get_engine(), settings=get_settings())
    try:
        yield service
    finally:
        await service.aclose()
