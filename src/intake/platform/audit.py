"""Append-only sync audit log helpers."""
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select

from intake.models.sync import SyncLog


def record_sync_attempt(
    engine,
    *,
    direction: str,
    status: str,
    record_count: int = 0,
    error: Optional[str] = None,
    user_id: Optional[int] = None,
) -> SyncLog:
    """Append one SyncLog row in its own transaction and return it."""
    log = SyncLog(
        synced_at=datetime.utcnow(),
        direction=direction,
        status=status,
        record_count=record_count,
        error=error,
        user_id=user_id,
    )
    with Session(engine) as s:
        s.add(log)
        s.commit()
        s.refresh(log)
    return log


def list_recent_sync_logs(session: Session, limit: int = 10) -> List[SyncLog]:
    """Most recent sync attempts, newest first."""
    return list(
        session.exec(
            select(SyncLog)
            .order_by(SyncLog.synced_at.desc(), SyncLog.id.desc())
            .limit(limit)
        ).all()
    )
