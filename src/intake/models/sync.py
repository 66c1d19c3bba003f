"""Sync audit log model."""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class SyncLog(SQLModel, table=True):
    """One append-only row per pull/push attempt, successful or not."""

    id: Optional[int] = Field(default=None, primary_key=True)
    synced_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    direction: str  # "pull", "push"
    record_count: int = 0
    status: str  # "success", "error"
    error: Optional[str] = None
    user_id: Optional[int] = None  # who triggered the sync, if known
