"""Local user model (only the columns the sync engine reads)."""
from typing import Optional

from sqlmodel import Field, SQLModel

ELEVATED_ROLES = frozenset({"admin", "super_admin"})


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str = "volunteer"

    # Linked account on the platform; required for pull
    platform_user_id: Optional[str] = None

    @property
    def is_elevated(self) -> bool:
        return self.role in ELEVATED_ROLES
