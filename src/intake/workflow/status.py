"""
Workflow status ordering and platform vocabulary translation.

Local statuses are Title Case labels; the platform uses lowercase
underscore labels. Both directions go through one table so the rank model
and the translation can't drift apart.

Sync may only move a record forward through LOCAL_STATUSES, never back.
"""
from typing import Optional

LOCAL_STATUSES = ("New", "In Process", "Scheduled", "Completed")

STATUS_RANK = {label: rank for rank, label in enumerate(LOCAL_STATUSES)}

# platform label -> local label
_REMOTE_TO_LOCAL = {
    "new": "New",
    "in_process": "In Process",
    "scheduled": "Scheduled",
    "completed": "Completed",
}
_LOCAL_TO_REMOTE = {local: remote for remote, local in _REMOTE_TO_LOCAL.items()}

DEFAULT_STATUS = LOCAL_STATUSES[0]


def status_rank(label: Optional[str]) -> int:
    """Ordinal rank of a local status. Unknown labels rank as "New" (0)."""
    return STATUS_RANK.get(label, 0)


def to_local_status(remote: Optional[str]) -> str:
    """Translate a platform status label. Unknown or missing maps to "New"."""
    if not remote:
        return DEFAULT_STATUS
    key = str(remote).strip().lower().replace(" ", "_")
    return _REMOTE_TO_LOCAL.get(key, DEFAULT_STATUS)


def to_remote_status(local: Optional[str]) -> str:
    """Translate a local status label into the platform vocabulary."""
    return _LOCAL_TO_REMOTE.get(local, _LOCAL_TO_REMOTE[DEFAULT_STATUS])


def should_advance(current: Optional[str], incoming: Optional[str]) -> bool:
    """True only when `incoming` (a local label) is strictly ahead of `current`."""
    return status_rank(incoming) > status_rank(current)
