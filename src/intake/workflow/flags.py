"""Operational risk flags derived from an intake record's logistics fields."""
from typing import List

HIGH_VOLUME_THRESHOLD = 400


def compute_flags(record) -> List[str]:
    flags: List[str] = []
    if not record.has_indoor_space:
        flags.append("No Indoor Space")
    if record.requires_refrigeration and not record.has_refrigeration:
        flags.append("Fridge Risk")
    if (record.sandwich_count or 0) >= HIGH_VOLUME_THRESHOLD:
        flags.append("High Volume (Rep Req)")
    return flags
