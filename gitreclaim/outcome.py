"""
Outcome classification for a run.
"""
from typing import Collection

from gitreclaim.models import Status


def classify_status(found: Collection[str], missing: Collection[str]) -> Status:
    """
    Derive the run status from the found/missing object sets.

    FAILURE when nothing was found, PARTIAL_SUCCESS when anything is
    missing, SUCCESS otherwise.
    """
    if not found:
        return Status.FAILURE
    if missing:
        return Status.PARTIAL_SUCCESS
    return Status.SUCCESS


def downgrade(status: Status) -> Status:
    """Downgrade a status toward PARTIAL_SUCCESS; never upgrades."""
    return max(status, Status.PARTIAL_SUCCESS)
