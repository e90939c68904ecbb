"""
Counting Activity State Machine

All activity status rules live here: which transitions are legal and which
statuses accept scans or promotions.

    PENDING ──start──▶ IN_PROGRESS ──settle──▶ COMPLETED (terminal)

Activities are created directly in IN_PROGRESS. COMPLETED activities are
closed: they accept no scans, no promotions and cannot be settled again.
"""

from typing import Dict, List

from app.core.enum_utils import to_enum
from app.core.exceptions import ActivityStateError
from app.models.counting import ActivityStatus


# =============================================================================
# TRANSITION RULES
# =============================================================================

ACTIVITY_TRANSITIONS: Dict[ActivityStatus, List[ActivityStatus]] = {
    ActivityStatus.PENDING: [
        ActivityStatus.IN_PROGRESS,     # Start counting
    ],
    ActivityStatus.IN_PROGRESS: [
        ActivityStatus.COMPLETED,       # Settle
    ],
    ActivityStatus.COMPLETED: [],       # Terminal state - no transitions
}

# Statuses in which tags may be scanned and unrecorded tags promoted
OPEN_STATUSES = {ActivityStatus.IN_PROGRESS}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def can_transition(current_status: str, new_status: str) -> bool:
    """Check if a transition is allowed."""
    current = to_enum(current_status, ActivityStatus)
    target = to_enum(new_status, ActivityStatus)
    if current is None or target is None:
        return False
    return target in ACTIVITY_TRANSITIONS.get(current, [])


def validate_transition(current_status: str, new_status: str) -> None:
    """
    Raise ActivityStateError if the transition is not allowed.
    """
    if not can_transition(current_status, new_status):
        raise ActivityStateError(
            f"Cannot move activity from {current_status} to {new_status}",
            current_status=current_status,
        )


def accepts_scans(status: str) -> bool:
    """Check if an activity in this status accepts scans and promotions."""
    return to_enum(status, ActivityStatus) in OPEN_STATUSES


def ensure_open(status: str) -> None:
    """
    Raise ActivityStateError unless the activity accepts scans.
    """
    if not accepts_scans(status):
        raise ActivityStateError(
            f"Activity is {status} and no longer accepts scans",
            current_status=status,
        )
