import pytest

from app.core.exceptions import ActivityStateError
from app.models.counting import ActivityStatus
from app.services.counting_state_machine import (
    accepts_scans,
    can_transition,
    ensure_open,
    validate_transition,
)


@pytest.mark.parametrize(
    "current,target,allowed",
    [
        ("PENDING", "IN_PROGRESS", True),
        ("IN_PROGRESS", "COMPLETED", True),
        ("PENDING", "COMPLETED", False),
        ("COMPLETED", "IN_PROGRESS", False),
        ("COMPLETED", "COMPLETED", False),
        ("IN_PROGRESS", "PENDING", False),
        ("UNKNOWN", "COMPLETED", False),
    ],
)
def test_can_transition(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_validate_transition_raises_conflict():
    with pytest.raises(ActivityStateError) as exc_info:
        validate_transition(ActivityStatus.COMPLETED.value, ActivityStatus.COMPLETED.value)

    assert exc_info.value.status_code == 409
    assert exc_info.value.to_dict()["current_status"] == "COMPLETED"


def test_only_in_progress_accepts_scans():
    assert accepts_scans("IN_PROGRESS")
    assert not accepts_scans("PENDING")
    assert not accepts_scans("COMPLETED")

    ensure_open("IN_PROGRESS")
    with pytest.raises(ActivityStateError):
        ensure_open("COMPLETED")
