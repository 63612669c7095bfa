"""
Business rule validation for item requests.

Holds the closed transition table of the request lifecycle.
"""
from typing import Dict, FrozenSet, Tuple

from .models import RequestStatus


VALID_TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.APPROVED, RequestStatus.REJECTED}),
    RequestStatus.APPROVED: frozenset({RequestStatus.RETURNED}),
    RequestStatus.REJECTED: frozenset(),  # Terminal state
    RequestStatus.RETURNED: frozenset(),  # Terminal state
}


def is_terminal(status: RequestStatus) -> bool:
    """Return True if no transition leaves ``status``."""
    return not VALID_TRANSITIONS[status]


def validate_status_transition(old_status: RequestStatus, new_status: RequestStatus) -> Tuple[bool, str]:
    """
    Validate that a status transition is allowed.
    
    Args:
        old_status: Current request status
        new_status: Requested request status
    
    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        old_status = RequestStatus(old_status)
    except ValueError:
        return False, f"Unknown status: {old_status}"

    try:
        new_status = RequestStatus(new_status)
    except ValueError:
        return False, f"Unknown status: {new_status}"

    if new_status not in VALID_TRANSITIONS[old_status]:
        return False, f"Invalid status transition: {old_status.value} -> {new_status.value}"
    
    return True, ""
