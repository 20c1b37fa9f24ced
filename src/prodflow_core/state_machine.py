"""State machine validation for release, OKR and document status transitions.

Sprints are not driven through a matrix: their start/complete operations carry
their own guards (see ``actions.sprints``). Status edits on a sprint still go
through ``validate_sprint_transition`` so a plain update cannot skip those
operations.
"""
import enum
import logging

from .errors import BusinessRuleViolation
from .models import DocumentStatus, OKRStatus, ReleaseStatus, SprintStatus

logger = logging.getLogger("prodflow-core.state_machine")


class StateTransitionError(BusinessRuleViolation):
    """Raised when an invalid state transition is attempted."""

    def __init__(
        self,
        message: str,
        current_status: enum.Enum,
        requested_status: enum.Enum,
        allowed_transitions: list[enum.Enum]
    ):
        super().__init__(message)
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed_transitions = allowed_transitions


# Maps current status → list of allowed next statuses
RELEASE_TRANSITIONS: dict[ReleaseStatus, list[ReleaseStatus]] = {
    ReleaseStatus.PLANNED: [
        ReleaseStatus.IN_PROGRESS,  # Forward: work started
        ReleaseStatus.RELEASED,     # Forward: shipped directly (deploy)
        ReleaseStatus.CANCELLED,
    ],
    ReleaseStatus.IN_PROGRESS: [
        ReleaseStatus.PLANNED,      # Back: descoped
        ReleaseStatus.RELEASED,
        ReleaseStatus.CANCELLED,
    ],
    ReleaseStatus.RELEASED: [
        # Terminal: shipped releases are records
    ],
    ReleaseStatus.CANCELLED: [
        ReleaseStatus.PLANNED,      # Back: revived
    ],
}

OKR_TRANSITIONS: dict[OKRStatus, list[OKRStatus]] = {
    OKRStatus.ACTIVE: [
        OKRStatus.COMPLETED,
        OKRStatus.CANCELLED,
        OKRStatus.ARCHIVED,
    ],
    OKRStatus.COMPLETED: [
        OKRStatus.ACTIVE,       # Back: reopened
        OKRStatus.ARCHIVED,
    ],
    OKRStatus.CANCELLED: [
        OKRStatus.ACTIVE,
        OKRStatus.ARCHIVED,
    ],
    OKRStatus.ARCHIVED: [
        # Terminal
    ],
}

# Edits through a plain update; start/complete have dedicated operations
SPRINT_TRANSITIONS: dict[SprintStatus, list[SprintStatus]] = {
    SprintStatus.PLANNED: [SprintStatus.CANCELLED],
    SprintStatus.ACTIVE: [SprintStatus.CANCELLED],
    SprintStatus.COMPLETED: [],
    SprintStatus.CANCELLED: [SprintStatus.PLANNED],
}

DOCUMENT_TRANSITIONS: dict[DocumentStatus, list[DocumentStatus]] = {
    DocumentStatus.DRAFT: [
        DocumentStatus.REVIEW,
        DocumentStatus.ARCHIVED,
    ],
    DocumentStatus.REVIEW: [
        DocumentStatus.APPROVED,
        DocumentStatus.REJECTED,
        DocumentStatus.DRAFT,      # Back: pulled from review
    ],
    DocumentStatus.APPROVED: [
        DocumentStatus.ARCHIVED,
    ],
    DocumentStatus.REJECTED: [
        DocumentStatus.DRAFT,      # Back: reworked
        DocumentStatus.ARCHIVED,
    ],
    DocumentStatus.ARCHIVED: [
        # Terminal
    ],
}

# Review outcomes have dedicated operations; plain edits may only reach these
DOCUMENT_EDIT_TARGETS = (DocumentStatus.DRAFT, DocumentStatus.ARCHIVED)

# Keyed by status type too: str enums with equal values compare equal
_GUIDANCE = {
    (SprintStatus, SprintStatus.PLANNED, SprintStatus.ACTIVE): " Use the start operation to activate a sprint.",
    (SprintStatus, SprintStatus.ACTIVE, SprintStatus.COMPLETED): " Use the complete operation to close a sprint.",
    (ReleaseStatus, ReleaseStatus.RELEASED, None): " Released versions are immutable. Plan a new release instead.",
    (OKRStatus, OKRStatus.ARCHIVED, None): " Archived OKRs cannot be reactivated. Create a new OKR instead.",
    (DocumentStatus, DocumentStatus.ARCHIVED, None): (
        " Archived documents cannot be reopened. Duplicate it to start a new draft."
    ),
    (DocumentStatus, DocumentStatus.APPROVED, DocumentStatus.DRAFT): (
        " Duplicate the approved document to start a new draft."
    ),
}


def is_transition_valid(matrix: dict, current_status: enum.Enum, new_status: enum.Enum) -> bool:
    """
    Check if a status transition is valid.

    Args:
        matrix: Transition matrix for the entity
        current_status: Current status
        new_status: Requested new status

    Returns:
        True if transition is allowed, False otherwise
    """
    if current_status == new_status:
        return True
    return new_status in matrix.get(current_status, [])


def validate_transition(matrix: dict, current_status: enum.Enum, new_status: enum.Enum) -> None:
    """
    Validate a status transition and raise exception if invalid.

    No-op transitions (same status) are always allowed.

    Raises:
        StateTransitionError: If the transition is not allowed
    """
    if current_status == new_status:
        logger.debug(f"No-op transition: {current_status.value} → {new_status.value}")
        return

    if not is_transition_valid(matrix, current_status, new_status):
        allowed_transitions = matrix.get(current_status, [])
        allowed_names = [s.value for s in allowed_transitions]

        if allowed_names:
            error_msg = (
                f"Invalid status transition: {current_status.value} → {new_status.value}. "
                f"From {current_status.value}, you can only transition to: {', '.join(allowed_names)}."
            )
        else:
            error_msg = (
                f"Invalid status transition: {current_status.value} → {new_status.value}. "
                f"{current_status.value} is a terminal status."
            )

        kind = type(current_status)
        guidance = _GUIDANCE.get((kind, current_status, new_status)) or _GUIDANCE.get((kind, current_status, None))
        if guidance:
            error_msg += guidance

        logger.warning(f"Blocked transition: {error_msg}")
        raise StateTransitionError(
            message=error_msg,
            current_status=current_status,
            requested_status=new_status,
            allowed_transitions=allowed_transitions
        )

    logger.debug(f"Valid transition: {current_status.value} → {new_status.value}")


def validate_release_transition(current_status: ReleaseStatus, new_status: ReleaseStatus) -> None:
    validate_transition(RELEASE_TRANSITIONS, current_status, new_status)


def validate_okr_transition(current_status: OKRStatus, new_status: OKRStatus) -> None:
    validate_transition(OKR_TRANSITIONS, current_status, new_status)


def validate_sprint_transition(current_status: SprintStatus, new_status: SprintStatus) -> None:
    validate_transition(SPRINT_TRANSITIONS, current_status, new_status)


def validate_document_transition(current_status: DocumentStatus, new_status: DocumentStatus) -> None:
    validate_transition(DOCUMENT_TRANSITIONS, current_status, new_status)


def get_allowed_transitions(matrix: dict, current_status: enum.Enum) -> list:
    """
    Get list of allowed transitions from current status.

    Returns:
        List of allowed next statuses (excluding no-op same status)
    """
    return [s for s in matrix.get(current_status, []) if s != current_status]
