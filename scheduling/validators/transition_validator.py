"""
Lifecycle transition authorization.

Every status change, completion-code step and shortcut endpoint goes through
``check_transition_allowed``, which resolves the roles an actor holds on one
appointment and checks them against ``TRANSITION_PERMISSIONS``.

Roles are relational, not just the account role:
- OWNER: the actor owns the appointment's business
- ASSIGNED_STAFF: the actor's staff profile is the appointment's staff_id
- CUSTOMER: the actor booked the appointment

An actor may hold several roles at once (an owner booking at their own
salon); every role held must permit the action.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from database.models import (
    TERMINAL_STATUSES,
    Appointment,
    AppointmentStatus,
    Staff,
    UserRole,
)
from scheduling.errors import BookingValidationError, ForbiddenError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as resolved from the bearer token."""

    user_id: UUID
    role: UserRole


class ActorRole(str, Enum):
    OWNER = "OWNER"
    ASSIGNED_STAFF = "ASSIGNED_STAFF"
    CUSTOMER = "CUSTOMER"


class TransitionAction(str, Enum):
    """Actions an actor can take on an existing appointment."""

    CONFIRM = "CONFIRMED"
    CANCEL = "CANCELLED"
    COMPLETE = "COMPLETED"
    NO_SHOW = "NO_SHOW"
    INITIATE_COMPLETION = "INITIATE_COMPLETION"
    VERIFY_COMPLETION = "VERIFY_COMPLETION"

    @classmethod
    def for_status(cls, status: AppointmentStatus) -> "TransitionAction":
        return cls(status.value)


_OWNER_OR_ASSIGNED = frozenset({ActorRole.OWNER, ActorRole.ASSIGNED_STAFF})

TRANSITION_PERMISSIONS: dict[TransitionAction, frozenset[ActorRole]] = {
    TransitionAction.CONFIRM: _OWNER_OR_ASSIGNED,
    TransitionAction.CANCEL: frozenset({ActorRole.OWNER, ActorRole.CUSTOMER}),
    TransitionAction.COMPLETE: _OWNER_OR_ASSIGNED,
    TransitionAction.NO_SHOW: _OWNER_OR_ASSIGNED,
    TransitionAction.INITIATE_COMPLETION: _OWNER_OR_ASSIGNED,
    TransitionAction.VERIFY_COMPLETION: _OWNER_OR_ASSIGNED,
}

# Relational role an account role can at most hold on an appointment
_ACCOUNT_ROLE_CEILING = {
    UserRole.OWNER: ActorRole.OWNER,
    UserRole.STAFF: ActorRole.ASSIGNED_STAFF,
    UserRole.CUSTOMER: ActorRole.CUSTOMER,
}

DENIAL_MESSAGES = {
    ActorRole.CUSTOMER: "Customers can only cancel appointments",
    ActorRole.ASSIGNED_STAFF: "Staff cannot cancel appointments. Please contact the owner.",
    ActorRole.OWNER: "Not authorized",
}

# Targets accepted by the generic status endpoint; PENDING is creation-only
TARGET_STATUSES = frozenset({
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.COMPLETED,
    AppointmentStatus.NO_SHOW,
})


def parse_target_status(value: Any) -> AppointmentStatus:
    """
    Validate a requested status.

    Raises:
        BookingValidationError: If the value is not a transition target
    """
    try:
        status = AppointmentStatus(value)
    except ValueError:
        raise BookingValidationError("Invalid status") from None

    if status not in TARGET_STATUSES:
        raise BookingValidationError("Invalid status")
    return status


def resolve_roles(
    actor: Actor, appointment: Appointment, staff: Optional[Staff] = None
) -> set[ActorRole]:
    """Roles the actor holds on the appointment."""
    roles: set[ActorRole] = set()

    if appointment.business is not None and appointment.business.owner_id == actor.user_id:
        roles.add(ActorRole.OWNER)
    if (
        staff is not None
        and appointment.staff_id is not None
        and staff.id == appointment.staff_id
    ):
        roles.add(ActorRole.ASSIGNED_STAFF)
    if appointment.customer_id == actor.user_id:
        roles.add(ActorRole.CUSTOMER)

    return roles


def check_transition_allowed(
    actor: Actor,
    appointment: Appointment,
    action: TransitionAction,
    staff: Optional[Staff] = None,
) -> set[ActorRole]:
    """
    Authorize an action on an appointment.

    Args:
        actor: Authenticated caller
        appointment: Target appointment with its business loaded
        action: Requested action
        staff: Actor's staff profile, when the actor is STAFF

    Returns:
        Roles the actor holds on the appointment

    Raises:
        ForbiddenError: If the account role can never perform the action,
            the actor has no relationship to the appointment, or any held
            role does not permit the action
    """
    allowed = TRANSITION_PERMISSIONS[action]

    # Account-level denial comes first so a customer or staff member gets the
    # role-specific message even without a relationship to the appointment
    ceiling = _ACCOUNT_ROLE_CEILING[actor.role]
    if ceiling not in allowed:
        raise ForbiddenError(DENIAL_MESSAGES[ceiling])

    roles = resolve_roles(actor, appointment, staff)
    if not roles:
        logger.warning(
            f"Actor has no role on appointment for {action.value}",
            extra={"appointment_id": appointment.id, "user_id": actor.user_id},
        )
        raise ForbiddenError("Not authorized")

    for role in sorted(roles, key=lambda r: r.value):
        if role not in allowed:
            raise ForbiddenError(DENIAL_MESSAGES[role])

    return roles


def ensure_not_terminal(appointment: Appointment) -> None:
    """
    Raises:
        BookingValidationError: If the appointment is CANCELLED, COMPLETED or NO_SHOW
    """
    if appointment.status in TERMINAL_STATUSES:
        raise BookingValidationError(
            f"Appointment is already {appointment.status.value} and cannot be changed"
        )
