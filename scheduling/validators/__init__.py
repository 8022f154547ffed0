"""
Lifecycle validators.

Validators:
- check_transition_allowed: Role-aware authorization for appointment actions
- parse_target_status: Rejects statuses that are not transition targets
- ensure_not_terminal: Rejects changes to CANCELLED/COMPLETED/NO_SHOW appointments
"""

from scheduling.validators.transition_validator import (
    TRANSITION_PERMISSIONS,
    Actor,
    ActorRole,
    TransitionAction,
    check_transition_allowed,
    ensure_not_terminal,
    parse_target_status,
    resolve_roles,
)

__all__ = [
    "TRANSITION_PERMISSIONS",
    "Actor",
    "ActorRole",
    "TransitionAction",
    "check_transition_allowed",
    "ensure_not_terminal",
    "parse_target_status",
    "resolve_roles",
]
