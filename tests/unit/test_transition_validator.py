"""
Tests for lifecycle transition authorization.
"""

from uuid import uuid4

import pytest

from database.models import AppointmentStatus, Staff, UserRole
from scheduling.errors import BookingValidationError, ForbiddenError
from scheduling.validators.transition_validator import (
    Actor,
    ActorRole,
    TransitionAction,
    check_transition_allowed,
    ensure_not_terminal,
    parse_target_status,
    resolve_roles,
)


class TestParseTargetStatus:
    """Test status request validation."""

    @pytest.mark.parametrize("value", ["CONFIRMED", "CANCELLED", "COMPLETED", "NO_SHOW"])
    def test_accepts_transition_targets(self, value):
        assert parse_target_status(value) == AppointmentStatus(value)

    @pytest.mark.parametrize("value", ["PENDING", "confirmed", "ARCHIVED", "", None])
    def test_rejects_everything_else(self, value):
        with pytest.raises(BookingValidationError, match="Invalid status"):
            parse_target_status(value)


class TestResolveRoles:
    """Test relational role resolution."""

    def test_owner_of_business(self, salon, make_appointment):
        assert resolve_roles(salon.owner_actor, make_appointment()) == {ActorRole.OWNER}

    def test_customer_who_booked(self, salon, make_appointment):
        assert resolve_roles(salon.customer_actor, make_appointment()) == {ActorRole.CUSTOMER}

    def test_assigned_staff(self, salon, make_appointment):
        appointment = make_appointment(staff_id=salon.staff.id)

        assert resolve_roles(salon.staff_actor, appointment, salon.staff) == {ActorRole.ASSIGNED_STAFF}

    def test_unassigned_staff_holds_nothing(self, salon, make_appointment):
        assert resolve_roles(salon.staff_actor, make_appointment(), salon.staff) == set()

    def test_owner_booking_at_own_business_holds_both(self, salon, make_appointment):
        appointment = make_appointment(customer_id=salon.owner.id)

        assert resolve_roles(salon.owner_actor, appointment) == {ActorRole.OWNER, ActorRole.CUSTOMER}


class TestCheckTransitionAllowed:
    """Test the permission table and its denial messages."""

    @pytest.mark.parametrize("action", list(TransitionAction))
    def test_owner_may_take_every_action(self, salon, make_appointment, action):
        roles = check_transition_allowed(salon.owner_actor, make_appointment(), action)

        assert roles == {ActorRole.OWNER}

    @pytest.mark.parametrize(
        "action",
        [
            TransitionAction.CONFIRM,
            TransitionAction.COMPLETE,
            TransitionAction.NO_SHOW,
            TransitionAction.INITIATE_COMPLETION,
            TransitionAction.VERIFY_COMPLETION,
        ],
    )
    def test_assigned_staff_may_do_everything_but_cancel(self, salon, make_appointment, action):
        appointment = make_appointment(staff_id=salon.staff.id)

        assert check_transition_allowed(salon.staff_actor, appointment, action, salon.staff)

    def test_staff_can_never_cancel(self, salon, make_appointment):
        appointment = make_appointment(staff_id=salon.staff.id)

        with pytest.raises(ForbiddenError, match="Staff cannot cancel appointments. Please contact the owner."):
            check_transition_allowed(salon.staff_actor, appointment, TransitionAction.CANCEL, salon.staff)

    def test_customer_may_cancel_own_booking(self, salon, make_appointment):
        roles = check_transition_allowed(salon.customer_actor, make_appointment(), TransitionAction.CANCEL)

        assert roles == {ActorRole.CUSTOMER}

    @pytest.mark.parametrize(
        "action",
        [TransitionAction.CONFIRM, TransitionAction.COMPLETE, TransitionAction.NO_SHOW],
    )
    def test_customer_can_only_cancel(self, salon, make_appointment, action):
        with pytest.raises(ForbiddenError, match="Customers can only cancel appointments"):
            check_transition_allowed(salon.customer_actor, make_appointment(), action)

    def test_customer_message_holds_without_relationship(self, make_appointment):
        stranger = Actor(user_id=uuid4(), role=UserRole.CUSTOMER)

        with pytest.raises(ForbiddenError, match="Customers can only cancel appointments"):
            check_transition_allowed(stranger, make_appointment(), TransitionAction.CONFIRM)

    def test_unrelated_customer_cannot_cancel(self, make_appointment):
        stranger = Actor(user_id=uuid4(), role=UserRole.CUSTOMER)

        with pytest.raises(ForbiddenError, match="^Not authorized$"):
            check_transition_allowed(stranger, make_appointment(), TransitionAction.CANCEL)

    def test_owner_of_other_business_is_not_authorized(self, make_appointment):
        other_owner = Actor(user_id=uuid4(), role=UserRole.OWNER)

        with pytest.raises(ForbiddenError, match="^Not authorized$"):
            check_transition_allowed(other_owner, make_appointment(), TransitionAction.CONFIRM)

    def test_unassigned_staff_is_not_authorized(self, salon, make_appointment):
        with pytest.raises(ForbiddenError, match="^Not authorized$"):
            check_transition_allowed(
                salon.staff_actor, make_appointment(), TransitionAction.CONFIRM, salon.staff
            )

    def test_staff_of_other_appointment_is_not_authorized(self, salon, make_appointment):
        colleague = Staff(id=uuid4(), business_id=salon.business.id, user_id=uuid4(), name="Other")
        appointment = make_appointment(staff_id=colleague.id)

        with pytest.raises(ForbiddenError, match="^Not authorized$"):
            check_transition_allowed(salon.staff_actor, appointment, TransitionAction.COMPLETE, salon.staff)

    def test_owner_who_is_also_customer_cannot_confirm(self, salon, make_appointment):
        """Every role held must permit the action; the customer role blocks confirm."""
        appointment = make_appointment(customer_id=salon.owner.id)

        with pytest.raises(ForbiddenError, match="Customers can only cancel appointments"):
            check_transition_allowed(salon.owner_actor, appointment, TransitionAction.CONFIRM)

    def test_owner_who_is_also_customer_can_cancel(self, salon, make_appointment):
        appointment = make_appointment(customer_id=salon.owner.id)

        roles = check_transition_allowed(salon.owner_actor, appointment, TransitionAction.CANCEL)

        assert roles == {ActorRole.OWNER, ActorRole.CUSTOMER}

    def test_action_for_status(self):
        assert TransitionAction.for_status(AppointmentStatus.NO_SHOW) is TransitionAction.NO_SHOW


class TestEnsureNotTerminal:
    """Test that terminal statuses are final."""

    @pytest.mark.parametrize(
        "status",
        [AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW],
    )
    def test_terminal_status_is_rejected(self, make_appointment, status):
        with pytest.raises(BookingValidationError, match=f"already {status.value}"):
            ensure_not_terminal(make_appointment(status=status))

    @pytest.mark.parametrize("status", [AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED])
    def test_active_status_passes(self, make_appointment, status):
        ensure_not_terminal(make_appointment(status=status))
